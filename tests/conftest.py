"""Shared fixtures: in-memory MongoDB, provider keys, fake SDK replies and an API client."""

from types import SimpleNamespace

import mongomock
import pytest

from content_generation import database


@pytest.fixture
def mongo_db(monkeypatch):
    """Replace the shared database with an empty mongomock one."""
    db = mongomock.MongoClient()["deep_content_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture(autouse=True)
def api_keys(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-anthropic-key")
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("SUPADATA_API_KEY", "test-supadata-key")


@pytest.fixture
def anthropic_reply():
    """Build an object shaped like an Anthropic Messages response."""

    def build(text, input_tokens=12, output_tokens=34):
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=text)],
            usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        )

    return build


@pytest.fixture
def openai_reply():
    """Build an object shaped like an OpenAI chat completion."""

    def build(text, prompt_tokens=5, completion_tokens=7):
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
            usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
        )

    return build


@pytest.fixture
def client(monkeypatch, mongo_db):
    """
    TestClient for the app. Bearer tokens of the form "user-..." authenticate
    as that user id; any other token is rejected.
    """
    from fastapi.testclient import TestClient

    import auth
    from app import app

    def fake_verify(token):
        if token.startswith("user-"):
            return {"sub": token}
        return None

    monkeypatch.setattr(auth, "verify_jwt_token", fake_verify)
    with TestClient(app) as test_client:
        yield test_client


def bearer(user_id):
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def as_user():
    """Headers authenticating as the given user id."""
    return bearer
