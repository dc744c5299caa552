"""Tests for the HTTP layer: routing, auth, status codes and error bodies."""

from unittest.mock import patch

import httpx
import pytest
from bson import ObjectId

from content_generation import sessions
from content_generation.errors import ProviderError
from content_generation.workflow import ContentWorkflow

SESSION_BODY = {
    "contentType": "Blog Post",
    "idea": "How remote work affects team culture",
    "questions": [{"id": "q-1", "text": "Audience?", "answer": "Managers"}],
    "generatedContent": "The post",
    "contentSource": "Anthropic",
}


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Deep Content API"

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert "error" in response.json()


class TestAuth:
    def test_invalid_token_is_rejected(self, client):
        response = client.get("/api/sessions", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_anonymous_request_to_protected_route(self, client):
        response = client.get("/api/sessions")
        assert response.status_code == 401
        assert response.json() == {"error": "User authentication required. Please log in."}

    def test_wrong_api_key(self, client, monkeypatch):
        monkeypatch.setattr("auth.API_KEY", "server-key")
        response = client.get("/", headers={"X-API-Key": "wrong"})
        assert response.status_code == 403

    def test_anonymous_request_to_open_route(self, client):
        assert client.post("/api/supadata/youtube", json={}).status_code == 400


class TestGenerationRoutes:
    def test_questions(self, client):
        with patch("content_generation.stages.providers.anthropic_complete", return_value=("1. One?\n2. Two?\n3. Three?", {})):
            response = client.post("/api/anthropic/questions", json={"idea": "An idea", "contentType": "Blog Post"})

        assert response.status_code == 200
        assert response.json()["questions"][2] == {"id": "q-3", "text": "Three?", "answer": ""}

    def test_questions_upstream_status(self, client):
        with patch("content_generation.stages.providers.anthropic_complete", side_effect=ProviderError("Overloaded", 529)):
            response = client.post("/api/anthropic/questions", json={"idea": "An idea", "contentType": "Blog Post"})

        assert response.status_code == 529
        assert response.json() == {"error": "Overloaded"}

    def test_questions_missing_key(self, client, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        response = client.post("/api/anthropic/questions", json={"idea": "An idea", "contentType": "Blog Post"})
        assert response.status_code == 500
        assert response.json() == {"error": "Anthropic API key is not configured"}

    def test_generate(self, client):
        with patch("content_generation.stages.providers.generate_with_fallback", return_value={"content": "Post", "source": "OpenAI"}):
            response = client.post("/api/anthropic/generate", json={**SESSION_BODY, "research": "R"})

        assert response.status_code == 200
        assert response.json() == {"content": "Post", "source": "OpenAI"}

    def test_generate_total_failure(self, client):
        with patch("content_generation.stages.providers.generate_with_fallback", side_effect=ProviderError("both down")):
            response = client.post("/api/anthropic/generate", json={**SESSION_BODY, "research": "R"})

        assert response.status_code == 500
        assert response.json() == {"error": "both down"}

    def test_research(self, client):
        with patch("content_generation.stages.providers.openai_complete", return_value=("Findings", {})):
            response = client.post("/api/perplexity/research", json=SESSION_BODY)
        assert response.json() == {"research": "Findings"}

    def test_research_missing_key(self, client, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        response = client.post("/api/perplexity/research", json=SESSION_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "OpenAI API key is not configured"}


class TestTranscriptRoutes:
    def test_youtube_without_captions_is_200(self, client):
        reply = httpx.Response(404, json={}, request=httpx.Request("GET", "https://api.supadata.ai"))
        with patch("content_generation.transcripts.httpx.get", return_value=reply):
            response = client.post("/api/supadata/youtube", json={"url": "https://youtu.be/abcdefghijk"})

        assert response.status_code == 200
        assert response.json()["content"].startswith("No transcript available for this YouTube video.")

    def test_web_upstream_status(self, client):
        reply = httpx.Response(404, json={}, request=httpx.Request("GET", "https://api.supadata.ai"))
        with patch("content_generation.transcripts.httpx.get", return_value=reply):
            response = client.post("/api/supadata/web", json={"url": "https://example.com"})

        assert response.status_code == 404
        assert "error" in response.json()

    def test_missing_url(self, client):
        response = client.post("/api/supadata/web", json={"url": "  "})
        assert response.status_code == 400
        assert response.json() == {"error": "URL is required"}

    def test_missing_key(self, client, monkeypatch):
        monkeypatch.delenv("SUPADATA_API_KEY")
        response = client.post("/api/supadata/youtube", json={"url": "https://youtu.be/abcdefghijk"})
        assert response.status_code == 500
        assert response.json() == {"error": "Supadata API key is not configured"}

    @pytest.mark.parametrize(
        "url, expected",
        [("https://www.youtube.com/watch?v=abcdefghijk", "video"), ("https://example.com/post", "page")],
    )
    def test_any_url_is_routed_by_kind(self, client, url, expected):
        with patch("content_generation.transcripts.fetch_youtube_transcript", return_value="video"), \
                patch("content_generation.transcripts.scrape_web_page", return_value="page"):
            response = client.post("/api/supadata/transcript", json={"url": url})

        assert response.status_code == 200
        assert response.json() == {"content": expected}

    def test_any_url_upstream_status(self, client):
        reply = httpx.Response(403, json={}, request=httpx.Request("GET", "https://api.supadata.ai"))
        with patch("content_generation.transcripts.httpx.get", return_value=reply):
            response = client.post("/api/supadata/transcript", json={"url": "https://example.com"})

        assert response.status_code == 403
        assert "error" in response.json()


class TestChatRoutes:
    MESSAGES = [{"role": "user", "content": "Give me a hook for a blog post"}]

    @pytest.mark.parametrize("provider, source", [("anthropic", "Anthropic"), ("openai", "OpenAI")])
    def test_chat(self, client, provider, source):
        result = {"content": "Hook!", "source": source, "usage": {"provider": provider, "model": "m", "input_tokens": 1, "output_tokens": 2, "total_tokens": 3}}
        with patch("content_generation.providers.chat", return_value=result) as chat:
            response = client.post(f"/api/{provider}/chat", json={"messages": self.MESSAGES})

        assert response.status_code == 200
        assert response.json()["content"] == "Hook!"
        assert response.json()["source"] == source
        assert chat.call_args.args[0] == provider

    def test_unknown_provider(self, client):
        response = client.post("/api/google/chat", json={"messages": self.MESSAGES})
        assert response.status_code == 404

    def test_empty_conversation(self, client):
        assert client.post("/api/anthropic/chat", json={"messages": []}).status_code == 400

    def test_provider_error(self, client):
        with patch("content_generation.providers.chat", side_effect=ProviderError("rate limited", 429)):
            response = client.post("/api/openai/chat", json={"messages": self.MESSAGES})
        assert response.status_code == 429
        assert response.json() == {"error": "rate limited"}


class TestSessionRoutes:
    def test_crud(self, client, as_user):
        created = client.post("/api/sessions", json=SESSION_BODY, headers=as_user("user-a"))
        assert created.status_code == 201
        session_id = created.json()["id"]

        listed = client.get("/api/sessions", headers=as_user("user-a")).json()["sessions"]
        assert [s["id"] for s in listed] == [session_id]

        updated = client.patch(f"/api/sessions/{session_id}", json={"generatedContent": "v2"}, headers=as_user("user-a"))
        assert updated.json()["generatedContent"] == "v2"

        fetched = client.get(f"/api/sessions/{session_id}", headers=as_user("user-a")).json()
        assert fetched["userId"] == "user-a"
        assert fetched["idea"] == SESSION_BODY["idea"]

        assert client.delete(f"/api/sessions/{session_id}", headers=as_user("user-a")).status_code == 204
        assert client.get(f"/api/sessions/{session_id}", headers=as_user("user-a")).status_code == 404

    def test_other_user_is_forbidden(self, client, as_user):
        session_id = client.post("/api/sessions", json=SESSION_BODY, headers=as_user("user-a")).json()["id"]

        for method in ("get", "delete"):
            response = getattr(client, method)(f"/api/sessions/{session_id}", headers=as_user("user-b"))
            assert response.status_code == 403
            assert response.json() == {"error": "You do not have permission to access this content"}
        assert sessions.get_content_session(session_id, "user-a") is not None

    def test_empty_update(self, client, as_user):
        session_id = client.post("/api/sessions", json=SESSION_BODY, headers=as_user("user-a")).json()["id"]
        response = client.patch(f"/api/sessions/{session_id}", json={}, headers=as_user("user-a"))
        assert response.status_code == 400

    def test_unknown_content_source_is_rejected(self, client, as_user):
        response = client.post("/api/sessions", json={**SESSION_BODY, "contentSource": "Gemini"}, headers=as_user("user-a"))
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request body"

    def test_unknown_session(self, client, as_user):
        assert client.get(f"/api/sessions/{ObjectId()}", headers=as_user("user-a")).status_code == 404

    def test_repair(self, client, as_user, mongo_db):
        orphan = mongo_db["contentSessions"].insert_one({"idea": "Orphan"}).inserted_id
        response = client.post(f"/api/sessions/{orphan}/repair", headers=as_user("user-a"))
        assert response.json() == {"success": True}
        assert mongo_db["contentSessions"].find_one({"_id": orphan})["userId"] == "user-a"

        mongo_db["contentSessions"].insert_one({"userId": "user-a"})
        assert client.post("/api/sessions/repair", headers=as_user("user-a")).json() == {"repaired": 2}

    def test_repair_other_users_session(self, client, as_user, mongo_db):
        theirs = mongo_db["contentSessions"].insert_one({"userId": "user-b"}).inserted_id
        assert client.post(f"/api/sessions/{theirs}/repair", headers=as_user("user-a")).status_code == 403


class TestConversationRoutes:
    BODY = {"messages": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}]}

    def test_save_list_get_delete(self, client, as_user):
        saved = client.post("/api/conversations", json=self.BODY, headers=as_user("user-a"))
        assert saved.status_code == 201
        conversation_id = saved.json()["id"]
        assert saved.json()["title"] == "Hi"

        listed = client.get("/api/conversations", headers=as_user("user-a")).json()["conversations"]
        assert [c["id"] for c in listed] == [conversation_id]

        fetched = client.get(f"/api/conversations/{conversation_id}", headers=as_user("user-a")).json()
        assert len(fetched["messages"]) == 2

        assert client.delete(f"/api/conversations/{conversation_id}", headers=as_user("user-a")).status_code == 204

    def test_other_user_is_forbidden(self, client, as_user):
        conversation_id = client.post("/api/conversations", json=self.BODY, headers=as_user("user-a")).json()["id"]
        assert client.get(f"/api/conversations/{conversation_id}", headers=as_user("user-b")).status_code == 403
        assert client.delete(f"/api/conversations/{conversation_id}", headers=as_user("user-b")).status_code == 403

    def test_empty_conversation(self, client, as_user):
        assert client.post("/api/conversations", json={"messages": []}, headers=as_user("user-a")).status_code == 400

    def test_requires_login(self, client):
        assert client.post("/api/conversations", json=self.BODY).status_code == 401


class TestWorkflowRoutes:
    @pytest.fixture
    def flow(self, monkeypatch):
        import workflow as workflow_routes

        async def no_sleep(delay):
            pass

        content_workflow = ContentWorkflow(
            question_stage=lambda idea, content_type, transcript=None: [
                {"id": "q-1", "text": f"Why this {content_type}?", "answer": ""}
            ],
            research_stage=lambda idea, content_type, questions, transcript=None: f"Research for {content_type}",
            content_stage=lambda idea, content_type, questions, research, transcript=None, feedback=None: {
                "content": f"Content ({feedback or 'first'})",
                "source": "Anthropic",
            },
            sleep=no_sleep,
        )
        monkeypatch.setattr(workflow_routes, "content_workflow", content_workflow)
        return content_workflow

    def test_full_run(self, client, as_user, flow, mongo_db):
        base = "/api/workflow/browser-1"
        started = client.post(f"{base}/start", json={"contentType": "Blog Post", "idea": "Remote work"})
        assert started.json()["step"] == "questions"

        questions = client.get(f"{base}/questions").json()["questions"]
        questions[0]["answer"] = "Because"
        assert client.post(f"{base}/answers", json={"questions": questions}).json()["step"] == "research"

        assert client.get(f"{base}/research").json() == {"research": "Research for Blog Post"}

        result = client.post(f"{base}/content", headers=as_user("user-a")).json()
        assert result["content"] == "Content (first)"
        assert result["saved"] is True

        regenerated = client.post(f"{base}/regenerate", json={"feedback": "shorter"}, headers=as_user("user-a")).json()
        assert regenerated["content"] == "Content (shorter)"
        assert mongo_db["contentSessions"].find_one({})["generatedContent"] == "Content (shorter)"

        assert client.get(base).json()["step"] == "content"
        assert client.delete(base).status_code == 204
        assert client.get(base).json()["step"] == "idea"

    def test_out_of_order_step_redirects(self, client, flow):
        response = client.get("/api/workflow/browser-2/research")
        assert response.status_code == 409
        assert response.json()["redirect"] == "/"
        assert "error" in response.json()

    def test_start_validation(self, client, flow):
        response = client.post("/api/workflow/browser-3/start", json={"contentType": "Blog Post", "idea": ""})
        assert response.status_code == 400
        assert response.json() == {"error": "Please enter your content idea"}

    def test_save_requires_login(self, client, flow):
        client.post("/api/workflow/browser-4/start", json={"contentType": "Blog Post", "idea": "Remote work"})
        assert client.post("/api/workflow/browser-4/save").status_code == 401
