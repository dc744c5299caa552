#!/usr/bin/env python3
"""
Authentication middleware for API key and JWT validation
Supports both API key (server-to-server) and JWT (browser) authentication

Anonymous requests are let through: the content wizard works without an
account. Routes that need an identity call require_user_id().
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx
import jwt
from dotenv import load_dotenv
from fastapi import HTTPException, Request, status
from jwt.algorithms import RSAAlgorithm
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

load_dotenv()

logger = logging.getLogger(__name__)

API_KEY = os.getenv("API_KEY")
API_KEY_HEADER_NAME = "X-API-Key"

# Identity provider configuration
AUTH_JWKS_URL = os.getenv("AUTH_JWKS_URL")
AUTH_ISSUER = os.getenv("AUTH_ISSUER")

# Cache for JWKS keys
_jwks_cache: Optional[Dict[str, Any]] = None


def get_jwks() -> Dict[str, Any]:
    """Fetch and cache JWKS from the identity provider"""
    global _jwks_cache
    if _jwks_cache is None:
        if not AUTH_JWKS_URL:
            logger.warning("[AUTH] AUTH_JWKS_URL not configured - cannot fetch JWKS")
            return {"keys": []}
        try:
            response = httpx.get(AUTH_JWKS_URL, timeout=10.0)
            response.raise_for_status()
            _jwks_cache = response.json()
            logger.info("[AUTH] Fetched JWKS with %d keys", len(_jwks_cache.get("keys", [])))
        except Exception as e:
            logger.error("[AUTH] Failed to fetch JWKS: %s", e)
            return {"keys": []}
    return _jwks_cache


def _find_key(kid: str):
    for key in get_jwks().get("keys", []):
        if key.get("kid") == kid:
            return RSAAlgorithm.from_jwk(key)
    return None


def get_signing_key(token: str):
    """Get the signing key for a JWT token from JWKS"""
    global _jwks_cache
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        if not kid:
            return None

        key = _find_key(kid)
        if key is None:
            # Key not found, the provider may have rotated its keys
            _jwks_cache = None
            key = _find_key(kid)
        return key
    except Exception as e:
        logger.error("[JWT] Error getting signing key: %s", e)
    return None


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a JWT token and return the payload
    Returns None if verification fails
    """
    try:
        signing_key = get_signing_key(token)
        if not signing_key:
            logger.warning("[JWT] Could not find signing key for token")
            return None

        payload = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            options={
                "verify_exp": True,
                "verify_aud": False,
            }
        )

        issuer = payload.get("iss", "")
        if AUTH_ISSUER and not issuer.startswith(AUTH_ISSUER):
            logger.warning("[JWT] Invalid issuer: %s", issuer)
            return None

        return payload

    except jwt.ExpiredSignatureError:
        logger.info("[JWT] Token has expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.info("[JWT] Invalid token: %s", e)
        return None


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Attaches the caller's identity to request.state.
    - X-API-Key header: server-to-server, must match API_KEY when one is configured
    - Authorization: Bearer <token>: must verify, the payload becomes request.state.user
    - neither: anonymous
    """

    async def dispatch(self, request: Request, call_next):
        # Skip validation for CORS preflight requests
        if request.method == "OPTIONS":
            return await call_next(request)

        api_key = request.headers.get(API_KEY_HEADER_NAME)
        if api_key is not None and API_KEY and api_key != API_KEY:
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"error": "Invalid API key"}
            )

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            payload = verify_jwt_token(auth_header[7:])
            if not payload:
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"error": "Invalid or expired token"}
                )
            request.state.user = payload

        return await call_next(request)


def get_user_from_request(request: Request) -> Optional[Dict[str, Any]]:
    """
    Get authenticated user from request state (set by middleware).
    Returns None if no user is authenticated.
    """
    return getattr(request.state, 'user', None)


def get_user_id(request: Request) -> Optional[str]:
    """The 'sub' claim of the verified token, or None for anonymous requests."""
    user = get_user_from_request(request)
    if user:
        return user.get('sub')
    return None


def require_user_id(request: Request) -> str:
    """
    Require and return the user ID from the authenticated user.
    Raises HTTPException if not authenticated with JWT.
    """
    user_id = get_user_id(request)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required. Please log in.",
        )
    return user_id
