"""Session helpers: the access token issued by the hosted auth service lives in a cookie."""
from __future__ import annotations

from typing import Any, Dict

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from starlette.requests import HTTPConnection

from app.config import settings
from app.core.exceptions import AppError
from app.integrations.identity import IdentityProvider, get_identity_provider
from app.schemas.auth import AuthSession

ALGORITHM = "HS256"
AUDIENCE = "authenticated"
PKCE_COOKIE_NAME = "sb-code-verifier"
OAUTH_PROVIDER_COOKIE_NAME = "sb-oauth-provider"


def _jwt_secret() -> str:
    return settings.supabase_jwt_secret.get_secret_value()


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, _jwt_secret(), algorithms=[ALGORITHM], audience=AUDIENCE)


def token_from_request(request: HTTPConnection) -> str | None:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def resolve_user(token: str, identity: IdentityProvider) -> Dict[str, Any]:
    """Verify a token locally when the JWT secret is configured, otherwise ask the provider."""
    if _jwt_secret():
        try:
            payload = decode_token(token)
        except jwt.PyJWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
            )
        return {"id": str(payload.get("sub", "")), "email": payload.get("email"), "role": payload.get("role")}

    try:
        user = await identity.get_user(token)
    except AppError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    return user.model_dump()


async def get_current_user(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any]:
    token = token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
        )
    return await resolve_user(token, identity)


async def user_from_connection(connection: HTTPConnection, identity: IdentityProvider) -> Dict[str, Any] | None:
    """Signed-in user for an HTTP request or websocket, or None."""
    token = token_from_request(connection)
    if not token:
        return None
    try:
        return await resolve_user(token, identity)
    except HTTPException:
        return None


async def get_optional_user(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any] | None:
    return await user_from_connection(request, identity)


async def require_user(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any] | None:
    """Current user when AUTH_REQUIRED is on; optional user otherwise."""
    if not settings.auth_required:
        return await get_optional_user(request, identity)
    return await get_current_user(request, identity)


def set_session_cookie(response: Response, session: AuthSession) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        session.access_token,
        max_age=session.expires_in or None,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name)
