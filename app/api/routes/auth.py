from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse, Response

from app.config import settings
from app.core.exceptions import AppError
from app.core.security import (
    OAUTH_PROVIDER_COOKIE_NAME,
    PKCE_COOKIE_NAME,
    clear_session_cookie,
    get_current_user,
    set_session_cookie,
    token_from_request,
)
from app.integrations.identity import IdentityProvider, get_identity_provider
from app.api.routes.web import render_login, set_flash
from app.schemas.auth import AuthSession, LoginRequest, UserOut
from app.schemas.dashboard import Notification

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Response:
    """Password sign-in from the login form."""
    try:
        session = await identity.sign_in_with_password(email, password)
    except AppError as exc:
        return render_login(
            request,
            [Notification(level="error", message=f"Login failed: {exc.message}")],
            email=email,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    response = RedirectResponse(settings.post_login_path, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session)
    set_flash(response, "success", "Login successful!")
    return response


@router.post("/token", response_model=AuthSession)
async def token(
    payload: LoginRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> AuthSession:
    """Password sign-in for API clients."""
    try:
        return await identity.sign_in_with_password(payload.email, payload.password)
    except AppError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)


@router.get("/oauth/{provider}")
async def oauth_login(
    provider: str,
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> RedirectResponse:
    """Send the browser to the external provider; it comes back to the post-login route."""
    origin = str(request.base_url).rstrip("/")
    redirect = identity.build_oauth_redirect(provider, f"{origin}{settings.post_login_path}")
    response = RedirectResponse(redirect.url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        PKCE_COOKIE_NAME,
        redirect.code_verifier,
        max_age=600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        OAUTH_PROVIDER_COOKIE_NAME,
        provider,
        max_age=600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return response


@router.post("/logout")
async def logout(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> RedirectResponse:
    token_value = token_from_request(request)
    if token_value:
        try:
            await identity.sign_out(token_value)
        except AppError as exc:
            logger.warning("Provider sign-out failed: %s", exc.message)
    response = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=UserOut)
async def me(user: dict = Depends(get_current_user)) -> UserOut:
    return UserOut(**user)
