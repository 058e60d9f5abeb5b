"""
Server-rendered pages: login form and the dashboard.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from app.api.dependencies import get_dashboard_loader, get_identity_provider, get_optional_user
from app.config import settings
from app.core.exceptions import AppError
from app.core.security import OAUTH_PROVIDER_COOKIE_NAME, PKCE_COOKIE_NAME, set_session_cookie
from app.integrations.identity import IdentityProvider
from app.schemas.dashboard import Notification
from app.services.charts import render_s_curve
from app.services.dashboard_loader import DashboardLoader
from app.services.project_map import render_project_map

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
FLASH_COOKIE_NAME = "flash"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter()


def set_flash(response: Response, level: str, message: str) -> None:
    response.set_cookie(FLASH_COOKIE_NAME, quote(f"{level}|{message}"), max_age=60, httponly=True, samesite="lax")


def read_flash(request: Request) -> List[Notification]:
    raw = request.cookies.get(FLASH_COOKIE_NAME)
    if not raw:
        return []
    level, _, message = unquote(raw).partition("|")
    if level not in ("success", "error", "info") or not message:
        return []
    return [Notification(level=level, message=message)]


def render_login(
    request: Request,
    notifications: Optional[List[Notification]] = None,
    email: str = "",
    status_code: int = 200,
) -> HTMLResponse:
    context: Dict[str, Any] = {
        "app_name": settings.app_name,
        "email": email,
        "notifications": read_flash(request) + list(notifications or []),
        "oauth_provider": settings.oauth_provider,
        "oauth_label": settings.oauth_provider.capitalize(),
    }
    response = templates.TemplateResponse(request, "login.html", context, status_code=status_code)
    response.delete_cookie(FLASH_COOKIE_NAME)
    return response


def oauth_failure(request: Request, message: str) -> HTMLResponse:
    provider = request.cookies.get(OAUTH_PROVIDER_COOKIE_NAME) or settings.oauth_provider
    label = provider.capitalize()
    logger.info("OAuth sign-in via %s failed: %s", provider, message)
    response = render_login(
        request,
        [Notification(level="error", message=f"{label} login failed: {message}")],
        status_code=401,
    )
    response.delete_cookie(PKCE_COOKIE_NAME)
    response.delete_cookie(OAUTH_PROVIDER_COOKIE_NAME)
    return response


@router.get("/")
async def index() -> RedirectResponse:
    return RedirectResponse(settings.post_login_path, status_code=302)


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request) -> HTMLResponse:
    return render_login(request)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    loader: DashboardLoader = Depends(get_dashboard_loader),
    identity: IdentityProvider = Depends(get_identity_provider),
    user: Optional[dict] = Depends(get_optional_user),
) -> Response:
    # The OAuth provider sends the browser back here with either ?code= or ?error=.
    error = request.query_params.get("error_description") or request.query_params.get("error")
    if error:
        return oauth_failure(request, error)

    code = request.query_params.get("code")
    if code:
        verifier = request.cookies.get(PKCE_COOKIE_NAME)
        if not verifier:
            return oauth_failure(request, "missing code verifier; start the sign-in again")
        try:
            session = await identity.exchange_code_for_session(code, verifier)
        except AppError as exc:
            return oauth_failure(request, exc.message)
        response = RedirectResponse(settings.post_login_path, status_code=303)
        set_session_cookie(response, session)
        response.delete_cookie(PKCE_COOKIE_NAME)
        response.delete_cookie(OAUTH_PROVIDER_COOKIE_NAME)
        set_flash(response, "success", "Login successful!")
        return response

    if settings.auth_required and user is None:
        return RedirectResponse("/login", status_code=303)

    snapshot = await loader.load()
    context: Dict[str, Any] = {
        "app_name": settings.app_name,
        "user": user,
        "snapshot": snapshot,
        "chart_html": render_s_curve(),
        "map_html": render_project_map(snapshot.projects),
        "notifications": read_flash(request) + snapshot.notifications,
    }
    response = templates.TemplateResponse(request, "dashboard.html", context)
    response.delete_cookie(FLASH_COOKIE_NAME)
    return response


@router.get("/dashboard/map", response_class=HTMLResponse)
async def dashboard_map(
    loader: DashboardLoader = Depends(get_dashboard_loader),
    user: Optional[dict] = Depends(get_optional_user),
) -> Response:
    """Project map for the last applied refetch; the page swaps it in on live updates."""
    if settings.auth_required and user is None:
        return Response(status_code=401)
    return HTMLResponse(render_project_map(loader.snapshot().projects))
