"""Shared API dependencies."""
from fastapi import Request

from app.core.security import get_current_user, get_optional_user
from app.integrations.identity import get_identity_provider
from app.services.dashboard_loader import DashboardLoader


def get_dashboard_loader(request: Request) -> DashboardLoader:
    return request.app.state.dashboard_loader


__all__ = ["get_current_user", "get_optional_user", "get_identity_provider", "get_dashboard_loader"]
