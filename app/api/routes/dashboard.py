from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_dashboard_loader
from app.core.security import require_user
from app.schemas.dashboard import DashboardSnapshot
from app.services.dashboard_loader import DashboardLoader

router = APIRouter()


@router.get("/", response_model=DashboardSnapshot)
async def dashboard_data(
    loader: DashboardLoader = Depends(get_dashboard_loader),
    user: Optional[dict] = Depends(require_user),
) -> DashboardSnapshot:
    return await loader.load()


@router.get("/snapshot", response_model=DashboardSnapshot)
async def dashboard_snapshot(
    loader: DashboardLoader = Depends(get_dashboard_loader),
    user: Optional[dict] = Depends(require_user),
) -> DashboardSnapshot:
    """Last loaded state without refetching."""
    return loader.snapshot()


@router.post("/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh_dashboard(
    loader: DashboardLoader = Depends(get_dashboard_loader),
    user: Optional[dict] = Depends(require_user),
) -> dict:
    loader.refresh()
    return {"scheduled": True, "generation": loader.generation}
