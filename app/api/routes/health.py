"""
Health API Routes
"""
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import check_database_connection, database_health

router = APIRouter()


@router.get("/health")
async def health_check() -> JSONResponse:
    """Application and database health"""
    db = database_health()
    ok = bool(db.get("ok")) and check_database_connection()
    return JSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if ok else "degraded",
            "database": db,
        },
    )


@router.get("/integrations")
async def check_integrations() -> dict:
    """Verify external API key presence."""
    checks = {
        "supabase": bool(settings.supabase_anon_key.get_secret_value()),
        "openweathermap": bool(settings.openweathermap_api_key.get_secret_value()),
        "jwt_secret": bool(settings.supabase_jwt_secret.get_secret_value()),
    }
    return {
        "integrations": checks,
        "ready": all(checks.values()),
        "missing": [k for k, v in checks.items() if not v],
    }
