"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and the client's
connectivity probe.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from civic_hub.config.supabase import get_db
from civic_hub.core.settings import settings
from civic_hub.utils.supabase_helpers import execute
from datetime import datetime, timezone


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "OK",
        "message": f"{settings.APP_NAME} API is running",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
def database_health():
    """
    Database connectivity check.
    Reads a single issue id to verify Supabase is reachable.
    """
    try:
        execute(get_db().table("civic_issues").select("id").limit(1))
        return {
            "status": "OK",
            "database": "supabase",
            "connected": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": "Database unavailable",
                "message": f"Database connection failed: {str(e)}",
            },
        )
