"""
Health check endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from innet.core.config import get_settings
from innet.core.database import get_db
from innet.core.errors import StoreUnavailableError
from innet.core.logging_config import LoggingConfig
from innet.services.alias_store import SqlAlchemyAliasStore
from innet.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": get_settings().app_name
    }


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check with component status

    Returns:
        dict: Health status of the database and the short link table
    """
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.app_name,
        "version": "0.1.0",
        "environment": settings.app_env,
        "components": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        db.rollback()
        health_status["status"] = "unhealthy"
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
            "error": type(e).__name__
        }
        return health_status

    try:
        counts = SqlAlchemyAliasStore(db).count_by_state(utc_now())
        health_status["components"]["share_links"] = {"status": "healthy", **counts}
    except StoreUnavailableError as e:
        logger.warning(f"Short link table check failed: {e}")
        health_status["status"] = "degraded"
        health_status["components"]["share_links"] = {
            "status": "degraded",
            "message": f"Short link table unavailable: {str(e)}",
            "error": type(e).__name__
        }

    return health_status
