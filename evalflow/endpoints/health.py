"""Health check endpoints for monitoring."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from evalflow.config.database import get_db
from evalflow.config.settings import settings

logger = structlog.get_logger()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    database: str
    mailer: str


def check_database(db: Session) -> str:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return "connected"
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return "disconnected"


@router.get("", response_model=HealthResponse)
async def health_check(db: Session = Depends(get_db)):
    """Report service, database and mailer status."""
    database = check_database(db)
    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
        mailer="configured" if settings.mailer_configured else "not_configured",
    )
