from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Dict
from sqlalchemy.orm import Session
import structlog

from app.config.settings import settings
from app.core.database import check_connection, get_database, get_stats

logger = structlog.get_logger()

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    database: str
    stats: Dict[str, int] = {}


@router.get("", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(db: Session = Depends(get_database)):
    """Health check endpoint with local store row counts"""
    timestamp = datetime.now(timezone.utc)

    if not check_connection(db):
        body = HealthResponse(
            status="unhealthy",
            timestamp=timestamp,
            version="1.0.0",
            environment=settings.environment,
            database="disconnected",
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(mode="json"),
        )

    return HealthResponse(
        status="healthy",
        timestamp=timestamp,
        version="1.0.0",
        environment=settings.environment,
        database="connected",
        stats=get_stats(db),
    )


@router.get("/readiness")
async def readiness_check(db: Session = Depends(get_database)):
    """Readiness check endpoint"""
    checks = {
        "database": "ok" if check_connection(db) else "unavailable",
        "azure_devops": "ok" if settings.azure_devops_config() else "not_configured",
    }

    # Azure DevOps is optional: discovery and import answer 503 until configured
    ready = checks["database"] == "ok"

    return {
        "status": "ready" if ready else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc),
    }
