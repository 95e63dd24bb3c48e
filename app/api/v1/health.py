"""Health check endpoint: database connectivity and scan capacity."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse
from app.services.scan_orchestrator import ScanOrchestrator, get_orchestrator

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
) -> HealthResponse:
    """
    Return service health, database connectivity and how many scan slots are in use.
    Used by load balancers and monitoring.
    """
    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database="connected" if check_db_connected(db) else "disconnected",
        active_scans=orchestrator.gate.active_count,
        max_concurrent_scans=orchestrator.gate.max_concurrent,
    )
