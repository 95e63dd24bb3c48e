"""Scan endpoints: trigger a scan for a repository and poll its state and findings."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.core.database import get_db
from app.models import Scan, Vulnerability
from app.schemas.auth import CurrentUser
from app.schemas.findings import VulnerabilityRead
from app.schemas.scan import ScanRead
from app.services.scan_orchestrator import (
    RepositoryAccessError,
    RepositoryNotFoundError,
    ScanAdmissionError,
    ScanCapacityError,
    ScanConflictError,
    ScanOrchestrator,
    get_orchestrator,
)

router = APIRouter()

_ADMISSION_STATUS: dict[type[ScanAdmissionError], int] = {
    RepositoryNotFoundError: status.HTTP_404_NOT_FOUND,
    RepositoryAccessError: status.HTTP_403_FORBIDDEN,
    ScanConflictError: status.HTTP_409_CONFLICT,
    ScanCapacityError: status.HTTP_429_TOO_MANY_REQUESTS,
}


def _owned_scan(db: Session, scan_id: int, user: CurrentUser) -> Scan:
    scan = db.get(Scan, scan_id)
    if scan is None or scan.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
    return scan


@router.post(
    "/repositories/{repository_id}/scans",
    response_model=ScanRead,
    status_code=status.HTTP_201_CREATED,
)
async def trigger_scan(
    repository_id: int,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
) -> ScanRead:
    """
    Start a security scan of the repository.

    Returns immediately with the IN_PROGRESS scan; follow progress over the
    events WebSocket or by polling GET /scans/{id}. 409 if a scan is already
    running for the repository, 429 when the service is at its concurrent-scan
    limit.
    """
    try:
        return await orchestrator.trigger_scan(repository_id, user.id, trigger="MANUAL")
    except ScanAdmissionError as e:
        code = _ADMISSION_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=code, detail=e.message) from e


@router.get("/scans/{scan_id}", response_model=ScanRead)
def get_scan(
    scan_id: int,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ScanRead:
    """Return the current state of one of the caller's scans."""
    return ScanRead.model_validate(_owned_scan(db, scan_id, user))


@router.get("/scans/{scan_id}/vulnerabilities", response_model=list[VulnerabilityRead])
def list_scan_vulnerabilities(
    scan_id: int,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> list[VulnerabilityRead]:
    """Return the findings recorded by a completed scan, in discovery order."""
    _owned_scan(db, scan_id, user)
    rows = (
        db.query(Vulnerability)
        .filter(Vulnerability.scan_id == scan_id)
        .order_by(Vulnerability.id)
        .all()
    )
    return [VulnerabilityRead.model_validate(row) for row in rows]
