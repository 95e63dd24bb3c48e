"""Repository statistics endpoint, cached until the next completed scan."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.core.database import get_db
from app.models import Repository, Scan, Vulnerability
from app.schemas.auth import CurrentUser
from app.schemas.findings import SEVERITY_VALUES
from app.schemas.stats import RepositoryStats
from app.services.cache import StatsCache, get_stats_cache, repository_stats_key
from app.services.scoring import repository_open_score

router = APIRouter()


def compute_repository_stats(db: Session, repository: Repository) -> RepositoryStats:
    """Count vulnerabilities and scans for a repository and recompute its open score."""
    by_severity = dict(
        db.query(Vulnerability.severity, func.count(Vulnerability.id))
        .filter(Vulnerability.repository_id == repository.id)
        .group_by(Vulnerability.severity)
        .all()
    )
    distribution = {severity: int(by_severity.get(severity, 0)) for severity in SEVERITY_VALUES}
    open_count = (
        db.query(func.count(Vulnerability.id))
        .filter(Vulnerability.repository_id == repository.id, Vulnerability.status == "OPEN")
        .scalar()
    )
    total_scans = (
        db.query(func.count(Scan.id)).filter(Scan.repository_id == repository.id).scalar()
    )
    return RepositoryStats(
        repository_id=repository.id,
        total_vulnerabilities=sum(by_severity.values()),
        open_vulnerabilities=open_count or 0,
        total_scans=total_scans or 0,
        severity_distribution=distribution,
        security_score=repository.security_score,
        open_score=repository_open_score(db, repository.id),
    )


@router.get("/repositories/{repository_id}/stats", response_model=RepositoryStats)
def get_repository_stats(
    repository_id: int,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
    cache: Annotated[StatsCache, Depends(get_stats_cache)],
) -> RepositoryStats:
    """
    Vulnerability totals, severity distribution and scores for one of the caller's repositories.

    Served from cache when available (cached=true); a completed scan invalidates the entry.
    """
    repository = db.get(Repository, repository_id)
    if repository is None or repository.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Repository not found")

    key = repository_stats_key(repository_id)
    cached = cache.get(key)
    if cached is not None:
        return cached.model_copy(update={"cached": True})

    stats = compute_repository_stats(db, repository)
    cache.set(key, stats)
    return stats
