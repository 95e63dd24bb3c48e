"""Response schema for repository statistics."""

from pydantic import BaseModel, Field


class RepositoryStats(BaseModel):
    """Aggregated vulnerability and scan counts for one repository."""

    repository_id: int
    total_vulnerabilities: int = Field(..., ge=0)
    open_vulnerabilities: int = Field(..., ge=0)
    total_scans: int = Field(..., ge=0)
    severity_distribution: dict[str, int]
    security_score: int | None = Field(
        default=None,
        description="Score cached on the repository by its last completed scan.",
    )
    open_score: int = Field(
        ...,
        ge=0,
        le=100,
        description="Score recomputed from currently open vulnerabilities (repository weighting).",
    )
    cached: bool = False
