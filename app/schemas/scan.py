"""Pydantic schemas for scans: lifecycle values, summary, progress, and API read models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ScanStatus = Literal["QUEUED", "IN_PROGRESS", "COMPLETED", "FAILED"]
ScanTrigger = Literal["MANUAL", "WEBHOOK", "SCHEDULED"]


class TypeCount(BaseModel):
    """How many findings share one type tag."""

    type: str
    count: int = Field(..., ge=1)


class ScanSummary(BaseModel):
    """Severity histogram and most frequent finding types for one scan."""

    total: int = Field(default=0, ge=0)
    severity_distribution: dict[str, int] = Field(
        default_factory=lambda: {"CRITICAL": 0, "HIGH": 0, "MEDIUM": 0, "LOW": 0},
        description="Count per severity; always has all four keys.",
    )
    top_vulnerability_types: list[TypeCount] = Field(
        default_factory=list,
        max_length=5,
        description="Up to five (type, count) pairs, most frequent first.",
    )


class ScoreResult(BaseModel):
    """Security score plus summary for a finding set."""

    score: int = Field(..., ge=0, le=100)
    summary: ScanSummary


class ScanProgress(BaseModel):
    """Ephemeral progress notification for one completed file."""

    scan_id: int | None = None
    progress: int = Field(..., ge=0, le=100)
    current_file: str
    scanned_files: int = Field(..., ge=0)
    total_files: int = Field(..., ge=0)


class ScanRead(BaseModel):
    """Scan record as returned by the API (also used for polling)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    repository_id: int
    user_id: int
    status: ScanStatus
    trigger: ScanTrigger
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_files: int = 0
    files_scanned: int = 0
    vulnerabilities_found: int = 0
    security_score: int | None = None
    summary: ScanSummary | None = None
    error_message: str | None = None
