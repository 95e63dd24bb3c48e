"""Pydantic request/response schemas."""

from app.schemas.auth import CurrentUser
from app.schemas.findings import (
    SEVERITY_VALUES,
    ExtractedFinding,
    Severity,
    SourceFile,
    VulnerabilityRead,
)
from app.schemas.health import HealthResponse
from app.schemas.scan import (
    ScanProgress,
    ScanRead,
    ScanStatus,
    ScanSummary,
    ScanTrigger,
    ScoreResult,
    TypeCount,
)
from app.schemas.stats import RepositoryStats

__all__ = [
    "SEVERITY_VALUES",
    "CurrentUser",
    "ExtractedFinding",
    "HealthResponse",
    "RepositoryStats",
    "ScanProgress",
    "ScanRead",
    "ScanStatus",
    "ScanSummary",
    "ScanTrigger",
    "ScoreResult",
    "Severity",
    "SourceFile",
    "TypeCount",
    "VulnerabilityRead",
]
