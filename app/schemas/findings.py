"""Pydantic schemas for source files and AI-extracted vulnerability findings."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Canonical severities; model output is always normalized into one of these.
Severity = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]

SEVERITY_VALUES: tuple[str, ...] = ("CRITICAL", "HIGH", "MEDIUM", "LOW")


class SourceFile(BaseModel):
    """One entry of a repository file listing."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Bare file name (e.g. login.js).")
    path: str = Field(..., min_length=1, description="Path within the repository.")
    size: int = Field(default=0, ge=0, description="Size in bytes as reported by the source host.")


class ExtractedFinding(BaseModel):
    """A single vulnerability parsed from the model's reply for one file."""

    type: str = Field(..., min_length=1, description="Free-form category tag (e.g. SQL_INJECTION).")
    severity: Severity = Field(..., description="Normalized severity.")
    title: str = Field(..., description="Short descriptive title.")
    description: str = Field(..., description="What is wrong.")
    impact: str = Field(..., description="Potential security impact.")
    recommendation: str = Field(..., description="How to fix it.")
    file_path: str = Field(..., description="Path of the analyzed file.")
    file_name: str = Field(..., description="Name of the analyzed file.")
    line_number: int = Field(default=1, ge=1, description="Approximate, best-effort line number.")
    code_snippet: str = Field(default="", description="Lines around line_number, prefixed with their numbers.")
    confidence: str = Field(default="MEDIUM", description="Model-reported confidence tag.")


class VulnerabilityRead(BaseModel):
    """Persisted vulnerability as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    scan_id: int
    repository_id: int
    type: str
    severity: str
    title: str
    description: str
    impact: str
    recommendation: str
    file_path: str
    file_name: str
    line_number: int
    code_snippet: str
    confidence: str
    status: str
    discovered_at: datetime | None = None
