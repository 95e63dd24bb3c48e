"""Deterministic security score and severity summary for a set of findings."""

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Scan, Vulnerability
from app.schemas.findings import SEVERITY_VALUES
from app.schemas.scan import ScanSummary, ScoreResult, TypeCount

MAX_SCORE = 100
MIN_SCORE = 0
TOP_TYPES_LIMIT = 5

# Penalty per finding, used when a scan completes.
SCAN_SEVERITY_PENALTIES: Mapping[str, int] = {
    "CRITICAL": 25,
    "HIGH": 10,
    "MEDIUM": 5,
    "LOW": 2,
}

# Penalty per open vulnerability, used when recomputing a repository's current score.
REPOSITORY_SEVERITY_PENALTIES: Mapping[str, int] = {
    "CRITICAL": 25,
    "HIGH": 15,
    "MEDIUM": 8,
    "LOW": 3,
}


class HasSeverityAndType(Protocol):
    severity: str
    type: str


def calculate_security_score(
    findings: Iterable[HasSeverityAndType],
    penalties: Mapping[str, int] = SCAN_SEVERITY_PENALTIES,
) -> int:
    """Start at 100, subtract the penalty for each finding's severity, clamp to [0, 100]."""
    score = MAX_SCORE
    for finding in findings:
        score -= penalties.get(finding.severity, 0)
    return max(MIN_SCORE, min(MAX_SCORE, score))


def summarize_findings(findings: Iterable[HasSeverityAndType]) -> ScanSummary:
    """
    Severity histogram plus the five most frequent types.

    Types with equal counts keep the order in which they were first seen.
    """
    items = list(findings)
    distribution = {severity: 0 for severity in SEVERITY_VALUES}
    for finding in items:
        if finding.severity in distribution:
            distribution[finding.severity] += 1
    # Counter preserves insertion order and most_common() sorts stably.
    type_counts = Counter(finding.type for finding in items)
    top = [TypeCount(type=t, count=c) for t, c in type_counts.most_common(TOP_TYPES_LIMIT)]
    return ScanSummary(
        total=len(items),
        severity_distribution=distribution,
        top_vulnerability_types=top,
    )


def aggregate_findings(findings: Iterable[HasSeverityAndType]) -> ScoreResult:
    """Score and summary in one pass over the same finding list."""
    items = list(findings)
    return ScoreResult(
        score=calculate_security_score(items),
        summary=summarize_findings(items),
    )


def repository_open_score(session: Session, repository_id: int) -> int:
    """
    Recompute a repository's score from the OPEN vulnerabilities of its latest completed scan.

    Uses REPOSITORY_SEVERITY_PENALTIES; 100 when the repository was never scanned.
    """
    latest_scan_id = (
        session.query(func.max(Scan.id))
        .filter(Scan.repository_id == repository_id, Scan.status == "COMPLETED")
        .scalar()
    )
    if latest_scan_id is None:
        return MAX_SCORE
    open_vulns = (
        session.query(Vulnerability)
        .filter(Vulnerability.scan_id == latest_scan_id, Vulnerability.status == "OPEN")
        .all()
    )
    return calculate_security_score(open_vulns, REPOSITORY_SEVERITY_PENALTIES)
