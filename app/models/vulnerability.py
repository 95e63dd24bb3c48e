"""ORM model for persisted vulnerabilities found by a scan."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from app.models.base import Base

# Widths of the free-text columns filled from model output.
TYPE_MAX_LENGTH = 255
TITLE_MAX_LENGTH = 512
CONFIDENCE_MAX_LENGTH = 32


class Vulnerability(Base):
    """
    One AI-reported issue in one file, bulk-created when a scan completes.

    status belongs to the triage workflow (OPEN, RESOLVED, ...); the scanner only creates OPEN rows.
    """

    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scan_id = Column(Integer, ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)
    repository_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(TYPE_MAX_LENGTH), nullable=False)
    severity = Column(String(32), nullable=False, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=False)
    impact = Column(Text, nullable=False)
    recommendation = Column(Text, nullable=False)
    file_path = Column(String(2048), nullable=False)
    file_name = Column(String(512), nullable=False)
    line_number = Column(Integer, nullable=False, default=1)
    code_snippet = Column(Text, nullable=False, default="")
    confidence = Column(String(CONFIDENCE_MAX_LENGTH), nullable=False, default="MEDIUM")
    status = Column(String(32), nullable=False, default="OPEN", index=True)
    discovered_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
