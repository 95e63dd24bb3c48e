"""ORM model for one execution of the scan pipeline against a repository."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from app.models.base import Base, JSONType


class Scan(Base):
    """
    Scan lifecycle record: QUEUED -> IN_PROGRESS -> COMPLETED | FAILED.

    Written only by the scan orchestrator; terminal states are never left.
    """

    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repository_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="QUEUED", index=True)
    trigger = Column(String(32), nullable=False, default="MANUAL")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    total_files = Column(Integer, nullable=False, default=0)
    files_scanned = Column(Integer, nullable=False, default=0)
    vulnerabilities_found = Column(Integer, nullable=False, default=0)
    security_score = Column(Integer, nullable=True)
    summary = Column(JSONType, nullable=True)
    error_message = Column(Text, nullable=True)
