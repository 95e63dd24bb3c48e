"""ORM model for connected source repositories."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from app.models.base import Base


class Repository(Base):
    """
    A repository connected by a user.

    The scan pipeline only reads it and writes back security_score and last_scan_at.
    """

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    full_name = Column(String(512), nullable=False)
    url = Column(String(2048), nullable=False, default="")
    branch = Column(String(255), nullable=False, default="main")
    language = Column(String(64), nullable=True)
    github_id = Column(String(64), nullable=True, index=True)
    auto_scan = Column(Boolean, nullable=False, default=True)
    security_score = Column(Integer, nullable=True)
    last_scan_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    @property
    def owner_and_name(self) -> tuple[str, str]:
        """Split full_name ("owner/repo") into its two parts."""
        owner, _, repo = (self.full_name or "").partition("/")
        return owner, repo
