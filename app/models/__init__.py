"""SQLAlchemy ORM models."""

from app.models.activity import Activity
from app.models.base import Base
from app.models.repository import Repository
from app.models.scan import Scan
from app.models.user import User
from app.models.vulnerability import Vulnerability

__all__ = ["Activity", "Base", "Repository", "Scan", "User", "Vulnerability"]
