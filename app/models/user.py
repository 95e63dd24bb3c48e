"""ORM model for application users (repository owners)."""

from sqlalchemy import Column, Integer, String

from app.models.base import Base


class User(Base):
    """
    User account that owns connected repositories.

    github_token is the credential used for file listing and content fetches.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=True)
    name = Column(String(255), nullable=True)
    github_token = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="user")
