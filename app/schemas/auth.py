"""Schemas for the authenticated request identity."""

from pydantic import BaseModel, ConfigDict


class CurrentUser(BaseModel):
    """Authenticated user (id, username, email) for dependency injection."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str | None = None
