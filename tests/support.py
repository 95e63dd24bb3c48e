"""Shared test doubles: in-memory database, fake GitHub, scripted model and a recording broker."""

import json
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models import Base, Repository, User
from app.schemas.findings import SourceFile
from app.services.events import EventBroker
from app.services.github import GitHubError


def memory_session_factory() -> sessionmaker:
    """Fresh SQLite in-memory database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "SCAN_BATCH_DELAY_SEC": 0,
        "SCAN_TIMEOUT_SEC": 0,
        "WEBHOOK_SCAN_DELAY_SEC": 0,
    }
    values.update(overrides)
    return Settings(**values)


def add_user(session: Session, username: str = "alice", **kwargs: Any) -> User:
    user = User(username=username, email=kwargs.pop("email", f"{username}@example.com"), **kwargs)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def add_repository(session: Session, user: User, name: str = "shop", **kwargs: Any) -> Repository:
    defaults: dict[str, Any] = {
        "full_name": f"{user.username}/{name}",
        "url": f"https://github.com/{user.username}/{name}",
        "branch": "main",
        "language": "JavaScript",
        "github_id": str(1000 + (user.id or 0)),
        "auto_scan": True,
    }
    defaults.update(kwargs)
    repository = Repository(user_id=user.id, name=name, **defaults)
    session.add(repository)
    session.commit()
    session.refresh(repository)
    return repository


def source_file(path: str, size: int = 100) -> SourceFile:
    return SourceFile(name=path.rsplit("/", 1)[-1], path=path, size=size)


class FakeGitHub:
    """Stands in for GitHubClient: serves a fixed listing and file contents."""

    def __init__(
        self,
        files: list[SourceFile] | None = None,
        contents: dict[str, str] | None = None,
        list_error: Exception | None = None,
    ) -> None:
        self.files = files or []
        self.contents = contents or {}
        self.list_error = list_error
        self.tokens: list[str | None] = []
        self.fetched: list[str] = []

    def __call__(self, token: str | None) -> "FakeGitHub":
        self.tokens.append(token)
        return self

    async def __aenter__(self) -> "FakeGitHub":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def list_files(self, owner: str, repo: str, branch: str) -> list[SourceFile]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.files)

    async def get_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        self.fetched.append(path)
        if path not in self.contents:
            raise GitHubError("GitHub resource not found.", 404)
        return self.contents[path]


class ScriptedModel:
    """Model client that answers by file path; unknown files get an empty array."""

    def __init__(self, replies: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.replies = replies or {}
        self.error = error
        self.prompts: list[str] = []

    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        for path, reply in self.replies.items():
            if f"Path: {path}\n" in prompt:
                return reply
        return "[]"


class RecordingBroker(EventBroker):
    """EventBroker that also keeps every published (event, payload) pair."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.channels: list[list[str]] = []

    def publish(self, channels, event: str, payload: dict[str, Any]) -> int:
        channel_list = [channels] if isinstance(channels, str) else list(channels)
        self.events.append((event, payload))
        self.channels.append(channel_list)
        return super().publish(channel_list, event, payload)

    def names(self) -> list[str]:
        return [event for event, _ in self.events]


def finding_reply(*items: dict[str, Any]) -> str:
    return "Here is my analysis.\n```json\n" + json.dumps(list(items)) + "\n```"
