"""Async GitHub REST API client: repository file listing and file content."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from app.schemas.findings import SourceFile

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

USER_AGENT = "Codeward-Scanner/1.0"


class GitHubError(Exception):
    """Raised when GitHub cannot serve a request (network, auth, rate limit, not found)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _raise_for_status(resp: httpx.Response) -> None:
    """Translate GitHub error statuses into GitHubError."""
    if resp.status_code < 400:
        return
    if resp.status_code == 401:
        raise GitHubError("Invalid GitHub token.", 401)
    if resp.status_code == 403:
        remaining = resp.headers.get("x-ratelimit-remaining")
        if remaining == "0" or "rate limit" in resp.text.lower():
            raise GitHubError("GitHub API rate limit exceeded.", 403)
        raise GitHubError("GitHub denied access to the resource.", 403)
    if resp.status_code == 404:
        raise GitHubError("GitHub resource not found.", 404)
    raise GitHubError(f"GitHub returned {resp.status_code}.", resp.status_code)


class GitHubClient:
    """Async context manager wrapping httpx.AsyncClient for the GitHub API."""

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        self.token = token or ""
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, token: str | None, settings: Settings) -> GitHubClient:
        return cls(
            token=token,
            api_url=settings.GITHUB_API_URL,
            timeout=settings.GITHUB_REQUEST_TIMEOUT_SEC,
        )

    async def __aenter__(self) -> GitHubClient:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as async context manager")
        return self._client

    async def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        try:
            resp = await self.client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise GitHubError("GitHub request timed out.") from e
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub request failed: {e!s}") from e
        _raise_for_status(resp)
        return resp

    async def list_files(self, owner: str, repo: str, branch: str) -> list[SourceFile]:
        """
        List every blob on a branch via the recursive git-trees endpoint.

        Directories and submodules are skipped. A truncated tree is logged and
        returned as-is (GitHub caps recursive trees at 100k entries).
        """
        resp = await self._get(
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )
        data = resp.json()
        if data.get("truncated"):
            logger.warning("GitHub tree listing truncated for %s/%s@%s", owner, repo, branch)
        files: list[SourceFile] = []
        for entry in data.get("tree") or []:
            if entry.get("type") != "blob" or not entry.get("path"):
                continue
            path = entry["path"]
            files.append(
                SourceFile(
                    name=path.rsplit("/", 1)[-1],
                    path=path,
                    size=int(entry.get("size") or 0),
                )
            )
        return files

    async def get_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        """Fetch one file's text via the contents endpoint (base64 decoded as UTF-8)."""
        resp = await self._get(
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            params={"ref": branch},
        )
        data = resp.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            raise GitHubError(f"{path} is not a file.")
        if data.get("encoding") != "base64":
            # Files over 1 MB come back without inline content.
            raise GitHubError(f"{path} has no inline content.")
        try:
            raw = base64.b64decode(data.get("content") or "")
        except (binascii.Error, ValueError) as e:
            raise GitHubError(f"Could not decode content of {path}.") from e
        return raw.decode("utf-8", errors="replace")
