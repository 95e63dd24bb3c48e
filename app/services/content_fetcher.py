"""Fetch a candidate file's text for analysis; failures mean "skip this file"."""

import logging
from typing import Protocol

from app.services.github import GitHubError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 50_000


class ContentSource(Protocol):
    async def get_content(self, owner: str, repo: str, path: str, branch: str) -> str: ...


async def fetch_file_content(
    source: ContentSource,
    owner: str,
    repo: str,
    path: str,
    branch: str,
    max_chars: int = DEFAULT_MAX_CONTENT_CHARS,
) -> str | None:
    """
    Return the file's text, or None when the file contributes nothing.

    None covers empty files, files longer than max_chars, and any fetch error.
    A single file's failure never propagates to the scan.
    """
    try:
        content = await source.get_content(owner, repo, path, branch)
    except GitHubError as e:
        logger.warning("Failed to fetch %s from %s/%s: %s", path, owner, repo, e.message)
        return None
    except Exception as e:
        logger.warning("Failed to fetch %s from %s/%s: %s", path, owner, repo, e)
        return None
    if not content:
        return None
    if len(content) > max_chars:
        logger.info("Skipping %s: %s characters exceeds limit of %s", path, len(content), max_chars)
        return None
    return content
