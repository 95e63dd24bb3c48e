"""GitHub webhook receiver: push events on auto-scan repositories trigger a deferred scan."""

import hashlib
import hmac
import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models import Activity, Repository
from app.services.file_selector import is_scannable
from app.services.scan_orchestrator import ScanOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check X-Hub-Signature-256 ("sha256=<hex>") against the shared secret."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def has_scannable_changes(commits: list[dict[str, Any]]) -> bool:
    """True if any commit adds or modifies a file the scanner would analyze."""
    for commit in commits:
        for path in (commit.get("added") or []) + (commit.get("modified") or []):
            if is_scannable(str(path).rsplit("/", 1)[-1]):
                return True
    return False


async def handle_push(
    payload: dict[str, Any],
    db: Session,
    orchestrator: ScanOrchestrator,
    delay_sec: float,
) -> str:
    """Record the push and schedule a WEBHOOK scan when it applies; return what was done."""
    repo_payload = payload.get("repository") or {}
    github_id = str(repo_payload.get("id", ""))
    full_name = repo_payload.get("full_name", "")
    branch = str(payload.get("ref", "")).removeprefix("refs/heads/")

    repository = (
        db.query(Repository)
        .filter(Repository.github_id == github_id, Repository.branch == branch)
        .first()
    )
    if repository is None or not repository.auto_scan:
        logger.info("Skipping scan for repository %s (not configured for auto-scan)", full_name)
        return "ignored"
    if not has_scannable_changes(payload.get("commits") or []):
        logger.info("No security-relevant changes detected in push to %s", full_name)
        return "no_relevant_changes"

    db.add(
        Activity(
            type="WEBHOOK_PUSH_RECEIVED",
            description=f"Code push detected in {full_name}. Auto-scan triggered.",
            user_id=repository.user_id,
            repository_id=repository.id,
        )
    )
    db.commit()
    orchestrator.schedule_trigger(repository.id, repository.user_id, "WEBHOOK", delay_sec)
    return "scan_scheduled"


@router.post("/github")
async def github_webhook(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, str]:
    """
    Receive GitHub deliveries.

    When GITHUB_WEBHOOK_SECRET is set, X-Hub-Signature-256 must match. Push
    events schedule a scan after WEBHOOK_SCAN_DELAY_SEC; other events are
    acknowledged.
    """
    body = await request.body()
    if settings.GITHUB_WEBHOOK_SECRET is not None:
        secret = settings.GITHUB_WEBHOOK_SECRET.get_secret_value()
        if not verify_signature(secret, body, request.headers.get("x-hub-signature-256")):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature.")
    try:
        payload = json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid JSON: {e!s}") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=422, detail="Webhook payload must be a JSON object.")

    event = request.headers.get("x-github-event", "")
    logger.info("Received GitHub webhook: %s", event)
    if event == "push":
        result = await handle_push(payload, db, orchestrator, settings.WEBHOOK_SCAN_DELAY_SEC)
    else:
        result = "acknowledged"
    return {"event": event, "result": result}
