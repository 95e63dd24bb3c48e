"""Scheduled scans: trigger a SCHEDULED scan for every auto-scan repository."""

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.models import Repository
from app.services.scan_orchestrator import (
    ScanAdmissionError,
    ScanCapacityError,
    ScanOrchestrator,
)

logger = logging.getLogger(__name__)


async def run_scheduled_scans(
    orchestrator: ScanOrchestrator,
    session_factory: Callable[[], Session],
) -> tuple[int, int]:
    """
    Trigger scans for auto-scan repositories, waiting for capacity when the gate is full.

    Returns (started, skipped). Waits for every started scan to reach a terminal state.
    """
    with session_factory() as db:
        targets = (
            db.query(Repository.id, Repository.user_id)
            .filter(Repository.auto_scan.is_(True))
            .order_by(Repository.id)
            .all()
        )

    started = 0
    skipped = 0
    for repository_id, user_id in targets:
        try:
            try:
                await orchestrator.trigger_scan(repository_id, user_id, trigger="SCHEDULED")
            except ScanCapacityError:
                await orchestrator.wait_for_idle()
                await orchestrator.trigger_scan(repository_id, user_id, trigger="SCHEDULED")
            started += 1
        except ScanAdmissionError as e:
            logger.info("Scheduled scan for repository %s skipped: %s", repository_id, e.message)
            skipped += 1

    await orchestrator.wait_for_idle()
    return (started, skipped)
