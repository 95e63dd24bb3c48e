"""Scan orchestrator: admission control, the scan state machine, and the background pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Activity, Repository, Scan, User, Vulnerability
from app.schemas.findings import ExtractedFinding, SourceFile
from app.schemas.scan import ScanProgress, ScanRead, ScanTrigger, ScoreResult
from app.services.batch_scheduler import run_in_batches
from app.services.cache import StatsCache, get_stats_cache, repository_stats_key
from app.services.content_fetcher import fetch_file_content
from app.services.events import (
    SCAN_COMPLETED,
    SCAN_FAILED,
    SCAN_PROGRESS,
    SCAN_STARTED,
    EventBroker,
    repository_channel,
    user_channel,
)
from app.services.file_selector import select_scannable_files
from app.services.finding_extractor import FindingExtractor
from app.services.github import GitHubClient, GitHubError
from app.services.model_client import ModelClient
from app.services.notifications import Notifier
from app.services.scoring import aggregate_findings

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

NO_SCANNABLE_FILES = "No scannable files found in repository"
INTERRUPTED_BY_RESTART = "Scan interrupted by service restart"
CONFLICT_MESSAGE = "A scan is already in progress for this repository"
CAPACITY_MESSAGE = "Maximum number of concurrent scans reached. Please try again later."

GitHubFactory = Callable[[str | None], GitHubClient]


class ScanAdmissionError(Exception):
    """Raised synchronously by trigger_scan when a scan may not start."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RepositoryNotFoundError(ScanAdmissionError):
    """The repository does not exist."""


class RepositoryAccessError(ScanAdmissionError):
    """The repository belongs to another user."""


class ScanConflictError(ScanAdmissionError):
    """A scan for this repository is already in progress."""


class ScanCapacityError(ScanAdmissionError):
    """The global concurrent-scan ceiling has been reached."""


class ScanPipelineError(Exception):
    """Structural failure that ends a scan as FAILED (no files, listing failed)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AdmissionSlot:
    """One reserved scan slot; releasing it more than once is a no-op."""

    def __init__(self, gate: AdmissionGate, repository_id: int) -> None:
        self.gate = gate
        self.repository_id = repository_id
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self.gate._release(self.repository_id)

    def __enter__(self) -> AdmissionSlot:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class AdmissionGate:
    """
    Counting gate over active scans, keyed by repository.

    Holds at most max_concurrent slots and at most one per repository.
    """

    def __init__(self, max_concurrent: int) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._active: set[int] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def is_active(self, repository_id: int) -> bool:
        return repository_id in self._active

    def reserve(self, repository_id: int) -> AdmissionSlot:
        if repository_id in self._active:
            raise ScanConflictError(CONFLICT_MESSAGE)
        if len(self._active) >= self.max_concurrent:
            raise ScanCapacityError(CAPACITY_MESSAGE)
        self._active.add(repository_id)
        return AdmissionSlot(self, repository_id)

    def _release(self, repository_id: int) -> None:
        self._active.discard(repository_id)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ScanAnalysis:
    """What the analysis phase hands to finalization; repository stays bound to the pipeline session."""

    scan_id: int
    repository: Repository
    repository_id: int
    repository_name: str
    user_id: int
    user_email: str | None
    user_name: str | None
    files_scanned: int
    findings: list[ExtractedFinding]


def recover_interrupted_scans(session: Session) -> int:
    """Mark scans left IN_PROGRESS by a previous process as FAILED; return how many."""
    count = (
        session.query(Scan)
        .filter(Scan.status == "IN_PROGRESS")
        .update(
            {
                Scan.status: "FAILED",
                Scan.completed_at: _now(),
                Scan.error_message: INTERRUPTED_BY_RESTART,
            },
            synchronize_session=False,
        )
    )
    session.commit()
    if count:
        logger.warning("Marked %s interrupted scan(s) as FAILED", count)
    return count


class ScanOrchestrator:
    """Owns the scan lifecycle from trigger to terminal event."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        broker: EventBroker,
        model_client: ModelClient,
        settings: Settings,
        notifier: Notifier | None = None,
        cache: StatsCache | None = None,
        github_factory: GitHubFactory | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.broker = broker
        self.settings = settings
        self.notifier = notifier
        self.cache = cache
        self.extractor = FindingExtractor(model_client, settings)
        self.github_factory: GitHubFactory = github_factory or (
            lambda token: GitHubClient.from_settings(token, settings)
        )
        self.gate = AdmissionGate(settings.SCAN_MAX_CONCURRENT)
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def trigger_scan(
        self,
        repository_id: int,
        user_id: int,
        trigger: ScanTrigger = "MANUAL",
    ) -> ScanRead:
        """
        Admit and start a scan; returns the IN_PROGRESS record without waiting for the pipeline.

        Raises RepositoryNotFoundError, RepositoryAccessError, ScanConflictError or
        ScanCapacityError; a rejected trigger creates no Scan row.
        """
        session = self.session_factory()
        try:
            repository = session.get(Repository, repository_id)
            if repository is None:
                raise RepositoryNotFoundError("Repository not found")
            if repository.user_id != user_id:
                raise RepositoryAccessError("Unauthorized access to repository")
            in_progress = (
                session.query(Scan.id)
                .filter(Scan.repository_id == repository_id, Scan.status == "IN_PROGRESS")
                .first()
            )
            if in_progress is not None:
                raise ScanConflictError(CONFLICT_MESSAGE)
            # Scans run by other processes (the scheduled-scan CLI) hold no slot in this gate.
            running = session.query(func.count(Scan.id)).filter(Scan.status == "IN_PROGRESS").scalar()
            if running >= self.gate.max_concurrent:
                raise ScanCapacityError(CAPACITY_MESSAGE)

            slot = self.gate.reserve(repository_id)
            try:
                scan = Scan(
                    repository_id=repository_id,
                    user_id=user_id,
                    status="IN_PROGRESS",
                    trigger=trigger,
                    started_at=_now(),
                )
                session.add(scan)
                session.add(
                    Activity(
                        type="SCAN_STARTED",
                        description=f"Security scan started for {repository.name}",
                        user_id=user_id,
                        repository_id=repository_id,
                    )
                )
                session.commit()
                session.refresh(scan)
                created = ScanRead.model_validate(scan)
            except Exception:
                session.rollback()
                slot.release()
                raise
        finally:
            session.close()

        self.broker.publish(
            [user_channel(user_id), repository_channel(repository_id)],
            SCAN_STARTED,
            {"scanId": created.id, "repositoryId": repository_id, "status": "IN_PROGRESS"},
        )
        self._spawn(self._run_pipeline(created.id, slot), name=f"scan-{created.id}")
        logger.info(
            "Scan %s started for repository %s (trigger=%s)", created.id, repository_id, trigger
        )
        return created

    def schedule_trigger(
        self,
        repository_id: int,
        user_id: int,
        trigger: ScanTrigger,
        delay_sec: float,
    ) -> asyncio.Task:
        """Trigger a scan after delay_sec in the background; admission errors are logged."""

        async def _delayed() -> None:
            if delay_sec > 0:
                await asyncio.sleep(delay_sec)
            try:
                await self.trigger_scan(repository_id, user_id, trigger)
            except ScanAdmissionError as e:
                logger.warning(
                    "Deferred %s scan for repository %s not started: %s",
                    trigger,
                    repository_id,
                    e.message,
                )
            except Exception:
                logger.exception("Deferred scan trigger for repository %s failed", repository_id)

        return self._spawn(_delayed(), name=f"scan-trigger-{repository_id}")

    async def _run_pipeline(self, scan_id: int, slot: AdmissionSlot) -> None:
        """Pipeline boundary: every failure ends as FAILED; the slot is always released."""
        with slot:
            session = self.session_factory()
            try:
                timeout = self.settings.SCAN_TIMEOUT_SEC
                if timeout > 0:
                    analysis = await asyncio.wait_for(self._analyze(session, scan_id), timeout=timeout)
                else:
                    analysis = await self._analyze(session, scan_id)
                result = await asyncio.to_thread(self._finalize, analysis)
                if result is None:
                    logger.warning("Scan %s reached a terminal state elsewhere; results discarded", scan_id)
                    return
                self._announce_completed(analysis, result)
                critical = [f for f in analysis.findings if f.severity == "CRITICAL"]
                if critical:
                    await self._send_critical_alerts(
                        critical, analysis.user_email, analysis.user_name, analysis.repository
                    )
            except ScanPipelineError as e:
                logger.error("Scan %s failed: %s", scan_id, e.message)
                self._mark_failed(session, scan_id, e.message)
            except TimeoutError:
                message = f"Scan timed out after {self.settings.SCAN_TIMEOUT_SEC:g} seconds"
                logger.error("Scan %s failed: %s", scan_id, message)
                self._mark_failed(session, scan_id, message)
            except Exception as e:
                logger.exception("Scan processing failed for scan %s", scan_id)
                self._mark_failed(session, scan_id, str(e) or type(e).__name__)
            finally:
                session.close()

    async def _analyze(self, session: Session, scan_id: int) -> ScanAnalysis:
        """List, select, fetch and analyze files; nothing about the outcome is persisted here."""
        scan = session.get(Scan, scan_id)
        if scan is None:
            raise ScanPipelineError(f"Scan {scan_id} no longer exists")
        repository = session.get(Repository, scan.repository_id)
        user = session.get(User, scan.user_id)
        if repository is None or user is None:
            raise ScanPipelineError("Repository or owner no longer exists")

        repository_id = repository.id
        repository_name = repository.name
        language = repository.language
        owner, repo_name = repository.owner_and_name
        branch = repository.branch or "main"
        user_id = user.id
        user_email = user.email
        user_name = user.name or user.username
        channels = [user_channel(user_id), repository_channel(repository_id)]

        async with self.github_factory(user.github_token) as github:
            try:
                files = await github.list_files(owner, repo_name, branch)
            except GitHubError as e:
                raise ScanPipelineError(f"Failed to list repository files: {e.message}") from e
            if not files:
                raise ScanPipelineError(NO_SCANNABLE_FILES)
            selected = select_scannable_files(files, self.settings.SCAN_MAX_FILE_BYTES)
            if not selected:
                raise ScanPipelineError(NO_SCANNABLE_FILES)

            logger.info(
                "Scanning %s of %s files for repository %s", len(selected), len(files), repository_name
            )
            scan.total_files = len(selected)
            session.commit()

            async def process(file: SourceFile) -> list[ExtractedFinding]:
                content = await fetch_file_content(
                    github, owner, repo_name, file.path, branch, self.settings.SCAN_MAX_CONTENT_CHARS
                )
                if content is None:
                    return []
                return await self.extractor.extract(file, content, language)

            def on_progress(progress: ScanProgress) -> None:
                self.broker.publish(
                    channels,
                    SCAN_PROGRESS,
                    {
                        "scanId": scan_id,
                        "progress": progress.progress,
                        "currentFile": progress.current_file,
                        "scannedFiles": progress.scanned_files,
                        "totalFiles": progress.total_files,
                    },
                )

            async def on_batch_complete(scanned: int) -> None:
                scan.files_scanned = scanned
                session.commit()

            findings = await run_in_batches(
                selected,
                process,
                on_progress=on_progress,
                batch_size=self.settings.SCAN_BATCH_SIZE,
                delay_sec=self.settings.SCAN_BATCH_DELAY_SEC,
                on_batch_complete=on_batch_complete,
            )

        return ScanAnalysis(
            scan_id=scan_id,
            repository=repository,
            repository_id=repository_id,
            repository_name=repository_name,
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            files_scanned=len(selected),
            findings=findings,
        )

    def _finalize(self, analysis: ScanAnalysis) -> ScoreResult | None:
        """
        Persist the outcome of a scan in its own session; runs in a worker thread.

        The COMPLETED transition is a conditional update on status IN_PROGRESS, so a
        scan failed in the meantime (timeout, recovery by another process) stays
        FAILED. Returns None, and writes nothing, when no row was updated.
        """
        findings = analysis.findings
        result = aggregate_findings(findings)
        completed_at = _now()
        with self.session_factory() as session:
            updated = (
                session.query(Scan)
                .filter(Scan.id == analysis.scan_id, Scan.status == "IN_PROGRESS")
                .update(
                    {
                        Scan.status: "COMPLETED",
                        Scan.completed_at: completed_at,
                        Scan.files_scanned: analysis.files_scanned,
                        Scan.vulnerabilities_found: len(findings),
                        Scan.security_score: result.score,
                        Scan.summary: result.summary.model_dump(),
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                session.rollback()
                return None
            session.add_all(
                [
                    Vulnerability(
                        scan_id=analysis.scan_id,
                        repository_id=analysis.repository_id,
                        discovered_at=completed_at,
                        **finding.model_dump(),
                    )
                    for finding in findings
                ]
            )
            session.query(Repository).filter(Repository.id == analysis.repository_id).update(
                {Repository.security_score: result.score, Repository.last_scan_at: completed_at},
                synchronize_session=False,
            )
            session.add(
                Activity(
                    type="SCAN_COMPLETED",
                    description=(
                        f"Security scan completed for {analysis.repository_name}. "
                        f"Found {len(findings)} vulnerabilities."
                    ),
                    user_id=analysis.user_id,
                    repository_id=analysis.repository_id,
                )
            )
            session.commit()
        return result

    def _announce_completed(self, analysis: ScanAnalysis, result: ScoreResult) -> None:
        if self.cache is not None:
            self.cache.invalidate(repository_stats_key(analysis.repository_id))
        self.broker.publish(
            [user_channel(analysis.user_id), repository_channel(analysis.repository_id)],
            SCAN_COMPLETED,
            {
                "scanId": analysis.scan_id,
                "repositoryId": analysis.repository_id,
                "vulnerabilitiesFound": len(analysis.findings),
                "securityScore": result.score,
                "criticalVulnerabilities": result.summary.severity_distribution["CRITICAL"],
            },
        )
        logger.info(
            "Scan completed for %s: %s vulnerabilities found, score %s",
            analysis.repository_name,
            len(analysis.findings),
            result.score,
        )

    async def _send_critical_alerts(
        self,
        critical: list[ExtractedFinding],
        recipient: str | None,
        name: str | None,
        repository: Repository,
    ) -> None:
        if self.notifier is None:
            return
        for finding in critical[: self.settings.CRITICAL_ALERT_LIMIT]:
            try:
                await self.notifier.send_critical_alert(recipient, name, finding, repository)
            except Exception:
                logger.exception("Failed to send critical alert for repository %s", repository.id)

    def _mark_failed(self, session: Session, scan_id: int, message: str) -> None:
        """Transition IN_PROGRESS to FAILED, log the activity and emit scan:failed; never raises."""
        user_id: int | None = None
        repository_id: int | None = None
        try:
            session.rollback()
            row = (
                session.query(Scan.user_id, Scan.repository_id, Scan.status)
                .filter(Scan.id == scan_id)
                .first()
            )
            if row is None:
                return
            updated = (
                session.query(Scan)
                .filter(Scan.id == scan_id, Scan.status == "IN_PROGRESS")
                .update(
                    {Scan.status: "FAILED", Scan.completed_at: _now(), Scan.error_message: message},
                    synchronize_session=False,
                )
            )
            if not updated:
                session.rollback()
                logger.warning(
                    "Scan %s already %s; not marking FAILED (%s)", scan_id, row.status, message
                )
                return
            session.add(
                Activity(
                    type="SCAN_FAILED",
                    description=f"Security scan failed: {message}",
                    user_id=row.user_id,
                    repository_id=row.repository_id,
                )
            )
            session.commit()
            user_id = row.user_id
            repository_id = row.repository_id
        except Exception:
            logger.exception("Failed to record failure of scan %s", scan_id)
            session.rollback()
        if user_id is None or repository_id is None:
            return
        self.broker.publish(
            [user_channel(user_id), repository_channel(repository_id)],
            SCAN_FAILED,
            {"scanId": scan_id, "repositoryId": repository_id, "error": message},
        )

    async def wait_for_idle(self) -> None:
        """Wait until every spawned pipeline and deferred trigger has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running work; interrupted scans are recovered on next startup."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)


@lru_cache
def get_orchestrator() -> ScanOrchestrator:
    """Process-wide orchestrator (safe to call from dependencies)."""
    from app.core.config import get_settings
    from app.core.database import SessionLocal
    from app.services.events import broker
    from app.services.model_client import OllamaModelClient
    from app.services.notifications import EmailNotifier

    settings = get_settings()
    return ScanOrchestrator(
        session_factory=SessionLocal,
        broker=broker,
        model_client=OllamaModelClient(settings),
        settings=settings,
        notifier=EmailNotifier(settings),
        cache=get_stats_cache(),
    )
