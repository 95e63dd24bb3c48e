"""Run per-file extraction in fixed-size concurrent batches with pacing and progress callbacks."""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence

from app.schemas.findings import ExtractedFinding, SourceFile
from app.schemas.scan import ScanProgress

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SEC = 1.0

ProcessFile = Callable[[SourceFile], Awaitable[list[ExtractedFinding]]]
ProgressCallback = Callable[[ScanProgress], None]
BatchCallback = Callable[[int], Awaitable[None]]


def percent_complete(scanned: int, total: int) -> int:
    """Whole percentage with halves rounded up (1 of 8 is 13, not 12)."""
    return math.floor(scanned * 100 / total + 0.5)


def partition(files: Sequence[SourceFile], batch_size: int) -> list[list[SourceFile]]:
    """Split files into consecutive batches of at most batch_size."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(files[i : i + batch_size]) for i in range(0, len(files), batch_size)]


async def run_in_batches(
    files: Sequence[SourceFile],
    process: ProcessFile,
    *,
    on_progress: ProgressCallback,
    batch_size: int = DEFAULT_BATCH_SIZE,
    delay_sec: float = DEFAULT_BATCH_DELAY_SEC,
    on_batch_complete: BatchCallback | None = None,
) -> list[ExtractedFinding]:
    """
    Process every file, batch_size at a time, and return all findings.

    Files in a batch run concurrently; the next batch starts only after the
    whole batch has finished and delay_sec has elapsed. After each file
    finishes, successfully or not, on_progress gets the running count, so
    progress is reported in non-decreasing scanned_files order. A file whose
    processing raises contributes no findings. on_batch_complete receives the
    scanned count after each batch.
    """
    total = len(files)
    scanned = 0
    findings: list[ExtractedFinding] = []

    async def _run_one(file: SourceFile) -> list[ExtractedFinding]:
        nonlocal scanned
        try:
            result = await process(file)
        except Exception as e:
            logger.warning("Failed to scan file %s: %s", file.path, e)
            result = []
        scanned += 1
        on_progress(
            ScanProgress(
                progress=percent_complete(scanned, total),
                current_file=file.name,
                scanned_files=scanned,
                total_files=total,
            )
        )
        return result

    batches = partition(files, batch_size)
    for index, batch in enumerate(batches):
        results = await asyncio.gather(*(_run_one(f) for f in batch))
        for file_findings in results:
            findings.extend(file_findings)
        if on_batch_complete is not None:
            await on_batch_complete(scanned)
        if index < len(batches) - 1 and delay_sec > 0:
            await asyncio.sleep(delay_sec)
    return findings
