"""
CLI entrypoint for scheduled scans. Run from cron, e.g.:

  python -m app.scheduled_scan

Or nightly: 0 3 * * * cd /path/to/codeward && .venv/bin/python -m app.scheduled_scan
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging_config import configure_logging
from app.services.scan_orchestrator import get_orchestrator
from app.services.scheduling import run_scheduled_scans

logger = logging.getLogger(__name__)


def main() -> int:
    """Scan every auto-scan repository and wait for the scans to finish."""
    configure_logging(get_settings().LOG_LEVEL)
    try:
        started, skipped = asyncio.run(run_scheduled_scans(get_orchestrator(), SessionLocal))
        logger.info("Scheduled scans completed: started=%s, skipped=%s", started, skipped)
        return 0
    except Exception as e:
        logger.exception("Scheduled scan job failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
