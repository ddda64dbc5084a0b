"""Loguru setup: a console sink plus an optional governance audit trail."""

import os
import sys
from pathlib import Path

from loguru import logger

# Modules whose records explain why an action ran, waited or was dropped.
GOVERNANCE_MODULES = (
    "majordomo.autonomy",
    "majordomo.interruption",
    "majordomo.orchestrator",
    "majordomo.simulation",
)


def is_governance_record(record: dict) -> bool:
    return record["name"].startswith(GOVERNANCE_MODULES)


def setup_logging(level: str | None = None, audit_path: str | Path | None = None) -> None:
    """
    Configure loguru sinks.

    The console level comes from ``level``, else ``LOG_LEVEL`` (default
    ``INFO``). When ``audit_path`` (or ``MAJORDOMO_AUDIT_LOG``) is set,
    governance records at DEBUG and above are also written there as JSON
    lines, rotated at 10 MB.
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if audit_path is None:
        audit_path = os.environ.get("MAJORDOMO_AUDIT_LOG") or None

    logger.remove()
    logger.add(
        sys.stderr,
        format="<level>{time:YYYY-MM-DD HH:mm:ss} | {name}:{function}:{line} | {message}</level>",
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if audit_path:
        path = Path(audit_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level="DEBUG",
            filter=is_governance_record,
            serialize=True,
            rotation="10 MB",
            retention=5,
        )
