"""Event logging for consolidation runs and the conflict ledger.

Pipeline and ledger code logs events (``conflict_opened``,
``stage_failed``) as key/value records through structlog, while the rest of
the package writes human messages through loguru. Inside ``run_context``
every event, including those from the ledger and reconciliation engine,
carries the run_id and project_id of the consolidation run.
"""

import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

from insight_system.config.settings import settings


def configure_structured_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure structlog from settings.

    Console rendering is used only on a TTY with log_format "console";
    everything else gets one JSON object per line on stderr.
    """
    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    processors: list[Any] = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if fmt == "console" and sys.stderr.isatty():
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_structured_logger(name: str, project_id: Optional[str] = None, **context: Any):
    """Event logger for one component, optionally pinned to a project."""
    bound = structlog.get_logger(name).bind(component=name)
    if project_id:
        bound = bound.bind(project_id=project_id)
    return bound.bind(**context) if context else bound


def new_run_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def run_context(run_id: str, project_id: str) -> Iterator[None]:
    """Tag every structured event emitted inside the block with the run."""
    with bound_contextvars(run_id=run_id, project_id=project_id):
        yield


configure_structured_logging()


__all__ = [
    "configure_structured_logging",
    "get_structured_logger",
    "new_run_id",
    "run_context",
]
