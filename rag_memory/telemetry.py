"""
Structured logging for the memory engine.

Read-path stages are timed and emitted as `step_executed` events keyed by a
per-call run id. Events go through the stdlib `rag_memory` logger, so they
stay silent until logging is configured.
"""

import logging
import uuid
from typing import Any

import structlog


structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)
logger = structlog.get_logger("rag_memory")


def configure_logging(level: str = "INFO") -> None:
    """Send log records (JSON step events included) to stderr at `level`."""
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def new_run_id() -> str:
    """Generate a new unique run ID."""
    return str(uuid.uuid4())


def log_step(run_id: str, step_name: str, ms: float, **extra: Any) -> None:
    """
    Log one engine stage with its timing.

    Args:
        run_id: Identifier shared by all stages of one call
        step_name: Stage name (e.g. "embed", "rerank")
        ms: Duration in milliseconds
        **extra: Additional fields (counts, owner)
    """
    logger.info("step_executed", run_id=run_id, step=step_name, duration_ms=round(ms, 3), **extra)
