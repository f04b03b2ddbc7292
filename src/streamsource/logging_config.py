"""Structured logging via structlog, JSON lines to an hourly rotating file and stderr.

Library modules only call ``structlog.get_logger()``; configuring output is
left to the host application (the CLI calls :func:`setup_logging`).
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

import structlog

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def setup_logging(log_dir: str = "logs", log_level: str = "INFO") -> None:
    """Route structlog and stdlib records to ``<log_dir>/streamsource.jsonl`` and stderr.

    Both go through the same handlers, so the rotating file has a single
    writer. stdout is left untouched: the CLI writes delivered events there.
    """
    os.makedirs(log_dir, exist_ok=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )
    rotating = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "streamsource.jsonl"),
        when="H",
        interval=1,
        backupCount=72,
        utc=True,
    )
    stderr = logging.StreamHandler(sys.stderr)
    for handler in (rotating, stderr):
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [rotating, stderr]
    root.setLevel(log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
