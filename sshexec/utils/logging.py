"""structlog configuration shared by every module.

Modules log with an event name plus keyword context::

    log = get_logger(__name__)
    log.info("ssh.connected", host="10.0.0.5", session="3f2a9c1b")
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog


def setup_logging(
    level: str | None = None,
    json: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Falls back to ``settings.log_level`` / ``settings.log_json`` when the
    arguments are omitted.
    """
    from sshexec.config import settings

    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json is None else json
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=numeric,
        force=True,
    )
    # paramiko's transport thread is chatty at INFO
    logging.getLogger("paramiko").setLevel(max(numeric, logging.WARNING))

    renderer: structlog.typing.Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
