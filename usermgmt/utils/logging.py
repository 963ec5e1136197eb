"""structlog setup shared by the API, the CLI and the services.

Rendered events are handed to the stdlib ``logging`` module, which owns the
output stream. A handler whose stream went away reports the problem instead
of raising into the caller.
"""

from __future__ import annotations

import logging
import sys

import structlog

from usermgmt.config import settings

_configured = False
_handler: logging.Handler | None = None


def setup_logging(level: str | None = None, *, json: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger once per process."""
    global _configured, _handler
    if _configured:
        return

    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    as_json = settings.log_json if json is None else json

    root = logging.getLogger()
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(_handler)
    root.setLevel(log_level)
    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(max(log_level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer()
        if as_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def reset_logging() -> None:
    """Undo ``setup_logging`` so the next call configures from scratch."""
    global _configured, _handler
    if _handler is not None:
        logging.getLogger().removeHandler(_handler)
        _handler = None
    structlog.reset_defaults()
    _configured = False


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
