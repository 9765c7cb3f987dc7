"""
Logging infrastructure.

Library modules log through ``logging.getLogger(__name__)``. Extractor
dispatch reports failures, expired events and deadline overruns as
structured events through structlog, rendered as JSON lines by default.
"""

import logging
from typing import Optional

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_logs: bool = True, force: bool = False) -> None:
    """
    Configure stdlib logging and structlog once per process.

    Args:
        level: Root log level name
        json_logs: Render structured events as JSON (else console format)
        force: Reconfigure even if already configured
    """
    global _configured
    if _configured and not force:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}',
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=force,
    )

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: Optional[str] = None):
    """Return a structlog logger bound to `name`."""
    return structlog.get_logger(name)
