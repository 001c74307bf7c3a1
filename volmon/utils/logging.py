from __future__ import annotations

import sys
from typing import Any

from loguru import logger


def configure_logging(service_name: str, level: str = "INFO", json_logging: bool = False) -> None:
    """Install one stdout sink tagged with ``service_name`` (``web`` or ``worker``)."""

    log_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[service]:<6} | "
        "{name}:{line} | {message} | {extra}"
    )

    logger.remove()
    logger.configure(
        handlers=[
            {
                "sink": sys.stdout,
                "level": level.upper(),
                "format": log_format,
                "serialize": json_logging,
                "enqueue": True,
                "backtrace": False,
                "diagnose": False,
            }
        ],
        extra={"service": service_name},
    )
    logger.debug("logging configured", level=level.upper(), json=json_logging)


__all__: list[Any] = ["configure_logging"]
