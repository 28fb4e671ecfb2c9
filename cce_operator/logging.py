"""Logging configuration for cce-operator.

Structured logging via loguru. Logging is disabled by default so the package
stays quiet when imported as a library, and is switched on by the CLI.

Example:
    from cce_operator.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="operator.log"))
    ...
    teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal

from loguru import logger

logger.disable("cce_operator")

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[component]} | {name}:{function}:{line} - {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration for the operator process.

    Attributes:
        level: Minimum console log level.
        file: Path to a log file. When set, everything down to DEBUG is written there.
        console: Whether to log to stderr.
        rotation: File rotation policy (e.g. "50 MB", "1 day").
        retention: Number of rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def setup_logging(config: LogConfig) -> list[int]:
    """Enable operator logging and return the handler ids for cleanup."""
    logger.enable("cce_operator")
    logger.configure(extra={"component": "operator"})
    handler_ids: list[int] = []

    if config.console:
        hid = logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            colorize=True,
            filter="cce_operator",
        )
        handler_ids.append(hid)

    if config.file:
        hid = logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            diagnose=False,  # tracebacks may carry access keys
            enqueue=True,
            filter="cce_operator",
        )
        handler_ids.append(hid)

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("cce_operator")
