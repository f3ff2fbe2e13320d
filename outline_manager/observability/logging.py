"""Logging configuration for outline_manager.

Logging is silent by default (library behavior). Applications opt in:

    from outline_manager.observability.logging import LogConfig, setup_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", console=True))
    ...
    teardown_logging(handler_ids)
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from outline_manager.observability.logger import logger

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum log level for the console handler.
        file: Path to log file. None disables file output.
        console: Whether to log to stderr through rich.
        rotation_mb: Rotate the log file once it reaches this size.
        retention: Number of rotated log files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = ".outline/outline_manager.log"
    console: bool = False
    rotation_mb: int = 50
    retention: int = 10


def setup_logging(config: LogConfig) -> list[int]:
    """Attach handlers described by ``config`` and return their ids."""
    logging.getLogger("outline_manager").setLevel(logging.DEBUG)
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(sys.stderr, level=config.level))

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                max_bytes=config.rotation_mb * 1024 * 1024,
                backup_count=config.retention,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
