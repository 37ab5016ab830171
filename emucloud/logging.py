"""Logging configuration for emucloud.

Logging goes through loguru and is disabled by default (library behavior).
Whoever owns the process enables it with a LogConfig:

    from emucloud.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", teardown_file="leaks.log"))
    try:
        ...
    finally:
        teardown_logging(handler_ids)

Teardown messages are bound with ``event="GENYCLOUD_TEARDOWN"``. A
``teardown_file`` sink keeps only those, so CI can archive the leak report
on its own. Leak reports also go out as a LeakWarning, which stays visible
while this logger is disabled.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from loguru import logger

from emucloud.constants import TEARDOWN_EVENT

if TYPE_CHECKING:
    from loguru import Record

logger.disable("emucloud")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | pid={process} | "
    "{extra[component]} | {name}:{function}:{line} - {message}"
)

TEARDOWN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | pid={process} | {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum console level.
        file: Full debug log, rotated by ``rotation``/``retention``.
        teardown_file: Receives only teardown reports (leaks and summaries).
        console: Whether to log to stderr.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    teardown_file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def _with_component(record: Record) -> None:
    record["extra"].setdefault("component", (record["name"] or "").rsplit(".", 1)[-1])


def _emucloud_only(record: Record) -> bool:
    name = record["name"] or ""
    return name == "emucloud" or name.startswith("emucloud.")


def _teardown_only(record: Record) -> bool:
    return _emucloud_only(record) and record["extra"].get("event") == TEARDOWN_EVENT


def setup_logging(config: LogConfig) -> list[int]:
    """Enable emucloud logging and return handler IDs for teardown_logging."""
    logger.enable("emucloud")
    logger.configure(patcher=_with_component)
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            colorize=True,
            filter=_emucloud_only,
        ))

    if config.file:
        handler_ids.append(logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            diagnose=False,  # Don't expose credentials in tracebacks
            filter=_emucloud_only,
        ))

    if config.teardown_file:
        handler_ids.append(logger.add(
            config.teardown_file,
            level="INFO",
            format=TEARDOWN_FORMAT,
            filter=_teardown_only,
        ))

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("emucloud")
