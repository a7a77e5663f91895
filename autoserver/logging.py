"""Logging for autoserver.

All output goes through loguru. The ``autoserver`` namespace is disabled on
import, so using the library as a dependency stays silent until
``setup_logging`` (or the CLI) turns it on. Modules bind a ``component``
(``cluster``, ``resolver``, ``catalog``, ...) that the console sink prints
in front of each message.

Example:
    from autoserver.logging import LogConfig, logging_enabled

    with logging_enabled(LogConfig(level="DEBUG", file="plan.jsonl")):
        descriptor = cluster.finalize()
"""

from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Any, Literal, get_args

from loguru import logger

from autoserver.exceptions import ConfigurationError

logger.disable("autoserver")

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> "
    "<level>{level: <7}</level> "
    "<cyan>{extra[component]: <9}</cyan> "
    "<level>{message}</level>"
)


def _autoserver_only(record: Any) -> bool:
    name = record["name"] or ""
    if name != "autoserver" and not name.startswith("autoserver."):
        return False
    record["extra"].setdefault("component", name.rpartition(".")[2])
    return True


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where planning traces go.

    Attributes:
        level: Console threshold.
        file: Optional log file. Written as JSON lines, always at DEBUG.
        console: Log to stderr.
        rotation: Rotation policy for ``file`` (e.g. "10 MB", "1 day").
        retention: Number of rotated files kept.
    """

    level: LogLevel = "WARNING"
    file: str | None = None
    console: bool = True
    rotation: str = "10 MB"
    retention: int = 5

    def __post_init__(self) -> None:
        if self.level not in get_args(LogLevel.__value__):
            raise ConfigurationError("logging", f"unknown level {self.level!r}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LogConfig:
        """Build from a ``[logging]`` TOML table."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError("logging", f"unknown fields: {', '.join(unknown)}")
        values = dict(raw)
        if "level" in values:
            values["level"] = str(values["level"]).upper()
        return cls(**values)


def setup_logging(config: LogConfig) -> list[int]:
    """Enable the autoserver namespace and add sinks. Returns their ids."""
    logger.enable("autoserver")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=CONSOLE_FORMAT,
                colorize=True,
                filter=_autoserver_only,
            )
        )

    if config.file:
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                serialize=True,
                rotation=config.rotation,
                retention=config.retention,
                diagnose=False,
                filter=_autoserver_only,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("autoserver")


@contextmanager
def logging_enabled(config: LogConfig) -> Iterator[list[int]]:
    handler_ids = setup_logging(config)
    try:
        yield handler_ids
    finally:
        teardown_logging(handler_ids)
