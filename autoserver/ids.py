"""Identifier rules shared by clusters, capacity groups and servers.

Ids end up in resource tags, host paths and log stream prefixes, so they
are restricted to a conservative alphabet.
"""

from __future__ import annotations

import re

from autoserver.exceptions import ConfigurationError

_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{0,62}$")


def validate_id(kind: str, value: object) -> str:
    if not isinstance(value, str) or not _ID_PATTERN.match(value):
        raise ConfigurationError(
            f"{kind} {value!r}",
            "id must start with a letter and contain only letters, digits, '-' or '_' (max 63)",
        )
    return value


def validate_port(entity: str, field: str, value: object) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(entity, f"{field} must be an integer, got {value!r}")
    if not 1 <= value <= 65535:
        raise ConfigurationError(entity, f"{field} must be within 1-65535, got {value}")
    return value


def validate_text(entity: str, field: str, value: object, *, optional: bool = False) -> str | None:
    if value is None and optional:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigurationError(entity, f"{field} must be a non-empty string, got {value!r}")
    return value


def validate_flag(entity: str, field: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(entity, f"{field} must be true or false, got {value!r}")
    return value


def validate_positive_int(entity: str, field: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(entity, f"{field} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(entity, f"{field} must be > 0, got {value}")
    return value
