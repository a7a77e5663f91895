"""Cron-triggered scaling actions for capacity groups.

A scheduler is a pair of independent actions: ``enable`` sets the desired
size of a capacity group to its maximum, ``disable`` sets it to its
minimum. The actions are evaluated by the scheduling provider, not here;
when both fire in the same window the later-evaluated one wins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from autoserver.exceptions import ConfigurationError

type ActionName = Literal["enable", "disable"]

_NUMBER = re.compile(r"[0-9]+")

# (name, low, high) per cron position
_FIELDS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("week_day", 0, 6),
)


def _check_value(name: str, raw: str, low: int, high: int) -> int:
    if not _NUMBER.fullmatch(raw):
        raise ConfigurationError(f"cron {name}", f"'{raw}' is not a number")
    value = int(raw)
    if not low <= value <= high:
        raise ConfigurationError(f"cron {name}", f"{value} outside {low}-{high}")
    return value


def _validate_field(name: str, value: str, low: int, high: int) -> None:
    if not value:
        raise ConfigurationError(f"cron {name}", "empty field")

    for part in value.split(","):
        base, _, step = part.partition("/")
        if step and (not _NUMBER.fullmatch(step) or int(step) == 0):
            raise ConfigurationError(f"cron {name}", f"invalid step in '{part}'")

        match base.split("-"):
            case ["*"]:
                continue
            case [single]:
                _check_value(name, single, low, high)
            case [start, end]:
                if _check_value(name, start, low, high) > _check_value(name, end, low, high):
                    raise ConfigurationError(f"cron {name}", f"descending range '{base}'")
            case _:
                raise ConfigurationError(f"cron {name}", f"cannot parse '{part}'")


@dataclass(frozen=True, slots=True)
class Cron:
    """A five-field cron schedule (UTC).

    Example:
        >>> Cron(hour="21", minute="0").expression
        '0 21 * * *'
    """

    minute: str = "*"
    hour: str = "*"
    day: str = "*"
    month: str = "*"
    week_day: str = "*"

    def __post_init__(self) -> None:
        for name, low, high in _FIELDS:
            _validate_field(name, str(getattr(self, name)), low, high)

    @property
    def expression(self) -> str:
        return f"{self.minute} {self.hour} {self.day} {self.month} {self.week_day}"

    @classmethod
    def parse(cls, text: str) -> Cron:
        """Build a Cron from a ``"m h dom mon dow"`` string."""
        parts = text.split()
        if len(parts) != 5:
            raise ConfigurationError("cron", f"expected 5 fields, got {len(parts)} in '{text}'")
        minute, hour, day, month, week_day = parts
        return cls(minute=minute, hour=hour, day=day, month=month, week_day=week_day)

    def __str__(self) -> str:
        return self.expression


@dataclass(frozen=True, slots=True)
class ScheduledAction:
    """Set a capacity group's desired size when ``schedule`` fires."""

    name: ActionName
    schedule: Cron
    desired_capacity: int

    def apply(self, current: int, min_capacity: int, max_capacity: int) -> int:
        """Return the desired size after this action fires.

        The action is a plain set, so ``current`` does not affect the
        result. The result is clamped into ``[min_capacity, max_capacity]``.
        """
        del current
        return max(min_capacity, min(max_capacity, self.desired_capacity))

    def to_dict(self) -> dict[str, str | int]:
        return {
            "name": self.name,
            "schedule": self.schedule.expression,
            "desired_capacity": self.desired_capacity,
        }


@dataclass(frozen=True, slots=True)
class Scheduler:
    """Enable/disable action pair for one capacity group."""

    enable: ScheduledAction
    disable: ScheduledAction
    min_capacity: int
    max_capacity: int

    @classmethod
    def for_bounds(
        cls,
        enable: Cron,
        disable: Cron,
        min_capacity: int,
        max_capacity: int,
    ) -> Scheduler:
        return cls(
            enable=ScheduledAction("enable", enable, max_capacity),
            disable=ScheduledAction("disable", disable, min_capacity),
            min_capacity=min_capacity,
            max_capacity=max_capacity,
        )

    @property
    def actions(self) -> tuple[ScheduledAction, ScheduledAction]:
        return (self.enable, self.disable)

    def action(self, name: ActionName) -> ScheduledAction:
        match name:
            case "enable":
                return self.enable
            case "disable":
                return self.disable
            case _:
                raise ConfigurationError("scheduler", f"unknown action '{name}'")

    def evaluate(self, fired: Iterable[ActionName], current: int) -> int:
        """Apply fired actions in evaluation order; the last write wins."""
        desired = current
        for name in fired:
            desired = self.action(name).apply(desired, self.min_capacity, self.max_capacity)
        return desired
