"""Exception hierarchy for autoserver.

All autoserver exceptions inherit from AutoServerError, so callers can
catch every failure of the declare/finalize cycle with a single except
clause. Every error names the offending entity and the rule it broke.
"""

from __future__ import annotations


class AutoServerError(Exception):
    """Base exception for all autoserver errors."""


class ConfigurationError(AutoServerError):
    """Raised at declaration time for malformed input.

    Examples: ``min_capacity > max_capacity``, a port outside 1..65535,
    an unknown instance class or an invalid cron field.
    """

    def __init__(self, entity: str, rule: str) -> None:
        self.entity = entity
        self.rule = rule
        super().__init__(f"{entity}: {rule}")


class InvariantViolation(AutoServerError):
    """Raised by finalize when a cross-entity invariant does not hold."""

    def __init__(self, entity: str, rule: str, other: str | None = None) -> None:
        self.entity = entity
        self.rule = rule
        self.other = other
        suffix = f" (conflicts with {other})" if other else ""
        super().__init__(f"{entity}: {rule}{suffix}")


class LifecycleError(AutoServerError):
    """Raised when the declare-then-finalize order is not respected.

    Registering after finalize or finalizing twice are programming errors,
    not conditions to recover from at runtime.
    """
