"""Capacity groups: pools of elastic, optionally price-capped instances."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from autoserver.exceptions import ConfigurationError, LifecycleError
from autoserver.ids import validate_flag, validate_id, validate_text
from autoserver.instance_types import InstanceSpec
from autoserver.schedule import ActionName, Cron, Scheduler

log = logger.bind(component="capacity")

CLUSTER_TAG = "autoserver:cluster"
GROUP_TAG = "autoserver:group"


@dataclass(frozen=True, slots=True)
class CapacityGroupSpec:
    """What the operator asks for when adding capacity.

    Args:
        instance_type: EC2 instance class, e.g. ``"m4.large"``.
        price_ceiling: Maximum hourly spot price in USD. None means on-demand.
        min_capacity: Lower bound of the group size.
        max_capacity: Upper bound of the group size; also the initial desired size.
        key_name: EC2 key pair injected into launched instances.
        ssh_access: Open TCP 22 on the group's boundary for instance connect.
    """

    instance_type: str
    price_ceiling: float | None = None
    min_capacity: int = 0
    max_capacity: int = 1
    key_name: str | None = None
    ssh_access: bool = True

    @property
    def is_spot(self) -> bool:
        return self.price_ceiling is not None


def _check_capacity(group_id: str, field: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"capacity group {group_id}", f"{field} must be an integer, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"capacity group {group_id}", f"{field} must be >= 0, got {value}")
    return value


class CapacityGroup:
    """Handle returned by ``Cluster.add_capacity_group``.

    Holds the resolved instance class and the desired size. The desired
    size starts at ``max_capacity`` and only moves through scheduled
    actions, which keep it inside ``[min_capacity, max_capacity]``.
    """

    def __init__(
        self,
        cluster_id: str,
        group_id: str,
        spec: CapacityGroupSpec,
        instance: InstanceSpec,
        guard: Callable[[str], None],
        cluster_tag: str = CLUSTER_TAG,
    ) -> None:
        validate_id("capacity group", group_id)
        entity = f"capacity group {group_id}"
        min_capacity = _check_capacity(group_id, "min_capacity", spec.min_capacity)
        max_capacity = _check_capacity(group_id, "max_capacity", spec.max_capacity)
        if min_capacity > max_capacity:
            raise ConfigurationError(
                entity, f"min_capacity ({min_capacity}) must not exceed max_capacity ({max_capacity})",
            )
        if spec.price_ceiling is not None:
            if isinstance(spec.price_ceiling, bool) or not isinstance(spec.price_ceiling, int | float):
                raise ConfigurationError(entity, f"price_ceiling must be a number, got {spec.price_ceiling!r}")
            if spec.price_ceiling <= 0:
                raise ConfigurationError(entity, f"price_ceiling must be > 0, got {spec.price_ceiling}")
        validate_text(entity, "key_name", spec.key_name, optional=True)
        validate_flag(entity, "ssh_access", spec.ssh_access)

        self.cluster_id = cluster_id
        self.id = group_id
        self.spec = spec
        self.instance = instance
        self.desired_capacity = max_capacity
        self.scheduler: Scheduler | None = None
        self._guard = guard
        self._cluster_tag = cluster_tag

    @property
    def min_capacity(self) -> int:
        return self.spec.min_capacity

    @property
    def max_capacity(self) -> int:
        return self.spec.max_capacity

    @property
    def qualified_id(self) -> str:
        return f"{self.cluster_id}/{self.id}"

    @property
    def tags(self) -> dict[str, str]:
        """Tags propagated to every instance the group launches."""
        return {self._cluster_tag: self.cluster_id, GROUP_TAG: self.qualified_id}

    @property
    def is_scheduled(self) -> bool:
        return self.scheduler is not None

    def add_schedule(self, enable: Cron | str, disable: Cron | str) -> Scheduler:
        """Attach enable/disable actions. Allowed once per group.

        Args:
            enable: When to scale to ``max_capacity``.
            disable: When to scale to ``min_capacity``.

        Raises:
            LifecycleError: If a schedule is already attached or the cluster
                has been finalized.
        """
        self._guard(f"add a schedule to capacity group {self.id}")
        if self.scheduler is not None:
            raise LifecycleError(f"capacity group {self.id}: schedule already attached")

        enable_cron = Cron.parse(enable) if isinstance(enable, str) else enable
        disable_cron = Cron.parse(disable) if isinstance(disable, str) else disable
        self.scheduler = Scheduler.for_bounds(
            enable_cron, disable_cron, self.min_capacity, self.max_capacity,
        )
        log.debug(
            "Scheduled {group}: enable '{enable}', disable '{disable}'",
            group=self.id, enable=enable_cron.expression, disable=disable_cron.expression,
        )
        return self.scheduler

    def apply_scheduled_action(self, name: ActionName) -> int:
        """Simulate a scheduled action firing and return the new desired size.

        Raises:
            LifecycleError: If no schedule is attached or the cluster has
                been finalized.
        """
        self._guard(f"apply action {name} to capacity group {self.id}")
        if self.scheduler is None:
            raise LifecycleError(f"capacity group {self.id}: no schedule attached")
        self.desired_capacity = self.scheduler.evaluate([name], self.desired_capacity)
        return self.desired_capacity

    def __repr__(self) -> str:
        return (
            f"CapacityGroup(id={self.id!r}, instance_type={self.spec.instance_type!r}, "
            f"min={self.min_capacity}, max={self.max_capacity}, desired={self.desired_capacity})"
        )
