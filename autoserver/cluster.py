"""Cluster registry: declare capacity and servers, then finalize once.

Example:
    from autoserver import Cluster, CapacityGroupSpec, NetworkContext, ServerSpec

    cluster = Cluster("soda", NetworkContext("vpc-0abc"), storage="network-volume")

    capacity = cluster.add_capacity_group(
        "Capacity",
        CapacityGroupSpec(instance_type="m4.large", price_ceiling=0.05),
    )
    # Scale up at 21:00 UTC, scale down at 06:00 UTC
    capacity.add_schedule("0 21 * * *", "0 6 * * *")

    cluster.add_server("Vanilla", ServerSpec(cpu=0.5, memory_mib=2048))

    descriptor = cluster.finalize()
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from autoserver.capacity import CapacityGroup, CapacityGroupSpec
from autoserver.descriptors import ClusterDescriptor
from autoserver.exceptions import ConfigurationError, LifecycleError
from autoserver.ids import validate_id, validate_text
from autoserver.instance_types import InstanceCatalog, StaticInstanceCatalog
from autoserver.policy import AccessPolicyBuilder
from autoserver.resolver import ClusterSnapshot, FinalizeResolver
from autoserver.server import Server, ServerSpec
from autoserver.storage import SharedStorage, StorageStrategyLike

log = logger.bind(component="cluster")


@dataclass(frozen=True, slots=True)
class NetworkContext:
    """Opaque reference to the network (VPC) the cluster lives in."""

    ref: str

    def __post_init__(self) -> None:
        if not isinstance(self.ref, str) or not self.ref:
            raise ConfigurationError("network", f"network reference must be a non-empty string, got {self.ref!r}")


class Cluster:
    """Registry of capacity groups and servers for one cluster.

    Registration calls are plain appends and may come in any order. The
    cross-entity relations are only computed by ``finalize``, which may run
    exactly once; afterwards the registry is read-only.

    Args:
        cluster_id: Unique id, also the value of the cluster tag that scopes
            the admin policy.
        network: Network the cluster is provisioned into.
        storage: Storage strategy for the whole cluster.
        catalog: Resolves instance classes. Defaults to the static table.
        policy_builder: Builds the admin policy.
    """

    def __init__(
        self,
        cluster_id: str,
        network: NetworkContext,
        storage: StorageStrategyLike = "network-volume",
        *,
        catalog: InstanceCatalog | None = None,
        policy_builder: AccessPolicyBuilder | None = None,
    ) -> None:
        self.id = validate_id("cluster", cluster_id)
        self.network = network
        self.storage = SharedStorage(cluster_id, storage)
        self.policy_builder = policy_builder or AccessPolicyBuilder()
        self._catalog = catalog or StaticInstanceCatalog()
        self._capacity_groups: dict[str, CapacityGroup] = {}
        self._servers: dict[str, Server] = {}
        self._admins: list[str] = []
        self._closed = False
        self._descriptor: ClusterDescriptor | None = None

    # -------------------------------------------------------------------------
    # Declaration
    # -------------------------------------------------------------------------

    def _ensure_open(self, action: str) -> None:
        if self._closed:
            raise LifecycleError(f"cluster {self.id}: cannot {action} after finalize")

    def add_capacity_group(self, group_id: str, spec: CapacityGroupSpec) -> CapacityGroup:
        """Register a pool of capacity. Launched instances carry the cluster tag.

        The cluster tag key is the one the admin policy is scoped by, so the
        policy always matches the instances this group launches.

        Raises:
            ConfigurationError: On malformed bounds, price or instance class,
                or when ``group_id`` is already registered.
            LifecycleError: After finalize.
        """
        self._ensure_open(f"add capacity group {group_id}")
        validate_id("capacity group", group_id)
        if group_id in self._capacity_groups:
            raise ConfigurationError(f"capacity group {group_id}", "already registered")

        validate_text(f"capacity group {group_id}", "instance_type", spec.instance_type)
        try:
            instance = self._catalog.lookup(spec.instance_type)
        except ConfigurationError as e:
            raise ConfigurationError(f"capacity group {group_id}", str(e)) from e
        group = CapacityGroup(
            self.id, group_id, spec, instance, self._ensure_open,
            cluster_tag=self.policy_builder.tag_key,
        )
        self._capacity_groups[group_id] = group
        log.debug(
            "Added capacity group {id} ({type}, {kind}, {min}-{max})",
            id=group_id,
            type=spec.instance_type,
            kind=f"spot <= ${spec.price_ceiling}/hr" if spec.is_spot else "on-demand",
            min=spec.min_capacity,
            max=spec.max_capacity,
        )
        return group

    def add_server(self, server_id: str, spec: ServerSpec) -> Server:
        """Register a game server.

        Port uniqueness and the cpu-vs-instance check are cross-entity and
        happen at finalize, since capacity may still be added later.

        Raises:
            ConfigurationError: On malformed ports or reservations, or when
                ``server_id`` is already registered.
            LifecycleError: After finalize.
        """
        self._ensure_open(f"add server {server_id}")
        server = Server(self.id, server_id, spec)
        if server_id in self._servers:
            raise ConfigurationError(f"server {server_id}", "already registered")

        self._servers[server_id] = server
        log.debug(
            "Added server {id} ({image}, udp/{game}, tcp/{rcon})",
            id=server_id, image=server.image, game=spec.game_port, rcon=spec.rcon_port,
        )
        return server

    def grant_admin_access(self, identity: str) -> None:
        """Attach the admin policy to ``identity`` (a user or role name)."""
        self._ensure_open(f"grant admin access to {identity}")
        if not identity:
            raise ConfigurationError(f"cluster {self.id}", "identity must not be empty")
        if identity not in self._admins:
            self._admins.append(identity)

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def capacity_groups(self) -> tuple[CapacityGroup, ...]:
        return tuple(self._capacity_groups.values())

    @property
    def servers(self) -> tuple[Server, ...]:
        return tuple(self._servers.values())

    @property
    def is_finalized(self) -> bool:
        return self._closed

    @property
    def descriptor(self) -> ClusterDescriptor:
        if self._descriptor is None:
            raise LifecycleError(f"cluster {self.id}: not finalized")
        return self._descriptor

    def snapshot(self) -> ClusterSnapshot:
        return ClusterSnapshot(
            cluster_id=self.id,
            network_ref=self.network.ref,
            storage=self.storage,
            capacity_groups=self.capacity_groups,
            servers=self.servers,
            policy_attachments=tuple(self._admins),
        )

    # -------------------------------------------------------------------------
    # Finalize
    # -------------------------------------------------------------------------

    def finalize(self) -> ClusterDescriptor:
        """Close the registry and resolve it into a ClusterDescriptor.

        The registry closes as soon as finalize starts, whether or not
        resolution succeeds.

        Raises:
            LifecycleError: If finalize was already called.
            InvariantViolation: On duplicate port pairs or reservations that
                do not fit an instance. No descriptor is produced.
        """
        if self._closed:
            raise LifecycleError(f"cluster {self.id}: already finalized")
        self._closed = True

        log.debug("Finalizing cluster {id}", id=self.id)
        resolver = FinalizeResolver(self.policy_builder)
        self._descriptor = resolver.resolve(self.snapshot())
        return self._descriptor

    def __repr__(self) -> str:
        return (
            f"Cluster(id={self.id!r}, capacity_groups={len(self._capacity_groups)}, "
            f"servers={len(self._servers)}, finalized={self._closed})"
        )
