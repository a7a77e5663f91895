"""Finalize pass: derive cross-entity relations from the registries.

Everything here is a pure function of a ``ClusterSnapshot``. Running the
resolver twice over the same snapshot yields equal descriptors; there are
no counters or random ids involved.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from loguru import logger

from autoserver.capacity import CapacityGroup
from autoserver.descriptors import (
    CapacityGroupDescriptor,
    ClusterDescriptor,
    IngressRule,
    MountEntry,
    ServerDescriptor,
    StartupEdge,
)
from autoserver.exceptions import InvariantViolation
from autoserver.policy import AccessPolicyBuilder
from autoserver.server import Server
from autoserver.storage import NFS_PORT, SharedStorage

log = logger.bind(component="resolver")

SSH_PORT = 22


@dataclass(frozen=True, slots=True)
class ClusterSnapshot:
    """Read-only view of a cluster's registries at the finalize barrier."""

    cluster_id: str
    network_ref: str
    storage: SharedStorage
    capacity_groups: tuple[CapacityGroup, ...]
    servers: tuple[Server, ...]
    policy_attachments: tuple[str, ...] = ()


# =============================================================================
# Pairwise derivations
# =============================================================================


def pair_ingress_rules(
    groups: Sequence[CapacityGroup],
    servers: Sequence[Server],
) -> Iterator[IngressRule]:
    """Yield the game and RCON rules for every (group, server) pair.

    Yields exactly ``2 * len(groups) * len(servers)`` rules, duplicates
    included.
    """
    for group in groups:
        for server in servers:
            yield IngressRule(
                boundary_ref=group.qualified_id,
                protocol="udp",
                port=server.spec.game_port,
                description=f"Allow game traffic to {server.id}",
            )
            yield IngressRule(
                boundary_ref=group.qualified_id,
                protocol="tcp",
                port=server.spec.rcon_port,
                description=f"Allow RCON to {server.id}",
            )


def dedupe_rules(rules: Iterable[IngressRule]) -> tuple[IngressRule, ...]:
    """Keep the first rule per ``(boundary, port, protocol)`` key, in order."""
    seen: dict[tuple[str, int, str], IngressRule] = {}
    for rule in rules:
        seen.setdefault(rule.key, rule)
    return tuple(seen.values())


def derive_ingress_rules(
    groups: Sequence[CapacityGroup],
    servers: Sequence[Server],
) -> tuple[IngressRule, ...]:
    return dedupe_rules(pair_ingress_rules(groups, servers))


def derive_startup_edges(
    groups: Sequence[CapacityGroup],
    servers: Sequence[Server],
) -> tuple[StartupEdge, ...]:
    """Every server waits for every capacity group to be ready."""
    return tuple(
        StartupEdge(depends_on=group.qualified_id, blocks=server.qualified_id)
        for group in groups
        for server in servers
    )


def derive_admin_rules(
    groups: Sequence[CapacityGroup],
    servers: Sequence[Server],
    storage: SharedStorage,
) -> tuple[IngressRule, ...]:
    """SSH into capacity groups and NFS into network-volume storage."""
    rules = [
        IngressRule(
            boundary_ref=group.qualified_id,
            protocol="tcp",
            port=SSH_PORT,
            description="Allow SSH",
        )
        for group in groups
        if group.spec.ssh_access
    ]
    if storage.is_network:
        rules.extend(
            IngressRule(
                boundary_ref=storage.id,
                protocol="tcp",
                port=NFS_PORT,
                source=server.qualified_id,
                description=f"Allow NFS from {server.id}",
            )
            for server in servers
        )
    return tuple(rules)


def resolve_mounts(storage: SharedStorage, servers: Sequence[Server]) -> tuple[MountEntry, ...]:
    return tuple(storage.mount_for(server) for server in servers)


# =============================================================================
# Cross-entity invariants
# =============================================================================


def check_invariants(groups: Sequence[CapacityGroup], servers: Sequence[Server]) -> None:
    """Raise InvariantViolation on the first broken cross-entity rule.

    Rules:
        - ``(game_port, rcon_port)`` is unique across servers.
        - a server's cpu and memory fit the instances of every capacity
          group, since any group may end up hosting it.
    """
    owners: dict[tuple[int, int], str] = {}
    game_ports: dict[int, str] = {}
    for server in servers:
        pair = server.ports
        if pair in owners:
            raise InvariantViolation(
                f"server {server.id}",
                f"duplicate (game_port, rcon_port) pair {pair}",
                other=f"server {owners[pair]}",
            )
        owners[pair] = server.id

        game_port = server.spec.game_port
        if game_port in game_ports:
            log.warning(
                "Servers {a} and {b} share game port {port}",
                a=game_ports[game_port], b=server.id, port=game_port,
            )
        game_ports.setdefault(game_port, server.id)

    for server in servers:
        for group in groups:
            if server.spec.cpu > group.instance.vcpu:
                raise InvariantViolation(
                    f"server {server.id}",
                    f"cpu reservation {server.spec.cpu} exceeds {group.instance.vcpu} vCPUs "
                    f"of {group.instance.type_name}",
                    other=f"capacity group {group.id}",
                )
            if server.spec.memory_mib > group.instance.memory_mib:
                raise InvariantViolation(
                    f"server {server.id}",
                    f"memory reservation {server.spec.memory_mib} MiB exceeds "
                    f"{group.instance.memory_mib} MiB of {group.instance.type_name}",
                    other=f"capacity group {group.id}",
                )


# =============================================================================
# Descriptor builders
# =============================================================================


def _describe_group(group: CapacityGroup) -> CapacityGroupDescriptor:
    return CapacityGroupDescriptor(
        ref=group.qualified_id,
        instance_class=group.spec.instance_type,
        vcpus=group.instance.vcpu,
        memory_mib=group.instance.memory_mib,
        price_ceiling=group.spec.price_ceiling,
        min_capacity=group.min_capacity,
        max_capacity=group.max_capacity,
        desired_capacity=group.desired_capacity,
        schedule_actions=group.scheduler.actions if group.scheduler else (),
        tags=tuple(sorted(group.tags.items())),
        key_name=group.spec.key_name,
    )


def _describe_server(server: Server, mount: MountEntry) -> ServerDescriptor:
    return ServerDescriptor(
        ref=server.qualified_id,
        cpu=server.spec.cpu,
        memory_mib=server.spec.memory_mib,
        image=server.image,
        image_tag=server.spec.image_tag,
        game_port=server.spec.game_port,
        rcon_port=server.spec.rcon_port,
        mount_ref=mount.source,
        container_path=mount.container_path,
        log_stream_prefix=server.id,
        log_retention_days=server.spec.log_retention_days,
    )


class FinalizeResolver:
    """Turns a closed cluster registry into a ClusterDescriptor.

    Validation runs before any descriptor is built, so a failing resolve
    never surfaces a partial result.
    """

    def __init__(self, policy_builder: AccessPolicyBuilder | None = None) -> None:
        self.policy_builder = policy_builder or AccessPolicyBuilder()

    def resolve(self, snapshot: ClusterSnapshot) -> ClusterDescriptor:
        groups = snapshot.capacity_groups
        servers = snapshot.servers

        check_invariants(groups, servers)

        mounts = resolve_mounts(snapshot.storage, servers)
        ingress_rules = derive_ingress_rules(groups, servers)
        descriptor = ClusterDescriptor(
            cluster_id=snapshot.cluster_id,
            network_ref=snapshot.network_ref,
            capacity_groups=tuple(_describe_group(g) for g in groups),
            servers=tuple(_describe_server(s, m) for s, m in zip(servers, mounts, strict=True)),
            ingress_rules=ingress_rules,
            admin_ingress_rules=derive_admin_rules(groups, servers, snapshot.storage),
            startup_edges=derive_startup_edges(groups, servers),
            policy=self.policy_builder.build(snapshot.cluster_id),
            policy_attachments=snapshot.policy_attachments,
            storage=snapshot.storage.describe(mounts),
        )

        if servers and not groups:
            log.warning("Cluster {id} has servers but no capacity groups", id=snapshot.cluster_id)
        log.info(
            "Resolved cluster {id}: {m} capacity groups, {n} servers, {rules} ingress rules, {edges} startup edges",
            id=snapshot.cluster_id,
            m=len(groups),
            n=len(servers),
            rules=len(ingress_rules),
            edges=len(descriptor.startup_edges),
        )
        return descriptor
