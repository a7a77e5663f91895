"""Immutable descriptors produced by finalize.

These are the only objects handed to the provisioning back-end and to the
output layer. All of them are frozen and hashable so that two finalize
runs can be compared with plain equality or as sets.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

from autoserver.schedule import ScheduledAction

type IpProtocol = Literal["udp", "tcp"]
type StorageStrategyName = Literal["network-volume", "host-path"]

ANY_SOURCE = "any"


@dataclass(frozen=True, slots=True)
class IngressRule:
    """Inbound traffic permitted on one boundary."""

    boundary_ref: str
    protocol: IpProtocol
    port: int
    source: str = ANY_SOURCE
    description: str = ""

    @property
    def key(self) -> tuple[str, int, IpProtocol]:
        return (self.boundary_ref, self.port, self.protocol)

    def to_dict(self) -> dict[str, Any]:
        return {
            "boundary_ref": self.boundary_ref,
            "protocol": self.protocol,
            "port": self.port,
            "source": self.source,
            "description": self.description,
        }


@dataclass(frozen=True, slots=True)
class StartupEdge:
    """``blocks`` must not start before ``depends_on`` is ready."""

    depends_on: str
    blocks: str

    def to_dict(self) -> dict[str, str]:
        return {"depends_on": self.depends_on, "blocks": self.blocks}


@dataclass(frozen=True, slots=True)
class MountEntry:
    server_ref: str
    source_volume: str
    source: str
    container_path: str
    read_only: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_ref": self.server_ref,
            "source_volume": self.source_volume,
            "source": self.source,
            "container_path": self.container_path,
            "read_only": self.read_only,
        }


@dataclass(frozen=True, slots=True)
class StorageDescriptor:
    """Shared storage and every mount resolved against it.

    ``identifier`` is set for network volumes, ``path_template`` for host
    paths. Storage is always retained when the cluster is torn down.
    """

    storage_ref: str
    strategy: StorageStrategyName
    identifier: str | None
    path_template: str | None
    mounts: tuple[MountEntry, ...]
    retain: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_ref": self.storage_ref,
            "strategy": self.strategy,
            "identifier": self.identifier,
            "path_template": self.path_template,
            "retain": self.retain,
            "mounts": [m.to_dict() for m in self.mounts],
        }


type Condition = tuple[str, str, str]


@dataclass(frozen=True, slots=True)
class PolicyStatement:
    """One IAM-style statement.

    ``conditions`` holds ``(operator, key, value)`` triples, e.g.
    ``("StringEquals", "aws:ResourceTag/autoserver:cluster", "prod")``.
    """

    sid: str
    actions: tuple[str, ...]
    resources: tuple[str, ...]
    effect: Literal["Allow", "Deny"] = "Allow"
    conditions: tuple[Condition, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        statement: dict[str, Any] = {
            "Sid": self.sid,
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }
        if self.conditions:
            grouped: dict[str, dict[str, str]] = {}
            for operator, key, value in self.conditions:
                grouped.setdefault(operator, {})[key] = value
            statement["Condition"] = grouped
        return statement


@dataclass(frozen=True, slots=True)
class PolicyDescriptor:
    name: str
    description: str
    statements: tuple[PolicyStatement, ...]

    @property
    def tag_conditions(self) -> frozenset[Condition]:
        return frozenset(c for s in self.statements for c in s.conditions)

    def to_document(self) -> dict[str, Any]:
        return {
            "Version": "2012-10-17",
            "Statement": [s.to_dict() for s in self.statements],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "document": self.to_document(),
        }


@dataclass(frozen=True, slots=True)
class CapacityGroupDescriptor:
    ref: str
    instance_class: str
    vcpus: int
    memory_mib: int
    price_ceiling: float | None
    min_capacity: int
    max_capacity: int
    desired_capacity: int
    schedule_actions: tuple[ScheduledAction, ...]
    tags: tuple[tuple[str, str], ...]
    key_name: str | None = None
    associate_public_ip: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "instance_class": self.instance_class,
            "vcpus": self.vcpus,
            "memory_mib": self.memory_mib,
            "price_ceiling": self.price_ceiling,
            "min_capacity": self.min_capacity,
            "max_capacity": self.max_capacity,
            "desired_capacity": self.desired_capacity,
            "schedule_actions": [a.to_dict() for a in self.schedule_actions],
            "tags": dict(self.tags),
            "key_name": self.key_name,
            "associate_public_ip": self.associate_public_ip,
        }


@dataclass(frozen=True, slots=True)
class ServerDescriptor:
    ref: str
    cpu: float
    memory_mib: int
    image: str
    image_tag: str
    game_port: int
    rcon_port: int
    mount_ref: str
    container_path: str
    log_stream_prefix: str
    log_retention_days: int
    desired_count: int = 1
    min_healthy_percent: int = 0
    max_healthy_percent: int = 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "cpu": self.cpu,
            "memory_mib": self.memory_mib,
            "image": self.image,
            "image_tag": self.image_tag,
            "game_port": self.game_port,
            "rcon_port": self.rcon_port,
            "mount_ref": self.mount_ref,
            "container_path": self.container_path,
            "log_stream_prefix": self.log_stream_prefix,
            "log_retention_days": self.log_retention_days,
            "desired_count": self.desired_count,
            "min_healthy_percent": self.min_healthy_percent,
            "max_healthy_percent": self.max_healthy_percent,
        }


@dataclass(frozen=True, slots=True)
class ClusterDescriptor:
    """Everything the provisioning back-end needs to build one cluster.

    ``ingress_rules`` carries the game and RCON rules derived from every
    (capacity group, server) pair. SSH and NFS rules live in
    ``admin_ingress_rules`` so the two sets can be audited separately.
    """

    cluster_id: str
    network_ref: str
    capacity_groups: tuple[CapacityGroupDescriptor, ...]
    servers: tuple[ServerDescriptor, ...]
    ingress_rules: tuple[IngressRule, ...]
    admin_ingress_rules: tuple[IngressRule, ...]
    startup_edges: tuple[StartupEdge, ...]
    policy: PolicyDescriptor
    policy_attachments: tuple[str, ...]
    storage: StorageDescriptor

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "network_ref": self.network_ref,
            "capacity_groups": [g.to_dict() for g in self.capacity_groups],
            "servers": [s.to_dict() for s in self.servers],
            "ingress_rules": [r.to_dict() for r in self.ingress_rules],
            "admin_ingress_rules": [r.to_dict() for r in self.admin_ingress_rules],
            "startup_edges": [e.to_dict() for e in self.startup_edges],
            "policy": self.policy.to_dict(),
            "policy_attachments": list(self.policy_attachments),
            "storage": self.storage.to_dict(),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
