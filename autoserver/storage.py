"""Shared persistent storage for game-server data.

One cluster has exactly one storage strategy, chosen at construction:

    network-volume   every server mounts the same network file system
    host-path        every server gets its own directory on the host

Storage is retained when the cluster is torn down; deleting a cluster must
never delete world saves.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from autoserver.descriptors import MountEntry, StorageDescriptor, StorageStrategyName
from autoserver.exceptions import ConfigurationError
from autoserver.ids import validate_text
from autoserver.server import Server

NFS_PORT = 2049
SOURCE_VOLUME_NAME = "GameData"
DEFAULT_HOST_ROOT = "/opt/autoserver"


@dataclass(frozen=True, slots=True)
class NetworkVolume:
    """Network file system shared by all servers.

    Args:
        volume_id: Existing file system id. When None, the provisioning
            back-end creates one named ``<cluster id>-volume``.
    """

    volume_id: str | None = None

    def __post_init__(self) -> None:
        validate_text("storage", "volume_id", self.volume_id, optional=True)

    @property
    def name(self) -> StorageStrategyName:
        return "network-volume"


@dataclass(frozen=True, slots=True)
class HostPath:
    """Per-server directory under ``root`` on the container host."""

    root: str = DEFAULT_HOST_ROOT

    def __post_init__(self) -> None:
        validate_text("storage", "host_root", self.root)
        if not self.root.startswith("/"):
            raise ConfigurationError("storage", f"host path root must be absolute, got '{self.root}'")

    @property
    def name(self) -> StorageStrategyName:
        return "host-path"


type StorageStrategy = NetworkVolume | HostPath
type StorageStrategyLike = StorageStrategy | Literal["network-volume", "host-path"]


def normalize_strategy(strategy: StorageStrategyLike) -> StorageStrategy:
    """Normalize a strategy given as a string or an instance."""
    match strategy:
        case "network-volume":
            return NetworkVolume()
        case "host-path":
            return HostPath()
        case NetworkVolume() | HostPath():
            return strategy
        case _:
            raise ConfigurationError(
                "storage",
                f"invalid strategy {strategy!r}; use 'network-volume', 'host-path', "
                "NetworkVolume(...) or HostPath(...)",
            )


class SharedStorage:
    def __init__(self, cluster_id: str, strategy: StorageStrategyLike) -> None:
        self.cluster_id = cluster_id
        self.strategy = normalize_strategy(strategy)

    @property
    def id(self) -> str:
        return f"{self.cluster_id}/storage"

    @property
    def retain(self) -> bool:
        return True

    @property
    def is_network(self) -> bool:
        return isinstance(self.strategy, NetworkVolume)

    @property
    def identifier(self) -> str | None:
        match self.strategy:
            case NetworkVolume(volume_id=volume_id):
                return volume_id or f"{self.cluster_id}-volume"
            case HostPath():
                return None

    @property
    def path_template(self) -> str | None:
        match self.strategy:
            case HostPath(root=root):
                return f"{root.rstrip('/')}/{{server_id}}"
            case NetworkVolume():
                return None

    def mount_for(self, server: Server) -> MountEntry:
        """Resolve where ``server``'s data lives."""
        match self.strategy:
            case NetworkVolume(volume_id=volume_id):
                source = volume_id or f"{self.cluster_id}-volume"
            case HostPath(root=root):
                source = f"{root.rstrip('/')}/{server.id}"

        return MountEntry(
            server_ref=server.qualified_id,
            source_volume=SOURCE_VOLUME_NAME,
            source=source,
            container_path=server.spec.mount_path,
        )

    def describe(self, mounts: Iterable[MountEntry]) -> StorageDescriptor:
        return StorageDescriptor(
            storage_ref=self.id,
            strategy=self.strategy.name,
            identifier=self.identifier,
            path_template=self.path_template,
            mounts=tuple(mounts),
            retain=self.retain,
        )

    def __repr__(self) -> str:
        return f"SharedStorage(id={self.id!r}, strategy={self.strategy!r})"
