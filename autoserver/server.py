"""Game-server declarations."""

from __future__ import annotations

from dataclasses import dataclass

from autoserver.exceptions import ConfigurationError
from autoserver.ids import validate_id, validate_port, validate_positive_int, validate_text

DEFAULT_IMAGE_REPOSITORY = "factoriotools/factorio"
DEFAULT_GAME_PORT = 34197
DEFAULT_RCON_PORT = 27015


@dataclass(frozen=True, slots=True)
class ServerSpec:
    """One hosted game-server instance.

    Args:
        cpu: vCPUs to reserve. Must not exceed the vCPUs of the capacity
            group instances; checked at finalize.
        memory_mib: Memory reservation in MiB.
        image_tag: Tag of ``image_repository`` to run. Default: stable.
        game_port: UDP port players connect to.
        rcon_port: TCP port of the remote console.
        mount_path: Where shared storage appears inside the container.
        image_repository: Container image repository.
        log_retention_days: Retention of the server's log stream.
    """

    cpu: float
    memory_mib: int
    image_tag: str = "stable"
    game_port: int = DEFAULT_GAME_PORT
    rcon_port: int = DEFAULT_RCON_PORT
    mount_path: str = "/factorio"
    image_repository: str = DEFAULT_IMAGE_REPOSITORY
    log_retention_days: int = 5

    @property
    def image(self) -> str:
        return f"{self.image_repository}:{self.image_tag}"


class Server:
    """Handle returned by ``Cluster.add_server``."""

    def __init__(self, cluster_id: str, server_id: str, spec: ServerSpec) -> None:
        validate_id("server", server_id)
        entity = f"server {server_id}"

        if isinstance(spec.cpu, bool) or not isinstance(spec.cpu, int | float) or spec.cpu <= 0:
            raise ConfigurationError(entity, f"cpu must be a positive number, got {spec.cpu!r}")
        if isinstance(spec.memory_mib, bool) or not isinstance(spec.memory_mib, int) or spec.memory_mib <= 0:
            raise ConfigurationError(entity, f"memory_mib must be a positive integer, got {spec.memory_mib!r}")
        validate_text(entity, "image_tag", spec.image_tag)
        validate_text(entity, "image_repository", spec.image_repository)
        validate_port(entity, "game_port", spec.game_port)
        validate_port(entity, "rcon_port", spec.rcon_port)
        validate_text(entity, "mount_path", spec.mount_path)
        if not spec.mount_path.startswith("/"):
            raise ConfigurationError(entity, f"mount_path must be absolute, got '{spec.mount_path}'")
        validate_positive_int(entity, "log_retention_days", spec.log_retention_days)

        self.cluster_id = cluster_id
        self.id = server_id
        self.spec = spec

    @property
    def qualified_id(self) -> str:
        return f"{self.cluster_id}/{self.id}"

    @property
    def ports(self) -> tuple[int, int]:
        return (self.spec.game_port, self.spec.rcon_port)

    @property
    def image(self) -> str:
        return self.spec.image

    def __repr__(self) -> str:
        return (
            f"Server(id={self.id!r}, image={self.image!r}, "
            f"game_port={self.spec.game_port}, rcon_port={self.spec.rcon_port})"
        )
