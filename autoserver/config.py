"""TOML-based cluster configuration.

Loads ~/.autoserver/defaults.toml (global) and autoserver.toml (project),
merges them, and builds a Cluster from the result.

Example autoserver.toml:

    [cluster]
    id = "soda"
    network = "vpc-0abc"
    storage = "network-volume"
    admins = ["ServerAdmin"]

    [capacity.Capacity]
    instance_type = "m4.large"
    price_ceiling = 0.05
    enable = "0 21 * * *"
    disable = "0 6 * * *"

    [servers.Vanilla]
    cpu = 0.5
    memory_mib = 2048

    [logging]
    level = "info"
    file = "plan.jsonl"
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from autoserver.capacity import CapacityGroupSpec
from autoserver.cluster import Cluster, NetworkContext
from autoserver.exceptions import ConfigurationError
from autoserver.instance_types import Ec2InstanceCatalog, InstanceCatalog
from autoserver.policy import AccessPolicyBuilder
from autoserver.server import ServerSpec
from autoserver.storage import DEFAULT_HOST_ROOT, HostPath, NetworkVolume, StorageStrategy

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".autoserver" / "defaults.toml"
PROJECT_CONFIG_NAME = "autoserver.toml"


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(str(path), f"invalid TOML: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("cluster", {})
    merged.setdefault("capacity", {})
    merged.setdefault("servers", {})
    return merged


def _build_storage(raw: RawConfig) -> StorageStrategy:
    match raw.get("storage", "network-volume"):
        case "network-volume":
            return NetworkVolume(volume_id=raw.get("volume_id"))
        case "host-path":
            return HostPath(root=raw.get("host_root", DEFAULT_HOST_ROOT))
        case other:
            raise ConfigurationError(
                "cluster", f"unknown storage '{other}'. Valid: network-volume, host-path",
            )


def _table(entity: str, value: object) -> RawConfig:
    if not isinstance(value, dict):
        raise ConfigurationError(entity, f"expected a table, got {value!r}")
    return dict(value)


def _build_spec[T](cls: type[T], entity: str, raw: RawConfig) -> T:
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(entity, f"invalid fields: {e}") from e


def build_cluster(config: RawConfig, *, catalog: InstanceCatalog | None = None) -> Cluster:
    """Declare a Cluster from a merged config. Does not finalize it.

    When ``[cluster].region`` is set and no catalog is given, instance
    classes missing from the static table are looked up in that region.
    """
    raw_cluster = _table("cluster", config.get("cluster", {}))

    cluster_id = raw_cluster.get("id")
    if cluster_id is None:
        raise ConfigurationError("cluster", "missing 'id' field")
    network = raw_cluster.get("network")
    if network is None:
        raise ConfigurationError(f"cluster {cluster_id}", "missing 'network' field")

    region = raw_cluster.get("region")
    if catalog is None and region:
        catalog = Ec2InstanceCatalog(region)

    cluster = Cluster(
        cluster_id,
        NetworkContext(network),
        _build_storage(raw_cluster),
        catalog=catalog,
        policy_builder=AccessPolicyBuilder(
            region=region or "*",
            account_id=str(raw_cluster.get("account_id", "*")),
        ),
    )

    for group_id, raw_group in _table("capacity", config.get("capacity", {})).items():
        raw_group = _table(f"capacity group {group_id}", raw_group)
        enable = raw_group.pop("enable", None)
        disable = raw_group.pop("disable", None)
        spec = _build_spec(CapacityGroupSpec, f"capacity group {group_id}", raw_group)
        group = cluster.add_capacity_group(group_id, spec)

        match (enable, disable):
            case (None, None):
                pass
            case (str(), str()):
                group.add_schedule(enable, disable)
            case _:
                raise ConfigurationError(
                    f"capacity group {group_id}", "'enable' and 'disable' must be given together as cron strings",
                )

    for server_id, raw_server in _table("servers", config.get("servers", {})).items():
        entity = f"server {server_id}"
        spec = _build_spec(ServerSpec, entity, _table(entity, raw_server))
        cluster.add_server(server_id, spec)

    admins = raw_cluster.get("admins", [])
    if not isinstance(admins, list) or not all(isinstance(a, str) and a for a in admins):
        raise ConfigurationError(f"cluster {cluster_id}", "'admins' must be a list of identity names")
    for identity in admins:
        cluster.grant_admin_access(identity)

    return cluster


def load_cluster(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    catalog: InstanceCatalog | None = None,
) -> Cluster:
    config = load_config(project_dir=project_dir, global_path=global_path)
    return build_cluster(config, catalog=catalog)
