from __future__ import annotations

import pytest

from autoserver import CapacityGroupSpec, Cluster, NetworkContext, ServerSpec


@pytest.fixture
def cluster() -> Cluster:
    return Cluster("soda", NetworkContext("vpc-0abc"), storage="network-volume")


@pytest.fixture
def host_path_cluster() -> Cluster:
    return Cluster("soda", NetworkContext("vpc-0abc"), storage="host-path")


@pytest.fixture
def spot() -> CapacityGroupSpec:
    return CapacityGroupSpec(instance_type="m4.large", price_ceiling=0.05, min_capacity=0, max_capacity=1)


def server_spec(game_port: int = 34197, rcon_port: int = 27015, **kwargs) -> ServerSpec:
    kwargs.setdefault("cpu", 1)
    kwargs.setdefault("memory_mib", 2048)
    return ServerSpec(game_port=game_port, rcon_port=rcon_port, **kwargs)
