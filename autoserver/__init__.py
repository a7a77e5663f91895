"""autoserver - Describe game-server clusters on elastic, price-capped capacity.

Example:

    from autoserver import CapacityGroupSpec, Cluster, NetworkContext, ServerSpec

    cluster = Cluster("soda", NetworkContext("vpc-0abc"), storage="network-volume")
    cluster.add_server("Vanilla", ServerSpec(cpu=0.5, memory_mib=2048))
    group = cluster.add_capacity_group(
        "Capacity", CapacityGroupSpec(instance_type="m4.large", price_ceiling=0.05),
    )
    group.add_schedule("0 21 * * *", "0 6 * * *")
    cluster.grant_admin_access("ServerAdmin")

    descriptor = cluster.finalize()
    print(descriptor.to_json())
"""

# Imported first so the autoserver loguru namespace starts disabled
from autoserver.logging import LogConfig, logging_enabled, setup_logging, teardown_logging

from autoserver.capacity import CapacityGroup, CapacityGroupSpec
from autoserver.cluster import Cluster, NetworkContext
from autoserver.config import build_cluster, load_cluster, load_config
from autoserver.descriptors import (
    CapacityGroupDescriptor,
    ClusterDescriptor,
    IngressRule,
    MountEntry,
    PolicyDescriptor,
    PolicyStatement,
    ServerDescriptor,
    StartupEdge,
    StorageDescriptor,
)
from autoserver.exceptions import (
    AutoServerError,
    ConfigurationError,
    InvariantViolation,
    LifecycleError,
)
from autoserver.instance_types import Ec2InstanceCatalog, InstanceSpec, StaticInstanceCatalog
from autoserver.policy import AccessPolicyBuilder
from autoserver.resolver import ClusterSnapshot, FinalizeResolver
from autoserver.schedule import Cron, ScheduledAction, Scheduler
from autoserver.server import Server, ServerSpec
from autoserver.storage import HostPath, NetworkVolume, SharedStorage

__all__ = [
    # Registry
    "Cluster",
    "NetworkContext",
    "CapacityGroup",
    "CapacityGroupSpec",
    "Server",
    "ServerSpec",
    "SharedStorage",
    "NetworkVolume",
    "HostPath",
    # Scheduling
    "Cron",
    "ScheduledAction",
    "Scheduler",
    # Finalize
    "ClusterSnapshot",
    "FinalizeResolver",
    "AccessPolicyBuilder",
    # Descriptors
    "ClusterDescriptor",
    "CapacityGroupDescriptor",
    "ServerDescriptor",
    "IngressRule",
    "StartupEdge",
    "MountEntry",
    "StorageDescriptor",
    "PolicyDescriptor",
    "PolicyStatement",
    # Instance classes
    "InstanceSpec",
    "StaticInstanceCatalog",
    "Ec2InstanceCatalog",
    # Config
    "load_config",
    "build_cluster",
    "load_cluster",
    # Logging
    "LogConfig",
    "logging_enabled",
    "setup_logging",
    "teardown_logging",
    # Errors
    "AutoServerError",
    "ConfigurationError",
    "InvariantViolation",
    "LifecycleError",
]
