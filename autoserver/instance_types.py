"""EC2 instance classes known to autoserver.

Capacity groups are declared by instance class name; the vCPU and memory
figures here are what finalize checks server reservations against.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Protocol

from autoserver.exceptions import ConfigurationError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client


@dataclass(frozen=True, slots=True)
class InstanceSpec:
    """Specification for an EC2 instance type."""

    type_name: str
    vcpu: int
    memory_gb: float

    @property
    def memory_mib(self) -> int:
        return int(self.memory_gb * 1024)


# Sorted by family, then by size
STANDARD_INSTANCES: list[InstanceSpec] = [
    InstanceSpec("t3.micro", 2, 1),
    InstanceSpec("t3.small", 2, 2),
    InstanceSpec("t3.medium", 2, 4),
    InstanceSpec("t3.large", 2, 8),
    InstanceSpec("t3.xlarge", 4, 16),
    InstanceSpec("t3.2xlarge", 8, 32),
    InstanceSpec("t3a.medium", 2, 4),
    InstanceSpec("t3a.large", 2, 8),
    InstanceSpec("t3a.xlarge", 4, 16),
    InstanceSpec("m4.large", 2, 8),
    InstanceSpec("m4.xlarge", 4, 16),
    InstanceSpec("m4.2xlarge", 8, 32),
    InstanceSpec("m5.large", 2, 8),
    InstanceSpec("m5.xlarge", 4, 16),
    InstanceSpec("m5.2xlarge", 8, 32),
    InstanceSpec("m5.4xlarge", 16, 64),
    InstanceSpec("m6i.large", 2, 8),
    InstanceSpec("m6i.xlarge", 4, 16),
    InstanceSpec("m6i.2xlarge", 8, 32),
    InstanceSpec("c5.large", 2, 4),
    InstanceSpec("c5.xlarge", 4, 8),
    InstanceSpec("c5.2xlarge", 8, 16),
    InstanceSpec("c6i.large", 2, 4),
    InstanceSpec("c6i.xlarge", 4, 8),
    InstanceSpec("c6i.2xlarge", 8, 16),
    InstanceSpec("r5.large", 2, 16),
    InstanceSpec("r5.xlarge", 4, 32),
]

_BY_NAME: dict[str, InstanceSpec] = {inst.type_name: inst for inst in STANDARD_INSTANCES}


class InstanceCatalog(Protocol):
    """Anything that can resolve an instance class name to its resources."""

    def lookup(self, type_name: str) -> InstanceSpec: ...


def lookup_instance(type_name: str) -> InstanceSpec:
    """Resolve an instance class from the static table.

    Raises:
        ConfigurationError: If the class is not in the table.
    """
    try:
        return _BY_NAME[type_name]
    except KeyError:
        raise ConfigurationError(
            type_name,
            f"unknown instance class; known: {', '.join(sorted(_BY_NAME))}",
        ) from None


class StaticInstanceCatalog:
    """Catalog backed by STANDARD_INSTANCES."""

    def lookup(self, type_name: str) -> InstanceSpec:
        return lookup_instance(type_name)


class Ec2InstanceCatalog:
    """Catalog that falls back to EC2 DescribeInstanceTypes.

    The static table answers first; unknown classes are looked up once
    through boto3 and memoized for the lifetime of the catalog.
    """

    def __init__(self, region: str) -> None:
        self.region = region
        self._cache: dict[str, InstanceSpec] = {}

    @cached_property
    def _ec2(self) -> EC2Client:
        import boto3

        return boto3.client("ec2", region_name=self.region)

    def lookup(self, type_name: str) -> InstanceSpec:
        if type_name in _BY_NAME:
            return _BY_NAME[type_name]
        if type_name in self._cache:
            return self._cache[type_name]

        from botocore.exceptions import BotoCoreError, ClientError

        try:
            resp = self._ec2.describe_instance_types(InstanceTypes=[type_name])  # type: ignore[list-item]
        except ClientError as e:
            raise ConfigurationError(type_name, f"unknown instance class in {self.region}: {e}") from e
        except BotoCoreError as e:
            raise ConfigurationError(type_name, f"could not query instance classes in {self.region}: {e}") from e

        types = resp.get("InstanceTypes", [])
        if not types:
            raise ConfigurationError(type_name, f"unknown instance class in {self.region}")

        info = types[0]
        spec = InstanceSpec(
            type_name=type_name,
            vcpu=info["VCpuInfo"]["DefaultVCpus"],
            memory_gb=info["MemoryInfo"]["SizeInMiB"] / 1024,
        )
        self._cache[type_name] = spec
        return spec
