"""Least-privilege admin policy for one cluster.

The policy lets an operator find instances and push a temporary SSH key
through EC2 Instance Connect, but only to instances carrying this
cluster's tag. A policy built for cluster A never authorizes cluster B,
even inside the same account.
"""

from __future__ import annotations

from autoserver.capacity import CLUSTER_TAG
from autoserver.descriptors import PolicyDescriptor, PolicyStatement
from autoserver.ids import validate_id, validate_text


class AccessPolicyBuilder:
    """Builds the admin policy from nothing but the cluster id.

    Args:
        region: Region segment of the instance ARN. Default: any.
        account_id: Account segment of the instance ARN. Default: any.
        tag_key: Resource tag that scopes SendSSHPublicKey.
    """

    def __init__(self, region: str = "*", account_id: str = "*", tag_key: str = CLUSTER_TAG) -> None:
        self.region = region
        self.account_id = account_id
        self.tag_key = validate_text("admin policy", "tag_key", tag_key)

    def build(self, cluster_id: str) -> PolicyDescriptor:
        validate_id("cluster", cluster_id)

        describe = PolicyStatement(
            sid="DescribeInstances",
            actions=("ec2:DescribeInstances",),
            resources=("*",),
        )
        connect = PolicyStatement(
            sid="InstanceConnect",
            actions=("ec2-instance-connect:SendSSHPublicKey",),
            resources=(f"arn:aws:ec2:{self.region}:{self.account_id}:instance/*",),
            conditions=(("StringEquals", f"aws:ResourceTag/{self.tag_key}", cluster_id),),
        )
        return PolicyDescriptor(
            name=f"{cluster_id}-admin",
            description=f"Allows EC2 Instance Connect to servers in cluster {cluster_id}.",
            statements=(describe, connect),
        )
