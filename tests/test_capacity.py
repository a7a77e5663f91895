from __future__ import annotations

import pytest

from autoserver import AccessPolicyBuilder, CapacityGroupSpec, Cluster, Cron, NetworkContext
from autoserver.capacity import CLUSTER_TAG, GROUP_TAG
from autoserver.exceptions import ConfigurationError, LifecycleError

pytestmark = [pytest.mark.xdist_group("unit")]


class TestCapacityGroupSpec:
    def test_defaults(self):
        spec = CapacityGroupSpec(instance_type="m4.large")
        assert spec.price_ceiling is None
        assert spec.min_capacity == 0
        assert spec.max_capacity == 1
        assert spec.ssh_access is True
        assert spec.is_spot is False

    def test_price_ceiling_means_spot(self):
        assert CapacityGroupSpec(instance_type="m4.large", price_ceiling=0.05).is_spot


class TestDeclaration:
    def test_desired_starts_at_max(self, cluster: Cluster):
        group = cluster.add_capacity_group(
            "ASG", CapacityGroupSpec(instance_type="m5.large", min_capacity=1, max_capacity=3),
        )
        assert group.desired_capacity == 3

    def test_instance_resolved_from_catalog(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        assert group.instance.vcpu == 2
        assert group.instance.memory_mib == 8192

    def test_tags_carry_cluster_id(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        assert group.tags == {CLUSTER_TAG: "soda", GROUP_TAG: "soda/ASG"}

    def test_min_greater_than_max_raises(self, cluster: Cluster):
        spec = CapacityGroupSpec(instance_type="m4.large", min_capacity=3, max_capacity=1)
        with pytest.raises(ConfigurationError, match="capacity group ASG.*min_capacity"):
            cluster.add_capacity_group("ASG", spec)

    def test_negative_capacity_raises(self, cluster: Cluster):
        spec = CapacityGroupSpec(instance_type="m4.large", min_capacity=-1)
        with pytest.raises(ConfigurationError, match=">= 0"):
            cluster.add_capacity_group("ASG", spec)

    def test_non_integer_capacity_raises(self, cluster: Cluster):
        spec = CapacityGroupSpec(instance_type="m4.large", max_capacity=1.5)  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError, match="must be an integer"):
            cluster.add_capacity_group("ASG", spec)

    def test_non_positive_price_raises(self, cluster: Cluster):
        spec = CapacityGroupSpec(instance_type="m4.large", price_ceiling=0)
        with pytest.raises(ConfigurationError, match="price_ceiling"):
            cluster.add_capacity_group("ASG", spec)

    def test_unknown_instance_class_names_group(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="capacity group ASG.*unknown instance class"):
            cluster.add_capacity_group("ASG", CapacityGroupSpec(instance_type="z9.colossal"))

    def test_failed_add_registers_nothing(self, cluster: Cluster):
        with pytest.raises(ConfigurationError):
            cluster.add_capacity_group("ASG", CapacityGroupSpec(instance_type="m4.large", min_capacity=2))
        assert cluster.capacity_groups == ()


class TestSchedule:
    def test_unscheduled_by_default(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        assert group.is_scheduled is False
        assert group.scheduler is None

    def test_add_schedule_from_strings(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        scheduler = group.add_schedule("0 21 * * *", "0 6 * * *")
        assert group.is_scheduled
        assert scheduler.enable.schedule == Cron(minute="0", hour="21")
        assert scheduler.disable.schedule == Cron(minute="0", hour="6")

    def test_add_schedule_twice_raises(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        group.add_schedule(Cron(hour="21", minute="0"), Cron(hour="6", minute="0"))
        with pytest.raises(LifecycleError, match="already attached"):
            group.add_schedule(Cron(hour="22", minute="0"), Cron(hour="7", minute="0"))

    def test_add_schedule_after_finalize_raises(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        cluster.finalize()
        with pytest.raises(LifecycleError, match="after finalize"):
            group.add_schedule("0 21 * * *", "0 6 * * *")

    def test_scheduled_actions_move_desired_between_bounds(self):
        cluster = Cluster("soda", NetworkContext("vpc-0abc"))
        group = cluster.add_capacity_group(
            "ASG", CapacityGroupSpec(instance_type="m4.large", min_capacity=1, max_capacity=5),
        )
        group.add_schedule("0 21 * * *", "0 6 * * *")

        assert group.apply_scheduled_action("disable") == 1
        assert group.desired_capacity == 1
        assert group.apply_scheduled_action("enable") == 5
        assert group.desired_capacity == 5

    def test_apply_without_schedule_raises(self, cluster: Cluster, spot):
        group = cluster.add_capacity_group("ASG", spot)
        with pytest.raises(LifecycleError, match="no schedule"):
            group.apply_scheduled_action("enable")

    def test_apply_after_finalize_raises(self, cluster: Cluster):
        group = cluster.add_capacity_group(
            "ASG", CapacityGroupSpec(instance_type="m4.large", min_capacity=1, max_capacity=5),
        )
        group.add_schedule("0 21 * * *", "0 6 * * *")
        descriptor = cluster.finalize()

        with pytest.raises(LifecycleError, match="after finalize"):
            group.apply_scheduled_action("disable")
        assert group.desired_capacity == 5
        assert descriptor.capacity_groups[0].desired_capacity == 5


class TestFieldTypes:
    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("ssh_access", "no", "ssh_access must be true or false"),
            ("ssh_access", 0, "ssh_access must be true or false"),
            ("key_name", 42, "key_name must be a non-empty string"),
            ("key_name", "", "key_name must be a non-empty string"),
            ("price_ceiling", "0.05", "price_ceiling must be a number"),
            ("instance_type", ["m4.large"], "instance_type must be a non-empty string"),
        ],
    )
    def test_mistyped_field_raises(self, cluster: Cluster, field, value, message):
        spec_fields = {"instance_type": "m4.large", field: value}
        with pytest.raises(ConfigurationError, match=f"capacity group ASG: {message}"):
            cluster.add_capacity_group("ASG", CapacityGroupSpec(**spec_fields))
        assert cluster.capacity_groups == ()

    def test_ssh_access_false_is_kept(self, cluster: Cluster):
        group = cluster.add_capacity_group(
            "ASG", CapacityGroupSpec(instance_type="m4.large", ssh_access=False, key_name="ops"),
        )
        assert group.spec.ssh_access is False
        assert group.spec.key_name == "ops"


class TestClusterTag:
    def test_custom_tag_key_reaches_instances(self):
        cluster = Cluster(
            "soda",
            NetworkContext("vpc-0abc"),
            policy_builder=AccessPolicyBuilder(tag_key="team:cluster"),
        )
        group = cluster.add_capacity_group("ASG", CapacityGroupSpec(instance_type="m4.large"))
        assert group.tags == {"team:cluster": "soda", GROUP_TAG: "soda/ASG"}

    @pytest.mark.parametrize("tag_key", [CLUSTER_TAG, "team:cluster"])
    def test_policy_conditions_match_group_tags(self, tag_key):
        cluster = Cluster(
            "soda",
            NetworkContext("vpc-0abc"),
            policy_builder=AccessPolicyBuilder(tag_key=tag_key),
        )
        cluster.add_capacity_group("A", CapacityGroupSpec(instance_type="m4.large"))
        cluster.add_capacity_group("B", CapacityGroupSpec(instance_type="m5.large"))
        descriptor = cluster.finalize()

        conditions = descriptor.policy.tag_conditions
        assert conditions
        for group in descriptor.capacity_groups:
            tags = dict(group.tags)
            for _, key, value in conditions:
                assert tags[key.removeprefix("aws:ResourceTag/")] == value
