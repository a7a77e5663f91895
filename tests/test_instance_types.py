from __future__ import annotations

import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber

from autoserver.exceptions import ConfigurationError
from autoserver.instance_types import (
    STANDARD_INSTANCES,
    Ec2InstanceCatalog,
    InstanceSpec,
    StaticInstanceCatalog,
    lookup_instance,
)

pytestmark = [pytest.mark.xdist_group("unit")]


class TestStaticCatalog:
    def test_lookup_known(self):
        assert lookup_instance("m4.large") == InstanceSpec("m4.large", 2, 8)

    def test_memory_mib(self):
        assert lookup_instance("t3.micro").memory_mib == 1024

    def test_lookup_unknown_raises(self):
        with pytest.raises(ConfigurationError, match="unknown instance class"):
            StaticInstanceCatalog().lookup("z9.colossal")

    def test_names_unique(self):
        names = [inst.type_name for inst in STANDARD_INSTANCES]
        assert len(names) == len(set(names))


class TestEc2Catalog:
    @pytest.fixture
    def catalog(self, monkeypatch) -> Ec2InstanceCatalog:
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
        return Ec2InstanceCatalog("us-east-1")

    def test_static_table_answers_first(self, catalog: Ec2InstanceCatalog):
        with Stubber(catalog._ec2):
            assert catalog.lookup("m4.large").vcpu == 2

    def test_describe_instance_types_fallback(self, catalog: Ec2InstanceCatalog):
        with Stubber(catalog._ec2) as stubber:
            stubber.add_response(
                "describe_instance_types",
                {
                    "InstanceTypes": [
                        {
                            "InstanceType": "m7g.medium",
                            "VCpuInfo": {"DefaultVCpus": 1},
                            "MemoryInfo": {"SizeInMiB": 4096},
                        }
                    ]
                },
                {"InstanceTypes": ["m7g.medium"]},
            )
            spec = catalog.lookup("m7g.medium")
            # Memoized: no second stubbed response needed
            assert catalog.lookup("m7g.medium") is spec
            stubber.assert_no_pending_responses()

        assert spec == InstanceSpec("m7g.medium", 1, 4.0)
        assert spec.memory_mib == 4096

    def test_unknown_class_raises(self, catalog: Ec2InstanceCatalog):
        with Stubber(catalog._ec2) as stubber:
            stubber.add_client_error(
                "describe_instance_types",
                service_error_code="InvalidInstanceType",
                expected_params={"InstanceTypes": ["z9.colossal"]},
            )
            with pytest.raises(ConfigurationError, match="z9.colossal"):
                catalog.lookup("z9.colossal")

    def test_unreachable_endpoint_raises(self, catalog: Ec2InstanceCatalog, monkeypatch):
        def unreachable(**kwargs):
            raise EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com")

        monkeypatch.setattr(catalog._ec2, "describe_instance_types", unreachable)
        with pytest.raises(ConfigurationError, match="could not query instance classes in us-east-1"):
            catalog.lookup("m7g.medium")
