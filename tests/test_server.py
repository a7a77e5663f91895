from __future__ import annotations

import pytest

from autoserver import Cluster, ServerSpec
from autoserver.exceptions import ConfigurationError

from tests.conftest import server_spec

pytestmark = [pytest.mark.xdist_group("unit")]


class TestServerSpec:
    def test_defaults(self):
        spec = ServerSpec(cpu=1, memory_mib=2048)
        assert spec.image_tag == "stable"
        assert spec.game_port == 34197
        assert spec.rcon_port == 27015
        assert spec.mount_path == "/factorio"
        assert spec.image == "factoriotools/factorio:stable"

    def test_custom_image(self):
        spec = ServerSpec(cpu=1, memory_mib=2048, image_tag="1.1.100", image_repository="example/game")
        assert spec.image == "example/game:1.1.100"


class TestDeclaration:
    def test_add_server_returns_handle(self, cluster: Cluster):
        server = cluster.add_server("Vanilla", server_spec())
        assert server.id == "Vanilla"
        assert server.qualified_id == "soda/Vanilla"
        assert server.ports == (34197, 27015)

    def test_fractional_cpu_allowed(self, cluster: Cluster):
        server = cluster.add_server("Vanilla", server_spec(cpu=0.5))
        assert server.spec.cpu == 0.5

    @pytest.mark.parametrize("port", [0, -1, 65536, 100000])
    def test_invalid_game_port_raises(self, cluster: Cluster, port):
        with pytest.raises(ConfigurationError, match="server Vanilla.*game_port"):
            cluster.add_server("Vanilla", server_spec(game_port=port))

    def test_invalid_rcon_port_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="rcon_port"):
            cluster.add_server("Vanilla", server_spec(rcon_port=70000))

    def test_non_integer_port_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            cluster.add_server("Vanilla", server_spec(game_port="34197"))  # type: ignore[arg-type]

    def test_bool_port_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            cluster.add_server("Vanilla", server_spec(rcon_port=True))

    @pytest.mark.parametrize("cpu", [0, -1])
    def test_non_positive_cpu_raises(self, cluster: Cluster, cpu):
        with pytest.raises(ConfigurationError, match="cpu"):
            cluster.add_server("Vanilla", server_spec(cpu=cpu))

    def test_non_positive_memory_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="memory_mib"):
            cluster.add_server("Vanilla", server_spec(memory_mib=0))

    def test_relative_mount_path_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="absolute"):
            cluster.add_server("Vanilla", server_spec(mount_path="factorio"))

    def test_empty_image_tag_raises(self, cluster: Cluster):
        with pytest.raises(ConfigurationError, match="image_tag"):
            cluster.add_server("Vanilla", server_spec(image_tag=""))

    @pytest.mark.parametrize("server_id", ["", "1abc", "with space", "../escape", "a/b"])
    def test_invalid_id_raises(self, cluster: Cluster, server_id):
        with pytest.raises(ConfigurationError, match="id must start with a letter"):
            cluster.add_server(server_id, server_spec())

    def test_duplicate_id_raises(self, cluster: Cluster):
        cluster.add_server("Vanilla", server_spec())
        with pytest.raises(ConfigurationError, match="already registered"):
            cluster.add_server("Vanilla", server_spec(game_port=34198, rcon_port=27016))

    def test_cpu_larger_than_any_instance_is_accepted_at_declaration(self, cluster: Cluster):
        # Checked at finalize, since capacity may be added later
        server = cluster.add_server("Huge", server_spec(cpu=64))
        assert server.spec.cpu == 64

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("image_tag", 1, "image_tag must be a non-empty string"),
            ("image_repository", "", "image_repository must be a non-empty string"),
            ("mount_path", 5, "mount_path must be a non-empty string"),
            ("log_retention_days", "5", "log_retention_days must be an integer"),
            ("log_retention_days", True, "log_retention_days must be an integer"),
            ("log_retention_days", 0, "log_retention_days must be > 0"),
            ("memory_mib", "2048", "memory_mib must be a positive integer"),
            ("cpu", "1", "cpu must be a positive number"),
        ],
    )
    def test_mistyped_field_raises(self, cluster: Cluster, field, value, message):
        with pytest.raises(ConfigurationError, match=f"server Vanilla: {message}"):
            cluster.add_server("Vanilla", server_spec(**{field: value}))
        assert cluster.servers == ()
