"""Tests for node roles."""

from unittest.mock import patch

import pytest

from capdock.machine import role as roles
from capdock.machine.association import Association
from capdock.machine.role import ControlPlane, Worker


@pytest.fixture
def associate(config, runtime, make_docker_machine, make_machine, make_cluster, make_docker_cluster):
    """Build an association from factory overrides."""
    def _associate(docker_machine=None, machine=None, cluster=None):
        return Association(
            docker_machine=docker_machine or make_docker_machine(),
            machine=machine or make_machine(),
            cluster=cluster or make_cluster(),
            docker_cluster=make_docker_cluster(),
            runtime=runtime,
            config=config,
        )
    return _associate


class TestResolveRole:
    """Test role classification."""

    def test_worker_by_default(self, associate):
        assert isinstance(associate().role, Worker)

    def test_control_plane_label_on_machine(self, associate, make_machine):
        association = associate(machine=make_machine(control_plane=True))
        assert isinstance(association.role, ControlPlane)
        assert association.role.association is association

    def test_control_plane_label_on_docker_machine(self, associate, make_docker_machine):
        docker_machine = make_docker_machine(labels={"cluster.x-k8s.io/control-plane": ""})
        assert isinstance(associate(docker_machine=docker_machine).role, ControlPlane)


class TestLabels:
    """Test role and cluster labels."""

    def test_role_labels(self, associate, make_machine):
        assert roles.role_label(associate().role) == {"io.x-k8s.kind.role": "worker"}
        cp = associate(machine=make_machine(control_plane=True))
        assert roles.role_label(cp.role) == {"io.x-k8s.kind.role": "control-plane"}

    def test_cluster_label(self, associate):
        assert roles.cluster_label(associate().role) == {"io.x-k8s.kind.cluster": "demo"}

    def test_filters_include_cluster_label(self, associate):
        assert roles.filters(associate().role)["io.x-k8s.kind.cluster"] == "demo"


class TestBaseSpec:
    """Test the role-independent part of the container spec."""

    def test_name_and_network(self, associate):
        spec = roles.base_spec(associate().role)
        assert spec.name == "demo-worker-1"
        assert spec.network == "kind"

    def test_standard_mounts(self, associate):
        mounts = {m.target: m for m in roles.base_spec(associate().role).mounts}

        assert mounts["/lib/modules"].source == "/lib/modules"
        assert mounts["/lib/modules"].read_only is True
        assert mounts["/var/run/docker.sock"].source == "/var/run/docker.sock"
        assert mounts["/var/run/docker.sock"].read_only is False
        for target in ("/var", "/tmp", "/run"):
            assert mounts[target].source == ""


class TestNodeImage:
    """Test image selection."""

    def test_default_image(self, associate):
        assert roles.node_image(associate().role) == "kindest/node:v1.27.3"

    def test_machine_version_gets_v_prefix(self, associate, make_machine):
        association = associate(machine=make_machine(version="1.28.0"))
        assert roles.node_image(association.role) == "kindest/node:v1.28.0"

    def test_machine_version_with_prefix(self, associate, make_machine):
        association = associate(machine=make_machine(version="v1.26.3"))
        assert roles.node_image(association.role) == "kindest/node:v1.26.3"

    def test_custom_image_wins(self, associate, make_docker_machine, make_machine):
        association = associate(
            docker_machine=make_docker_machine(custom_image="registry.local/node:dev"),
            machine=make_machine(version="1.28.0"),
        )
        assert roles.node_image(association.role) == "registry.local/node:dev"

    def test_configured_defaults(self, associate, config):
        config.docker.default_image = "example/node"
        config.docker.default_version = "v1.29.0"
        assert roles.node_image(associate().role) == "example/node:v1.29.0"


class TestDesiredSpec:
    """Test the fully resolved spec."""

    def test_worker_spec(self, associate):
        spec = roles.desired_spec(associate().role)

        assert spec.name == "demo-worker-1"
        assert spec.image == "kindest/node:v1.27.3"
        assert spec.port_mappings == []
        assert spec.labels["io.x-k8s.kind.role"] == "worker"
        assert spec.labels["io.x-k8s.kind.cluster"] == "demo"
        assert "io.x-k8s.container-hash" in spec.labels

    def test_control_plane_publishes_api_server(self, associate, make_docker_machine, make_machine):
        association = associate(
            docker_machine=make_docker_machine(name="demo-cp-1", owner="cp-1"),
            machine=make_machine(name="cp-1", control_plane=True),
        )
        with patch("capdock.machine.role.reserve_host_port", return_value=41234) as mock_reserve:
            spec = roles.desired_spec(association.role)

        mock_reserve.assert_called_once()
        assert len(spec.port_mappings) == 1
        mapping = spec.port_mappings[0]
        assert mapping.container_port == 6443
        assert mapping.host_port == 41234
        assert mapping.protocol == "tcp"
        assert spec.labels["io.x-k8s.kind.role"] == "control-plane"

    def test_explicit_host_port_skips_reservation(self, associate, make_machine):
        association = associate(machine=make_machine(control_plane=True))
        with patch("capdock.machine.role.reserve_host_port") as mock_reserve:
            spec = roles.desired_spec(association.role, host_port=0)

        mock_reserve.assert_not_called()
        assert spec.port_mappings[0].host_port == 0

    def test_hash_stable_across_host_ports(self, associate, make_machine):
        association = associate(machine=make_machine(control_plane=True))
        first = roles.desired_spec(association.role, host_port=40001)
        second = roles.desired_spec(association.role, host_port=40002)

        key = "io.x-k8s.container-hash"
        assert first.labels[key] == second.labels[key]

    def test_hash_follows_image(self, associate, make_machine):
        key = "io.x-k8s.container-hash"
        default = roles.desired_spec(associate().role).labels[key]
        upgraded = roles.desired_spec(associate(machine=make_machine(version="1.28.0")).role).labels[key]
        assert default != upgraded

    def test_environment_from_config(self, associate, config):
        config.docker.environment = {"HTTP_PROXY": "http://proxy:3128"}
        spec = roles.desired_spec(associate().role)
        assert spec.environment_vars == {"HTTP_PROXY": "http://proxy:3128"}
