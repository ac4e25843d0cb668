"""Unit tests for bootstrap resources module."""

from __future__ import annotations

import base64

import pytest
import yaml
from kubernetes import client

from kubefed_cli.bootstrap import ValidationError
from kubefed_cli.bootstrap import resources


class TestNames:
    """Tests for derived object names."""

    def test_names_for_federation_foo(self):
        service = resources.apiserver_name("foo")
        cm = resources.controller_manager_name("foo")

        assert service == "foo-apiserver"
        assert resources.credentials_secret_name(service) == "foo-apiserver-credentials"
        assert cm == "foo-controller-manager"
        assert resources.kubeconfig_secret_name(cm) == "foo-controller-manager-kubeconfig"
        assert resources.pvc_name(service) == "foo-apiserver-etcd-claim"


class TestService:
    """Tests for build_service."""

    def test_load_balancer_on_443(self):
        svc = resources.build_service("federation-system", "foo-apiserver")

        assert svc.metadata.name == "foo-apiserver"
        assert svc.metadata.namespace == "federation-system"
        assert svc.metadata.labels == {"app": "federated-cluster"}
        assert svc.spec.type == "LoadBalancer"
        assert svc.spec.selector == resources.APISERVER_POD_LABELS
        port = svc.spec.ports[0]
        assert (port.name, port.protocol, port.port, port.target_port) == (
            "https",
            "TCP",
            443,
            443,
        )


class TestSecrets:
    """Tests for the secret builders."""

    def test_credentials_secret_holds_server_material(self, trust):
        secret = resources.build_credentials_secret("ns", "foo-apiserver-credentials", trust)

        assert set(secret.data) == {"ca.crt", "server.crt", "server.key"}
        assert base64.b64decode(secret.data["ca.crt"]) == trust.ca.cert_pem
        assert base64.b64decode(secret.data["server.key"]) == trust.server.key_pem

    def test_kubeconfig_secret_holds_document(self):
        document = {"apiVersion": "v1", "kind": "Config", "current-context": "x"}
        secret = resources.build_kubeconfig_secret("ns", "foo-cm-kubeconfig", document)

        decoded = yaml.safe_load(base64.b64decode(secret.data["kubeconfig"]))
        assert decoded == document


class TestPersistentVolumeClaim:
    """Tests for build_pvc."""

    def test_claim_shape(self):
        pvc = resources.build_pvc("ns", "foo-apiserver", "10Gi")

        assert pvc.metadata.name == "foo-apiserver-etcd-claim"
        assert pvc.metadata.annotations == {"volume.alpha.kubernetes.io/storage-class": "yes"}
        assert pvc.spec.access_modes == ["ReadWriteOnce"]
        assert pvc.spec.resources.requests == {"storage": "10Gi"}

    def test_claim_uses_volume_resource_requirements(self):
        pvc = resources.build_pvc("ns", "foo-apiserver", "10Gi")

        assert isinstance(pvc.spec.resources, client.V1VolumeResourceRequirements)

    def test_invalid_capacity(self):
        with pytest.raises(ValidationError) as exc_info:
            resources.build_pvc("ns", "foo-apiserver", "10XB")

        assert "10XB" in str(exc_info.value)

    @pytest.mark.parametrize("capacity", ["10Gi", "500Mi", "1T", "1024"])
    def test_valid_capacities(self, capacity):
        assert resources.parse_capacity(capacity) == capacity


class TestApiServerDeployment:
    """Tests for build_apiserver_deployment."""

    def _build(self, advertise_address="10.0.0.1", pvc=None):
        return resources.build_apiserver_deployment(
            "federation-system",
            "foo-apiserver",
            resources.DEFAULT_IMAGE,
            "foo-apiserver-credentials",
            advertise_address,
            "etcd2",
            pvc,
        )

    def _containers(self, dep):
        return {c.name: c for c in dep.spec.template.spec.containers}

    def test_two_containers_one_replica(self):
        dep = self._build()

        assert dep.spec.replicas == 1
        assert dep.spec.selector.match_labels == resources.APISERVER_POD_LABELS
        assert dep.spec.template.metadata.labels == resources.APISERVER_POD_LABELS
        containers = self._containers(dep)
        assert set(containers) == {"apiserver", "etcd"}
        assert containers["etcd"].image == resources.ETCD_IMAGE

    def test_command_flags(self):
        command = self._containers(self._build())["apiserver"].command

        assert command[:2] == ["/hyperkube", "federation-apiserver"]
        assert "--storage-backend=etcd2" in command
        assert "--client-ca-file=/etc/federation/apiserver/ca.crt" in command
        assert "--advertise-address=10.0.0.1" in command

    def test_advertise_address_omitted_without_ip(self):
        command = self._containers(self._build(advertise_address=""))["apiserver"].command
        assert not any(flag.startswith("--advertise-address") for flag in command)

    def test_credentials_mounted_read_only(self):
        dep = self._build()
        mount = self._containers(dep)["apiserver"].volume_mounts[0]

        assert mount.name == "foo-apiserver-credentials"
        assert mount.mount_path == "/etc/federation/apiserver"
        assert mount.read_only is True
        assert dep.spec.template.spec.volumes[0].secret.secret_name == "foo-apiserver-credentials"

    def test_no_etcd_volume_without_claim(self):
        dep = self._build()

        assert [v.name for v in dep.spec.template.spec.volumes] == ["foo-apiserver-credentials"]
        assert self._containers(dep)["etcd"].volume_mounts is None

    def test_etcd_volume_mounted_only_in_etcd_container(self):
        pvc = resources.build_pvc("federation-system", "foo-apiserver", "10Gi")
        dep = self._build(pvc=pvc)
        containers = self._containers(dep)

        volume = dep.spec.template.spec.volumes[-1]
        assert volume.name == "etcddata"
        assert volume.persistent_volume_claim.claim_name == "foo-apiserver-etcd-claim"
        assert [m.name for m in containers["etcd"].volume_mounts] == ["etcddata"]
        assert containers["etcd"].volume_mounts[0].mount_path == "/var/etcd"
        assert "etcddata" not in [m.name for m in containers["apiserver"].volume_mounts]


class TestControllerManager:
    """Tests for the controller manager and its RBAC objects."""

    def test_deployment(self):
        dep = resources.build_controller_manager_deployment(
            "federation-system",
            "foo",
            "foo-apiserver",
            "foo-controller-manager",
            resources.DEFAULT_IMAGE,
            "foo-controller-manager-kubeconfig",
            "example.com.",
            "google-clouddns",
            resources.CONTROLLER_MANAGER_SA,
        )
        spec = dep.spec.template.spec
        container = spec.containers[0]

        assert dep.metadata.name == "foo-controller-manager"
        assert spec.service_account_name == "federation-controller-manager"
        assert "--master=https://foo-apiserver" in container.command
        assert "--federation-name=foo" in container.command
        assert "--zone-name=example.com." in container.command
        assert "--dns-provider=google-clouddns" in container.command
        assert (
            "--kubeconfig=/etc/federation/controller-manager/kubeconfig" in container.command
        )

        env = container.env[0]
        assert env.name == "POD_NAMESPACE"
        assert env.value_from.field_ref.field_path == "metadata.namespace"
        assert spec.volumes[0].secret.secret_name == "foo-controller-manager-kubeconfig"

    def test_service_account(self):
        sa = resources.build_service_account("federation-system")
        assert sa.metadata.name == "federation-controller-manager"
        assert sa.metadata.namespace == "federation-system"

    def test_role_reads_secrets(self):
        role = resources.build_role("federation-system")
        rule = role.rules[0]

        assert role.metadata.name == "federation-system:federation-controller-manager"
        assert rule.api_groups == [""]
        assert rule.resources == ["secrets"]
        assert rule.verbs == ["get", "list", "watch"]

    def test_role_binding(self):
        binding = resources.build_role_binding("federation-system", "federation-controller-manager")

        assert binding.role_ref.kind == "Role"
        assert binding.role_ref.name == resources.CONTROLLER_MANAGER_ROLE
        subject = binding.subjects[0]
        assert (subject.kind, subject.name, subject.namespace) == (
            "ServiceAccount",
            "federation-controller-manager",
            "federation-system",
        )
