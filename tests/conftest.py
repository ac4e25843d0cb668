"""Shared test fixtures for kubefed-cli tests.

This module provides fixtures for exercising the bootstrap pipeline without
a real cluster:
- fake_host: HostCluster whose API handles are MagicMocks that echo created
  objects back and report a load balancer address and running pods
- trust: one pre-generated trust hierarchy (RSA generation is slow)
- kubeconfig_path: a kubeconfig with unrelated existing entries
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from kubernetes import client

from kubefed_cli.bootstrap import HostCluster, PollSettings, TrustHierarchy, generate_trust

# =============================================================================
# Fake host cluster
# =============================================================================


def make_service_status(ips: list[str], hostnames: list[str]) -> client.V1Service:
    """Service as read back from the API with the given ingress addresses."""
    ingress = [client.V1LoadBalancerIngress(ip=ip) for ip in ips]
    ingress += [client.V1LoadBalancerIngress(hostname=h) for h in hostnames]
    return client.V1Service(
        metadata=client.V1ObjectMeta(name="foo-apiserver", namespace="federation-system"),
        status=client.V1ServiceStatus(
            load_balancer=client.V1LoadBalancerStatus(ingress=ingress or None)
        ),
    )


def make_pod(name: str, phase: str) -> client.V1Pod:
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1PodStatus(phase=phase),
    )


def _echo_body(*args, **kwargs):
    """create_* side effect: the API returns what it was given."""
    return args[-1]


def make_fake_host(
    ips: list[str] | None = None,
    hostnames: list[str] | None = None,
) -> HostCluster:
    """HostCluster with mocked API groups."""
    host = MagicMock(spec=HostCluster)
    host.core_v1 = MagicMock()
    host.apps_v1 = MagicMock()
    host.rbac_v1 = MagicMock()

    for api in (host.core_v1, host.apps_v1, host.rbac_v1):
        for method in (
            "create_namespace",
            "create_namespaced_service",
            "create_namespaced_secret",
            "create_namespaced_persistent_volume_claim",
            "create_namespaced_service_account",
            "create_namespaced_deployment",
            "create_namespaced_role",
            "create_namespaced_role_binding",
        ):
            getattr(api, method).side_effect = _echo_body

    host.core_v1.read_namespaced_service.return_value = make_service_status(
        ["10.0.0.1"] if ips is None else ips,
        [] if hostnames is None else hostnames,
    )
    host.core_v1.list_namespaced_pod.return_value = client.V1PodList(
        items=[
            make_pod("foo-apiserver-6d4cf56db6-abcde", "Running"),
            make_pod("foo-controller-manager-7b9f8c-xyz12", "Running"),
        ]
    )
    return host


@pytest.fixture
def fake_host() -> HostCluster:
    """Host cluster reporting load balancer IP 10.0.0.1 and running pods."""
    return make_fake_host()


@pytest.fixture
def fast_poll_settings() -> PollSettings:
    """Zero-interval polling so waits finish immediately."""
    return PollSettings(lb_interval=0, pod_interval=0, health_request_timeout=1.0)


# =============================================================================
# Trust hierarchy
# =============================================================================


@pytest.fixture(scope="session")
def trust() -> TrustHierarchy:
    """Trust hierarchy for federation foo behind 10.0.0.1 / lb.example.com."""
    return generate_trust(
        "foo",
        "foo-apiserver",
        "federation-system",
        "cluster.local.",
        ["10.0.0.1"],
        ["lb.example.com"],
    )


# =============================================================================
# Local kubeconfig
# =============================================================================

EXISTING_KUBECONFIG = {
    "apiVersion": "v1",
    "kind": "Config",
    "clusters": [{"name": "bar", "cluster": {"server": "https://bar.example.com"}}],
    "users": [{"name": "bar-admin", "user": {"token": "secret-token"}}],
    "contexts": [{"name": "bar", "context": {"cluster": "bar", "user": "bar-admin"}}],
    "current-context": "bar",
}


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    """Kubeconfig containing only the host cluster context "bar"."""
    path = tmp_path / "kubeconfig"
    path.write_text(yaml.safe_dump(EXISTING_KUBECONFIG, sort_keys=False))
    return path


@pytest.fixture
def healthy_http(monkeypatch):
    """Patch httpx.Client in the health module so /healthz answers "ok"."""
    response = MagicMock()
    response.status_code = 200
    response.text = "ok"

    http = MagicMock()
    http.get.return_value = response

    client_class = MagicMock()
    client_class.return_value.__enter__.return_value = http
    client_class.return_value.__exit__.return_value = False
    monkeypatch.setattr("kubefed_cli.bootstrap.health.httpx.Client", client_class)
    return http
