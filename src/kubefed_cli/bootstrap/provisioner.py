"""Resource creation against the host cluster.

Each `create_*` method builds its object with the pure builders in
`resources` and hands it to `_submit`, the only place that decides between
sending it to the API server (APPLY) and returning it as built (SIMULATE).
Create calls are never retried here.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..shared.logging import get_logger
from . import resources
from .errors import ProvisioningError
from .pki import TrustHierarchy

logger = get_logger(__name__)

T = TypeVar("T")


class ExecutionMode(Enum):
    """Whether pipeline steps mutate the host cluster."""

    APPLY = "apply"
    SIMULATE = "simulate"

    @classmethod
    def from_dry_run(cls, dry_run: bool) -> ExecutionMode:
        return cls.SIMULATE if dry_run else cls.APPLY


def _api_error_message(e: ApiException) -> str:
    reason = e.reason or "error"
    if e.status:
        return f"HTTP {e.status} {reason}"
    return str(reason)


class HostProvisioner:
    """Create federation control plane objects in the host cluster."""

    def __init__(
        self,
        core_v1: client.CoreV1Api | None,
        apps_v1: client.AppsV1Api | None,
        rbac_v1: client.RbacAuthorizationV1Api | None,
        mode: ExecutionMode = ExecutionMode.APPLY,
    ):
        """Initialize provisioner.

        Args:
            core_v1: Core API for namespaces, services, secrets, PVCs, SAs.
            apps_v1: Apps API for deployments.
            rbac_v1: RBAC API for roles and role bindings.
            mode: APPLY to create objects, SIMULATE to only build them.
        """
        self.core_v1 = core_v1
        self.apps_v1 = apps_v1
        self.rbac_v1 = rbac_v1
        self.mode = mode

    @property
    def simulate(self) -> bool:
        return self.mode == ExecutionMode.SIMULATE

    def _submit(self, obj: T, create: Callable[[T], Any]) -> T:
        kind = getattr(obj, "kind", type(obj).__name__)
        name = obj.metadata.name
        namespace = obj.metadata.namespace

        if self.simulate:
            logger.info("resource_simulated", kind=kind, name=name, namespace=namespace)
            return obj

        try:
            created = create(obj)
        except ApiException as e:
            raise ProvisioningError(
                f"failed to create {kind} {name!r}: {_api_error_message(e)}",
                kind=kind,
                name=name,
                status=e.status,
            ) from e
        except HTTPError as e:
            raise ProvisioningError(
                f"failed to create {kind} {name!r}: cannot reach host cluster: {e}",
                kind=kind,
                name=name,
            ) from e

        logger.info("resource_created", kind=kind, name=name, namespace=namespace)
        return created

    def create_namespace(self, namespace: str) -> client.V1Namespace:
        ns = resources.build_namespace(namespace)
        return self._submit(ns, lambda body: self.core_v1.create_namespace(body))

    def create_service(self, namespace: str, service_name: str) -> client.V1Service:
        svc = resources.build_service(namespace, service_name)
        return self._submit(
            svc, lambda body: self.core_v1.create_namespaced_service(namespace, body)
        )

    def create_credentials_secret(
        self, namespace: str, secret_name: str, trust: TrustHierarchy
    ) -> client.V1Secret:
        secret = resources.build_credentials_secret(namespace, secret_name, trust)
        return self._submit(
            secret, lambda body: self.core_v1.create_namespaced_secret(namespace, body)
        )

    def create_kubeconfig_secret(
        self, namespace: str, secret_name: str, kubeconfig: dict
    ) -> client.V1Secret:
        secret = resources.build_kubeconfig_secret(namespace, secret_name, kubeconfig)
        return self._submit(
            secret, lambda body: self.core_v1.create_namespaced_secret(namespace, body)
        )

    def create_pvc(
        self, namespace: str, service_name: str, capacity: str
    ) -> client.V1PersistentVolumeClaim:
        # Validation happens while building, before anything is sent.
        pvc = resources.build_pvc(namespace, service_name, capacity)
        return self._submit(
            pvc,
            lambda body: self.core_v1.create_namespaced_persistent_volume_claim(namespace, body),
        )

    def create_apiserver(
        self,
        namespace: str,
        name: str,
        image: str,
        credentials_name: str,
        advertise_address: str,
        storage_backend: str,
        pvc: client.V1PersistentVolumeClaim | None = None,
    ) -> client.V1Deployment:
        dep = resources.build_apiserver_deployment(
            namespace, name, image, credentials_name, advertise_address, storage_backend, pvc
        )
        return self._submit(
            dep, lambda body: self.apps_v1.create_namespaced_deployment(namespace, body)
        )

    def create_service_account(self, namespace: str) -> client.V1ServiceAccount:
        sa = resources.build_service_account(namespace)
        return self._submit(
            sa, lambda body: self.core_v1.create_namespaced_service_account(namespace, body)
        )

    def create_role_bindings(
        self, namespace: str, sa_name: str
    ) -> tuple[client.V1Role, client.V1RoleBinding]:
        role = resources.build_role(namespace)
        binding = resources.build_role_binding(namespace, sa_name)
        created_role = self._submit(
            role, lambda body: self.rbac_v1.create_namespaced_role(namespace, body)
        )
        created_binding = self._submit(
            binding, lambda body: self.rbac_v1.create_namespaced_role_binding(namespace, body)
        )
        return created_role, created_binding

    def create_controller_manager(
        self,
        namespace: str,
        federation: str,
        service_name: str,
        cm_name: str,
        image: str,
        kubeconfig_name: str,
        dns_zone_name: str,
        dns_provider: str,
        sa_name: str,
    ) -> client.V1Deployment:
        dep = resources.build_controller_manager_deployment(
            namespace,
            federation,
            service_name,
            cm_name,
            image,
            kubeconfig_name,
            dns_zone_name,
            dns_provider,
            sa_name,
        )
        return self._submit(
            dep, lambda body: self.apps_v1.create_namespaced_deployment(namespace, body)
        )
