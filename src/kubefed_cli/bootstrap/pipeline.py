"""Federation control plane bootstrap pipeline.

The bootstrap is an ordered list of steps. Each step reads what earlier
steps produced from `BootstrapArtifacts` and records its own output there.
The first failing step stops the run; objects already created in the host
cluster are left in place.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from kubernetes import client

from ..shared.logging import get_logger
from . import resources
from .errors import (
    FederationError,
    PollCancelledError,
    PollError,
    StepError,
    ValidationError,
)
from .health import HealthPoller
from .host import HostCluster
from .kubeconfig import (
    CONTROLLER_MANAGER_USER,
    CredentialStoreEntry,
    KubeconfigStore,
    make_client_config,
    persist_credentials,
)
from .pki import HOST_CLUSTER_LOCAL_DNS_ZONE, TrustHierarchy, generate_trust
from .poller import Observation, Poller
from .provisioner import ExecutionMode, HostProvisioner
from .waiters import NetworkEndpoint, wait_for_load_balancer_address, wait_for_pods

logger = get_logger(__name__)

DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
# "-controller-manager-kubeconfig" is the longest suffix appended to the name
MAX_NAME_LENGTH = 63 - len("-controller-manager-kubeconfig")

DRY_RUN_NOTICE = "Federation control plane runs (dry run)"


@dataclass(frozen=True)
class BootstrapRequest:
    """Everything `kubefed init` was asked to do."""

    name: str
    host_context: str
    kubeconfig: str | None = None
    namespace: str = resources.DEFAULT_NAMESPACE
    image: str = resources.DEFAULT_IMAGE
    dns_zone_name: str = ""
    dns_provider: str = "google-clouddns"
    storage_backend: str = "etcd2"
    etcd_pv_capacity: str = "10Gi"
    etcd_persistent_storage: bool = True
    dry_run: bool = False

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.from_dry_run(self.dry_run)

    @property
    def service_name(self) -> str:
        return resources.apiserver_name(self.name)

    @property
    def credentials_name(self) -> str:
        return resources.credentials_secret_name(self.service_name)

    @property
    def controller_manager_name(self) -> str:
        return resources.controller_manager_name(self.name)

    @property
    def kubeconfig_secret_name(self) -> str:
        return resources.kubeconfig_secret_name(self.controller_manager_name)

    def validate(self) -> None:
        """Check the request before anything is created.

        Raises:
            ValidationError: On an unusable name, context or capacity.
        """
        if not self.name:
            raise ValidationError("federation name is required")
        if not DNS1123_LABEL.match(self.name) or len(self.name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"invalid federation name {self.name!r}: must be a lowercase DNS-1123 label "
                f"of at most {MAX_NAME_LENGTH} characters"
            )
        if not self.host_context:
            raise ValidationError("--host-cluster-context is required")
        if self.etcd_persistent_storage:
            resources.parse_capacity(self.etcd_pv_capacity)


@dataclass
class BootstrapArtifacts:
    """Outputs of the steps that have run so far."""

    namespace: client.V1Namespace | None = None
    service: client.V1Service | None = None
    endpoint: NetworkEndpoint = field(default_factory=NetworkEndpoint)
    trust: TrustHierarchy | None = None
    credentials_secret: client.V1Secret | None = None
    kubeconfig_secret: client.V1Secret | None = None
    pvc: client.V1PersistentVolumeClaim | None = None
    apiserver: client.V1Deployment | None = None
    service_account: client.V1ServiceAccount | None = None
    role: client.V1Role | None = None
    role_binding: client.V1RoleBinding | None = None
    controller_manager: client.V1Deployment | None = None
    credentials: CredentialStoreEntry | None = None


@dataclass
class Step:
    """One stage of the bootstrap."""

    name: str
    description: str
    run: Callable[[BootstrapArtifacts], None]
    # Waits on live infrastructure; meaningless when simulating
    apply_only: bool = False


@dataclass
class BootstrapResult:
    """Result of bootstrap execution."""

    mode: ExecutionMode
    artifacts: BootstrapArtifacts
    completed_steps: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        if self.mode == ExecutionMode.SIMULATE:
            return DRY_RUN_NOTICE
        addresses = ", ".join(self.artifacts.endpoint.addresses)
        return f"Federation API server is running at: {addresses}"


@dataclass
class PollSettings:
    """Intervals and limits shared by the three readiness waits."""

    lb_interval: float = 5.0
    pod_interval: float = 2.0
    health_request_timeout: float = 5.0
    timeout: float | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def lb_poller(self) -> Poller:
        return Poller(
            self.lb_interval,
            timeout_seconds=self.timeout,
            cancel_event=self.cancel_event,
            immediate=True,
        )

    def pod_poller(self) -> Poller:
        return Poller(
            self.pod_interval,
            timeout_seconds=self.timeout,
            cancel_event=self.cancel_event,
            immediate=False,
        )

    def health_poller(self) -> HealthPoller:
        return HealthPoller(self.pod_poller(), request_timeout=self.health_request_timeout)


class FederationBootstrap:
    """Stand up a federation control plane in a host cluster."""

    def __init__(
        self,
        request: BootstrapRequest,
        host: HostCluster | None,
        store: KubeconfigStore,
        poll_settings: PollSettings | None = None,
        echo: Callable[[str], None] | None = None,
    ):
        """Initialize bootstrap.

        Args:
            request: What to provision.
            host: Host cluster API handles; may be None when simulating.
            store: Local kubeconfig the admin credentials are written to.
            poll_settings: Intervals, timeout and cancel event for the waits.
            echo: Receives one progress line per completed step.
        """
        self.request = request
        self.mode = request.mode
        self.host = host
        self.store = store
        self.poll_settings = poll_settings or PollSettings()
        self.echo = echo or (lambda _line: None)
        self.provisioner = HostProvisioner(
            host.core_v1 if host else None,
            host.apps_v1 if host else None,
            host.rbac_v1 if host else None,
            mode=self.mode,
        )

    def steps(self) -> list[Step]:
        """The bootstrap, in execution order."""
        r = self.request
        steps = [
            Step("namespace", f"Namespace {r.namespace}", self._create_namespace),
            Step("service", f"Service {r.service_name}", self._create_service),
            Step(
                "load-balancer",
                "Load balancer address",
                self._wait_for_load_balancer,
                apply_only=True,
            ),
            Step("certificates", "Certificates", self._generate_certificates),
            Step(
                "credentials-secret",
                f"Secret {r.credentials_name}",
                self._create_credentials_secret,
            ),
            Step(
                "kubeconfig-secret",
                f"Secret {r.kubeconfig_secret_name}",
                self._create_kubeconfig_secret,
            ),
        ]
        if r.etcd_persistent_storage:
            steps.append(
                Step(
                    "etcd-pvc",
                    f"PersistentVolumeClaim {resources.pvc_name(r.service_name)}",
                    self._create_pvc,
                )
            )
        steps.extend(
            [
                Step("apiserver", f"Deployment {r.service_name}", self._create_apiserver),
                Step(
                    "service-account",
                    f"ServiceAccount {resources.CONTROLLER_MANAGER_SA}",
                    self._create_service_account,
                ),
                Step(
                    "role-bindings",
                    f"Role and RoleBinding {resources.CONTROLLER_MANAGER_ROLE}",
                    self._create_role_bindings,
                ),
                Step(
                    "controller-manager",
                    f"Deployment {r.controller_manager_name}",
                    self._create_controller_manager,
                ),
                Step(
                    "kubeconfig",
                    f"Kubeconfig context {r.name} ({self.store.path})",
                    self._persist_credentials,
                ),
                Step("pods", "Federation pods running", self._wait_for_pods, apply_only=True),
                Step(
                    "health",
                    "Federation API server healthy",
                    self._wait_for_healthy,
                    apply_only=True,
                ),
            ]
        )
        return steps

    def run(self) -> BootstrapResult:
        """Run every step in order.

        Returns:
            BootstrapResult describing what was created.

        Raises:
            ValidationError: If the request is invalid; nothing was created.
            StepError: Naming the step that failed, or the step that was
                about to start when the cancel event was set.
        """
        self.request.validate()
        result = BootstrapResult(mode=self.mode, artifacts=BootstrapArtifacts())

        for step in self.steps():
            if step.apply_only and self.mode == ExecutionMode.SIMULATE:
                logger.debug("step_skipped", step=step.name, mode=self.mode.value)
                continue

            logger.info("step_started", step=step.name, mode=self.mode.value)
            try:
                if self.poll_settings.cancel_event.is_set():
                    raise PollCancelledError(f"cancelled before {step.name}")
                step.run(result.artifacts)
            except FederationError as e:
                logger.error("step_failed", step=step.name, error=str(e))
                raise StepError(e.message, step=step.name) from e

            result.completed_steps.append(step.name)
            logger.info("step_completed", step=step.name, mode=self.mode.value)
            self.echo(f"  ✓ {step.description}")

        return result

    def _progress(self, what: str) -> Callable[[int, Observation], None]:
        def on_attempt(attempt: int, observation: Observation) -> None:
            if observation.detail and attempt % 10 == 0:
                self.echo(f"    {what}: {observation.detail} (attempt {attempt})")

        return on_attempt

    def _create_namespace(self, a: BootstrapArtifacts) -> None:
        a.namespace = self.provisioner.create_namespace(self.request.namespace)

    def _create_service(self, a: BootstrapArtifacts) -> None:
        a.service = self.provisioner.create_service(
            self.request.namespace, self.request.service_name
        )

    def _wait_for_load_balancer(self, a: BootstrapArtifacts) -> None:
        a.endpoint = wait_for_load_balancer_address(
            self.host.core_v1,
            a.service,
            self.poll_settings.lb_poller(),
            self._progress("load balancer"),
        )

    def _generate_certificates(self, a: BootstrapArtifacts) -> None:
        a.trust = generate_trust(
            self.request.name,
            a.service.metadata.name,
            self.request.namespace,
            HOST_CLUSTER_LOCAL_DNS_ZONE,
            a.endpoint.ips,
            a.endpoint.hostnames,
        )

    def _create_credentials_secret(self, a: BootstrapArtifacts) -> None:
        a.credentials_secret = self.provisioner.create_credentials_secret(
            self.request.namespace, self.request.credentials_name, a.trust
        )

    def _create_kubeconfig_secret(self, a: BootstrapArtifacts) -> None:
        kubeconfig = make_client_config(
            f"https://{a.service.metadata.name}",
            self.request.name,
            CONTROLLER_MANAGER_USER,
            a.trust.ca.cert_pem,
            a.trust.controller_manager.cert_pem,
            a.trust.controller_manager.key_pem,
        )
        a.kubeconfig_secret = self.provisioner.create_kubeconfig_secret(
            self.request.namespace, self.request.kubeconfig_secret_name, kubeconfig
        )

    def _create_pvc(self, a: BootstrapArtifacts) -> None:
        a.pvc = self.provisioner.create_pvc(
            self.request.namespace, a.service.metadata.name, self.request.etcd_pv_capacity
        )

    def _create_apiserver(self, a: BootstrapArtifacts) -> None:
        a.apiserver = self.provisioner.create_apiserver(
            self.request.namespace,
            self.request.service_name,
            self.request.image,
            self.request.credentials_name,
            a.endpoint.advertise_address,
            self.request.storage_backend,
            a.pvc,
        )

    def _create_service_account(self, a: BootstrapArtifacts) -> None:
        a.service_account = self.provisioner.create_service_account(self.request.namespace)

    def _create_role_bindings(self, a: BootstrapArtifacts) -> None:
        a.role, a.role_binding = self.provisioner.create_role_bindings(
            self.request.namespace, a.service_account.metadata.name
        )

    def _create_controller_manager(self, a: BootstrapArtifacts) -> None:
        a.controller_manager = self.provisioner.create_controller_manager(
            self.request.namespace,
            self.request.name,
            a.service.metadata.name,
            self.request.controller_manager_name,
            self.request.image,
            self.request.kubeconfig_secret_name,
            self.request.dns_zone_name,
            self.request.dns_provider,
            a.service_account.metadata.name,
        )

    def _persist_credentials(self, a: BootstrapArtifacts) -> None:
        a.credentials = persist_credentials(
            self.store, self.request.name, a.endpoint.endpoint, a.trust, self.mode
        )

    def _wait_for_pods(self, a: BootstrapArtifacts) -> None:
        wait_for_pods(
            self.host.core_v1,
            self.request.namespace,
            [self.request.service_name, self.request.controller_manager_name],
            self.poll_settings.pod_poller(),
            self._progress("pods"),
        )

    def _wait_for_healthy(self, a: BootstrapArtifacts) -> None:
        health = self.poll_settings.health_poller().wait_for_healthy(
            a.credentials.server,
            a.trust.ca.cert_pem,
            a.trust.admin.cert_pem,
            a.trust.admin.key_pem,
            self._progress("health"),
        )
        if not health.healthy:
            raise health.poll_error or PollError(
                health.error or "federation API server did not become healthy",
                attempts=health.attempts,
            )
