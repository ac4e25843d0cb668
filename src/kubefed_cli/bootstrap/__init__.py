"""Bootstrap package for standing up a federation control plane.

This package provides the `kubefed init` machinery which:
1. Creates the federation-system namespace and a load balancer service
2. Waits for the load balancer address
3. Generates the CA and API server / controller manager / admin certificates
4. Creates secrets, etcd storage, the API server and controller manager
5. Writes admin credentials to the local kubeconfig
6. Waits for the pods and for the API server to report healthy
"""

from .errors import (
    CertificateError,
    CredentialStoreError,
    FederationError,
    PollCancelledError,
    PollError,
    PollFatalError,
    PollTimeoutError,
    ProvisioningError,
    StepError,
    ValidationError,
)
from .health import HealthCheckResult, HealthPoller
from .host import HostCluster
from .kubeconfig import (
    CredentialStoreEntry,
    KubeconfigStore,
    make_client_config,
    normalize_server_url,
    persist_credentials,
)
from .pipeline import (
    DRY_RUN_NOTICE,
    BootstrapArtifacts,
    BootstrapRequest,
    BootstrapResult,
    FederationBootstrap,
    PollSettings,
    Step,
)
from .pki import KeyPair, TrustHierarchy, generate_trust, verify_issued_by
from .poller import Observation, Poller, PollResult, Readiness
from .provisioner import ExecutionMode, HostProvisioner
from .waiters import NetworkEndpoint, wait_for_load_balancer_address, wait_for_pods

__all__ = [
    # Errors
    "FederationError",
    "ValidationError",
    "CertificateError",
    "ProvisioningError",
    "CredentialStoreError",
    "PollError",
    "PollFatalError",
    "PollTimeoutError",
    "PollCancelledError",
    "StepError",
    # Polling
    "Poller",
    "PollResult",
    "Observation",
    "Readiness",
    "HealthPoller",
    "HealthCheckResult",
    "NetworkEndpoint",
    "wait_for_load_balancer_address",
    "wait_for_pods",
    # Trust hierarchy
    "KeyPair",
    "TrustHierarchy",
    "generate_trust",
    "verify_issued_by",
    # Provisioning
    "ExecutionMode",
    "HostCluster",
    "HostProvisioner",
    # Credential store
    "KubeconfigStore",
    "CredentialStoreEntry",
    "make_client_config",
    "normalize_server_url",
    "persist_credentials",
    # Pipeline
    "BootstrapRequest",
    "BootstrapArtifacts",
    "BootstrapResult",
    "FederationBootstrap",
    "PollSettings",
    "Step",
    "DRY_RUN_NOTICE",
]
