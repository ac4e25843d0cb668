"""Kubernetes object builders for the federation control plane.

Every function here is pure: it builds the object that will be submitted to
the host cluster and never talks to the API server.
"""

from __future__ import annotations

import base64

import yaml
from kubernetes import client
from kubernetes.utils import parse_quantity

from .errors import ValidationError
from .pki import TrustHierarchy

DEFAULT_NAMESPACE = "federation-system"

HYPERKUBE_IMAGE = "gcr.io/google_containers/hyperkube-amd64"
DEFAULT_IMAGE_TAG = "v1.6.0"
DEFAULT_IMAGE = f"{HYPERKUBE_IMAGE}:{DEFAULT_IMAGE_TAG}"
ETCD_IMAGE = "gcr.io/google_containers/etcd:3.0.14-alpha.1"

CONTROLLER_MANAGER_SA = "federation-controller-manager"
CONTROLLER_MANAGER_ROLE = "federation-system:federation-controller-manager"

APISERVER_CREDENTIALS_DIR = "/etc/federation/apiserver"
CONTROLLER_MANAGER_KUBECONFIG_DIR = "/etc/federation/controller-manager"
KUBECONFIG_SECRET_KEY = "kubeconfig"
ETCD_DATA_VOLUME = "etcddata"

# Group name of the legacy/core API group
LEGACY_API_GROUP = ""

COMPONENT_LABELS = {"app": "federated-cluster"}
APISERVER_POD_LABELS = {"app": "federated-cluster", "module": "federation-apiserver"}
CONTROLLER_MANAGER_POD_LABELS = {
    "app": "federated-cluster",
    "module": "federation-controller-manager",
}


def apiserver_name(federation: str) -> str:
    return f"{federation}-apiserver"


def credentials_secret_name(service_name: str) -> str:
    return f"{service_name}-credentials"


def controller_manager_name(federation: str) -> str:
    return f"{federation}-controller-manager"


def kubeconfig_secret_name(cm_name: str) -> str:
    return f"{cm_name}-kubeconfig"


def pvc_name(service_name: str) -> str:
    return f"{service_name}-etcd-claim"


def parse_capacity(capacity: str) -> str:
    """Validate a human-readable storage quantity such as "10Gi".

    Returns:
        The quantity string unchanged.

    Raises:
        ValidationError: If the quantity cannot be parsed.
    """
    try:
        parse_quantity(capacity)
    except ValueError as e:
        raise ValidationError(f"invalid etcd persistent volume capacity {capacity!r}: {e}") from e
    return capacity


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _meta(name: str, namespace: str | None = None, labels: dict | None = None, **kwargs):
    return client.V1ObjectMeta(
        name=name,
        namespace=namespace,
        labels=dict(labels) if labels else None,
        **kwargs,
    )


def build_namespace(namespace: str) -> client.V1Namespace:
    """Namespace for federation system components."""
    return client.V1Namespace(
        api_version="v1",
        kind="Namespace",
        metadata=_meta(namespace),
    )


def build_service(namespace: str, service_name: str) -> client.V1Service:
    """Load balancer exposing the federation API server on 443."""
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=_meta(service_name, namespace, COMPONENT_LABELS),
        spec=client.V1ServiceSpec(
            type="LoadBalancer",
            selector=dict(APISERVER_POD_LABELS),
            ports=[
                client.V1ServicePort(
                    name="https",
                    protocol="TCP",
                    port=443,
                    target_port=443,
                )
            ],
        ),
    )


def build_credentials_secret(
    namespace: str, secret_name: str, trust: TrustHierarchy
) -> client.V1Secret:
    """Secret holding the API server's serving certificate, key and CA."""
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        type="Opaque",
        metadata=_meta(secret_name, namespace),
        data={
            "ca.crt": _b64(trust.ca.cert_pem),
            "server.crt": _b64(trust.server.cert_pem),
            "server.key": _b64(trust.server.key_pem),
        },
    )


def build_kubeconfig_secret(
    namespace: str, secret_name: str, kubeconfig: dict
) -> client.V1Secret:
    """Secret holding a complete kubeconfig document."""
    document = yaml.safe_dump(kubeconfig, default_flow_style=False, sort_keys=False)
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        type="Opaque",
        metadata=_meta(secret_name, namespace),
        data={KUBECONFIG_SECRET_KEY: _b64(document.encode("utf-8"))},
    )


def build_pvc(namespace: str, service_name: str, capacity: str) -> client.V1PersistentVolumeClaim:
    """Claim for the embedded etcd's data directory.

    Raises:
        ValidationError: If `capacity` is not a valid quantity.
    """
    capacity = parse_capacity(capacity)
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=_meta(
            pvc_name(service_name),
            namespace,
            COMPONENT_LABELS,
            annotations={"volume.alpha.kubernetes.io/storage-class": "yes"},
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=client.V1VolumeResourceRequirements(requests={"storage": capacity}),
        ),
    )


def apiserver_command(storage_backend: str, advertise_address: str = "") -> list[str]:
    """Command line of the federation API server container."""
    command = [
        "/hyperkube",
        "federation-apiserver",
        "--bind-address=0.0.0.0",
        "--etcd-servers=http://localhost:2379",
        "--secure-port=443",
        f"--client-ca-file={APISERVER_CREDENTIALS_DIR}/ca.crt",
        f"--tls-cert-file={APISERVER_CREDENTIALS_DIR}/server.crt",
        f"--tls-private-key-file={APISERVER_CREDENTIALS_DIR}/server.key",
        "--admission-control=NamespaceLifecycle",
        f"--storage-backend={storage_backend}",
    ]
    if advertise_address:
        command.append(f"--advertise-address={advertise_address}")
    return command


def build_apiserver_deployment(
    namespace: str,
    name: str,
    image: str,
    credentials_name: str,
    advertise_address: str,
    storage_backend: str,
    pvc: client.V1PersistentVolumeClaim | None = None,
) -> client.V1Deployment:
    """API server and its single-node etcd in one pod, one replica."""
    containers = [
        client.V1Container(
            name="apiserver",
            image=image,
            command=apiserver_command(storage_backend, advertise_address),
            ports=[
                client.V1ContainerPort(name="https", container_port=443),
                client.V1ContainerPort(name="local", container_port=8080),
            ],
            volume_mounts=[
                client.V1VolumeMount(
                    name=credentials_name,
                    mount_path=APISERVER_CREDENTIALS_DIR,
                    read_only=True,
                )
            ],
        ),
        client.V1Container(
            name="etcd",
            image=ETCD_IMAGE,
            command=["/usr/local/bin/etcd", "--data-dir", "/var/etcd/data"],
        ),
    ]
    volumes = [
        client.V1Volume(
            name=credentials_name,
            secret=client.V1SecretVolumeSource(secret_name=credentials_name),
        )
    ]

    if pvc is not None:
        volumes.append(
            client.V1Volume(
                name=ETCD_DATA_VOLUME,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=pvc.metadata.name
                ),
            )
        )
        for container in containers:
            if container.name == "etcd":
                container.volume_mounts = (container.volume_mounts or []) + [
                    client.V1VolumeMount(name=ETCD_DATA_VOLUME, mount_path="/var/etcd")
                ]

    return _deployment(
        namespace,
        name,
        APISERVER_POD_LABELS,
        client.V1PodSpec(containers=containers, volumes=volumes),
    )


def build_service_account(namespace: str) -> client.V1ServiceAccount:
    """Identity the controller manager uses against the host cluster."""
    return client.V1ServiceAccount(
        api_version="v1",
        kind="ServiceAccount",
        metadata=_meta(CONTROLLER_MANAGER_SA, namespace, COMPONENT_LABELS),
    )


def build_role(namespace: str) -> client.V1Role:
    """Read-only access to secrets, so the controller manager can reach member clusters."""
    return client.V1Role(
        api_version="rbac.authorization.k8s.io/v1",
        kind="Role",
        metadata=_meta(CONTROLLER_MANAGER_ROLE, namespace, COMPONENT_LABELS),
        rules=[
            client.V1PolicyRule(
                api_groups=[LEGACY_API_GROUP],
                resources=["secrets"],
                verbs=["get", "list", "watch"],
            )
        ],
    )


def build_role_binding(namespace: str, sa_name: str) -> client.V1RoleBinding:
    """Bind the controller manager role to its service account."""
    return client.V1RoleBinding(
        api_version="rbac.authorization.k8s.io/v1",
        kind="RoleBinding",
        metadata=_meta(CONTROLLER_MANAGER_ROLE, namespace, COMPONENT_LABELS),
        role_ref=client.V1RoleRef(
            api_group="rbac.authorization.k8s.io",
            kind="Role",
            name=CONTROLLER_MANAGER_ROLE,
        ),
        subjects=[
            client.RbacV1Subject(kind="ServiceAccount", name=sa_name, namespace=namespace)
        ],
    )


def controller_manager_command(
    federation: str, service_name: str, dns_zone_name: str, dns_provider: str
) -> list[str]:
    """Command line of the federation controller manager container."""
    return [
        "/hyperkube",
        "federation-controller-manager",
        f"--master=https://{service_name}",
        f"--kubeconfig={CONTROLLER_MANAGER_KUBECONFIG_DIR}/{KUBECONFIG_SECRET_KEY}",
        f"--dns-provider={dns_provider}",
        "--dns-provider-config=",
        f"--federation-name={federation}",
        f"--zone-name={dns_zone_name}",
    ]


def build_controller_manager_deployment(
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
    """Controller manager deployment, one replica."""
    container = client.V1Container(
        name="controller-manager",
        image=image,
        command=controller_manager_command(federation, service_name, dns_zone_name, dns_provider),
        volume_mounts=[
            client.V1VolumeMount(
                name=kubeconfig_name,
                mount_path=CONTROLLER_MANAGER_KUBECONFIG_DIR,
                read_only=True,
            )
        ],
        env=[
            client.V1EnvVar(
                name="POD_NAMESPACE",
                value_from=client.V1EnvVarSource(
                    field_ref=client.V1ObjectFieldSelector(field_path="metadata.namespace")
                ),
            )
        ],
    )
    pod_spec = client.V1PodSpec(
        containers=[container],
        volumes=[
            client.V1Volume(
                name=kubeconfig_name,
                secret=client.V1SecretVolumeSource(secret_name=kubeconfig_name),
            )
        ],
        service_account_name=sa_name,
    )
    return _deployment(namespace, cm_name, CONTROLLER_MANAGER_POD_LABELS, pod_spec)


def _deployment(
    namespace: str, name: str, pod_labels: dict, pod_spec: client.V1PodSpec
) -> client.V1Deployment:
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=_meta(name, namespace, COMPONENT_LABELS),
        spec=client.V1DeploymentSpec(
            replicas=1,
            selector=client.V1LabelSelector(match_labels=dict(pod_labels)),
            template=client.V1PodTemplateSpec(
                metadata=_meta(name, labels=pod_labels),
                spec=pod_spec,
            ),
        ),
    )
