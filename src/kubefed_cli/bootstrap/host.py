"""Connection to the host cluster."""

from __future__ import annotations

from pathlib import Path

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from .errors import FederationError


class HostCluster:
    """API handles for the cluster that hosts the federation control plane."""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.core_v1 = client.CoreV1Api(api_client=api_client)
        self.apps_v1 = client.AppsV1Api(api_client=api_client)
        self.rbac_v1 = client.RbacAuthorizationV1Api(api_client=api_client)

    @classmethod
    def from_kubeconfig(cls, kubeconfig: Path, context: str) -> HostCluster:
        """Build API clients for a kubeconfig context.

        Raises:
            FederationError: If the kubeconfig or context cannot be loaded.
        """
        if not kubeconfig.exists():
            raise FederationError(f"kubeconfig {kubeconfig} not found")
        try:
            api_client = config.new_client_from_config(
                config_file=str(kubeconfig), context=context
            )
        except ConfigException as e:
            raise FederationError(
                f"cannot load host cluster context {context!r} from {kubeconfig}: {e}"
            ) from e
        return cls(api_client)
