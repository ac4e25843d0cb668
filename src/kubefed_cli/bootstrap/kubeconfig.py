"""Kubeconfig documents and the local multi-context credential store.

The store is the caller's kubeconfig file. Writing a federation's
credentials inserts or overwrites the cluster, user and context entries
keyed by the federation name and leaves every other entry untouched.
"""

from __future__ import annotations

import base64
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..shared.logging import get_logger
from .errors import CredentialStoreError
from .pki import ADMIN_CN, TrustHierarchy
from .provisioner import ExecutionMode

logger = get_logger(__name__)

# User name the controller manager presents to the federation API server
CONTROLLER_MANAGER_USER = "federation-controller-manager"

_SECTIONS = ("clusters", "users", "contexts")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def normalize_server_url(endpoint: str) -> str:
    """Prefix the https scheme if the endpoint has none."""
    if endpoint.startswith("https://"):
        return endpoint
    return f"https://{endpoint}"


def make_client_config(
    server: str,
    cluster_name: str,
    user_name: str,
    ca_pem: bytes,
    cert_pem: bytes,
    key_pem: bytes,
) -> dict[str, Any]:
    """Build a self-contained kubeconfig with embedded certificates.

    Args:
        server: API server URL.
        cluster_name: Name used for the cluster and context entries.
        user_name: Name of the user entry.
        ca_pem: CA certificate that signed the server certificate.
        cert_pem: Client certificate.
        key_pem: Client private key.

    Returns:
        Kubeconfig document as a dict, current-context set.
    """
    context_name = f"{user_name}@{cluster_name}"
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": cluster_name,
                "cluster": {
                    "server": server,
                    "certificate-authority-data": _b64(ca_pem),
                },
            }
        ],
        "users": [
            {
                "name": user_name,
                "user": {
                    "client-certificate-data": _b64(cert_pem),
                    "client-key-data": _b64(key_pem),
                },
            }
        ],
        "contexts": [
            {
                "name": context_name,
                "context": {"cluster": cluster_name, "user": user_name},
            }
        ],
        "current-context": context_name,
        "preferences": {},
    }


@dataclass
class CredentialStoreEntry:
    """Cluster, user and context records written for one federation."""

    name: str
    cluster: dict[str, Any]
    user: dict[str, Any]
    context: dict[str, Any]

    @property
    def server(self) -> str:
        return self.cluster["server"]


class KubeconfigStore:
    """Read, update and flush a kubeconfig file."""

    def __init__(self, path: Path):
        """Initialize store.

        Args:
            path: Kubeconfig file; it need not exist yet.
        """
        self.path = Path(path)
        self.data: dict[str, Any] = {}
        self._loaded = False

    def load(self) -> KubeconfigStore:
        """Load the file, starting from an empty config if it does not exist.

        Raises:
            CredentialStoreError: If the file cannot be read or is not a mapping.
        """
        data: Any = None
        if self.path.exists():
            try:
                with open(self.path) as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise CredentialStoreError(f"cannot read kubeconfig {self.path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise CredentialStoreError(f"kubeconfig {self.path} is not a mapping")

        data.setdefault("apiVersion", "v1")
        data.setdefault("kind", "Config")
        for section in _SECTIONS:
            if data.get(section) is None:
                data[section] = []
        data.setdefault("preferences", {})

        self.data = data
        self._loaded = True
        return self

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _upsert(self, section: str, key: str, name: str, record: dict[str, Any]) -> None:
        self._ensure_loaded()
        entries = self.data[section]
        entry = {"name": name, key: record}
        for i, existing in enumerate(entries):
            if isinstance(existing, dict) and existing.get("name") == name:
                entries[i] = entry
                return
        entries.append(entry)

    def _get(self, section: str, key: str, name: str) -> dict[str, Any] | None:
        self._ensure_loaded()
        for entry in self.data[section]:
            if isinstance(entry, dict) and entry.get("name") == name:
                return entry.get(key)
        return None

    def upsert_cluster(self, name: str, cluster: dict[str, Any]) -> None:
        self._upsert("clusters", "cluster", name, cluster)

    def upsert_user(self, name: str, user: dict[str, Any]) -> None:
        self._upsert("users", "user", name, user)

    def upsert_context(self, name: str, context: dict[str, Any]) -> None:
        self._upsert("contexts", "context", name, context)

    def get_cluster(self, name: str) -> dict[str, Any] | None:
        return self._get("clusters", "cluster", name)

    def get_user(self, name: str) -> dict[str, Any] | None:
        return self._get("users", "user", name)

    def get_context(self, name: str) -> dict[str, Any] | None:
        return self._get("contexts", "context", name)

    def save(self) -> None:
        """Write the config back, creating parent directories as needed.

        The document goes to a sibling temp file (mode 0600 from creation)
        that then replaces the target, so readers never see a partial file.

        Raises:
            CredentialStoreError: If the file cannot be written.
        """
        self._ensure_loaded()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CredentialStoreError(f"cannot write kubeconfig {self.path}: {e}") from e


def persist_credentials(
    store: KubeconfigStore,
    name: str,
    endpoint: str,
    trust: TrustHierarchy,
    mode: ExecutionMode,
) -> CredentialStoreEntry:
    """Record the federation API server endpoint and admin credentials.

    The records are always built and inserted into the in-memory store;
    the file is only written in APPLY mode.

    Returns:
        The entry that was (or, when simulating, would have been) written.
    """
    cluster = {
        "server": normalize_server_url(endpoint),
        "certificate-authority-data": _b64(trust.ca.cert_pem),
    }
    user = {
        "client-certificate-data": _b64(trust.admin.cert_pem),
        "client-key-data": _b64(trust.admin.key_pem),
        "username": ADMIN_CN,
    }
    context = {"cluster": name, "user": name}

    store.upsert_cluster(name, cluster)
    store.upsert_user(name, user)
    store.upsert_context(name, context)

    if mode == ExecutionMode.APPLY:
        store.save()
        logger.info("kubeconfig_updated", path=str(store.path), context=name)
    else:
        logger.info("kubeconfig_update_simulated", path=str(store.path), context=name)

    return CredentialStoreEntry(name=name, cluster=cluster, user=user, context=context)
