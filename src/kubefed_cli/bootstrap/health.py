"""Health polling for the federation API server.

Waits until `/healthz` on the freshly provisioned API server answers "ok".
Requests authenticate with the admin client certificate and trust only the
federation CA.
"""

from __future__ import annotations

import ssl
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from .errors import PollError
from .poller import Observation, Poller


@dataclass
class HealthCheckResult:
    """Result of health check attempt."""

    healthy: bool
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None
    # Why the wait stopped, when it did not end healthy
    poll_error: PollError | None = None


def build_ssl_context(
    ca_pem: bytes, client_cert_pem: bytes, client_key_pem: bytes
) -> ssl.SSLContext:
    """TLS context trusting `ca_pem` and presenting the given client certificate."""
    context = ssl.create_default_context(cadata=ca_pem.decode("ascii"))
    # load_cert_chain only reads from files
    with tempfile.TemporaryDirectory(prefix="kubefed-") as tmpdir:
        cert_file = Path(tmpdir) / "client.crt"
        key_file = Path(tmpdir) / "client.key"
        cert_file.write_bytes(client_cert_pem)
        key_file.write_bytes(client_key_pem)
        key_file.chmod(0o600)
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    return context


def is_healthy_body(body: str) -> bool:
    return body.lower() == "ok"


class HealthPoller:
    """Poll the federation API server health endpoint."""

    def __init__(self, poller: Poller, request_timeout: float = 5.0):
        """Initialize health poller.

        Args:
            poller: Poller that paces the attempts.
            request_timeout: Timeout for each HTTP request.
        """
        self.poller = poller
        self.request_timeout = request_timeout

    def wait_for_healthy(
        self,
        server_url: str,
        ca_pem: bytes,
        client_cert_pem: bytes,
        client_key_pem: bytes,
        on_attempt: Callable[[int, Observation], None] | None = None,
    ) -> HealthCheckResult:
        """Poll `<server_url>/healthz` until it answers "ok".

        Args:
            server_url: Base URL of the federation API server.
            ca_pem: Federation CA certificate.
            client_cert_pem: Admin client certificate.
            client_key_pem: Admin client key.
            on_attempt: Optional callback called with (attempt, observation)
                        for progress reporting.

        Returns:
            HealthCheckResult with status information.
        """
        url = f"{server_url.rstrip('/')}/healthz"
        context = build_ssl_context(ca_pem, client_cert_pem, client_key_pem)

        with httpx.Client(verify=context, timeout=self.request_timeout) as http:

            def observe() -> Observation:
                try:
                    response = http.get(url)
                except httpx.ConnectError:
                    return Observation.not_ready("Connection refused")
                except httpx.TimeoutException:
                    return Observation.not_ready("Request timeout")
                if response.status_code != 200:
                    return Observation.not_ready(f"HTTP {response.status_code}")
                if is_healthy_body(response.text):
                    return Observation.ready()
                return Observation.not_ready(f"unexpected body {response.text[:40]!r}")

            try:
                result = self.poller.poll_until(observe, f"health of {server_url}", on_attempt)
            except PollError as e:
                return HealthCheckResult(
                    healthy=False, attempts=e.attempts, error=str(e), poll_error=e
                )

        return HealthCheckResult(
            healthy=True,
            attempts=result.attempts,
            elapsed_seconds=result.elapsed_seconds,
        )
