"""Error types for the federation bootstrap pipeline.

Every failure surfaced by `kubefed init` is a FederationError. Steps raise
the specific subclass; the pipeline wraps it in a StepError naming the step
that failed. Nothing is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FederationError(Exception):
    """Base error class for bootstrap errors."""

    message: str
    step: str | None = None

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message


@dataclass
class ValidationError(FederationError):
    """Invalid input, detected before any remote call."""


@dataclass
class CertificateError(FederationError):
    """Key or certificate generation failed."""


@dataclass
class ProvisioningError(FederationError):
    """Host cluster rejected a create call or could not be reached."""

    kind: str = ""
    name: str = ""
    status: int | None = None


@dataclass
class CredentialStoreError(FederationError):
    """Local kubeconfig could not be read or written."""


@dataclass
class PollError(FederationError):
    """Base class for readiness wait failures."""

    attempts: int = 0


@dataclass
class PollFatalError(PollError):
    """An observation reported an unrecoverable condition."""


@dataclass
class PollTimeoutError(PollError):
    """Attempt budget or deadline exhausted."""


@dataclass
class PollCancelledError(PollError):
    """The cancellation event was set while waiting."""


@dataclass
class StepError(FederationError):
    """A pipeline step failed; `__cause__` holds the original error."""
