"""Exception hierarchy for cce-operator.

Every operator-specific exception inherits from CCEOperatorError so the
controller can tell its own failures apart from programming errors.
"""

from __future__ import annotations


class CCEOperatorError(Exception):
    """Base exception for all cce-operator errors."""


class ValidationError(CCEOperatorError):
    """Raised when a cluster config fails create, update or import rules."""


class ConfigurationError(CCEOperatorError):
    """Raised for invalid operator configuration or missing settings."""


class CredentialError(ConfigurationError):
    """Raised when cloud credentials cannot be resolved from the secret store."""


class InvalidResponseError(CCEOperatorError):
    """Raised when a required field is missing from a provider response."""


class ClusterUnavailableError(CCEOperatorError):
    """Raised when the provider reports the cluster as Unavailable."""

    def __init__(self, cluster: str, reason: str = "") -> None:
        self.cluster = cluster
        self.reason = reason
        super().__init__(f"creation failed for cluster {cluster!r}: {reason}")


class UpgradeError(CCEOperatorError):
    """Raised when a cluster upgrade task ends in the Failed phase."""

    def __init__(self, cluster: str, task_id: str) -> None:
        self.cluster = cluster
        self.task_id = task_id
        super().__init__(f"upgrade task {task_id} failed for cluster {cluster!r}")


class CloudAPIError(CCEOperatorError):
    """Base for structured errors returned by a cloud provider API."""


class StoreError(CCEOperatorError):
    """Base for record and secret store failures."""


class NotFoundError(StoreError):
    """Raised when a record or secret does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class ConflictError(StoreError):
    """Raised when a write loses an optimistic-concurrency race."""

    def __init__(self, key: str, detail: str = "") -> None:
        self.key = key
        self.detail = detail
        msg = f"conflict updating {key}"
        super().__init__(f"{msg}: {detail}" if detail else msg)
