"""Custom exceptions for the kube-e2e test harness.

Exception Hierarchy:
    KubeE2EError (base)
    ├── ConfigurationError (wraps ValueError)
    ├── ClusterConnectionError (wraps ConnectionError)
    ├── ClusterAPIError
    ├── KindNotRegisteredError (wraps LookupError)
    ├── SchemeRegistrationTimeoutError (wraps TimeoutError)
    ├── CreationError
    ├── ObjectNotFoundError (wraps LookupError)
    ├── PollingTimeoutError (wraps TimeoutError)
    │   └── DeploymentNotReadyError
    └── CleanupError

Every error raised by the cluster client boundary is translated into one of
these, so test code never has to import ``kubernetes`` exceptions.

Example:
    >>> from kube_e2e.errors import ObjectNotFoundError
    >>> raise ObjectNotFoundError("Deployment/ns/app")
    ObjectNotFoundError: Object 'Deployment/ns/app' not found
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class KubeE2EError(Exception):
    """Base exception for all kube-e2e errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(KubeE2EError, ValueError):
    """Raised when run options are missing or inconsistent.

    Example:
        >>> raise ConfigurationError("local_run requires a namespace")
    """


class ClusterConnectionError(KubeE2EError, ConnectionError):
    """Raised when the Kubernetes API server cannot be reached.

    Fatal during framework bootstrap: the whole run is aborted.

    Attributes:
        endpoint: The API endpoint that was unreachable (may be empty).
        reason: Additional context about the connection failure.
    """

    def __init__(self, *, endpoint: str = "", reason: str = "") -> None:
        self.endpoint = endpoint
        self.reason = reason
        message = "Kubernetes API server unavailable"
        if endpoint:
            message = f"{message} at {endpoint}"
        if reason:
            message = f"{message}: {reason}"
        KubeE2EError.__init__(self, message)


class ClusterAPIError(KubeE2EError):
    """Raised for non-retryable API failures (malformed request, forbidden, 5xx).

    Attributes:
        status: HTTP status returned by the API server (0 if unknown).
        reason: Reason phrase or server message.
    """

    def __init__(self, operation: str, *, status: int = 0, reason: str = "") -> None:
        self.operation = operation
        self.status = status
        self.reason = reason
        message = f"{operation} failed"
        if status:
            message = f"{message} with status {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class KindNotRegisteredError(KubeE2EError, LookupError):
    """Raised when the API server advertises no REST mapping for a kind.

    Treated as retryable while polling: a freshly installed CRD takes a
    moment to show up in discovery.
    """

    def __init__(self, api_version: str, kind: str) -> None:
        self.api_version = api_version
        self.kind = kind
        super().__init__(f"No REST mapping for kind '{kind}' in '{api_version}'")


class SchemeRegistrationTimeoutError(KubeE2EError, TimeoutError):
    """Raised when a registered kind never becomes queryable.

    Usually means the CRD backing the kind was never installed.
    """

    def __init__(self, api_version: str, kind: str, timeout: float) -> None:
        self.api_version = api_version
        self.kind = kind
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.1f}s waiting for REST mapping of "
            f"kind '{kind}' in '{api_version}'. Is the CRD installed?"
        )


class CreationError(KubeE2EError):
    """Raised when the cluster rejects an object creation.

    No cleanup action is registered for an object that failed to create.

    Attributes:
        resource: Printable identity of the object.
        already_exists: True when the failure is an AlreadyExists conflict.
    """

    def __init__(self, resource: str, reason: str = "", *, already_exists: bool = False) -> None:
        self.resource = resource
        self.reason = reason
        self.already_exists = already_exists
        message = f"Failed to create '{resource}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ObjectNotFoundError(KubeE2EError, LookupError):
    """Raised when an object does not exist on the cluster.

    Retryable while polling ("not visible yet"), and the success signal for
    deletion confirmation.
    """

    def __init__(self, resource: str, reason: str = "") -> None:
        self.resource = resource
        self.reason = reason
        message = f"Object '{resource}' not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PollingTimeoutError(KubeE2EError, TimeoutError):
    """Raised when a polling operation times out.

    Attributes:
        description: What was being waited for.
        timeout: How long we waited.
        last_error: Last retryable exception seen during polling (if any).
    """

    def __init__(
        self,
        description: str,
        timeout: float,
        last_error: Exception | None = None,
    ) -> None:
        self.description = description
        self.timeout = timeout
        self.last_error = last_error
        message = f"Timeout waiting for {description} after {timeout:.1f}s"
        if last_error:
            message += f" (last error: {last_error})"
        super().__init__(message)


class DeploymentNotReadyError(PollingTimeoutError):
    """Raised when a deployment exists but never reaches the expected replicas.

    Attributes:
        namespace: Deployment namespace.
        name: Deployment name.
        expected: Expected ready replicas.
        ready: Last observed ready replicas.
    """

    def __init__(
        self,
        namespace: str,
        name: str,
        *,
        expected: int,
        ready: int,
        timeout: float,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.expected = expected
        self.ready = ready
        super().__init__(
            f"deployment {namespace}/{name} to have {expected} ready replicas "
            f"(last seen {ready}/{expected})",
            timeout,
        )


class CleanupError(KubeE2EError):
    """Raised after a cleanup unwind in which one or more actions failed.

    Attributes:
        failures: (description, exception) pairs for each failed action,
            in the order they were attempted.
        skipped: Descriptions of actions that were never attempted because
            the unwind stopped at the first failure.
    """

    def __init__(
        self,
        failures: Sequence[tuple[str, BaseException]],
        skipped: Sequence[str] = (),
    ) -> None:
        self.failures = list(failures)
        self.skipped = list(skipped)
        lines = [f"{len(self.failures)} cleanup action(s) failed"]
        lines.extend(f"  - {desc}: {err}" for desc, err in self.failures)
        if self.skipped:
            lines.append(f"{len(self.skipped)} cleanup action(s) skipped")
            lines.extend(f"  - {desc}" for desc in self.skipped)
        super().__init__("\n".join(lines))


__all__ = [
    "CleanupError",
    "ClusterAPIError",
    "ClusterConnectionError",
    "ConfigurationError",
    "CreationError",
    "DeploymentNotReadyError",
    "KindNotRegisteredError",
    "KubeE2EError",
    "ObjectNotFoundError",
    "PollingTimeoutError",
    "SchemeRegistrationTimeoutError",
]
