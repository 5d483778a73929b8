"""Configuration models for the kube-e2e framework.

This module provides the Pydantic models that carry run options and
per-resource cleanup policy.

Models:
    FrameworkOptions: Global run options, read from KUBE_E2E_* environment
        variables and overridden by pytest command line flags.
    CleanupOptions: Timeout/retry policy attached to a created resource.
    PollingConfig: Timeout/interval pair for waits.

Example:
    >>> from kube_e2e.config import CleanupOptions, FrameworkOptions
    >>> options = FrameworkOptions(namespace="operator-e2e", local_run=True)
    >>> options.local_run
    True
    >>> CleanupOptions(timeout=5.0, retry_interval=1.0).polls
    True
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

from kube_e2e.errors import ConfigurationError
from kube_e2e.namespaces import validate_namespace

DEFAULT_GLOBAL_MANIFEST = Path("deploy/crds.yaml")
DEFAULT_NAMESPACED_MANIFEST = Path("deploy/namespace-init.yaml")


class FrameworkOptions(BaseSettings):
    """Global options for one test run.

    Loads from environment variables prefixed with ``KUBE_E2E_`` (for example
    ``KUBE_E2E_NAMESPACE``, ``KUBE_E2E_LOCAL_RUN``). Frozen after
    construction: no test may change global options.

    Attributes:
        kubeconfig: Path to kubeconfig file. None tries in-cluster config,
            then the default kubeconfig.
        context: Kubeconfig context to use. None uses current context.
        namespace: Pins the test namespace instead of generating one.
        local_run: The operator runs out of cluster; skip workload creation
            and operator deployment waits.
        no_setup: Skip automatic bootstrap of global and namespaced manifests.
        skip_cleanup_on_error: Leave resources behind after a failing test.
        cleanup_fail_fast: Stop unwinding cleanup at the first failed action.
        teardown_global: Delete the global manifest objects this process
            created when the suite ends. Off by default, since another test
            process sharing the cluster may still need them.
        image: Override for the operator image in the namespaced manifest.
        global_manifest_path: Manifest with cluster-scoped objects (CRDs).
        namespaced_manifest_path: Manifest with per-namespace bootstrap
            objects (service account, RBAC, operator deployment).
        default_timeout: Default wait timeout in seconds.
        default_retry_interval: Default poll interval in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="KUBE_E2E_",
        frozen=True,
        extra="ignore",
    )

    kubeconfig: str | None = Field(
        default=None,
        description="Path to kubeconfig file. None uses in-cluster config.",
    )
    context: str | None = Field(
        default=None,
        description="Kubeconfig context to use. None uses current context.",
    )
    namespace: str | None = Field(
        default=None,
        description="Pinned test namespace. None generates one per test.",
    )
    local_run: bool = Field(
        default=False,
        description="Operator runs outside the cluster",
    )
    no_setup: bool = Field(
        default=False,
        description="Skip automatic resource bootstrap",
    )
    skip_cleanup_on_error: bool = Field(
        default=False,
        description="Leave resources behind after a failing test",
    )
    cleanup_fail_fast: bool = Field(
        default=False,
        description="Stop cleanup at the first failing action",
    )
    teardown_global: bool = Field(
        default=False,
        description="Delete global manifest objects at suite end",
    )
    image: str | None = Field(
        default=None,
        min_length=1,
        description="Operator image override",
        examples=["quay.io/example/operator:v0.1.0"],
    )
    global_manifest_path: Path = Field(
        default=DEFAULT_GLOBAL_MANIFEST,
        description="Manifest of cluster-scoped objects",
    )
    namespaced_manifest_path: Path = Field(
        default=DEFAULT_NAMESPACED_MANIFEST,
        description="Manifest of per-namespace bootstrap objects",
    )
    default_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Default wait timeout in seconds",
    )
    default_retry_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Default poll interval in seconds",
    )

    @field_validator("kubeconfig")
    @classmethod
    def expand_kubeconfig_path(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())

    @field_validator("namespace")
    @classmethod
    def check_namespace(cls, v: str | None) -> str | None:
        """Reject pinned namespaces Kubernetes would refuse."""
        if v is not None and not validate_namespace(v):
            msg = f"Invalid namespace '{v}': must be a DNS-1123 label"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_local_run(self) -> Self:
        """A locally running operator watches a known namespace."""
        if self.local_run and self.namespace is None:
            msg = "local_run requires a pinned namespace"
            raise ValueError(msg)
        return self


def load_options(**overrides: Any) -> FrameworkOptions:
    """Build FrameworkOptions from the environment plus explicit overrides.

    Overrides whose value is None are ignored so that unset command line
    flags fall through to environment values.

    Args:
        **overrides: Field values taking precedence over the environment.

    Returns:
        Validated, frozen FrameworkOptions.

    Raises:
        ConfigurationError: If the resulting options are invalid or
            inconsistent.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return FrameworkOptions(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid kube-e2e options: {e}") from e


class CleanupOptions(BaseModel):
    """Cleanup policy for a created resource.

    Passing ``None`` instead of a CleanupOptions registers no cleanup at all.
    The default instance registers a delete with no confirmation poll.

    Attributes:
        timeout: How long to wait for the object to disappear. 0 disables
            the confirmation poll.
        retry_interval: Poll interval for the confirmation poll.
        best_effort: Failures are logged but not reported as cleanup errors.

    Example:
        >>> CleanupOptions()                 # delete, don't wait
        >>> CleanupOptions(timeout=30.0, retry_interval=1.0)  # delete and wait
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout: float = Field(default=0.0, ge=0.0, description="Deletion confirmation timeout")
    retry_interval: float = Field(default=0.0, ge=0.0, description="Poll interval")
    best_effort: bool = Field(default=False, description="Never report failures")

    @model_validator(mode="after")
    def check_poll_pair(self) -> Self:
        """Timeout and retry interval are set together or not at all."""
        if self.timeout == 0 and self.retry_interval != 0:
            msg = "retry_interval is set but timeout is not; cannot poll for cleanup"
            raise ValueError(msg)
        if self.timeout != 0 and self.retry_interval == 0:
            msg = "timeout is set but retry_interval is not; cannot poll for cleanup"
            raise ValueError(msg)
        return self

    @property
    def polls(self) -> bool:
        """Whether deletion is confirmed by polling."""
        return self.timeout > 0


class PollingConfig(BaseModel):
    """Configuration for a polling wait.

    Attributes:
        timeout: Maximum wait time in seconds. Defaults to 30.0.
        interval: Poll interval in seconds. Defaults to 0.5.
        description: Description for error messages. Defaults to "condition".
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, ge=0.0, description="Maximum wait time in seconds")
    interval: float = Field(default=0.5, gt=0.0, description="Poll interval in seconds")
    description: str = Field(
        default="condition",
        min_length=1,
        description="Description for error messages",
    )


__all__ = [
    "DEFAULT_GLOBAL_MANIFEST",
    "DEFAULT_NAMESPACED_MANIFEST",
    "CleanupOptions",
    "FrameworkOptions",
    "PollingConfig",
    "load_options",
]
