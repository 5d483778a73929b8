"""Cluster access for the kube-e2e framework.

Objects are handled as plain manifest dictionaries (``apiVersion``, ``kind``,
``metadata``, ...), the same shape ``yaml.safe_load`` produces. A single
generic client parameterized by (apiVersion, kind) replaces per-type API
classes.

Classes:
    ResourceHandle: Identity of one object (apiVersion, kind, namespace, name)
    ClusterClient: Protocol the framework consumes
    KubernetesClusterClient: ClusterClient on kubernetes.dynamic.DynamicClient

Example:
    >>> client = KubernetesClusterClient.from_kubeconfig(context="kind-e2e")
    >>> handle = ResourceHandle(api_version="apps/v1", kind="Deployment",
    ...                         namespace="main-1700000000", name="operator")
    >>> client.get(handle)["status"]["readyReplicas"]
    1
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol, TypeVar, runtime_checkable

import structlog
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import (
    DynamicApiError,
    NotFoundError,
    ResourceNotFoundError,
)
from pydantic import BaseModel, ConfigDict, Field
from urllib3.exceptions import HTTPError

from kube_e2e.errors import (
    ClusterAPIError,
    ClusterConnectionError,
    CreationError,
    KindNotRegisteredError,
    ObjectNotFoundError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Manifest = dict[str, Any]


class ResourceHandle(BaseModel):
    """Identifies one object on the cluster.

    Attributes:
        api_version: Group/version, e.g. "apps/v1" or "v1".
        kind: Resource kind, e.g. "Deployment".
        name: Object name.
        namespace: Object namespace; None for cluster-scoped objects.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_version: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    namespace: str | None = None

    @classmethod
    def from_object(cls, obj: Manifest) -> ResourceHandle:
        """Build a handle from a manifest dictionary.

        Raises:
            ValueError: If apiVersion, kind or metadata.name is missing.
        """
        metadata = obj.get("metadata") or {}
        try:
            return cls(
                api_version=obj["apiVersion"],
                kind=obj["kind"],
                name=metadata["name"],
                namespace=metadata.get("namespace"),
            )
        except KeyError as e:
            msg = f"Object is missing required field {e}"
            raise ValueError(msg) from e

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@runtime_checkable
class ClusterClient(Protocol):
    """Narrow cluster capability consumed by the framework.

    Implementations raise ObjectNotFoundError for missing objects,
    KindNotRegisteredError for unknown kinds, CreationError for rejected
    creations, ClusterConnectionError when the API server is unreachable and
    ClusterAPIError for anything else.
    """

    def create(self, obj: Manifest) -> Manifest: ...

    def get(self, handle: ResourceHandle) -> Manifest: ...

    def update(self, obj: Manifest) -> Manifest: ...

    def delete(self, handle: ResourceHandle, grace_period_seconds: int | None = None) -> None: ...

    def list(self, api_version: str, kind: str, namespace: str | None = None) -> list[Manifest]: ...

    def is_namespaced(self, api_version: str, kind: str) -> bool: ...

    def has_rest_mapping(self, api_version: str, kind: str) -> bool: ...

    def server_version(self) -> str: ...


class KubernetesClusterClient:
    """ClusterClient backed by the official kubernetes dynamic client.

    Attributes:
        dynamic: The underlying DynamicClient.
    """

    def __init__(self, dynamic: DynamicClient, version_api: Any = None) -> None:
        """Initialize the client.

        Args:
            dynamic: A connected DynamicClient.
            version_api: kubernetes VersionApi; built from the dynamic
                client's ApiClient when omitted.
        """
        self.dynamic = dynamic
        self._version_api = version_api or k8s_client.VersionApi(dynamic.client)

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: str | None = None,
        context: str | None = None,
    ) -> KubernetesClusterClient:
        """Load cluster credentials and build a client.

        Attempts to load configuration in this order:
        1. Explicit kubeconfig path
        2. In-cluster configuration
        3. Default kubeconfig (~/.kube/config)

        Raises:
            ClusterConnectionError: If no configuration can be loaded or
                discovery against the API server fails.
        """
        try:
            if kubeconfig:
                api_client = k8s_config.new_client_from_config(
                    config_file=kubeconfig,
                    context=context,
                )
                logger.info("client.kubeconfig_loaded", kubeconfig=kubeconfig, context=context)
            else:
                try:
                    k8s_config.load_incluster_config()
                    logger.info("client.incluster_loaded")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(context=context)
                    logger.info("client.default_kubeconfig_loaded", context=context)
                api_client = k8s_client.ApiClient()
            dynamic = DynamicClient(api_client)
        except (k8s_config.ConfigException, HTTPError, OSError) as e:
            raise ClusterConnectionError(reason=str(e)) from e
        return cls(dynamic)

    def _resource(self, api_version: str, kind: str) -> Any:
        with _translated(f"discover {api_version}/{kind}"):
            try:
                return self.dynamic.resources.get(api_version=api_version, kind=kind)
            except ResourceNotFoundError as e:
                raise KindNotRegisteredError(api_version, kind) from e

    def create(self, obj: Manifest) -> Manifest:
        handle = ResourceHandle.from_object(obj)
        resource = self._resource(handle.api_version, handle.kind)
        try:
            with _translated(f"create {handle}"):
                created = resource.create(body=obj, namespace=handle.namespace)
        except ClusterAPIError as e:
            raise CreationError(
                str(handle),
                e.reason,
                already_exists=e.status == 409,
            ) from e
        except ObjectNotFoundError as e:
            # Typically the target namespace does not exist
            raise CreationError(str(handle), e.message) from e
        return created.to_dict()

    def get(self, handle: ResourceHandle) -> Manifest:
        resource = self._resource(handle.api_version, handle.kind)
        with _translated(f"get {handle}", handle):
            found = resource.get(name=handle.name, namespace=handle.namespace)
        return found.to_dict()

    def update(self, obj: Manifest) -> Manifest:
        handle = ResourceHandle.from_object(obj)
        resource = self._resource(handle.api_version, handle.kind)
        with _translated(f"update {handle}", handle):
            updated = resource.replace(body=obj, namespace=handle.namespace)
        return updated.to_dict()

    def delete(self, handle: ResourceHandle, grace_period_seconds: int | None = None) -> None:
        resource = self._resource(handle.api_version, handle.kind)
        body: Manifest = {"apiVersion": "v1", "kind": "DeleteOptions", "propagationPolicy": "Background"}
        if grace_period_seconds is not None:
            body["gracePeriodSeconds"] = grace_period_seconds
        with _translated(f"delete {handle}", handle):
            resource.delete(name=handle.name, namespace=handle.namespace, body=body)

    def list(self, api_version: str, kind: str, namespace: str | None = None) -> list[Manifest]:
        resource = self._resource(api_version, kind)
        with _translated(f"list {kind}"):
            result = resource.get(namespace=namespace)
        return list(result.to_dict().get("items") or [])

    def is_namespaced(self, api_version: str, kind: str) -> bool:
        return bool(self._resource(api_version, kind).namespaced)

    def has_rest_mapping(self, api_version: str, kind: str) -> bool:
        try:
            self._resource(api_version, kind)
        except KindNotRegisteredError:
            return False
        return True

    def server_version(self) -> str:
        with _translated("version"):
            info = self._version_api.get_code()
        return str(info.git_version)


@contextmanager
def _translated(operation: str, handle: ResourceHandle | None = None) -> Iterator[None]:
    """Translate kubernetes client exceptions into kube-e2e errors."""
    try:
        yield
    except NotFoundError as e:
        raise ObjectNotFoundError(str(handle) if handle else operation, _reason(e)) from e
    except DynamicApiError as e:
        raise ClusterAPIError(operation, status=e.status or 0, reason=_reason(e)) from e
    except (HTTPError, OSError) as e:
        raise ClusterConnectionError(reason=f"{operation}: {e}") from e


def _reason(error: DynamicApiError) -> str:
    return str(error.reason or "")


def ignore_not_found(operation: Callable[[], T]) -> T | None:
    """Run ``operation``, returning None if the object does not exist.

    Example:
        >>> ignore_not_found(lambda: client.delete(handle))
    """
    try:
        return operation()
    except ObjectNotFoundError:
        return None


__all__ = [
    "ClusterClient",
    "KubernetesClusterClient",
    "Manifest",
    "ResourceHandle",
    "ignore_not_found",
]
