"""Pytest configuration for kube-e2e unit tests.

Unit tests run without a cluster: an in-memory FakeClusterClient stands in
for the API server and a FakeClock drives every PollWaiter, so waits finish
instantly and deterministically.

Fixtures:
    - clock: FakeClock with scheduled events
    - waiter: PollWaiter on the fake clock
    - fake_client: FakeClusterClient with core kinds mapped
    - make_framework: Factory building a Framework over the fakes
    - framework: Framework with default options
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Generator
from typing import Any

import pytest
import structlog

from kube_e2e.client import Manifest, ResourceHandle
from kube_e2e.config import FrameworkOptions
from kube_e2e.errors import (
    ClusterAPIError,
    CreationError,
    KindNotRegisteredError,
    ObjectNotFoundError,
)
from kube_e2e.framework import Framework
from kube_e2e.namespaces import NamespaceAllocator
from kube_e2e.polling import PollWaiter

CLUSTER_SCOPED = {"Namespace", "CustomResourceDefinition", "ClusterRole", "ClusterRoleBinding"}

CORE_KINDS = {
    ("v1", "Namespace"),
    ("v1", "ServiceAccount"),
    ("v1", "ConfigMap"),
    ("apps/v1", "Deployment"),
    ("rbac.authorization.k8s.io/v1", "Role"),
    ("rbac.authorization.k8s.io/v1", "RoleBinding"),
    ("apiextensions.k8s.io/v1", "CustomResourceDefinition"),
}


class FakeClock:
    """Monotonic clock advanced only by sleep(), with scheduled callbacks."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.start = start
        self.sleeps: list[float] = []
        self._events: list[tuple[float, Callable[[], None]]] = []

    def __call__(self) -> float:
        return self.now

    def at(self, offset: float, action: Callable[[], None]) -> None:
        """Run ``action`` once the clock reaches start + offset."""
        self._events.append((self.start + offset, action))
        self._events.sort(key=lambda event: event[0])

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        while self._events and self._events[0][0] <= self.now:
            _, action = self._events.pop(0)
            action()


class FakeClusterClient:
    """In-memory ClusterClient recording every call."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str | None, str], Manifest] = {}
        self.calls: list[tuple[str, str]] = []
        self.mapped: set[tuple[str, str]] = set(CORE_KINDS)
        self.create_errors: dict[str, Exception] = {}
        self.delete_errors: dict[str, Exception] = {}
        self.linger: dict[str, int] = {}
        self.deleting: set[str] = set()
        self.version: str | None = "v1.29.0"

    @staticmethod
    def _key(handle: ResourceHandle) -> tuple[str, str, str | None, str]:
        return (handle.api_version, handle.kind, handle.namespace, handle.name)

    def _check_mapped(self, api_version: str, kind: str) -> None:
        if (api_version, kind) not in self.mapped:
            raise KindNotRegisteredError(api_version, kind)

    def calls_of(self, operation: str) -> list[str]:
        return [target for op, target in self.calls if op == operation]

    def put(self, obj: Manifest) -> None:
        """Store an object without recording a call."""
        self.objects[self._key(ResourceHandle.from_object(obj))] = copy.deepcopy(obj)

    def remove(self, handle: ResourceHandle) -> None:
        """Delete out of band, without recording a call."""
        self.objects.pop(self._key(handle), None)

    def create(self, obj: Manifest) -> Manifest:
        handle = ResourceHandle.from_object(obj)
        self._check_mapped(handle.api_version, handle.kind)
        self.calls.append(("create", str(handle)))
        if str(handle) in self.create_errors:
            raise self.create_errors[str(handle)]
        if self._key(handle) in self.objects:
            raise CreationError(str(handle), "AlreadyExists", already_exists=True)
        self.put(obj)
        return copy.deepcopy(obj)

    def get(self, handle: ResourceHandle) -> Manifest:
        self._check_mapped(handle.api_version, handle.kind)
        self.calls.append(("get", str(handle)))
        if str(handle) in self.deleting:
            self.linger[str(handle)] -= 1
            if self.linger[str(handle)] <= 0:
                self.deleting.discard(str(handle))
                del self.objects[self._key(handle)]
        try:
            return copy.deepcopy(self.objects[self._key(handle)])
        except KeyError:
            raise ObjectNotFoundError(str(handle)) from None

    def update(self, obj: Manifest) -> Manifest:
        handle = ResourceHandle.from_object(obj)
        self.calls.append(("update", str(handle)))
        if self._key(handle) not in self.objects:
            raise ObjectNotFoundError(str(handle))
        self.put(obj)
        return copy.deepcopy(obj)

    def delete(self, handle: ResourceHandle, grace_period_seconds: int | None = None) -> None:
        self._check_mapped(handle.api_version, handle.kind)
        self.calls.append(("delete", str(handle)))
        if str(handle) in self.delete_errors:
            raise self.delete_errors[str(handle)]
        if self._key(handle) not in self.objects:
            raise ObjectNotFoundError(str(handle))
        if self.linger.get(str(handle), 0):
            # Finalizers: the object stays visible for linger[handle] - 1 more reads
            self.deleting.add(str(handle))
            return
        del self.objects[self._key(handle)]

    def list(self, api_version: str, kind: str, namespace: str | None = None) -> list[Manifest]:
        self._check_mapped(api_version, kind)
        self.calls.append(("list", kind))
        return [
            copy.deepcopy(obj)
            for (av, k, ns, _), obj in self.objects.items()
            if av == api_version and k == kind and (namespace is None or ns == namespace)
        ]

    def is_namespaced(self, api_version: str, kind: str) -> bool:
        self._check_mapped(api_version, kind)
        return kind not in CLUSTER_SCOPED

    def has_rest_mapping(self, api_version: str, kind: str) -> bool:
        self.calls.append(("discover", f"{api_version}/{kind}"))
        return (api_version, kind) in self.mapped

    def server_version(self) -> str:
        if self.version is None:
            raise ClusterAPIError("version", status=503, reason="Service Unavailable")
        return self.version


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(clock: FakeClock) -> PollWaiter:
    return PollWaiter(clock=clock, sleep=clock.sleep)


@pytest.fixture
def fake_client() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def make_framework(
    fake_client: FakeClusterClient,
    waiter: PollWaiter,
) -> Callable[..., Framework]:
    """Factory fixture: Framework over the fake client with option overrides."""

    def _make(**overrides: Any) -> Framework:
        options = FrameworkOptions(**overrides)
        return Framework(
            options,
            fake_client,
            waiter=waiter,
            namespaces=NamespaceAllocator(clock=lambda: 1700000000.0),
        )

    return _make


@pytest.fixture
def framework(make_framework: Callable[..., Framework]) -> Framework:
    return make_framework()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Undo structlog configuration done by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep KUBE_E2E_* variables from the developer's shell out of unit tests."""
    import os

    for key in list(os.environ):
        if key.startswith("KUBE_E2E_"):
            monkeypatch.delenv(key)


@pytest.fixture
def make_config_map() -> Callable[..., Manifest]:
    """Factory for minimal ConfigMap manifests."""

    def _make(name: str, namespace: str | None = None) -> Manifest:
        metadata: dict[str, Any] = {"name": name}
        if namespace:
            metadata["namespace"] = namespace
        return {"apiVersion": "v1", "kind": "ConfigMap", "metadata": metadata, "data": {"k": "v"}}

    return _make
