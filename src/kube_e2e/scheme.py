"""Registry of custom resource kinds known to the test run.

Registering a kind records it locally and then waits until the API server
actually serves it. A CRD that was never installed surfaces here as a
SchemeRegistrationTimeoutError instead of a confusing failure on first use.

Example:
    >>> memcached = KindDescriptor(group="cache.example.com", version="v1alpha1",
    ...                            kind="Memcached")
    >>> framework.scheme.register(memcached)
    >>> framework.scheme.is_registered("cache.example.com/v1alpha1", "Memcached")
    True
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

import structlog
from pydantic import BaseModel, ConfigDict, Field

from kube_e2e.client import ClusterClient
from kube_e2e.errors import PollingTimeoutError, SchemeRegistrationTimeoutError
from kube_e2e.polling import PollWaiter

logger = structlog.get_logger(__name__)

# REST mapping discovery budget
DEFAULT_REGISTRATION_TIMEOUT = 5.0
DEFAULT_REGISTRATION_INTERVAL = 0.5


class KindDescriptor(BaseModel):
    """Type metadata for one resource kind.

    Attributes:
        group: API group; empty for the core group.
        version: API version, e.g. "v1alpha1".
        kind: Kind name, e.g. "Memcached".
        list_kind: List kind name; defaults to ``<kind>List``.
        namespaced: Whether objects of this kind live in a namespace.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    group: str = ""
    version: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    list_kind: str | None = None
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        """apiVersion string as written in manifests."""
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def effective_list_kind(self) -> str:
        return self.list_kind or f"{self.kind}List"

    @property
    def key(self) -> tuple[str, str]:
        return (self.api_version, self.kind)


class _PendingRegistration:
    """A registration whose REST-mapping poll is still running."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.error: BaseException | None = None


class SchemeRegistry:
    """Process-wide table of registered kinds.

    Safe to share between threads. Registration is idempotent per
    (apiVersion, kind). A kind appears in the table only once the API
    server serves it; concurrent registrations of the same kind share one
    discovery poll and its outcome.

    Args:
        client: Cluster client used for REST mapping lookups.
        waiter: PollWaiter used for the discovery poll.
        timeout: How long to wait for the REST mapping.
        retry_interval: Poll interval for the REST mapping.
    """

    def __init__(
        self,
        client: ClusterClient,
        waiter: PollWaiter | None = None,
        *,
        timeout: float = DEFAULT_REGISTRATION_TIMEOUT,
        retry_interval: float = DEFAULT_REGISTRATION_INTERVAL,
    ) -> None:
        self._client = client
        self._waiter = waiter or PollWaiter()
        self._timeout = timeout
        self._retry_interval = retry_interval
        self._kinds: dict[tuple[str, str], KindDescriptor] = {}
        self._pending: dict[tuple[str, str], _PendingRegistration] = {}
        self._lock = threading.Lock()

    def register(
        self,
        descriptor: KindDescriptor,
        list_descriptor: KindDescriptor | None = None,
    ) -> None:
        """Register a kind and wait until the API server serves it.

        A caller that registers a kind while another thread is already
        polling for it waits for that poll and gets the same result.

        Args:
            descriptor: The kind to register.
            list_descriptor: Optional descriptor of the list kind; only its
                kind name is used.

        Raises:
            SchemeRegistrationTimeoutError: If no REST mapping appears
                within the registration timeout.
        """
        if list_descriptor is not None and descriptor.list_kind is None:
            descriptor = descriptor.model_copy(update={"list_kind": list_descriptor.kind})

        key = descriptor.key
        with self._lock:
            if key in self._kinds:
                logger.debug("scheme.already_registered", kind=descriptor.kind)
                return
            pending = self._pending.get(key)
            owner = pending is None
            if pending is None:
                pending = _PendingRegistration()
                self._pending[key] = pending

        if not owner:
            logger.debug("scheme.registration_in_progress", kind=descriptor.kind)
            pending.done.wait()
            if pending.error is not None:
                raise pending.error
            return

        try:
            self._waiter.wait_for(
                lambda: self._client.has_rest_mapping(descriptor.api_version, descriptor.kind),
                self._timeout,
                self._retry_interval,
                description=f"REST mapping for {descriptor.kind}",
            )
        except PollingTimeoutError as e:
            logger.error(
                "scheme.registration_timeout",
                api_version=descriptor.api_version,
                kind=descriptor.kind,
                timeout=self._timeout,
            )
            error = SchemeRegistrationTimeoutError(
                descriptor.api_version,
                descriptor.kind,
                self._timeout,
            )
            self._finish(key, pending, error)
            raise error from e
        except BaseException as e:
            self._finish(key, pending, e)
            raise

        with self._lock:
            self._kinds[key] = descriptor
        self._finish(key, pending, None)
        logger.info(
            "scheme.registered",
            api_version=descriptor.api_version,
            kind=descriptor.kind,
        )

    def _finish(
        self,
        key: tuple[str, str],
        pending: _PendingRegistration,
        error: BaseException | None,
    ) -> None:
        with self._lock:
            self._pending.pop(key, None)
        pending.error = error
        pending.done.set()

    def is_registered(self, api_version: str, kind: str) -> bool:
        with self._lock:
            return (api_version, kind) in self._kinds

    def get(self, api_version: str, kind: str) -> KindDescriptor:
        """Look up a registered kind.

        Raises:
            KeyError: If the kind was never registered.
        """
        with self._lock:
            return self._kinds[(api_version, kind)]

    def __iter__(self) -> Iterator[KindDescriptor]:
        with self._lock:
            return iter(list(self._kinds.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._kinds)


__all__ = [
    "DEFAULT_REGISTRATION_INTERVAL",
    "DEFAULT_REGISTRATION_TIMEOUT",
    "KindDescriptor",
    "SchemeRegistry",
]
