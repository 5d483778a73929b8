"""Process-wide framework state for a test run.

The Framework is built exactly once per test process, before any test runs,
and handed by reference to every TestContext. It holds the cluster client,
the scheme registry, the namespace allocator and the frozen run options; none
of these can be replaced after construction.

Example:
    from kube_e2e.framework import bootstrap

    framework = bootstrap(namespace="operator-e2e", local_run=True)
    with framework.new_context("test_memcached") as ctx:
        ctx.initialize_cluster_resources(CleanupOptions(timeout=30.0, retry_interval=1.0))
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from kube_e2e.client import ClusterClient, KubernetesClusterClient
from kube_e2e.config import FrameworkOptions, load_options
from kube_e2e.errors import ClusterAPIError, ClusterConnectionError
from kube_e2e.namespaces import SUITE_PREFIX, NamespaceAllocator
from kube_e2e.polling import PollWaiter
from kube_e2e.scheme import SchemeRegistry

if TYPE_CHECKING:
    from kube_e2e.config import CleanupOptions
    from kube_e2e.context import TestContext

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[FrameworkOptions], ClusterClient]


def _default_client_factory(options: FrameworkOptions) -> ClusterClient:
    return KubernetesClusterClient.from_kubeconfig(
        kubeconfig=options.kubeconfig,
        context=options.context,
    )


class Framework:
    """Read-only cluster connection and run options shared by all tests.

    Attributes:
        options: Frozen run options.
        client: Cluster client.
        scheme: Registry of custom kinds.
        namespaces: Allocator of per-test namespace names.
        waiter: PollWaiter used by contexts and waits.
        server_version: API server version seen at connect time.
    """

    def __init__(
        self,
        options: FrameworkOptions,
        client: ClusterClient,
        *,
        waiter: PollWaiter | None = None,
        namespaces: NamespaceAllocator | None = None,
        server_version: str = "",
    ) -> None:
        self._options = options
        self._client = client
        self._waiter = waiter or PollWaiter()
        self._namespaces = namespaces or NamespaceAllocator()
        self._scheme = SchemeRegistry(client, self._waiter)
        self._server_version = server_version

    @classmethod
    def connect(
        cls,
        options: FrameworkOptions,
        client_factory: ClientFactory | None = None,
        **kwargs: Any,
    ) -> Framework:
        """Build the client from options and verify the cluster answers.

        Args:
            options: Frozen run options.
            client_factory: Builds the ClusterClient; defaults to the
                kubeconfig-based KubernetesClusterClient.
            **kwargs: Passed through to the constructor.

        Raises:
            ClusterConnectionError: If the API server is unreachable.
        """
        factory = client_factory or _default_client_factory
        client = factory(options)
        try:
            version = client.server_version()
        except ClusterAPIError as e:
            raise ClusterConnectionError(reason=str(e)) from e
        logger.info(
            "framework.connected",
            server_version=version,
            namespace=options.namespace,
            local_run=options.local_run,
        )
        return cls(options, client, server_version=version, **kwargs)

    @property
    def options(self) -> FrameworkOptions:
        return self._options

    @property
    def client(self) -> ClusterClient:
        return self._client

    @property
    def scheme(self) -> SchemeRegistry:
        return self._scheme

    @property
    def namespaces(self) -> NamespaceAllocator:
        return self._namespaces

    @property
    def waiter(self) -> PollWaiter:
        return self._waiter

    @property
    def server_version(self) -> str:
        return self._server_version

    @property
    def local_run(self) -> bool:
        return self._options.local_run

    def new_context(self, test_id: str = SUITE_PREFIX) -> TestContext:
        """Create a per-test context.

        Args:
            test_id: Test identifier used as the namespace prefix.
        """
        from kube_e2e.context import TestContext

        return TestContext(self, test_id)

    def setup_global_resources(
        self,
        context: TestContext,
        cleanup: CleanupOptions | None = None,
    ) -> None:
        """Create the cluster-scoped objects of the global manifest once.

        Objects are tracked by ``context`` (normally the suite-level ``main``
        context). With ``cleanup`` set they are removed when that context is
        cleaned up at suite end; with None they stay in the cluster.
        Does nothing when ``no_setup`` is set.
        """
        if self._options.no_setup:
            logger.info("framework.global_setup_skipped")
            return
        from kube_e2e.resources import ResourceInitializer

        ResourceInitializer(context).create_global_resources(cleanup)


def bootstrap(
    client_factory: ClientFactory | None = None,
    **overrides: Any,
) -> Framework:
    """Single entry point for a test process.

    Reads options from the environment plus ``overrides``, validates them
    and connects to the cluster.

    Raises:
        ConfigurationError: If options are invalid or inconsistent.
        ClusterConnectionError: If the cluster is unreachable.
    """
    options = load_options(**overrides)
    return Framework.connect(options, client_factory)


__all__ = [
    "ClientFactory",
    "Framework",
    "bootstrap",
]
