"""Per-test context: namespace, tracked resources, guaranteed teardown.

A TestContext pairs one test with one namespace and one CleanupStack. Every
object created through it with CleanupOptions gets exactly one cleanup
action, and using the context as a ``with`` block guarantees the stack is
unwound on every exit path of the test body.

Example:
    from kube_e2e.config import CleanupOptions

    cleanup = CleanupOptions(timeout=30.0, retry_interval=1.0)
    with framework.new_context("test_memcached_scale") as ctx:
        ctx.initialize_cluster_resources(cleanup)
        ctx.create(memcached_manifest, cleanup)
        wait_for_deployment(framework, ctx.get_namespace(), "example-memcached", 3,
                            timeout=60.0, retry_interval=1.0)
"""

from __future__ import annotations

import copy
from types import TracebackType
from typing import TYPE_CHECKING

import structlog

from kube_e2e.cleanup import CleanupAction, CleanupReport, CleanupStack
from kube_e2e.client import ClusterClient, Manifest, ResourceHandle, ignore_not_found
from kube_e2e.config import CleanupOptions
from kube_e2e.errors import CleanupError, ObjectNotFoundError
from kube_e2e.namespaces import SUITE_PREFIX

if TYPE_CHECKING:
    from collections.abc import Callable

    from kube_e2e.framework import Framework

logger = structlog.get_logger(__name__)


class TestContext:
    """Resources and cleanup obligations of one test.

    Not safe for concurrent use: a context belongs to the unit of work that
    created it.

    Attributes:
        framework: The shared Framework.
        test_id: Identifier of the owning test.
        id: Namespace name for this context (generated or pinned).
    """

    # Not a test class, despite the name
    __test__ = False

    def __init__(self, framework: Framework, test_id: str = SUITE_PREFIX) -> None:
        self.framework = framework
        self.test_id = test_id
        self._pinned = framework.options.namespace is not None
        self.id = framework.options.namespace or framework.namespaces.allocate(test_id)
        self._namespace: str | None = None
        self._stack = CleanupStack()
        self._failed = False
        logger.debug("context.created", test_id=test_id, namespace=self.id)

    @property
    def client(self) -> ClusterClient:
        return self.framework.client

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def pending_cleanups(self) -> int:
        return len(self._stack)

    def mark_failed(self) -> None:
        """Record that the owning test failed."""
        self._failed = True

    def get_namespace(self, cleanup: CleanupOptions | None = None) -> str:
        """Return the context namespace, creating it on first use.

        A pinned namespace is assumed to exist already and is never deleted.
        A generated namespace is created here and deleted (grace period 0)
        as the last step of cleanup.

        Args:
            cleanup: Deletion confirmation timeout and interval for the
                namespace, used only by the call that creates it. None
                deletes without waiting.

        Raises:
            CreationError: If the namespace cannot be created, including
                when it already exists.
        """
        if self._namespace is not None:
            return self._namespace

        if self._pinned:
            self._namespace = self.id
            return self._namespace

        handle = ResourceHandle(api_version="v1", kind="Namespace", name=self.id)
        self.client.create({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": self.id}})
        self._namespace = self.id
        namespace_cleanup = CleanupOptions()
        if cleanup is not None:
            namespace_cleanup = CleanupOptions(timeout=cleanup.timeout, retry_interval=cleanup.retry_interval)
        self._stack.push(self._delete_action(handle, namespace_cleanup, grace_period_seconds=0))
        logger.info("context.namespace_created", namespace=self.id, test_id=self.test_id)
        return self._namespace

    def create(self, obj: Manifest, cleanup: CleanupOptions | None = None) -> Manifest:
        """Create an object and, if requested, register its cleanup.

        Namespaced objects without ``metadata.namespace`` are placed in the
        context namespace. The caller's dictionary is not modified.

        Args:
            obj: Manifest dictionary.
            cleanup: None registers no cleanup. Otherwise exactly one
                cleanup action is registered, polling for confirmed deletion
                when ``cleanup.timeout`` is positive.

        Returns:
            The object as returned by the API server.

        Raises:
            CreationError: If the cluster rejects the object. No cleanup is
                registered in that case.
        """
        body = copy.deepcopy(obj)
        metadata = body.setdefault("metadata", {})
        if not metadata.get("namespace") and self.client.is_namespaced(body["apiVersion"], body["kind"]):
            metadata["namespace"] = self.get_namespace(cleanup)

        handle = ResourceHandle.from_object(body)
        created = self.client.create(body)
        logger.debug("context.created_object", resource=str(handle))

        if cleanup is not None:
            self._stack.push(self._delete_action(handle, cleanup))
        return created

    def _delete_action(
        self,
        handle: ResourceHandle,
        cleanup: CleanupOptions,
        grace_period_seconds: int | None = None,
    ) -> CleanupAction:
        client = self.client

        def undo() -> None:
            if grace_period_seconds is None:
                ignore_not_found(lambda: client.delete(handle))
            else:
                ignore_not_found(lambda: client.delete(handle, grace_period_seconds=grace_period_seconds))

        def gone() -> bool:
            try:
                client.get(handle)
            except ObjectNotFoundError:
                return True
            return False

        return CleanupAction(
            undo=undo,
            description=str(handle),
            handle=handle,
            timeout=cleanup.timeout,
            retry_interval=cleanup.retry_interval,
            best_effort=cleanup.best_effort,
            confirm=gone,
        )

    def add_cleanup(
        self,
        undo: Callable[[], None],
        description: str = "custom cleanup",
        *,
        best_effort: bool = False,
    ) -> None:
        """Register an arbitrary undo operation on the cleanup stack."""
        self._stack.push(CleanupAction(undo=undo, description=description, best_effort=best_effort))

    def initialize_cluster_resources(self, cleanup: CleanupOptions | None = None) -> None:
        """Create the namespaced bootstrap objects for this context.

        See ResourceInitializer.initialize_cluster_resources.
        """
        from kube_e2e.resources import ResourceInitializer

        ResourceInitializer(self).initialize_cluster_resources(cleanup)

    def cleanup(self) -> CleanupReport | None:
        """Unwind the cleanup stack.

        When the test failed and ``skip_cleanup_on_error`` is set, nothing is
        deleted and the namespace name is logged so it can be found later.

        Returns:
            The CleanupReport, or None when cleanup was skipped.

        Raises:
            CleanupError: After every action was attempted (or, with
                ``cleanup_fail_fast``, after the first failure), if any
                action failed.
        """
        options = self.framework.options
        if self._failed and options.skip_cleanup_on_error:
            logger.warning(
                "context.cleanup_skipped",
                namespace=self.id,
                test_id=self.test_id,
                pending=len(self._stack),
            )
            return None

        report = self._stack.unwind(self.framework.waiter, fail_fast=options.cleanup_fail_fast)
        logger.debug("context.cleaned_up", namespace=self.id, actions=len(report.attempted))
        return report

    def __enter__(self) -> TestContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.mark_failed()
        try:
            self.cleanup()
        except CleanupError as e:
            if exc is None:
                raise
            # Keep the test's own exception; report the cleanup failure
            logger.error("context.cleanup_failed", namespace=self.id, error=str(e))


__all__ = ["TestContext"]
