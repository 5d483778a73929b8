"""kube-e2e: End-to-end test harness for Kubernetes operators.

Creates the objects a test declares, waits for the cluster to act on them,
and guarantees that everything created is torn down afterward.

Components:
    Framework: Process-wide cluster connection and run options
    TestContext: Per-test namespace and LIFO cleanup stack
    SchemeRegistry / KindDescriptor: Custom kinds that must be served
    PollWaiter / wait_for: Deadline-bounded polling
    wait_for_deployment / wait_for_operator_deployment: Readiness waits

Example:
    >>> from kube_e2e import CleanupOptions, bootstrap
    >>> framework = bootstrap()
    >>> with framework.new_context("test_memcached") as ctx:
    ...     ctx.initialize_cluster_resources(CleanupOptions(timeout=30.0, retry_interval=1.0))
"""

from __future__ import annotations

from typing import Any

__version__ = "0.1.0"

_EXPORTS = {
    "CleanupAction": "kube_e2e.cleanup",
    "CleanupStack": "kube_e2e.cleanup",
    "CleanupOptions": "kube_e2e.config",
    "FrameworkOptions": "kube_e2e.config",
    "PollingConfig": "kube_e2e.config",
    "TestContext": "kube_e2e.context",
    "Framework": "kube_e2e.framework",
    "bootstrap": "kube_e2e.framework",
    "KindDescriptor": "kube_e2e.scheme",
    "SchemeRegistry": "kube_e2e.scheme",
    "PollWaiter": "kube_e2e.polling",
    "wait_for": "kube_e2e.polling",
    "ResourceHandle": "kube_e2e.client",
    "ResourceInitializer": "kube_e2e.resources",
    "wait_for_deletion": "kube_e2e.readiness",
    "wait_for_deployment": "kube_e2e.readiness",
    "wait_for_operator_deployment": "kube_e2e.readiness",
}

__all__ = sorted(_EXPORTS)


# Lazy imports keep `import kube_e2e` cheap and avoid import cycles
def __getattr__(name: str) -> Any:
    """Lazy import of public components."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    import importlib

    return getattr(importlib.import_module(module_name), name)
