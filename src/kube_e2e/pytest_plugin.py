"""pytest plugin: process bootstrap and per-test contexts.

Registered through the ``pytest11`` entry point, so installing kube-e2e
makes these fixtures available to any test suite:

    kube_framework: Session-scoped Framework. Built once, before the first
        test that needs it; global manifest objects are created through a
        suite-level ``main`` context and left in the cluster unless
        ``--teardown-global`` is given.
    kube_context: Per-test TestContext whose cleanup always runs at
        teardown. A failed test marks the context failed, so
        ``--skip-cleanup-on-error`` leaves its namespace behind.
    kube_operator_context: kube_context with the namespaced manifest
        already applied (unless ``--no-setup``).

Example:
    def test_memcached_scale(kube_operator_context, kube_framework) -> None:
        ctx = kube_operator_context
        ctx.create(memcached(size=3), CleanupOptions(timeout=30.0, retry_interval=1.0))
        wait_for_deployment(kube_framework, ctx.get_namespace(), "example-memcached", 3,
                            timeout=60.0, retry_interval=1.0)
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import structlog

from kube_e2e.config import CleanupOptions
from kube_e2e.context import TestContext
from kube_e2e.errors import CleanupError, KubeE2EError
from kube_e2e.framework import ClientFactory, Framework, bootstrap
from kube_e2e.logging import LOG_LEVELS, configure_logging
from kube_e2e.namespaces import SUITE_PREFIX

logger = structlog.get_logger(__name__)

# Command line flag -> FrameworkOptions field
_FLAG_FIELDS = {
    "kube_kubeconfig": "kubeconfig",
    "kube_context_name": "context",
    "kube_namespace": "namespace",
    "kube_local_run": "local_run",
    "kube_no_setup": "no_setup",
    "kube_skip_cleanup_on_error": "skip_cleanup_on_error",
    "kube_cleanup_fail_fast": "cleanup_fail_fast",
    "kube_teardown_global": "teardown_global",
    "kube_image": "image",
    "kube_global_manifest": "global_manifest_path",
    "kube_namespaced_manifest": "namespaced_manifest_path",
}


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register kube-e2e command line options."""
    group = parser.getgroup("kube-e2e", "Kubernetes operator end-to-end tests")
    group.addoption("--kubeconfig", dest="kube_kubeconfig", default=None, help="Path to kubeconfig file.")
    group.addoption("--kube-context", dest="kube_context_name", default=None, help="Kubeconfig context.")
    group.addoption(
        "--namespace",
        dest="kube_namespace",
        default=None,
        help="Run every test in this existing namespace instead of generating one.",
    )
    group.addoption(
        "--local-run",
        dest="kube_local_run",
        action="store_true",
        default=None,
        help="Operator runs outside the cluster; skip its deployment.",
    )
    group.addoption(
        "--no-setup",
        dest="kube_no_setup",
        action="store_true",
        default=None,
        help="Skip automatic creation of manifest resources.",
    )
    group.addoption(
        "--skip-cleanup-on-error",
        dest="kube_skip_cleanup_on_error",
        action="store_true",
        default=None,
        help="Leave resources of failing tests in the cluster.",
    )
    group.addoption(
        "--cleanup-fail-fast",
        dest="kube_cleanup_fail_fast",
        action="store_true",
        default=None,
        help="Stop cleanup at the first failing action.",
    )
    group.addoption(
        "--teardown-global",
        dest="kube_teardown_global",
        action="store_true",
        default=None,
        help="Delete global manifest objects this run created when the session ends.",
    )
    group.addoption("--operator-image", dest="kube_image", default=None, help="Operator image override.")
    group.addoption(
        "--global-manifest",
        dest="kube_global_manifest",
        type=Path,
        default=None,
        help="Manifest of cluster-scoped resources (CRDs).",
    )
    group.addoption(
        "--namespaced-manifest",
        dest="kube_namespaced_manifest",
        type=Path,
        default=None,
        help="Manifest of per-namespace resources.",
    )
    group.addoption(
        "--kube-e2e-log-level",
        dest="kube_log_level",
        default=None,
        choices=LOG_LEVELS,
        help="Configure kube-e2e structured logging at this level.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register markers and configure logging."""
    config.addinivalue_line(
        "markers",
        "integration: Integration tests requiring a Kubernetes cluster",
    )
    level = config.getoption("kube_log_level", default=None)
    if level:
        configure_logging(level)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[Any]) -> Generator[None, Any, None]:
    """Expose each phase's report on the item for fixture teardown."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"kube_rep_{report.when}", report)


def options_from_config(config: pytest.Config) -> dict[str, Any]:
    """Collect FrameworkOptions overrides from command line flags."""
    return {field: config.getoption(dest, default=None) for dest, field in _FLAG_FIELDS.items()}


def global_cleanup_options(framework: Framework) -> CleanupOptions | None:
    """Cleanup policy for global manifest objects; None leaves them in place.

    Only an explicit ``--teardown-global`` deletes them, and never from a
    pytest-xdist worker.
    """
    options = framework.options
    if not options.teardown_global:
        return None
    worker = os.environ.get("PYTEST_XDIST_WORKER")
    if worker:
        logger.warning("plugin.global_teardown_disabled", worker=worker)
        return None
    return CleanupOptions(timeout=options.default_timeout, retry_interval=options.default_retry_interval)


@pytest.fixture(scope="session")
def kube_client_factory() -> ClientFactory | None:
    """ClientFactory used by kube_framework. Override to inject a client."""
    return None


@pytest.fixture(scope="session")
def kube_framework(
    pytestconfig: pytest.Config,
    kube_client_factory: ClientFactory | None,
) -> Generator[Framework, None, None]:
    """Bootstrap the Framework once for the session.

    Exits the whole run with status 1 if options are inconsistent, the
    cluster is unreachable or the global manifest cannot be applied.
    """
    try:
        framework = bootstrap(kube_client_factory, **options_from_config(pytestconfig))
    except KubeE2EError as e:
        pytest.exit(f"kube-e2e bootstrap failed: {e}", returncode=1)

    suite = framework.new_context(SUITE_PREFIX)
    cleanup = global_cleanup_options(framework)
    try:
        framework.setup_global_resources(suite, cleanup)
    except KubeE2EError as e:
        suite.mark_failed()
        try:
            suite.cleanup()
        except CleanupError as cleanup_error:
            logger.error("plugin.global_cleanup_failed", error=str(cleanup_error))
        pytest.exit(f"kube-e2e global setup failed: {e}", returncode=1)

    yield framework

    suite.cleanup()


@pytest.fixture
def kube_context(request: pytest.FixtureRequest, kube_framework: Framework) -> Generator[TestContext, None, None]:
    """Per-test context; cleanup runs at teardown whatever the outcome."""
    ctx = kube_framework.new_context(request.node.name)
    yield ctx

    report = getattr(request.node, "kube_rep_call", None)
    if report is None or report.failed:
        ctx.mark_failed()
    ctx.cleanup()


@pytest.fixture
def kube_operator_context(kube_context: TestContext) -> TestContext:
    """kube_context with the namespaced manifest applied."""
    if not kube_context.framework.options.no_setup:
        options = kube_context.framework.options
        kube_context.initialize_cluster_resources(
            CleanupOptions(timeout=options.default_timeout, retry_interval=options.default_retry_interval)
        )
    return kube_context
