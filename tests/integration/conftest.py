"""Integration test configuration.

Integration tests run the kube-e2e fixtures against a real cluster (kind,
k3d or any kubeconfig context). They are deselected by default:

    pytest -m integration --kube-context kind-e2e

The bundled manifests install a ``Widget`` CRD and a pause-image
"operator" deployment, unless KUBE_E2E_* variables point elsewhere.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from kube_e2e.config import CleanupOptions

MANIFESTS = Path(__file__).parent / "manifests"


def pytest_configure(config: pytest.Config) -> None:
    """Point the framework at the bundled manifests."""
    os.environ.setdefault("KUBE_E2E_GLOBAL_MANIFEST_PATH", str(MANIFESTS / "crds.yaml"))
    os.environ.setdefault("KUBE_E2E_NAMESPACED_MANIFEST_PATH", str(MANIFESTS / "namespace-init.yaml"))


@pytest.fixture
def cleanup_options() -> CleanupOptions:
    """Delete and wait up to a minute for each object to disappear."""
    return CleanupOptions(timeout=60.0, retry_interval=1.0)
