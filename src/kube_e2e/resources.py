"""Bootstrap of operator resources from manifests.

Two manifests drive the bootstrap:

- the global manifest holds cluster-scoped objects (CRDs) shared by every
  test and created once per run;
- the namespaced manifest holds per-test objects (service account, role,
  role binding, operator deployment) created in each context namespace.

Functions:
    parse_manifest: Split multi-document YAML into manifest dictionaries
    load_manifest: Read and parse a manifest file
    set_container_image: Point a workload's containers at another image

Classes:
    ResourceInitializer: Creates bootstrap objects through a TestContext
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml

from kube_e2e.client import Manifest
from kube_e2e.errors import ConfigurationError, CreationError, KindNotRegisteredError, PollingTimeoutError

if TYPE_CHECKING:
    from kube_e2e.config import CleanupOptions
    from kube_e2e.context import TestContext

logger = structlog.get_logger(__name__)

# Workloads that run the operator in the cluster; skipped in local-run mode
WORKLOAD_KINDS = frozenset({"Deployment", "StatefulSet", "DaemonSet", "Pod"})

# Budget for a freshly installed CRD to show up in discovery
MAPPING_WAIT_TIMEOUT = 10.0
MAPPING_WAIT_INTERVAL = 1.0


def parse_manifest(text: str, source: str = "<string>") -> list[Manifest]:
    """Parse multi-document YAML into manifest dictionaries.

    Empty documents are skipped.

    Args:
        text: YAML text, documents separated by ``---``.
        source: Name used in error messages.

    Returns:
        Manifest dictionaries in document order.

    Raises:
        ConfigurationError: If YAML is invalid or a document is not an
            object with apiVersion, kind and metadata.name.
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {source}: {e}") from e

    objects: list[Manifest] = []
    for index, doc in enumerate(documents):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ConfigurationError(f"Document {index} in {source} is not a mapping")
        missing = [key for key in ("apiVersion", "kind") if not doc.get(key)]
        if not (doc.get("metadata") or {}).get("name"):
            missing.append("metadata.name")
        if missing:
            raise ConfigurationError(
                f"Document {index} in {source} is missing {', '.join(missing)}"
            )
        objects.append(doc)
    return objects


def load_manifest(path: Path) -> list[Manifest]:
    """Read and parse a manifest file.

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read manifest {path}: {e}") from e
    return parse_manifest(text, source=str(path))


def set_container_image(obj: Manifest, image: str) -> None:
    """Replace the image of every container in a workload's pod template."""
    spec: dict[str, Any] = obj.get("spec") or {}
    pod_spec = (spec.get("template") or {}).get("spec") if obj.get("kind") != "Pod" else spec
    for container in (pod_spec or {}).get("containers") or []:
        container["image"] = image


class ResourceInitializer:
    """Creates the standard bootstrap objects, tracked by a TestContext.

    Args:
        context: Context whose namespace and cleanup stack are used.
    """

    def __init__(self, context: TestContext) -> None:
        self._context = context
        self._options = context.framework.options

    def initialize_cluster_resources(self, cleanup: CleanupOptions | None = None) -> None:
        """Create the namespaced manifest's objects in the context namespace.

        Ensures the namespace exists, then creates each object in manifest
        order. In local-run mode workloads are skipped because the operator
        runs outside the cluster. When ``image`` is set, workloads use it.

        Args:
            cleanup: Cleanup policy for each created object (None registers
                no cleanup).

        Raises:
            ConfigurationError: If the manifest cannot be read.
            CreationError: If any object is rejected.
        """
        path = self._options.namespaced_manifest_path
        objects = load_manifest(path)
        namespace = self._context.get_namespace(cleanup)

        created = 0
        for obj in objects:
            kind = obj["kind"]
            if kind in WORKLOAD_KINDS and self._options.local_run:
                logger.info(
                    "resources.workload_skipped",
                    kind=kind,
                    name=obj["metadata"]["name"],
                    reason="local_run",
                )
                continue
            obj["metadata"]["namespace"] = namespace
            if kind in WORKLOAD_KINDS and self._options.image:
                set_container_image(obj, self._options.image)
            self._create(obj, cleanup)
            created += 1

        logger.info(
            "resources.namespaced_initialized",
            namespace=namespace,
            manifest=str(path),
            created=created,
        )

    def create_global_resources(self, cleanup: CleanupOptions | None = None) -> None:
        """Create the global manifest's cluster-scoped objects.

        Objects that already exist are left alone and get no cleanup, so a
        run never deletes CRDs it did not create.
        """
        path = self._options.global_manifest_path
        created = 0
        for obj in load_manifest(path):
            try:
                self._create(obj, cleanup)
            except CreationError as e:
                if not e.already_exists:
                    raise
                logger.info("resources.already_exists", resource=e.resource)
                continue
            created += 1
        logger.info("resources.global_initialized", manifest=str(path), created=created)

    def _create(self, obj: Manifest, cleanup: CleanupOptions | None) -> None:
        try:
            self._context.create(obj, cleanup)
        except KindNotRegisteredError:
            # Kind of a CRD created moments ago: wait for discovery, retry once
            self._wait_for_mapping(obj)
            self._context.create(obj, cleanup)

    def _wait_for_mapping(self, obj: Manifest) -> None:
        client = self._context.client
        try:
            self._context.framework.waiter.wait_for(
                lambda: client.has_rest_mapping(obj["apiVersion"], obj["kind"]),
                MAPPING_WAIT_TIMEOUT,
                MAPPING_WAIT_INTERVAL,
                description=f"REST mapping for {obj['kind']}",
            )
        except PollingTimeoutError:
            # The retried create reports the clearer error
            logger.warning("resources.mapping_wait_timeout", kind=obj["kind"])


__all__ = [
    "WORKLOAD_KINDS",
    "ResourceInitializer",
    "load_manifest",
    "parse_manifest",
    "set_container_image",
]
