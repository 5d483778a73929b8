"""Waits for workloads to become ready and objects to disappear.

Functions:
    wait_for_deployment: Poll a Deployment until its ready replicas match
    wait_for_operator_deployment: Same, skipped when the operator runs locally
    wait_for_deletion: Poll until an object is gone

Example:
    wait_for_operator_deployment(framework, namespace, "memcached-operator", 1,
                                 timeout=60.0, retry_interval=1.0)
    wait_for_deployment(framework, namespace, "example-memcached", 3,
                        timeout=60.0, retry_interval=1.0)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from kube_e2e.client import ResourceHandle
from kube_e2e.errors import DeploymentNotReadyError, ObjectNotFoundError, PollingTimeoutError

if TYPE_CHECKING:
    from kube_e2e.framework import Framework

logger = structlog.get_logger(__name__)


def wait_for_deployment(
    framework: Framework,
    namespace: str,
    name: str,
    replicas: int,
    timeout: float,
    retry_interval: float,
) -> None:
    """Wait until a Deployment reports exactly ``replicas`` ready replicas.

    Args:
        framework: Framework providing the client and waiter.
        namespace: Deployment namespace.
        name: Deployment name.
        replicas: Expected ``status.readyReplicas``.
        timeout: Maximum wait time in seconds.
        retry_interval: Poll interval in seconds.

    Raises:
        DeploymentNotReadyError: The deployment was seen but never reached
            the expected count.
        ObjectNotFoundError: The deployment never appeared.
    """
    handle = ResourceHandle(api_version="apps/v1", kind="Deployment", name=name, namespace=namespace)
    observed: list[int] = []

    def ready() -> bool:
        deployment = framework.client.get(handle)
        count = int((deployment.get("status") or {}).get("readyReplicas") or 0)
        observed.append(count)
        if count == replicas:
            return True
        logger.debug(
            "readiness.waiting",
            deployment=f"{namespace}/{name}",
            ready=count,
            expected=replicas,
        )
        return False

    try:
        framework.waiter.wait_for(
            ready,
            timeout,
            retry_interval,
            description=f"deployment {namespace}/{name}",
        )
    except PollingTimeoutError as e:
        if not observed:
            raise ObjectNotFoundError(str(handle), f"not seen within {timeout:.1f}s") from e
        raise DeploymentNotReadyError(
            namespace,
            name,
            expected=replicas,
            ready=observed[-1],
            timeout=timeout,
        ) from e

    logger.info("readiness.deployment_ready", deployment=f"{namespace}/{name}", replicas=replicas)


def wait_for_operator_deployment(
    framework: Framework,
    namespace: str,
    name: str,
    replicas: int,
    timeout: float,
    retry_interval: float,
) -> None:
    """Wait for the operator's own Deployment.

    Returns immediately, without reading the cluster, in local-run mode: the
    operator is then a local process, not a cluster workload.
    """
    if framework.local_run:
        logger.info("readiness.operator_local", deployment=f"{namespace}/{name}")
        return
    wait_for_deployment(framework, namespace, name, replicas, timeout, retry_interval)


def wait_for_deletion(
    framework: Framework,
    handle: ResourceHandle,
    timeout: float,
    retry_interval: float,
) -> None:
    """Wait until ``handle`` no longer exists.

    Raises:
        PollingTimeoutError: If the object still exists at the deadline.
    """

    def gone() -> bool:
        try:
            framework.client.get(handle)
        except ObjectNotFoundError:
            return True
        return False

    framework.waiter.wait_for(gone, timeout, retry_interval, description=f"deletion of {handle}")


__all__ = [
    "wait_for_deletion",
    "wait_for_deployment",
    "wait_for_operator_deployment",
]
