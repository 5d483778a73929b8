"""CLI utility functions and error handling.

Shared helpers for the kube-e2e CLI: exit codes, stderr/stdout output and
cluster client setup.

Example:
    from kube_e2e.cli.utils import error_exit, ExitCode

    error_exit("Cluster unreachable", exit_code=ExitCode.NETWORK_ERROR)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

from kube_e2e.client import ClusterClient, KubernetesClusterClient
from kube_e2e.errors import ClusterConnectionError

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for CLI commands."""

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, missing required options)."""

    NETWORK_ERROR = 8
    """Cluster unreachable."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Delete failed", namespace="main-1700000000")
        # Output: Error: Delete failed (namespace=main-1700000000)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(exit_code)


def info(message: str) -> None:
    """Print an informational message to stderr."""
    click.echo(message, err=True)


def success(message: str) -> None:
    """Print a result line to stdout."""
    click.echo(message)


def connect(kubeconfig: str | None, context: str | None) -> ClusterClient:
    """Build a cluster client or exit with NETWORK_ERROR."""
    try:
        return KubernetesClusterClient.from_kubeconfig(kubeconfig=kubeconfig, context=context)
    except ClusterConnectionError as e:
        error_exit(str(e), exit_code=ExitCode.NETWORK_ERROR)


__all__ = [
    "ExitCode",
    "connect",
    "error",
    "error_exit",
    "info",
    "success",
]
