"""Commands for namespaces left behind by test runs.

With ``--skip-cleanup-on-error`` a failing test keeps its namespace for
diagnosis. Generated names follow ``<prefix>-<unixTimestamp>``, so they can
be listed and removed here.

Example:
    $ kube-e2e namespaces list --prefix test-memcached-scale
    $ kube-e2e namespaces delete --prefix test-memcached-scale --yes
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import click

from kube_e2e.cli.utils import ExitCode, connect, error_exit, info, success
from kube_e2e.client import ResourceHandle, ignore_not_found
from kube_e2e.errors import KubeE2EError
from kube_e2e.namespaces import normalize_prefix, parse_namespace

if TYPE_CHECKING:
    from kube_e2e.client import ClusterClient

_kubeconfig_option = click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    default=None,
    envvar="KUBE_E2E_KUBECONFIG",
    help="Path to kubeconfig file.",
    metavar="PATH",
)
_context_option = click.option(
    "--context",
    "kube_context",
    type=str,
    default=None,
    envvar="KUBE_E2E_CONTEXT",
    help="Kubeconfig context.",
)
_prefix_option = click.option(
    "--prefix",
    type=str,
    default=None,
    help="Only namespaces generated for this test id.",
)
_older_than_option = click.option(
    "--older-than",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Only namespaces created at least this many seconds ago.",
)


def find_test_namespaces(
    client: ClusterClient,
    prefix: str | None = None,
    older_than: int = 0,
    now: float | None = None,
) -> list[str]:
    """Return generated test namespace names, oldest first.

    Args:
        client: Cluster client.
        prefix: Test id (normalized like the allocator does) to match.
        older_than: Minimum age in seconds.
        now: Current unix time; defaults to time.time().
    """
    wanted = normalize_prefix(prefix) if prefix else None
    cutoff = (now if now is not None else time.time()) - older_than
    matches: list[tuple[int, str]] = []
    for ns in client.list("v1", "Namespace"):
        name = ns["metadata"]["name"]
        parsed = parse_namespace(name)
        if parsed is None:
            continue
        ns_prefix, timestamp = parsed
        if wanted is not None and ns_prefix != wanted:
            continue
        if timestamp > cutoff:
            continue
        matches.append((timestamp, name))
    return [name for _, name in sorted(matches)]


@click.group(name="namespaces", help="Inspect and remove leftover test namespaces.")
def namespaces() -> None:
    """Namespace command group."""


@namespaces.command(name="list", help="List leftover test namespaces.")
@_prefix_option
@_older_than_option
@_kubeconfig_option
@_context_option
def list_command(
    prefix: str | None,
    older_than: int,
    kubeconfig: str | None,
    kube_context: str | None,
) -> None:
    client = connect(kubeconfig, kube_context)
    try:
        names = find_test_namespaces(client, prefix, older_than)
    except KubeE2EError as e:
        error_exit(f"Listing namespaces failed: {e}", exit_code=ExitCode.GENERAL_ERROR)
    for name in names:
        success(name)
    info(f"{len(names)} test namespace(s) found")


@namespaces.command(name="delete", help="Delete leftover test namespaces.")
@_prefix_option
@_older_than_option
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation.")
@_kubeconfig_option
@_context_option
def delete_command(
    prefix: str | None,
    older_than: int,
    yes: bool,
    kubeconfig: str | None,
    kube_context: str | None,
) -> None:
    client = connect(kubeconfig, kube_context)
    try:
        names = find_test_namespaces(client, prefix, older_than)
    except KubeE2EError as e:
        error_exit(f"Listing namespaces failed: {e}", exit_code=ExitCode.GENERAL_ERROR)

    if not names:
        info("No test namespaces to delete")
        return
    if not yes:
        click.confirm(f"Delete {len(names)} namespace(s)?", abort=True, err=True)

    failed = 0
    for name in names:
        handle = ResourceHandle(api_version="v1", kind="Namespace", name=name)
        try:
            ignore_not_found(lambda: client.delete(handle, grace_period_seconds=0))
        except KubeE2EError as e:
            failed += 1
            info(f"Failed to delete {name}: {e}")
            continue
        success(f"deleted {name}")

    if failed:
        error_exit(f"{failed} namespace(s) could not be deleted", exit_code=ExitCode.GENERAL_ERROR)


__all__ = ["find_test_namespaces", "namespaces"]
