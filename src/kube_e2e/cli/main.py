"""Main entry point for the kube-e2e CLI.

Command Groups:
    kube-e2e namespaces: Find and remove namespaces left by failed tests

Example:
    $ kube-e2e --help
    $ kube-e2e namespaces list
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from kube_e2e.cli.namespaces import namespaces
from kube_e2e.logging import LOG_LEVELS, configure_logging


def _get_version() -> str:
    try:
        return get_version("kube-e2e")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="kube-e2e",
    help="kube-e2e - End-to-end test harness for Kubernetes operators.",
    epilog="Use 'kube-e2e <command> --help' for command-specific help.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=_get_version(), prog_name="kube-e2e", message="%(prog)s %(version)s")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Structured log level.",
)
def cli(log_level: str) -> None:
    """kube-e2e command line."""
    configure_logging(log_level)


cli.add_command(namespaces)


def main() -> None:
    """Console script entry point."""
    cli()


__all__ = ["cli", "main"]
