"""kube-e2e command line interface.

Example:
    $ kube-e2e namespaces list --prefix test-memcached
"""

from __future__ import annotations

from kube_e2e.cli.main import cli, main

__all__ = ["cli", "main"]
