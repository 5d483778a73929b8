"""Unit tests for the kube-e2e CLI."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from kube_e2e.cli import cli
from kube_e2e.cli.namespaces import find_test_namespaces
from kube_e2e.cli.utils import ExitCode
from kube_e2e.errors import ClusterAPIError, ClusterConnectionError

LEFTOVERS = ["test-scale-1700000000", "test-scale-1700000000-1", "main-1699990000", "kube-system"]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cluster(fake_client: Any) -> Iterator[Any]:
    """Fake cluster holding leftover test namespaces, wired into the CLI."""
    for name in LEFTOVERS:
        fake_client.put({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}})
    with patch("kube_e2e.cli.namespaces.connect", return_value=fake_client):
        yield fake_client


class TestFindTestNamespaces:
    """Tests for find_test_namespaces()."""

    def test_only_generated_names_oldest_first(self, cluster: Any) -> None:
        names = find_test_namespaces(cluster, now=1700000100.0)

        assert names == ["main-1699990000", "test-scale-1700000000", "test-scale-1700000000-1"]

    def test_prefix_is_normalized(self, cluster: Any) -> None:
        names = find_test_namespaces(cluster, prefix="test_scale", now=1700000100.0)

        assert names == ["test-scale-1700000000", "test-scale-1700000000-1"]

    def test_older_than(self, cluster: Any) -> None:
        names = find_test_namespaces(cluster, older_than=3600, now=1700000100.0)

        assert names == ["main-1699990000"]


class TestNamespacesList:
    """Tests for 'kube-e2e namespaces list'."""

    def test_lists_leftovers(self, runner: CliRunner, cluster: Any) -> None:
        result = runner.invoke(cli, ["namespaces", "list"])

        assert result.exit_code == 0
        assert "test-scale-1700000000" in result.output
        assert "kube-system" not in result.output
        assert "3 test namespace(s) found" in result.output

    def test_list_failure(self, runner: CliRunner, cluster: Any, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(*args: Any, **kwargs: Any) -> Any:
            raise ClusterAPIError("list Namespace", status=403, reason="Forbidden")

        monkeypatch.setattr(cluster, "list", broken)

        result = runner.invoke(cli, ["namespaces", "list"])

        assert result.exit_code == ExitCode.GENERAL_ERROR
        assert "Forbidden" in result.output

    def test_unreachable_cluster(self, runner: CliRunner) -> None:
        with patch(
            "kube_e2e.cli.utils.KubernetesClusterClient.from_kubeconfig",
            side_effect=ClusterConnectionError(reason="connection refused"),
        ):
            result = runner.invoke(cli, ["namespaces", "list"])

        assert result.exit_code == ExitCode.NETWORK_ERROR
        assert "connection refused" in result.output


class TestNamespacesDelete:
    """Tests for 'kube-e2e namespaces delete'."""

    def test_deletes_with_yes(self, runner: CliRunner, cluster: Any) -> None:
        result = runner.invoke(cli, ["namespaces", "delete", "--prefix", "test_scale", "--yes"])

        assert result.exit_code == 0
        assert cluster.calls_of("delete") == [
            "Namespace/test-scale-1700000000",
            "Namespace/test-scale-1700000000-1",
        ]

    def test_declined_confirmation_aborts(self, runner: CliRunner, cluster: Any) -> None:
        result = runner.invoke(cli, ["namespaces", "delete"], input="n\n")

        assert result.exit_code == 1
        assert cluster.calls_of("delete") == []

    def test_nothing_to_delete(self, runner: CliRunner, cluster: Any) -> None:
        result = runner.invoke(cli, ["namespaces", "delete", "--prefix", "test_other"])

        assert result.exit_code == 0
        assert "No test namespaces to delete" in result.output

    def test_partial_failure_exits_nonzero(self, runner: CliRunner, cluster: Any) -> None:
        cluster.delete_errors["Namespace/main-1699990000"] = ClusterAPIError("delete", status=500)

        result = runner.invoke(cli, ["namespaces", "delete", "-y"])

        assert result.exit_code == ExitCode.GENERAL_ERROR
        assert len(cluster.calls_of("delete")) == 3
        assert "1 namespace(s) could not be deleted" in result.output


class TestMain:
    """Tests for the top-level group."""

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "namespaces" in result.output

    def test_rejects_unknown_log_level(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--log-level", "LOUD", "namespaces", "list"])

        assert result.exit_code == ExitCode.USAGE_ERROR
