"""Unit tests for Framework construction and bootstrap."""

from __future__ import annotations

from typing import Any

import pytest

from kube_e2e.config import FrameworkOptions
from kube_e2e.context import TestContext
from kube_e2e.errors import ClusterConnectionError, ConfigurationError
from kube_e2e.framework import Framework, bootstrap


class TestConnect:
    """Tests for Framework.connect()."""

    def test_records_server_version(self, fake_client: Any) -> None:
        framework = Framework.connect(FrameworkOptions(), lambda options: fake_client)

        assert framework.server_version == "v1.29.0"
        assert framework.client is fake_client

    def test_factory_receives_options(self, fake_client: Any) -> None:
        seen: list[FrameworkOptions] = []

        def factory(options: FrameworkOptions) -> Any:
            seen.append(options)
            return fake_client

        options = FrameworkOptions(kubeconfig="/tmp/kubeconfig", context="kind-e2e")
        Framework.connect(options, factory)

        assert seen == [options]

    def test_unreachable_cluster(self, fake_client: Any) -> None:
        fake_client.version = None

        with pytest.raises(ClusterConnectionError, match="503"):
            Framework.connect(FrameworkOptions(), lambda options: fake_client)

    def test_factory_connection_error_propagates(self) -> None:
        def factory(options: FrameworkOptions) -> Any:
            raise ClusterConnectionError(reason="no kubeconfig")

        with pytest.raises(ClusterConnectionError, match="no kubeconfig"):
            Framework.connect(FrameworkOptions(), factory)


class TestBootstrap:
    """Tests for bootstrap()."""

    def test_applies_overrides(self, fake_client: Any) -> None:
        framework = bootstrap(lambda options: fake_client, namespace="operator-e2e", local_run=True)

        assert framework.local_run is True
        assert framework.options.namespace == "operator-e2e"

    def test_reads_environment(self, fake_client: Any, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBE_E2E_NO_SETUP", "1")

        framework = bootstrap(lambda options: fake_client)

        assert framework.options.no_setup is True

    def test_inconsistent_options_fail_before_connecting(self) -> None:
        def factory(options: FrameworkOptions) -> Any:
            raise AssertionError("must not connect")

        with pytest.raises(ConfigurationError):
            bootstrap(factory, local_run=True)


class TestFramework:
    """Tests for Framework state."""

    def test_options_cannot_be_replaced(self, framework: Framework) -> None:
        with pytest.raises(AttributeError):
            framework.options = FrameworkOptions()  # type: ignore[misc]

    def test_client_cannot_be_replaced(self, framework: Framework, fake_client: Any) -> None:
        with pytest.raises(AttributeError):
            framework.client = fake_client  # type: ignore[misc]

    def test_scheme_uses_framework_client(self, framework: Framework, fake_client: Any) -> None:
        from kube_e2e.scheme import KindDescriptor

        framework.scheme.register(KindDescriptor(version="v1", kind="ConfigMap"))

        assert fake_client.calls_of("discover") == ["v1/ConfigMap"]

    def test_new_context(self, framework: Framework) -> None:
        ctx = framework.new_context("test_x")

        assert isinstance(ctx, TestContext)
        assert ctx.framework is framework
        assert ctx.test_id == "test_x"

    def test_default_context_is_main(self, framework: Framework) -> None:
        assert framework.new_context().id == "main-1700000000"

    def test_contexts_get_distinct_namespaces(self, framework: Framework) -> None:
        first = framework.new_context("test_x")
        second = framework.new_context("test_x")

        assert first.id != second.id
