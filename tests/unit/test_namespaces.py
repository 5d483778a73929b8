"""Unit tests for namespace naming."""

from __future__ import annotations

import threading

import pytest

from kube_e2e.namespaces import (
    MAX_NAMESPACE_LENGTH,
    NamespaceAllocator,
    normalize_prefix,
    parse_namespace,
    validate_namespace,
)


class TestNormalizePrefix:
    """Tests for normalize_prefix()."""

    @pytest.mark.parametrize(
        ("test_id", "expected"),
        [
            ("TestMemcached", "testmemcached"),
            ("TestMemcached/scale_up", "testmemcached-scale-up"),
            ("test_scale[3-replicas]", "test-scale-3-replicas"),
            ("__weird__", "weird"),
            ("", "main"),
            ("///", "main"),
        ],
    )
    def test_normalization(self, test_id: str, expected: str) -> None:
        assert normalize_prefix(test_id) == expected

    def test_long_prefix_leaves_room_for_suffix(self) -> None:
        """A truncated prefix plus timestamp and counter fits in 63 chars."""
        prefix = normalize_prefix("a" * 100)
        assert len(f"{prefix}-1700000000-9999") <= MAX_NAMESPACE_LENGTH


class TestValidateNamespace:
    """Tests for validate_namespace()."""

    @pytest.mark.parametrize("name", ["main-1700000000", "a", "test-ns-1"])
    def test_valid(self, name: str) -> None:
        assert validate_namespace(name) is True

    @pytest.mark.parametrize("name", ["", "Test", "under_score", "-lead", "trail-", "a" * 64])
    def test_invalid(self, name: str) -> None:
        assert validate_namespace(name) is False


class TestParseNamespace:
    """Tests for parse_namespace()."""

    def test_parses_generated_name(self) -> None:
        assert parse_namespace("test-scale-1700000000") == ("test-scale", 1700000000)

    def test_parses_tie_break_counter(self) -> None:
        assert parse_namespace("main-1700000000-3") == ("main", 1700000000)

    @pytest.mark.parametrize("name", ["kube-system", "default", "main-17", "1700000000"])
    def test_rejects_other_names(self, name: str) -> None:
        assert parse_namespace(name) is None


class TestNamespaceAllocator:
    """Tests for NamespaceAllocator."""

    def test_name_is_prefix_and_timestamp(self) -> None:
        allocator = NamespaceAllocator(clock=lambda: 1700000000.9)
        assert allocator.allocate("TestMemcached") == "testmemcached-1700000000"

    def test_default_prefix_is_main(self) -> None:
        allocator = NamespaceAllocator(clock=lambda: 1700000000.0)
        assert allocator.allocate() == "main-1700000000"

    def test_same_second_gets_counter(self) -> None:
        """Two contexts for one test in the same second get distinct names."""
        allocator = NamespaceAllocator(clock=lambda: 1700000000.0)

        first = allocator.allocate("test_scale")
        second = allocator.allocate("test_scale")
        third = allocator.allocate("test_scale")

        assert first == "test-scale-1700000000"
        assert second == "test-scale-1700000000-1"
        assert third == "test-scale-1700000000-2"

    def test_next_second_needs_no_counter(self) -> None:
        now = [1700000000.0]
        allocator = NamespaceAllocator(clock=lambda: now[0])

        allocator.allocate("test_scale")
        now[0] += 1

        assert allocator.allocate("test_scale") == "test-scale-1700000001"

    def test_concurrent_allocation_is_unique(self) -> None:
        """Names allocated from many threads in one second never collide."""
        allocator = NamespaceAllocator(clock=lambda: 1700000000.0)
        results: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(25):
                name = allocator.allocate("test_parallel")
                with lock:
                    results.append(name)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 200
        assert len(set(results)) == 200
        assert allocator.issued() == frozenset(results)
        assert all(validate_namespace(name) for name in results)
