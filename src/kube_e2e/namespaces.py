"""Namespace naming for test isolation.

Every test context gets its own namespace, named ``<prefix>-<unixTimestamp>``
where the prefix is derived from the test id. Names are deterministic so that
namespaces left behind by a failing test can be found again (see the
``kube-e2e namespaces`` CLI), and unique within the process so that parallel
tests started in the same second never collide.

Classes:
    NamespaceAllocator: Thread-safe issuer of unique namespace names.

Functions:
    normalize_prefix: Turn a test id into a valid namespace prefix
    validate_namespace: Check if a namespace name is valid for K8s
    parse_namespace: Split a generated name into (prefix, timestamp)

Example:
    >>> allocator = NamespaceAllocator(clock=lambda: 1700000000.4)
    >>> allocator.allocate("TestMemcached/scale")
    'testmemcached-scale-1700000000'
    >>> allocator.allocate("TestMemcached/scale")
    'testmemcached-scale-1700000000-1'
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable

# K8s namespace constraints
MAX_NAMESPACE_LENGTH = 63
NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

SUITE_PREFIX = "main"

# <prefix>-<10 digit timestamp> with an optional -<counter> tie-break
_GENERATED_PATTERN = re.compile(r"^(?P<prefix>[a-z0-9-]+?)-(?P<ts>\d{10})(?:-(?P<n>\d+))?$")

# Room kept for "-<timestamp>-<counter>"
_SUFFIX_RESERVE = 1 + 10 + 1 + 4


def normalize_prefix(test_id: str) -> str:
    """Turn a test id into a namespace prefix.

    Lowercases, replaces every character outside ``[a-z0-9]`` with a hyphen,
    collapses hyphen runs, trims, and truncates so a timestamp and counter
    still fit in 63 characters.

    Args:
        test_id: Test identifier, e.g. a pytest node id.

    Returns:
        Normalized prefix; ``"main"`` if nothing usable remains.

    Example:
        >>> normalize_prefix("tests/test_memcached.py::test_scale[3]")
        'tests-test-memcached-py-test-scale-3'
    """
    prefix = re.sub(r"[^a-z0-9]+", "-", test_id.lower()).strip("-")
    max_prefix_length = MAX_NAMESPACE_LENGTH - _SUFFIX_RESERVE
    if len(prefix) > max_prefix_length:
        prefix = prefix[:max_prefix_length].rstrip("-")
    return prefix or SUITE_PREFIX


def validate_namespace(namespace: str) -> bool:
    """Check if a namespace name is valid for Kubernetes.

    Validates that the namespace follows K8s naming rules:
    - Contains only lowercase alphanumeric characters and hyphens
    - Starts and ends with alphanumeric character
    - Maximum 63 characters

    Args:
        namespace: The namespace name to validate.

    Returns:
        True if valid, False otherwise.

    Example:
        >>> validate_namespace("main-1700000000")
        True
        >>> validate_namespace("Test_Namespace")
        False
    """
    if not namespace:
        return False

    if len(namespace) > MAX_NAMESPACE_LENGTH:
        return False

    return bool(NAMESPACE_PATTERN.match(namespace))


def parse_namespace(namespace: str) -> tuple[str, int] | None:
    """Split a generated namespace name into its prefix and timestamp.

    Args:
        namespace: Namespace name.

    Returns:
        (prefix, unix timestamp), or None if the name was not generated by
        a NamespaceAllocator.

    Example:
        >>> parse_namespace("main-1700000000-2")
        ('main', 1700000000)
        >>> parse_namespace("kube-system") is None
        True
    """
    match = _GENERATED_PATTERN.match(namespace)
    if match is None:
        return None
    return match.group("prefix"), int(match.group("ts"))


class NamespaceAllocator:
    """Issues namespace names that are unique for the life of the process.

    Two contexts created for the same test id within the same wall-clock
    second get ``<prefix>-<ts>`` and ``<prefix>-<ts>-1``. Safe to share
    between threads.

    Args:
        clock: Returns the current wall-clock time in seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._issued: set[str] = set()
        self._lock = threading.Lock()

    def allocate(self, test_id: str = SUITE_PREFIX) -> str:
        """Return a fresh namespace name for ``test_id``.

        Args:
            test_id: Test identifier; ``"main"`` for the suite context.

        Returns:
            A valid, never-before-issued namespace name.
        """
        base = f"{normalize_prefix(test_id)}-{int(self._clock())}"
        with self._lock:
            name = base
            counter = 0
            while name in self._issued:
                counter += 1
                name = f"{base}-{counter}"
            self._issued.add(name)
        return name

    def issued(self) -> frozenset[str]:
        """Names issued so far."""
        with self._lock:
            return frozenset(self._issued)


__all__ = [
    "MAX_NAMESPACE_LENGTH",
    "SUITE_PREFIX",
    "NamespaceAllocator",
    "normalize_prefix",
    "parse_namespace",
    "validate_namespace",
]
