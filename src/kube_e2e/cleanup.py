"""Ordered teardown of test resources.

Each created resource pushes one CleanupAction onto its context's
CleanupStack. Unwinding runs the actions in strict reverse creation order,
attempts every action even when earlier ones fail, and reports all failures
together at the end.

Classes:
    CleanupAction: One deferred undo operation with its own wait policy
    CleanupReport: Outcome of an unwind
    CleanupStack: LIFO collection of actions owned by one context
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from kube_e2e.client import ResourceHandle
from kube_e2e.errors import CleanupError
from kube_e2e.polling import PollWaiter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CleanupAction:
    """A deferred undo operation.

    Attributes:
        undo: Idempotent operation removing one resource. Deleting an object
            that is already gone must not raise.
        description: Human-readable label for logs and error reports.
        handle: The resource this action removes, if any.
        timeout: How long to wait for ``confirm`` to hold. 0 means fire the
            undo and never poll.
        retry_interval: Poll interval for ``confirm``.
        best_effort: Failures are logged as warnings and never reported.
        confirm: Returns True once the resource is confirmed absent.
    """

    undo: Callable[[], None]
    description: str
    handle: ResourceHandle | None = None
    timeout: float = 0.0
    retry_interval: float = 0.0
    best_effort: bool = False
    confirm: Callable[[], bool] | None = None

    def run(self, waiter: PollWaiter) -> None:
        """Run the undo and, when configured, wait for confirmation.

        Raises:
            Exception: Whatever the undo or the confirmation poll raised.
        """
        self.undo()
        if self.timeout > 0 and self.confirm is not None:
            waiter.wait_for(
                self.confirm,
                self.timeout,
                self.retry_interval,
                description=f"deletion of {self.description}",
            )


@dataclass
class CleanupReport:
    """Outcome of unwinding a CleanupStack.

    Attributes:
        attempted: Descriptions of actions that ran, in run order.
        failed: (description, error) for each reported failure.
        skipped: Descriptions of actions never attempted (fail-fast only).
    """

    attempted: list[str] = field(default_factory=list)
    failed: list[tuple[str, BaseException]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when nothing failed and nothing was skipped."""
        return not self.failed and not self.skipped


class CleanupStack:
    """LIFO stack of cleanup actions.

    Owned by exactly one TestContext and used only by the unit of work that
    owns it; it does no locking of its own.
    """

    def __init__(self) -> None:
        self._actions: list[CleanupAction] = []

    def push(self, action: CleanupAction) -> None:
        self._actions.append(action)

    def __len__(self) -> int:
        return len(self._actions)

    def descriptions(self) -> list[str]:
        """Action descriptions in creation order."""
        return [action.description for action in self._actions]

    def unwind(self, waiter: PollWaiter, *, fail_fast: bool = False) -> CleanupReport:
        """Run every action in reverse push order and empty the stack.

        Args:
            waiter: PollWaiter for deletion confirmation polls.
            fail_fast: Stop at the first reported failure; remaining actions
                are skipped and listed in the error.

        Returns:
            CleanupReport when every action succeeded (best-effort failures
            included).

        Raises:
            CleanupError: After the unwind, if any action failed or was
                skipped.
        """
        actions = list(reversed(self._actions))
        self._actions.clear()
        report = CleanupReport()

        for index, action in enumerate(actions):
            report.attempted.append(action.description)
            try:
                action.run(waiter)
            except Exception as e:
                if action.best_effort:
                    logger.warning(
                        "cleanup.best_effort_failed",
                        action=action.description,
                        error=str(e),
                    )
                    continue
                logger.error(
                    "cleanup.action_failed",
                    action=action.description,
                    error=str(e),
                )
                report.failed.append((action.description, e))
                if fail_fast:
                    report.skipped = [a.description for a in actions[index + 1 :]]
                    logger.warning("cleanup.stopped", skipped=len(report.skipped))
                    break
            else:
                logger.debug("cleanup.action_done", action=action.description)

        if report.failed:
            raise CleanupError(report.failed, report.skipped)
        return report


__all__ = [
    "CleanupAction",
    "CleanupReport",
    "CleanupStack",
]
