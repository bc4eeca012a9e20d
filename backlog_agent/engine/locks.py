"""Per-issue exclusivity lock.

Unlike the per-plan ``asyncio.Lock`` objects a state store would hand out,
campaign workers never wait for an issue: if another worker already holds
it, the second attempt is refused and the issue is skipped.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

log = structlog.get_logger(__name__)


class IssueLocks:
    """Non-blocking mutual exclusion keyed by issue id.

    Example:
        >>> locks = IssueLocks()
        >>> locks.try_acquire("42")
        True
        >>> locks.try_acquire("42")
        False
        >>> locks.release("42")
    """

    def __init__(self) -> None:
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, issue_id: str) -> bool:
        """Take exclusivity on an issue. Returns False if it is already held."""
        with self._lock:
            if issue_id in self._held:
                log.debug("issue_lock_contended", issue_id=issue_id)
                return False
            self._held.add(issue_id)
            return True

    def release(self, issue_id: str) -> None:
        """Give up exclusivity on an issue. Releasing a free issue is a no-op."""
        with self._lock:
            self._held.discard(issue_id)

    def is_held(self, issue_id: str) -> bool:
        with self._lock:
            return issue_id in self._held

    @contextmanager
    def hold(self, issue_id: str) -> Iterator[bool]:
        """Context manager yielding whether exclusivity was obtained.

        The lock is released on exit only if this context acquired it.
        """
        acquired = self.try_acquire(issue_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(issue_id)
