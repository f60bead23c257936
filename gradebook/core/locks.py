"""Per-scope locks serializing rank recomputation within one process."""
import asyncio
import contextlib
from collections.abc import AsyncIterator, Iterable


# (exam_id, course_id); class scopes are partitions of the cohort scope and share its lock
CohortScope = tuple[int, int]


class ScopeLockRegistry:
    """Hands out one asyncio.Lock per cohort scope.

    Mutations hold the lock of every scope they touch from the first read of the scope
    until its recomputed ranks are committed, so no other write to the same scope can
    interleave. Different scopes never block each other. A lock is dropped once no task
    holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[CohortScope, asyncio.Lock] = {}
        self._users: dict[CohortScope, int] = {}

    def _checkout(self, scope: CohortScope) -> asyncio.Lock:
        # No await between lookup and insert, so this cannot race on the event loop
        lock = self._locks.get(scope)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scope] = lock
        self._users[scope] = self._users.get(scope, 0) + 1
        return lock

    def _checkin(self, scope: CohortScope) -> None:
        remaining = self._users[scope] - 1
        if remaining:
            self._users[scope] = remaining
        else:
            del self._users[scope]
            del self._locks[scope]

    @contextlib.asynccontextmanager
    async def hold(self, scopes: Iterable[CohortScope]) -> AsyncIterator[list[CohortScope]]:
        """
        Acquire the locks of several scopes.

        Locks are taken in sorted scope order so two batches touching overlapping scopes
        cannot deadlock.
        """
        ordered = sorted(set(scopes))
        checked_out: list[CohortScope] = []
        acquired: list[asyncio.Lock] = []
        try:
            for scope in ordered:
                lock = self._checkout(scope)
                checked_out.append(scope)
                await lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for scope in checked_out:
                self._checkin(scope)

    def is_locked(self, scope: CohortScope) -> bool:
        lock = self._locks.get(scope)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    def clear(self) -> None:
        self._locks.clear()
        self._users.clear()


scope_locks = ScopeLockRegistry()
