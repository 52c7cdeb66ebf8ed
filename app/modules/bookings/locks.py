import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

log = logging.getLogger(__name__)

class LockTimeout(Exception):
    def __init__(self, keys: list[str]):
        super().__init__(f"timed out acquiring {keys}")
        self.keys = keys

class KeyedLocks:
    """Process-local mutexes keyed by resource id.

    Keys are always taken in sorted order so two callers holding overlapping
    key sets can never deadlock. Disjoint key sets never wait on each other.
    A key's lock lives only while someone holds or waits on it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] += 1
        return lock

    def _checkin(self, keys: list[str]) -> None:
        for key in keys:
            self._users[key] -= 1
            if self._users[key] <= 0:
                del self._users[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, keys: Iterable[str], timeout: float | None) -> AsyncIterator[list[str]]:
        ordered = sorted(set(keys))
        used: list[str] = []
        acquired: list[asyncio.Lock] = []
        try:
            async with asyncio.timeout(timeout):
                for key in ordered:
                    lock = self._checkout(key)
                    used.append(key)
                    await lock.acquire()
                    acquired.append(lock)
        except TimeoutError:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(used)
            log.warning("Lock wait exceeded %ss for %s", timeout, ordered)
            raise LockTimeout(ordered) from None
        except BaseException:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(used)
            raise
        try:
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(used)
