"""Connection registry for the signaling relay.

The registry is the single source of truth for which identities are currently
reachable. It maps an identity string to the channel handle of the live
connection that owns it.

Lookups happen on every forwarded envelope while inserts and removals only
happen on connect and disconnect, so the map is guarded by a reader/writer
lock: readers share the lock, writers hold it exclusively. All operations are
synchronous and never hold the lock across an ``await``, so they are safe to
call from coroutines on the event loop as well as from plain threads.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

H = TypeVar("H")


class ReadWriteLock:
    """Reader/writer lock with writer preference.

    Any number of readers may hold the lock at once. A writer waits for active
    readers to finish and blocks new readers while it is waiting, so a steady
    stream of lookups cannot starve connect/disconnect.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ConnectionRegistry(Generic[H]):
    """Concurrent-safe mapping from identity to channel handle.

    Attributes:
        lock: Reader/writer lock guarding the underlying dict.
    """

    def __init__(self):
        self.lock = ReadWriteLock()
        self._entries: Dict[str, H] = {}

    def add(self, identity: str, handle: H) -> None:
        """Insert or overwrite the entry for ``identity``.

        Identities are minted uniquely by the router, so no collision check is
        made: a second ``add`` for the same identity replaces the first.

        Args:
            identity: Identity assigned to the connection.
            handle: Channel handle to route to.
        """
        with self.lock.write_locked():
            self._entries[identity] = handle

    def remove(self, identity: str) -> None:
        """Delete the entry for ``identity``. No-op if it is absent."""
        with self.lock.write_locked():
            self._entries.pop(identity, None)

    def get(self, identity: str) -> Tuple[Optional[H], bool]:
        """Look up the handle registered for ``identity``.

        Args:
            identity: Identity to look up.

        Returns:
            ``(handle, True)`` if the identity is registered, otherwise
            ``(None, False)``.
        """
        with self.lock.read_locked():
            if identity in self._entries:
                return self._entries[identity], True
            return None, False

    def identities(self) -> List[str]:
        """Snapshot of the currently registered identities."""
        with self.lock.read_locked():
            return list(self._entries)

    def __len__(self) -> int:
        with self.lock.read_locked():
            return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        with self.lock.read_locked():
            return identity in self._entries
