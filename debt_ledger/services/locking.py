"""Per-key mutual exclusion for balance-changing and naming operations"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Hashable, Iterable, Iterator


class EntryLocks:
    """Registry of one lock per key; different keys never contend"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._lock_for(key):
            yield

    @contextmanager
    def hold_many(self, keys: Iterable[Hashable]) -> Iterator[None]:
        """Acquire several locks in ascending key order to avoid deadlocks"""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield

    def forget(self, key: Hashable) -> None:
        with self._guard:
            self._locks.pop(key, None)


# Keyed by entry id
entry_locks = EntryLocks()

# Keyed by (kind, label): reference code bases and person names
label_locks = EntryLocks()
