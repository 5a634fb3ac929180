import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

LockKey = tuple[str, ...]


def inventory_key(item_id: str, type_name: str) -> LockKey:
    return ("inventory", item_id, type_name)


def balance_key(party_kind: str, party_id: str, item_id: str) -> LockKey:
    return ("balance", party_kind, party_id, item_id)


def session_key(kind: str, session_id: str) -> LockKey:
    return ("session", kind, session_id)


class _Slot:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # threads holding or waiting on the lock
        self.holders = 0


class KeyedLockRegistry:
    """
    One mutex per aggregate key, created on first use and dropped once no
    thread holds or waits on it; only keys in flight occupy the registry.

    hold() takes every requested key in sorted order, so two events that
    share keys always queue instead of deadlocking, and events on disjoint
    keys never wait on each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: dict[LockKey, _Slot] = {}

    def _checkout(self, key: LockKey) -> threading.Lock:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = _Slot()
                self._slots[key] = slot
            slot.holders += 1
            return slot.lock

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            slot = self._slots[key]
            slot.holders -= 1
            if slot.holders == 0:
                del self._slots[key]

    @contextmanager
    def hold(self, keys: Iterable[LockKey]) -> Iterator[list[LockKey]]:
        ordered = sorted(set(keys))
        checked_out: list[LockKey] = []
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)


ledger_locks = KeyedLockRegistry()
