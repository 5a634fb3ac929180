import threading
import time

import pytest

from produce_ledger.services.key_locks import KeyedLockRegistry, balance_key, inventory_key


def test_hold_orders_and_deduplicates_keys():
    registry = KeyedLockRegistry()
    keys = [balance_key("seller", "s1", "i1"), inventory_key("i1", "A"), inventory_key("i1", "A")]

    with registry.hold(keys) as held:
        assert held == sorted(set(keys))
        assert len(registry) == 2

    assert len(registry) == 0


def test_released_keys_are_dropped_after_many_events():
    registry = KeyedLockRegistry()

    def worker(offset: int) -> None:
        for n in range(200):
            with registry.hold([inventory_key(f"item-{offset}-{n}", "A"), balance_key("seller", "s1", "i1")]):
                pass

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert len(registry) == 0


def test_waiting_holder_keeps_the_lock_alive():
    registry = KeyedLockRegistry()
    key = inventory_key("i1", "A")
    entered = threading.Event()
    release = threading.Event()
    waited: list[bool] = []

    def first() -> None:
        with registry.hold([key]):
            entered.set()
            release.wait(timeout=2)

    def second() -> None:
        with registry.hold([key]):
            waited.append(True)

    one = threading.Thread(target=first)
    one.start()
    entered.wait(timeout=2)
    two = threading.Thread(target=second)
    two.start()
    time.sleep(0.05)
    assert waited == []
    assert len(registry) == 1

    release.set()
    one.join()
    two.join()
    assert waited == [True]
    assert len(registry) == 0


def test_exception_inside_hold_releases_and_drops_keys():
    registry = KeyedLockRegistry()
    key = inventory_key("i1", "A")

    with pytest.raises(RuntimeError):
        with registry.hold([key]):
            raise RuntimeError("boom")

    assert len(registry) == 0
    with registry.hold([key]):
        pass


def test_shared_key_serializes_holders():
    registry = KeyedLockRegistry()
    key = inventory_key("i1", "A")
    events: list[str] = []

    def worker(name: str) -> None:
        with registry.hold([key]):
            events.append(f"{name}:start")
            time.sleep(0.05)
            events.append(f"{name}:end")

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("one", "two")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert events[0].endswith(":start")
    assert events[1] == events[0].replace(":start", ":end")


def test_disjoint_keys_do_not_wait():
    registry = KeyedLockRegistry()
    entered = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with registry.hold([inventory_key("i1", "A")]):
            entered.set()
            release.wait(timeout=2)

    thread = threading.Thread(target=holder)
    thread.start()
    entered.wait(timeout=2)

    acquired = threading.Event()

    def other() -> None:
        with registry.hold([inventory_key("i2", "A")]):
            acquired.set()

    other_thread = threading.Thread(target=other)
    other_thread.start()
    assert acquired.wait(timeout=1)

    release.set()
    thread.join()
    other_thread.join()


def test_opposite_request_orders_do_not_deadlock():
    registry = KeyedLockRegistry()
    a = inventory_key("i1", "A")
    b = balance_key("supplier", "p1", "i1")
    done: list[str] = []

    def worker(name: str, keys) -> None:
        for _ in range(50):
            with registry.hold(keys):
                pass
        done.append(name)

    threads = [
        threading.Thread(target=worker, args=("ab", [a, b])),
        threading.Thread(target=worker, args=("ba", [b, a])),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert sorted(done) == ["ab", "ba"]
