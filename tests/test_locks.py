import threading
import time

from app.core.locks import KeyedLock


def test_registry_is_emptied_after_release():
    locks = KeyedLock()
    with locks.hold("a", "b"):
        assert len(locks) == 2
    assert len(locks) == 0


def test_duplicate_keys_acquire_once():
    locks = KeyedLock()
    with locks.hold("a", "a"):
        assert len(locks) == 1
    assert len(locks) == 0


def test_same_key_is_exclusive():
    locks = KeyedLock()
    events = []

    def worker(name):
        with locks.hold("wallet:9876543210"):
            events.append(f"{name}-in")
            time.sleep(0.05)
            events.append(f"{name}-out")

    threads = [threading.Thread(target=worker, args=(n,)) for n in ("t1", "t2")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert events[0].endswith("-in") and events[1].endswith("-out")
    assert events[0].split("-")[0] == events[1].split("-")[0]


def test_opposite_order_does_not_deadlock():
    locks = KeyedLock()
    done = []

    def worker(keys):
        for _ in range(200):
            with locks.hold(*keys):
                pass
        done.append(keys)

    threads = [
        threading.Thread(target=worker, args=(("tournament:1", "wallet:9876543210"),)),
        threading.Thread(target=worker, args=(("wallet:9876543210", "tournament:1"),)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(done) == 2
    assert len(locks) == 0


def test_lock_released_on_error():
    locks = KeyedLock()
    try:
        with locks.hold("otp:9876543210"):
            raise ValueError("boom")
    except ValueError:
        pass
    assert len(locks) == 0
