import threading

from tokenagg.payments.replay_cache import ReplayCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_reference_is_single_use_inside_window() -> None:
    clock = FakeClock()
    cache = ReplayCache(window_seconds=300, clock=clock)

    assert cache.reserve("req-1", {"reference": "req-1"}) is True
    clock.now += 299
    assert cache.reserve("req-1", {"reference": "req-1"}) is False
    assert len(cache) == 1


def test_reference_can_be_reused_after_window() -> None:
    clock = FakeClock()
    cache = ReplayCache(window_seconds=300, clock=clock)

    cache.reserve("req-1", {})
    clock.now += 300
    assert cache.reserve("req-1", {}) is True
    assert cache.get("req-1").received_at == clock.now


def test_release_frees_a_reservation() -> None:
    cache = ReplayCache(window_seconds=300, clock=FakeClock())

    cache.reserve("req-1", {})
    cache.release("req-1")
    cache.release("never-reserved")

    assert cache.get("req-1") is None
    assert cache.reserve("req-1", {}) is True


def test_sweep_evicts_expired_records_only() -> None:
    clock = FakeClock()
    cache = ReplayCache(window_seconds=300, clock=clock)

    cache.reserve("old", {})
    clock.now += 200
    cache.reserve("new", {})
    clock.now += 101

    assert cache.sweep() == 1
    assert cache.get("old") is None
    assert cache.get("new") is not None


def test_concurrent_reservations_admit_exactly_one() -> None:
    cache = ReplayCache(window_seconds=300)
    barrier = threading.Barrier(16)
    outcomes: list[bool] = []
    outcomes_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        accepted = cache.reserve("req-shared", {"reference": "req-shared"})
        with outcomes_lock:
            outcomes.append(accepted)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(True) == 1
    assert len(cache) == 1


def test_clear() -> None:
    cache = ReplayCache(window_seconds=300)
    cache.reserve("a", {})
    cache.reserve("b", {})

    cache.clear()

    assert len(cache) == 0
