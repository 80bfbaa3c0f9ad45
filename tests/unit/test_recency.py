import threading
from datetime import datetime, timedelta, timezone

from jobmonitor.monitor.recency import RecencyCache

START = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def test_recently_processed_job_is_skipped():
    clock = FakeClock()
    cache = RecencyCache(timedelta(seconds=60), clock)

    cache.mark_processed("analyzer-1")

    assert cache.should_skip("analyzer-1")
    assert not cache.should_skip("analyzer-2")


def test_entries_expire_after_window():
    clock = FakeClock()
    cache = RecencyCache(timedelta(seconds=60), clock)
    cache.mark_processed("analyzer-1")

    clock.advance(timedelta(seconds=59))
    assert cache.should_skip("analyzer-1")

    clock.advance(timedelta(seconds=2))
    assert not cache.should_skip("analyzer-1")
    assert len(cache) == 0


def test_expired_entries_are_evicted_on_access():
    clock = FakeClock()
    cache = RecencyCache(timedelta(seconds=10), clock)
    for index in range(5):
        cache.mark_processed(f"job-{index}")

    clock.advance(timedelta(seconds=11))
    cache.mark_processed("job-new")

    assert len(cache) == 1
    assert "job-new" in cache


def test_marking_again_refreshes_timestamp():
    clock = FakeClock()
    cache = RecencyCache(timedelta(seconds=60), clock)
    cache.mark_processed("job-a")
    clock.advance(timedelta(seconds=50))
    cache.mark_processed("job-a")

    clock.advance(timedelta(seconds=50))

    assert cache.should_skip("job-a")


def test_claim_is_granted_once_per_window():
    clock = FakeClock()
    cache = RecencyCache(timedelta(seconds=60), clock)

    assert cache.claim("job-a")
    assert not cache.claim("job-a")

    clock.advance(timedelta(seconds=61))
    assert cache.claim("job-a")


def test_release_allows_new_claim():
    cache = RecencyCache(timedelta(seconds=60), FakeClock())
    assert cache.claim("job-a")

    cache.release("job-a")

    assert not cache.should_skip("job-a")
    assert cache.claim("job-a")


def test_concurrent_claims_grant_exactly_one():
    cache = RecencyCache(timedelta(seconds=60), FakeClock())
    workers = 16
    barrier = threading.Barrier(workers)
    results: list[bool] = []
    results_lock = threading.Lock()

    def claim() -> None:
        barrier.wait()
        granted = cache.claim("analyzer-1")
        with results_lock:
            results.append(granted)

    threads = [threading.Thread(target=claim) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(results) == workers
    assert results.count(True) == 1
    assert len(cache) == 1
