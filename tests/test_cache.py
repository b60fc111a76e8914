import threading
from datetime import datetime, timedelta, timezone

from routeplanner.models.domain import MatrixCell
from routeplanner.services.routing.cache import MatrixCache, cell_key, traffic_bucket

CELL = MatrixCell(distance_meters=1200.0, duration_seconds=180.0)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = MatrixCache(ttl_seconds=30, clock=clock)
    key = cell_key("1.000000,2.000000", "3.000000,4.000000", "static")

    cache.put(key, CELL)
    assert cache.get(key) == CELL

    clock.now += 31
    assert cache.get(key) is None
    assert len(cache) == 0
    assert cache.hits == 1
    assert cache.misses == 1


def test_evict_and_bounded_size():
    cache = MatrixCache(ttl_seconds=60, max_entries=2)
    keys = [cell_key(f"{i}", "x", "static") for i in range(3)]
    for key in keys:
        cache.put(key, CELL)

    assert len(cache) == 2
    assert cache.get(keys[0]) is None

    cache.evict(keys[2])
    assert cache.get(keys[2]) is None


def test_zero_ttl_disables_caching():
    cache = MatrixCache(ttl_seconds=0)
    key = cell_key("a", "b", "static")
    cache.put(key, CELL)
    assert cache.get(key) is None


def test_traffic_bucket():
    departure = datetime(2026, 3, 2, 8, 5, tzinfo=timezone.utc)

    assert traffic_bucket(departure, False, 15) == "static"
    assert traffic_bucket(departure, True, 15) == traffic_bucket(departure + timedelta(minutes=5), True, 15)
    assert traffic_bucket(departure, True, 15) != traffic_bucket(departure + timedelta(minutes=15), True, 15)


def test_concurrent_readers_writers_and_evictions():
    cache = MatrixCache(ttl_seconds=60, max_entries=50)
    keys = [cell_key(f"{i}.000000,0.000000", "0.000000,0.000000", "static") for i in range(80)]
    reads = []
    torn = []
    start = threading.Barrier(6)

    def writer(offset: int) -> None:
        start.wait()
        for _ in range(200):
            for i in range(offset, len(keys), 2):
                cache.put(keys[i], MatrixCell(distance_meters=float(i), duration_seconds=float(i * 2)))

    def evictor() -> None:
        start.wait()
        for _ in range(200):
            for key in keys[::3]:
                cache.evict(key)

    def reader() -> None:
        start.wait()
        count = 0
        for _ in range(200):
            for i, key in enumerate(keys):
                cell = cache.get(key)
                count += 1
                if cell is not None and (cell.distance_meters != i or cell.duration_seconds != i * 2):
                    torn.append((i, cell))
        reads.append(count)

    threads = [threading.Thread(target=writer, args=(offset,)) for offset in (0, 1)]
    threads.append(threading.Thread(target=evictor))
    threads.extend(threading.Thread(target=reader) for _ in range(3))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not any(thread.is_alive() for thread in threads)
    assert torn == []
    assert cache.hits + cache.misses == sum(reads)
    assert len(cache) <= 50
