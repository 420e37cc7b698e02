from __future__ import annotations

import threading
import time

import pytest

from brandguard.engine.worker_pool import WorkerPool


def test_results_follow_input_order_not_completion_order() -> None:
    pool = WorkerPool(max_workers=3)
    completion: list[int] = []

    def work(item: int) -> int:
        time.sleep(0.01 * (5 - item))
        return item * 10

    results = pool.map_ordered(work, [1, 2, 3, 4], on_complete=lambda index, _: completion.append(index))
    pool.shutdown()

    assert results == [10, 20, 30, 40]
    assert sorted(completion) == [0, 1, 2, 3]


def test_concurrency_is_bounded() -> None:
    pool = WorkerPool(max_workers=2)
    lock = threading.Lock()
    active = 0
    peak = 0

    def work(item: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return item

    pool.map_ordered(work, list(range(6)))
    pool.shutdown()
    assert peak <= 2


def test_empty_input_and_invalid_size() -> None:
    assert WorkerPool().map_ordered(lambda item: item, []) == []
    with pytest.raises(ValueError):
        WorkerPool(max_workers=0)


def test_worker_exceptions_propagate() -> None:
    pool = WorkerPool(max_workers=1)

    def work(item: int) -> int:
        raise RuntimeError(f"bad {item}")

    with pytest.raises(RuntimeError):
        pool.map_ordered(work, [1])
    pool.shutdown()
