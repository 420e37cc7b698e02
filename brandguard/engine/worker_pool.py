"""Bounded thread pool returning results in submission order."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from threading import Lock
from typing import Callable, Sequence, TypeVar

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


class WorkerPool:
    """Run a function over items with at most ``max_workers`` in flight."""

    def __init__(self, max_workers: int = 4, name: str = "brandguard") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.name = name
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix=self.name
                )
            return self._executor

    def map_ordered(
        self,
        func: Callable[[ItemT], ResultT],
        items: Sequence[ItemT],
        on_complete: Callable[[int, ResultT], None] | None = None,
    ) -> list[ResultT]:
        """Apply ``func`` to every item; output index ``i`` belongs to ``items[i]``.

        ``on_complete`` fires in completion order from the calling thread.
        Exceptions raised by ``func`` propagate.
        """

        if not items:
            return []
        executor = self._get_executor()
        futures: dict[Future[ResultT], int] = {
            executor.submit(func, item): index for index, item in enumerate(items)
        }
        slots: list[ResultT | None] = [None] * len(items)
        for future in as_completed(futures):
            index = futures[future]
            result = future.result()
            slots[index] = result
            if on_complete is not None:
                on_complete(index, result)
        return slots  # type: ignore[return-value]

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


__all__ = ["WorkerPool"]
