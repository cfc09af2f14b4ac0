"""
Execution strategies for the aggregation phases.

The aggregator and the pattern applier decide what runs (one sentence shard
per task); a strategy decides how. ThreadPoolStrategy is used for real runs
and SequentialStrategy for tests and single-threaded runs, where tasks
execute inline and finish in submission order.

    strategy = create_strategy(config.run.num_threads)
    future = strategy.submit(count_shard, shard)
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from spied.config import DEFAULT_WORKERS


class ExecutorStrategy(ABC):
    """Where submitted shard tasks run. max_workers is 1 for inline execution."""

    max_workers: int

    @abstractmethod
    def submit(self, fn: Callable[[Any], Any], item: Any) -> Future:
        """Schedule fn(item) and return its Future."""

    @abstractmethod
    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """Release workers; cancel_futures drops tasks that have not started."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False


class ThreadPoolStrategy(ExecutorStrategy):
    """
    Runs tasks on a thread pool.

    Shards only read the corpus and the phrase registry, so threads share
    them directly instead of copying sentences into worker processes.
    """

    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers or DEFAULT_WORKERS
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="spied")

    def submit(self, fn, item) -> Future:
        return self._pool.submit(fn, item)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=cancel_futures)


class SequentialStrategy(ExecutorStrategy):
    """Runs each task inline; submit() returns an already finished Future."""

    max_workers = 1

    def submit(self, fn, item) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(item))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        pass


def create_strategy(num_threads: int) -> ExecutorStrategy:
    """One thread runs inline, more get a pool of that size."""
    if num_threads <= 1:
        return SequentialStrategy()
    return ThreadPoolStrategy(max_workers=num_threads)
