"""
Task runner for the aggregation phases.

Items are (task_id, payload) pairs, typically one pair per sentence shard:

    runner = ParallelTaskRunner(create_strategy(4))
    items = [(f"shard-{i}", ids) for i, ids in enumerate(shards)]
    partial_counters = runner.run_all_or_raise(count_shard, items, label="PERSON")

run() reports every task separately. run_all_or_raise() is the fork-join
barrier the phases use: partial results are only handed back once every
task is done, so merging never sees a half-finished phase.
"""

from concurrent.futures import Future, as_completed
from dataclasses import dataclass
from typing import Any, Callable

from spied.exceptions import RoundFailure
from spied.logging_config import debug_log

from .executor_strategy import ExecutorStrategy


@dataclass
class TaskResult:
    """Outcome of one task: result when success is True, error otherwise."""
    task_id: str
    success: bool
    result: Any = None
    error: Exception | None = None


class ParallelTaskRunner:
    """Submits (task_id, payload) items to an ExecutorStrategy."""

    def __init__(self, strategy: ExecutorStrategy):
        self.strategy = strategy

    def _submit_all(self, fn, items) -> dict[Future, str]:
        return {self.strategy.submit(fn, payload): task_id for task_id, payload in items}

    def run(self, fn: Callable[[Any], Any], items: list[tuple[str, Any]]) -> list[TaskResult]:
        """
        Run fn over every payload; one failed task does not stop the others.

        Returns:
            TaskResults in completion order.
        """
        results = []
        futures = self._submit_all(fn, items)
        for future in as_completed(futures):
            exc = future.exception()
            if exc is None:
                results.append(TaskResult(futures[future], True, result=future.result()))
            else:
                results.append(TaskResult(futures[future], False, error=exc))
        return results

    def run_all_or_raise(
        self,
        fn: Callable[[Any], Any],
        items: list[tuple[str, Any]],
        label: str | None = None,
    ) -> list[Any]:
        """
        Run fn over every payload and return the results ordered like items.

        On the first failure the tasks that have not started are cancelled.
        Tasks already running are allowed to finish, then the failure is
        raised.

        Raises:
            RoundFailure: chained from the first task exception, carrying label.
        """
        futures = self._submit_all(fn, items)
        failed: tuple[str, BaseException] | None = None
        for future in as_completed(futures):
            if failed is not None or future.cancelled():
                continue
            exc = future.exception()
            if exc is not None:
                failed = (futures[future], exc)
                for other in futures:
                    other.cancel()

        if failed is not None:
            task_id, exc = failed
            debug_log(f"[PARALLEL] {task_id} failed for label {label}: {exc}")
            raise RoundFailure(f"Parallel phase failed in {task_id}: {exc}", label=label, cause=exc) from exc

        return [future.result() for future in futures]
