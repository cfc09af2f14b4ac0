"""
Tests for the execution strategies and the task runner behind the
aggregation phases.
"""

import threading
import time

import pytest

from spied.config import DEFAULT_WORKERS
from spied.exceptions import RoundFailure
from spied.parallel import (
    ParallelTaskRunner,
    SequentialStrategy,
    TaskResult,
    ThreadPoolStrategy,
    create_strategy,
)


class TestSequentialStrategy:
    """Inline execution."""

    def test_submit_returns_finished_future(self):
        """The task has already run when submit() returns."""
        future = SequentialStrategy().submit(lambda x: x + 10, 5)
        assert future.done()
        assert future.result() == 15

    def test_submit_keeps_exception(self):
        """An exception is stored on the Future, not raised by submit()."""
        def boom(x):
            raise ValueError("shard broke")

        future = SequentialStrategy().submit(boom, 1)
        with pytest.raises(ValueError, match="shard broke"):
            future.result()

    def test_context_manager(self):
        """Usable in a with block like the pool."""
        with SequentialStrategy() as strategy:
            assert strategy.max_workers == 1


class TestThreadPoolStrategy:
    """Thread pool execution."""

    def test_default_workers(self):
        """Without a size the pool uses DEFAULT_WORKERS."""
        strategy = ThreadPoolStrategy()
        assert strategy.max_workers == DEFAULT_WORKERS
        strategy.shutdown()

    def test_tasks_overlap(self):
        """Four sleeping tasks on four threads take about one sleep."""
        def nap(x):
            time.sleep(0.1)
            return x

        start = time.time()
        with ThreadPoolStrategy(max_workers=4) as strategy:
            futures = [strategy.submit(nap, i) for i in range(4)]
            assert sorted(f.result() for f in futures) == [0, 1, 2, 3]
        assert time.time() - start < 0.25


class TestCreateStrategy:
    """Strategy choice from the thread count."""

    def test_one_thread_is_sequential(self):
        """A single thread runs inline."""
        assert isinstance(create_strategy(1), SequentialStrategy)

    def test_several_threads_use_pool(self):
        """More threads get a pool of that size."""
        strategy = create_strategy(3)
        assert isinstance(strategy, ThreadPoolStrategy)
        assert strategy.max_workers == 3
        strategy.shutdown()


class TestRun:
    """Per-task results."""

    def test_all_tasks_reported(self):
        """Every item produces one successful TaskResult."""
        runner = ParallelTaskRunner(SequentialStrategy())
        results = runner.run(lambda x: x * 2, [("a", 10), ("b", 20), ("c", 30)])
        assert all(r.success for r in results)
        assert sorted(r.result for r in results) == [20, 40, 60]

    def test_failure_does_not_stop_others(self):
        """A failing task is reported and the rest still run."""
        def fail_on_two(x):
            if x == 2:
                raise ValueError("two")
            return x

        results = ParallelTaskRunner(SequentialStrategy()).run(fail_on_two, [("t1", 1), ("t2", 2), ("t3", 3)])

        failed = [r for r in results if not r.success]
        assert [r.task_id for r in failed] == ["t2"]
        assert isinstance(failed[0].error, ValueError)
        assert len(results) == 3

    def test_empty(self):
        """No items, no results."""
        assert ParallelTaskRunner(SequentialStrategy()).run(lambda x: x, []) == []

    def test_task_result_defaults(self):
        """A failed TaskResult has no result value."""
        result = TaskResult(task_id="s0", success=False, error=KeyError("x"))
        assert result.result is None


class TestRunAllOrRaise:
    """The fork-join barrier used by aggregation and application."""

    def test_results_in_submission_order(self):
        """Results come back ordered like the items, not by completion."""
        def slow_first(x):
            if x == 0:
                time.sleep(0.05)
            return x

        with ThreadPoolStrategy(max_workers=3) as strategy:
            results = ParallelTaskRunner(strategy).run_all_or_raise(slow_first, [(f"s{i}", i) for i in range(3)])

        assert results == [0, 1, 2]

    def test_failure_raises_round_failure(self):
        """The first task exception is raised as RoundFailure with the label."""
        def fail_on_two(x):
            if x == 2:
                raise KeyError("missing")
            return x

        with pytest.raises(RoundFailure) as excinfo:
            ParallelTaskRunner(SequentialStrategy()).run_all_or_raise(
                fail_on_two, [("s1", 1), ("s2", 2)], label="PERSON")

        assert excinfo.value.label == "PERSON"
        assert isinstance(excinfo.value.cause, KeyError)
        assert isinstance(excinfo.value.__cause__, KeyError)

    def test_waits_for_running_tasks(self):
        """Tasks already running finish before the failure propagates."""
        finished = []
        started = threading.Event()

        def task(x):
            if x == "fail":
                started.wait(1)
                raise ValueError("boom")
            started.set()
            time.sleep(0.05)
            finished.append(x)
            return x

        with ThreadPoolStrategy(max_workers=2) as strategy:
            with pytest.raises(RoundFailure):
                ParallelTaskRunner(strategy).run_all_or_raise(task, [("slow", "slow"), ("fail", "fail")])

        assert finished == ["slow"]

    def test_empty_items(self):
        """No items means no results and no failure."""
        assert ParallelTaskRunner(SequentialStrategy()).run_all_or_raise(lambda x: x, []) == []
