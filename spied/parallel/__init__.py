"""
Parallel execution for SPIED.

The sufficient-statistics aggregator and the pattern applier split their work
into sentence shards and hand them to a ParallelTaskRunner. Each phase is a
fork-join barrier: the caller blocks until every shard finishes, and partial
counters are merged only after that.

Components:
    ExecutorStrategy - where tasks run
    ThreadPoolStrategy - thread pool (real runs)
    SequentialStrategy - inline execution (tests, deterministic runs)
    ParallelTaskRunner - per-task results, or all-or-raise barrier
    TaskResult - outcome of one task
"""

from .executor_strategy import (
    ExecutorStrategy,
    SequentialStrategy,
    ThreadPoolStrategy,
    create_strategy,
)
from .task_runner import ParallelTaskRunner, TaskResult

__all__ = [
    'ExecutorStrategy',
    'ThreadPoolStrategy',
    'SequentialStrategy',
    'create_strategy',
    'ParallelTaskRunner',
    'TaskResult',
]
