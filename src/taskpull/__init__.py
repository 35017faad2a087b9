"""
taskpull — pull-based work distribution for asyncio.

    from taskpull import Scheduler, CallableWorker, task_provider_from_list
"""

from taskpull.exceptions import (
    ActionError,
    ActionFailedError,
    SchedulerError,
    SchedulerFinishedError,
    SupplyError,
    TaskPullError,
)
from taskpull.providers import (
    task_provider_from_async_iterable,
    task_provider_from_directory,
    task_provider_from_iterable,
    task_provider_from_list,
)
from taskpull.scheduler import (
    Action,
    DistributeResult,
    Notifier,
    PerformAction,
    Scheduler,
    SchedulerStats,
    Task,
    TaskProvider,
)
from taskpull.workers import CallableWorker, NamedWorker, Worker, run_pull_loop

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionError",
    "ActionFailedError",
    "CallableWorker",
    "DistributeResult",
    "NamedWorker",
    "Notifier",
    "PerformAction",
    "Scheduler",
    "SchedulerError",
    "SchedulerFinishedError",
    "SchedulerStats",
    "SupplyError",
    "Task",
    "TaskProvider",
    "TaskPullError",
    "Worker",
    "run_pull_loop",
    "task_provider_from_async_iterable",
    "task_provider_from_directory",
    "task_provider_from_iterable",
    "task_provider_from_list",
]
