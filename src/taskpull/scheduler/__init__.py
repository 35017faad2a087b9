"""
scheduler/ — Pull-based action scheduler

Exports:
    from taskpull.scheduler import Scheduler, Notifier, Action, DistributeResult
"""

from taskpull.scheduler.notify import Notifier
from taskpull.scheduler.scheduler import DEFAULT_TASKS_PER_WORKER, Scheduler
from taskpull.scheduler.types import (
    Action,
    ActionDistributor,
    ActionRunner,
    DistributeResult,
    PendingSubmission,
    PerformAction,
    SchedulerStats,
    Task,
    TaskProvider,
)

__all__ = [
    "DEFAULT_TASKS_PER_WORKER",
    "Action",
    "ActionDistributor",
    "ActionRunner",
    "DistributeResult",
    "Notifier",
    "PendingSubmission",
    "PerformAction",
    "Scheduler",
    "SchedulerStats",
    "Task",
    "TaskProvider",
]
