"""
scheduler/types.py — Scheduler Data Contracts

Dataclasses, enums and callable aliases shared by the scheduler, the worker
pull loop and the task providers.

  - Action:            immutable unit of work with an opaque payload
  - PendingSubmission: an Action plus its single-fire result future
  - DistributeResult:  outcome of one distribute_action() call
  - SchedulerStats:    counters for introspection and the demo summary
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional


# ─────────────────────────────────────────────────────────────────────────────
# Action
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Action:
    """
    One fine-grained unit of work submitted by a running task.

    The payload is opaque to the scheduler; only the worker's runner
    interprets it. The id exists for logs and error messages.
    """
    payload: Any
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


# ─────────────────────────────────────────────────────────────────────────────
# Callable contracts
# ─────────────────────────────────────────────────────────────────────────────

# Capability handed to a task body: submit an action, await its result.
PerformAction = Callable[[Action], Awaitable[Any]]

# A task body. Runs once; may call perform_action any number of times.
Task = Callable[[PerformAction], Awaitable[Any]]

# Supply of tasks. Returns None once exhausted, and keeps returning None.
TaskProvider = Callable[[], Awaitable[Optional[Task]]]

# Executes one action on a worker. May raise.
ActionRunner = Callable[[Action], Awaitable[Any]]


class DistributeResult(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NO_MORE_ACTIONS = "no_more_actions"

    @property
    def more_work(self) -> bool:
        return self is not DistributeResult.NO_MORE_ACTIONS


# Capability handed to a worker: pull one action and run it with the runner.
ActionDistributor = Callable[[ActionRunner], Awaitable[DistributeResult]]


# ─────────────────────────────────────────────────────────────────────────────
# PendingSubmission
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class PendingSubmission:
    """
    A submitted action waiting in the queue or running on a worker.

    resolve()/reject() fire at most once; later calls, and calls after the
    submitting task was cancelled, are ignored.
    """
    action: Action
    future: asyncio.Future
    submitted_at: float = field(default_factory=time.monotonic)
    worker_id: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, result: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


# ─────────────────────────────────────────────────────────────────────────────
# SchedulerStats
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class SchedulerStats:
    tasks_started: int = 0
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    actions_submitted: int = 0
    actions_succeeded: int = 0
    actions_failed: int = 0
    peak_running_tasks: int = 0
    last_error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def duration_s(self) -> Optional[float]:
        if self.started_at is None:
            return None
        end = self.finished_at or time.monotonic()
        return end - self.started_at
