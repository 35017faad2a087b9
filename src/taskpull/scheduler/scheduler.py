"""
scheduler/scheduler.py — Scheduler (pull-based work distribution)

Workers pull actions; tasks push them. The Scheduler sits between the two:

  * Tasks are obtained lazily from a TaskProvider, only when no action is
    queued and fewer than the ceiling are running (or waiting for a slot).
  * Each started task runs as its own asyncio.Task and submits actions
    through perform_action(); every submission is an awaitable that resolves
    with the worker's result, or raises ActionFailedError if the worker's
    runner raised.
  * Workers call distribute_action(runner); actions are handed out in strict
    FIFO submission order across all tasks.
  * Completion fires once, when the supply is exhausted, no task is running
    or waiting for a slot, and the action queue is empty.

Every blocking wait goes through the Notifier gate followed by a re-check of
the condition; shared collections are only touched from coroutines on the
scheduler's event loop and are re-validated after every suspension.

Usage::

    scheduler = Scheduler(task_provider_from_list(tasks))
    scheduler.register_worker(MyWorker("w1"))
    scheduler.register_worker(MyWorker("w2"))
    await scheduler.wait_until_finished()
    print(scheduler.failed_tasks, scheduler.stats)
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections import deque
from typing import TYPE_CHECKING, Any, Coroutine, Optional

from taskpull.exceptions import ActionFailedError, SchedulerFinishedError, SupplyError
from taskpull.observability.logger import get_logger
from taskpull.scheduler.notify import Notifier
from taskpull.scheduler.types import (
    Action,
    ActionRunner,
    DistributeResult,
    PendingSubmission,
    SchedulerStats,
    Task,
    TaskProvider,
)

if TYPE_CHECKING:
    from taskpull.workers.base import Worker

log = get_logger(__name__)

# Default ceiling is this many running tasks per registered worker.
DEFAULT_TASKS_PER_WORKER = 3


def _task_name(task: Task) -> str:
    return getattr(task, "__qualname__", None) or getattr(task, "__name__", None) or repr(task)


class Scheduler:
    """
    Coordinates a task supply, a FIFO action queue and a pool of pulling
    workers.

    Introspection::

        scheduler.max_concurrent_tasks   # live ceiling
        scheduler.failed_tasks           # tasks whose body raised
        scheduler.stats                  # SchedulerStats counters
        scheduler.status()               # dict snapshot for display
    """

    def __init__(
        self,
        task_provider: TaskProvider,
        max_concurrent_tasks: Optional[int] = None,
        tasks_per_worker: int = DEFAULT_TASKS_PER_WORKER,
    ) -> None:
        if max_concurrent_tasks is not None and max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be >= 1 (or None to derive it)")
        if tasks_per_worker < 1:
            raise ValueError("tasks_per_worker must be >= 1")

        # Set to None once the provider signals exhaustion; never called again.
        self._task_provider: Optional[TaskProvider] = task_provider
        self._max_concurrent_tasks = max_concurrent_tasks
        self._tasks_per_worker = tasks_per_worker

        self._workers: list[Worker] = []
        self._pending_tasks: list[Task] = []
        self._running_tasks: list[Task] = []
        self._failed_tasks: list[Task] = []
        self._queued_actions: deque[PendingSubmission] = deque()
        self._in_flight: set[PendingSubmission] = set()
        self._background: set[asyncio.Task] = set()

        self._notifier = Notifier()
        self._supply_lock = asyncio.Lock()
        self._finished = asyncio.Event()

        self.stats = SchedulerStats()
        self.supply_error: Optional[SupplyError] = None

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, settings, task_provider: TaskProvider) -> "Scheduler":
        return cls(
            task_provider,
            max_concurrent_tasks=settings.scheduler.max_concurrent_tasks,
            tasks_per_worker=settings.scheduler.tasks_per_worker,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    def register_worker(self, worker: "Worker") -> asyncio.Task:
        """
        Add a worker and start its pull loop immediately.

        Must be called from a running event loop. With a derived ceiling this
        raises the number of tasks allowed to run at once.
        """
        if self._finished.is_set():
            raise SchedulerFinishedError(
                f"Cannot register worker '{worker.worker_id}': scheduler already finished."
            )
        self._workers.append(worker)
        if self.stats.started_at is None:
            self.stats.started_at = time.monotonic()

        loop_task = asyncio.create_task(
            self._run_worker(worker),
            name=f"taskpull:worker:{worker.worker_id}",
        )
        log.info(
            "scheduler.worker_registered",
            worker=worker.worker_id,
            workers=len(self._workers),
            ceiling=self.max_concurrent_tasks,
        )
        # The ceiling may have grown; slot waiters must re-check.
        self._notifier.notify_all()
        return loop_task

    async def wait_until_finished(self) -> None:
        """Return once the supply is drained and all work has completed."""
        await self._finished.wait()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def max_concurrent_tasks(self) -> int:
        """Explicit ceiling, or tasks_per_worker × workers registered right now."""
        if self._max_concurrent_tasks is not None:
            return self._max_concurrent_tasks
        return len(self._workers) * self._tasks_per_worker

    @property
    def workers(self) -> list["Worker"]:
        return list(self._workers)

    @property
    def failed_tasks(self) -> list[Task]:
        return list(self._failed_tasks)

    @property
    def running_task_count(self) -> int:
        return len(self._running_tasks)

    @property
    def pending_task_count(self) -> int:
        return len(self._pending_tasks)

    @property
    def queued_action_count(self) -> int:
        return len(self._queued_actions)

    @property
    def in_flight_action_count(self) -> int:
        return len(self._in_flight)

    @property
    def supply_exhausted(self) -> bool:
        return self._task_provider is None

    def status(self) -> dict[str, Any]:
        """Return a snapshot of the scheduler state for display."""
        return {
            "finished": self.finished,
            "workers": [w.worker_id for w in self._workers],
            "ceiling": self.max_concurrent_tasks,
            "running_tasks": len(self._running_tasks),
            "pending_tasks": len(self._pending_tasks),
            "failed_tasks": len(self._failed_tasks),
            "queued_actions": len(self._queued_actions),
            "in_flight_actions": len(self._in_flight),
            "supply_exhausted": self.supply_exhausted,
            "tasks_started": self.stats.tasks_started,
            "actions_succeeded": self.stats.actions_succeeded,
            "actions_failed": self.stats.actions_failed,
            "last_error": self.stats.last_error,
        }

    # ── Capabilities handed to tasks and workers ──────────────────────────────

    async def perform_action(self, action: Action | Any) -> Any:
        """
        Queue an action and wait for a worker to run it.

        A bare payload is wrapped in an Action. Raises ActionFailedError
        (chained to the worker's exception) if the runner raised.
        """
        if not isinstance(action, Action):
            action = Action(payload=action)
        future = asyncio.get_running_loop().create_future()
        self._queued_actions.append(PendingSubmission(action=action, future=future))
        self.stats.actions_submitted += 1
        log.debug("scheduler.action_queued", action=action.id, queued=len(self._queued_actions))
        self._notifier.notify_all()
        return await future

    async def distribute_action(
        self,
        runner: ActionRunner,
        worker_id: Optional[str] = None,
    ) -> DistributeResult:
        """
        Hand the next queued action to ``runner``.

        Registered workers receive this method with ``worker_id`` already
        bound, so a failure is attributed to the worker that ran the action.

        Returns NO_MORE_ACTIONS only once the whole operation has drained.
        A runner exception is reported as FAILED and re-raised inside the
        submitting task as ActionFailedError; it never escapes to the worker.
        """
        submission = await self._get_next_action(worker_id)
        if submission is None:
            return DistributeResult.NO_MORE_ACTIONS

        action = submission.action
        try:
            result = await runner(action)
        except asyncio.CancelledError:
            submission.future.cancel()
            raise
        except Exception as e:
            self.stats.actions_failed += 1
            self.stats.last_error = f"{type(e).__name__}: {e}"
            log.warning(
                "scheduler.action_failed",
                action=action.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            error = ActionFailedError(action, worker_id=submission.worker_id)
            error.__cause__ = e
            submission.reject(error)
            return DistributeResult.FAILED
        finally:
            self._in_flight.remove(submission)

        self.stats.actions_succeeded += 1
        submission.resolve(result)
        return DistributeResult.SUCCEEDED

    # ── Pull algorithm ────────────────────────────────────────────────────────

    async def _get_next_action(self, worker_id: Optional[str] = None) -> Optional[PendingSubmission]:
        """Wait for the next queued action, or return None once drained."""
        while True:
            await self._enqueue_tasks_if_needed()

            submission = self._pop_queued(worker_id)
            if submission is not None:
                return submission

            if self._is_drained():
                self._mark_finished()
                return None

            # No suspension between the checks above and this wait.
            await self._notifier.wait()

    def _pop_queued(self, worker_id: Optional[str] = None) -> Optional[PendingSubmission]:
        while self._queued_actions:
            submission = self._queued_actions.popleft()
            if submission.done:
                # Submitting task was cancelled while the action sat in the queue
                continue
            submission.worker_id = worker_id
            self._in_flight.add(submission)
            return submission
        return None

    def _is_drained(self) -> bool:
        return (
            self._task_provider is None
            and not self._running_tasks
            and not self._pending_tasks
            and not self._queued_actions
        )

    def _mark_finished(self) -> None:
        if self._finished.is_set():
            return
        self.stats.finished_at = time.monotonic()
        self._finished.set()
        log.info(
            "scheduler.finished",
            tasks_started=self.stats.tasks_started,
            tasks_failed=self.stats.tasks_failed,
            actions_succeeded=self.stats.actions_succeeded,
            actions_failed=self.stats.actions_failed,
            duration_s=round(self.stats.duration_s or 0.0, 3),
        )
        # Release every other worker still parked on the gate.
        self._notifier.notify_all()

    # ── Task supply ───────────────────────────────────────────────────────────

    def _needs_task(self) -> bool:
        return (
            not self._queued_actions
            and self._task_provider is not None
            and len(self._running_tasks) + len(self._pending_tasks) < self.max_concurrent_tasks
        )

    async def _enqueue_tasks_if_needed(self) -> None:
        """Start tasks until an action is queued, the ceiling is hit, or supply ends."""
        if not self._needs_task():
            return
        async with self._supply_lock:
            # Re-check: another coroutine may have topped up while we waited.
            while self._needs_task():
                await self._start_new_task()

    async def _start_new_task(self) -> None:
        provider = self._task_provider
        if provider is None:
            return

        try:
            task = await provider()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._task_provider = None
            self.supply_error = SupplyError(f"Task provider raised {type(e).__name__}: {e}")
            self.supply_error.__cause__ = e
            self.stats.last_error = str(self.supply_error)
            log.error(
                "scheduler.supply_failed",
                error=str(e),
                error_type=type(e).__name__,
                tasks_started=self.stats.tasks_started,
            )
            self._notifier.notify_all()
            return

        if task is None:
            self._task_provider = None
            log.info("scheduler.supply_exhausted", tasks_started=self.stats.tasks_started)
            self._notifier.notify_all()
            return

        self._pending_tasks.append(task)
        self._start_pending_task()

    def _start_pending_task(self) -> None:
        """Start the oldest pending task now if a slot is free, else once one frees."""
        # _needs_task counts pending tasks against the ceiling and the ceiling
        # never shrinks, so a task fetched by the top-up always finds a slot.
        # The slot wait below is the backpressure fallback for a task queued
        # in _pending_tasks while every slot is taken.
        if len(self._running_tasks) < self.max_concurrent_tasks:
            self._launch(self._pending_tasks.pop(0))
        else:
            log.debug(
                "scheduler.task_waiting_for_slot",
                running=len(self._running_tasks),
                ceiling=self.max_concurrent_tasks,
            )
            self._spawn(self._start_when_slot_frees(), name="taskpull:slot-wait")

    async def _start_when_slot_frees(self) -> None:
        while len(self._running_tasks) >= self.max_concurrent_tasks:
            await self._notifier.wait()
        if self._pending_tasks:
            self._launch(self._pending_tasks.pop(0))

    # ── Task lifecycle ────────────────────────────────────────────────────────

    def _launch(self, task: Task) -> None:
        self._running_tasks.append(task)
        self.stats.tasks_started += 1
        self.stats.peak_running_tasks = max(self.stats.peak_running_tasks, len(self._running_tasks))
        log.info(
            "scheduler.task_started",
            task=_task_name(task),
            running=len(self._running_tasks),
            ceiling=self.max_concurrent_tasks,
        )
        self._spawn(self._run_task(task), name=f"taskpull:task:{self.stats.tasks_started}")

    async def _run_task(self, task: Task) -> None:
        """Run one task body. Failures are recorded, never re-raised."""
        try:
            await task(self.perform_action)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_tasks.append(task)
            self.stats.tasks_failed += 1
            self.stats.last_error = f"{type(e).__name__}: {e}"
            log.warning(
                "scheduler.task_failed",
                task=_task_name(task),
                error=str(e),
                error_type=type(e).__name__,
            )
        else:
            self.stats.tasks_succeeded += 1
            log.info("scheduler.task_succeeded", task=_task_name(task))
        finally:
            self._running_tasks.remove(task)
            self._notifier.notify_all()
            # A slot just freed; top up without waiting for a worker to ask.
            self._spawn(self._enqueue_tasks_if_needed(), name="taskpull:top-up")

    # ── Worker loops ──────────────────────────────────────────────────────────

    async def _run_worker(self, worker: "Worker") -> None:
        try:
            await worker.run(functools.partial(self.distribute_action, worker_id=worker.worker_id))
        except asyncio.CancelledError:
            log.info("scheduler.worker_cancelled", worker=worker.worker_id)
            raise
        except Exception as e:
            log.error(
                "scheduler.worker_crashed",
                worker=worker.worker_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
        else:
            log.info("scheduler.worker_stopped", worker=worker.worker_id)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: Optional[str] = None) -> asyncio.Task:
        # Hold a reference so the event loop cannot garbage-collect the task.
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
