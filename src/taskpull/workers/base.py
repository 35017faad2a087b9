"""
workers/base.py — Worker protocol and the shared pull loop

A worker is anything with a stable ``worker_id`` and an async ``run()`` that
keeps pulling from the scheduler until told no work remains. The loop itself
is generic and lives in run_pull_loop(); concrete workers only supply the
per-action runner.

Rules for worker authors:
  1. Subclass NamedWorker and implement ``async run_action(action)``.
  2. Raise from run_action() to report failure. The scheduler turns it into
     ActionFailedError inside the submitting task; the loop keeps going.
  3. Worker ids are not checked for uniqueness.

Example:
    class DoublingWorker(NamedWorker):
        async def run_action(self, action: Action) -> int:
            return action.payload * 2

    scheduler.register_worker(DoublingWorker("w1"))

For one-off workers wrap a coroutine function instead:
    scheduler.register_worker(CallableWorker("w1", double))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from taskpull.observability.logger import bind_worker, clear_context, get_logger
from taskpull.scheduler.types import Action, ActionDistributor, ActionRunner, DistributeResult

log = get_logger(__name__)


@runtime_checkable
class Worker(Protocol):
    """What the scheduler needs from a worker."""

    @property
    def worker_id(self) -> str: ...

    async def run(self, distribute_action: ActionDistributor) -> None: ...


@dataclass
class PullLoopStats:
    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


async def run_pull_loop(
    distribute_action: ActionDistributor,
    runner: ActionRunner,
    worker_id: Optional[str] = None,
) -> PullLoopStats:
    """
    Pull and run actions until the scheduler reports NO_MORE_ACTIONS.

    Binds ``worker_id`` into the structlog context for every line logged
    while this loop (and the actions it runs) is executing.
    """
    stats = PullLoopStats()
    if worker_id is not None:
        bind_worker(worker_id)
    log.info("worker.loop_started")
    try:
        while True:
            outcome = await distribute_action(runner)
            if outcome is DistributeResult.SUCCEEDED:
                stats.succeeded += 1
            elif outcome is DistributeResult.FAILED:
                stats.failed += 1
            if not outcome.more_work:
                break
        log.info("worker.loop_finished", succeeded=stats.succeeded, failed=stats.failed)
    finally:
        if worker_id is not None:
            clear_context()
    return stats


class NamedWorker(ABC):
    """
    Worker with a string id whose run() is the shared pull loop.

    ``stats`` holds the counters of the most recent run().
    """

    def __init__(self, worker_id: str) -> None:
        self._worker_id = worker_id
        self.stats = PullLoopStats()

    @property
    def worker_id(self) -> str:
        return self._worker_id

    async def run(self, distribute_action: ActionDistributor) -> None:
        self.stats = await run_pull_loop(distribute_action, self.run_action, worker_id=self._worker_id)

    @abstractmethod
    async def run_action(self, action: Action) -> Any:
        """Execute one action and return its result, or raise on failure."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}:{self._worker_id}>"


class CallableWorker(NamedWorker):
    """NamedWorker backed by a plain ``async def fn(action) -> result``."""

    def __init__(self, worker_id: str, fn: Callable[[Action], Awaitable[Any]]) -> None:
        super().__init__(worker_id)
        self._fn = fn

    async def run_action(self, action: Action) -> Any:
        return await self._fn(action)
