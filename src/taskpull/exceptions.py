"""
exceptions.py — taskpull Error Hierarchy

All taskpull-specific exceptions live here. The scheduler never lets one of
these escape to the driver; they surface to task bodies (ActionFailedError)
or are recorded on the scheduler for inspection (SupplyError).

Import from here, not from individual modules:
    from taskpull.exceptions import ActionFailedError

Hierarchy:
    TaskPullError
    ├── SchedulerError
    │   └── SchedulerFinishedError
    ├── ActionError
    │   └── ActionFailedError
    └── SupplyError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from taskpull.scheduler.types import Action


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class TaskPullError(Exception):
    """Base class for all taskpull exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Scheduler layer
# ─────────────────────────────────────────────────────────────────────────────

class SchedulerError(TaskPullError):
    """Base for scheduler coordination errors."""


class SchedulerFinishedError(SchedulerError):
    """The scheduler already signalled completion and accepts no more workers."""


# ─────────────────────────────────────────────────────────────────────────────
# Action layer
# ─────────────────────────────────────────────────────────────────────────────

class ActionError(TaskPullError):
    """Base for errors tied to a single submitted action."""


class ActionFailedError(ActionError):
    """A worker's runner raised while executing the action.

    Raised from ``perform_action`` inside the submitting task. The worker's
    original exception is available as ``__cause__``.
    """

    def __init__(self, action: "Action", worker_id: Optional[str] = None, message: str = "") -> None:
        self.action = action
        self.worker_id = worker_id
        super().__init__(
            message or f"Action '{action.id}' failed on worker '{worker_id or 'unknown'}'."
        )


# ─────────────────────────────────────────────────────────────────────────────
# Supply layer
# ─────────────────────────────────────────────────────────────────────────────

class SupplyError(TaskPullError):
    """The task provider raised instead of returning a task or None."""


__all__ = [
    "TaskPullError",
    "SchedulerError",
    "SchedulerFinishedError",
    "ActionError",
    "ActionFailedError",
    "SupplyError",
]
