"""
scheduler/notify.py — Single-slot broadcast notification gate

Notifier is the only blocking primitive the scheduler uses. It is a
level-triggered broadcast: every wait() issued before a notify_all() is
released by it, and a notify_all() with nobody waiting is dropped rather than
remembered. A wake says "something changed", never what changed, so every
caller re-checks its condition in a loop:

    while not condition():
        await notifier.wait()

Between evaluating the condition and calling wait() there must be no
suspension point; on a single event loop that makes lost wake-ups impossible.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional


class Notifier:
    """Broadcast wait/notify gate holding at most one pending future."""

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Future[None]] = None
        self._epoch = 0

    def wait(self) -> Awaitable[None]:
        """
        Return an awaitable released by the next notify_all().

        The future is installed when wait() is called, not when the result is
        awaited. Each caller gets a shielded view so cancelling one waiter
        never cancels the shared future under the others.
        """
        if self._pending is None or self._pending.done():
            self._pending = asyncio.get_running_loop().create_future()
        return asyncio.shield(self._pending)

    def notify_all(self) -> None:
        """Release every current waiter and start a new epoch."""
        pending, self._pending = self._pending, None
        self._epoch += 1
        if pending is not None and not pending.done():
            pending.set_result(None)

    @property
    def has_waiters(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def epoch(self) -> int:
        """Number of notify_all() calls so far."""
        return self._epoch
