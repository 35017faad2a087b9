"""
tests/unit/test_notify.py — Notifier gate unit tests

Covers:
  - wait() released by the next notify_all()
  - notify_all() with no waiter is dropped, not buffered
  - broadcast to every waiter, new epoch after each notify
  - cancelling one waiter leaves the others intact
"""

from __future__ import annotations

import asyncio

import pytest

from taskpull.scheduler.notify import Notifier


class TestNotifier:

    @pytest.mark.asyncio
    async def test_wait_released_by_notify(self):
        n = Notifier()
        waiter = n.wait()
        assert n.has_waiters
        n.notify_all()
        await asyncio.wait_for(waiter, timeout=0.5)
        assert not n.has_waiters

    @pytest.mark.asyncio
    async def test_notify_without_waiter_is_not_buffered(self):
        n = Notifier()
        n.notify_all()  # nobody listening: dropped
        waiter = n.wait()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(asyncio.shield(waiter), timeout=0.05)
        n.notify_all()
        await asyncio.wait_for(waiter, timeout=0.5)

    @pytest.mark.asyncio
    async def test_all_waiters_released_by_one_notify(self):
        n = Notifier()
        released: list[int] = []

        async def wait_for_it(i: int) -> None:
            await n.wait()
            released.append(i)

        tasks = [asyncio.create_task(wait_for_it(i)) for i in range(5)]
        await asyncio.sleep(0)  # let every task reach wait()
        n.notify_all()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=0.5)
        assert sorted(released) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_waiters_share_one_epoch(self):
        n = Notifier()
        first = n.wait()
        second = n.wait()
        n.notify_all()
        await asyncio.wait_for(asyncio.gather(first, second), timeout=0.5)

    @pytest.mark.asyncio
    async def test_wait_after_notify_starts_new_epoch(self):
        n = Notifier()
        before = n.wait()
        n.notify_all()
        after = n.wait()
        await asyncio.wait_for(before, timeout=0.5)
        assert not after.done()
        n.notify_all()
        await asyncio.wait_for(after, timeout=0.5)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_others(self):
        n = Notifier()
        cancelled = n.wait()
        survivor = n.wait()
        cancelled.cancel()
        n.notify_all()
        await asyncio.wait_for(survivor, timeout=0.5)
        assert cancelled.cancelled()

    @pytest.mark.asyncio
    async def test_epoch_counts_notifies(self):
        n = Notifier()
        assert n.epoch == 0
        n.notify_all()
        n.notify_all()
        assert n.epoch == 2
