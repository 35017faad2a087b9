"""
tests/unit/test_providers.py — Task supply adapter tests

Every provider must: serve tasks in order, never resurrect one, and keep
returning None once exhausted.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from taskpull.providers import (
    task_provider_from_async_iterable,
    task_provider_from_directory,
    task_provider_from_iterable,
    task_provider_from_list,
)
from taskpull.scheduler.scheduler import Scheduler
from taskpull.scheduler.types import Action
from taskpull.workers.base import CallableWorker


def _named(name: str):
    async def task(perform_action):
        return name
    task.__qualname__ = name
    return task


async def _drain(provider, extra_calls: int = 2) -> list:
    served = []
    while (task := await provider()) is not None:
        served.append(task)
    for _ in range(extra_calls):
        assert await provider() is None
    return served


class TestListProvider:

    @pytest.mark.asyncio
    async def test_serves_in_order_and_consumes_list(self):
        a, b, c = _named("a"), _named("b"), _named("c")
        tasks = [a, b, c]
        provider = task_provider_from_list(tasks)
        assert await _drain(provider) == [a, b, c]
        assert tasks == []

    @pytest.mark.asyncio
    async def test_tasks_appended_before_exhaustion_are_served(self):
        a, b = _named("a"), _named("b")
        tasks = [a]
        provider = task_provider_from_list(tasks)
        assert await provider() is a
        tasks.append(b)
        assert await provider() is b

    @pytest.mark.asyncio
    async def test_exhaustion_is_permanent(self):
        tasks: list = []
        provider = task_provider_from_list(tasks)
        assert await provider() is None
        tasks.append(_named("late"))
        assert await provider() is None


class TestIterableProvider:

    @pytest.mark.asyncio
    async def test_generator_advanced_lazily(self):
        produced: list[int] = []

        def gen():
            for i in range(3):
                produced.append(i)
                yield _named(f"t{i}")

        provider = task_provider_from_iterable(gen())
        assert produced == []
        await provider()
        assert produced == [0]
        served = await _drain(provider)
        assert len(served) == 2
        assert produced == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_async_iterable(self):
        async def agen():
            for i in range(2):
                await asyncio.sleep(0)
                yield _named(f"a{i}")

        provider = task_provider_from_async_iterable(agen())
        served = await _drain(provider)
        assert [t.__qualname__ for t in served] == ["a0", "a1"]


class TestDirectoryProvider:

    @pytest.mark.asyncio
    async def test_walks_sorted_and_filters(self, tmp_path: Path):
        (tmp_path / "b.txt").write_text("b")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "skip.log").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.txt").write_text("c")

        seen: list[Path] = []

        def make_task(path: Path):
            seen.append(path)
            return _named(path.name)

        provider = task_provider_from_directory(tmp_path, make_task, pattern="*.txt")
        served = await _drain(provider)

        assert [t.__qualname__ for t in served] == ["a.txt", "b.txt", "c.txt"]
        assert seen == [tmp_path / "a.txt", tmp_path / "b.txt", tmp_path / "sub" / "c.txt"]

    def test_missing_directory_raises(self, tmp_path: Path):
        with pytest.raises(NotADirectoryError):
            task_provider_from_directory(tmp_path / "nope", lambda p: _named(p.name))

    @pytest.mark.asyncio
    async def test_directory_tasks_through_scheduler(self, tmp_path: Path):
        for name, body in (("one.txt", "alpha"), ("two.txt", "beta gamma")):
            (tmp_path / name).write_text(body)

        word_counts: dict[str, int] = {}

        def make_task(path: Path):
            async def count_words(perform_action):
                word_counts[path.name] = await perform_action(Action(path))
            return count_words

        async def read_and_count(action: Action) -> int:
            return len(action.payload.read_text().split())

        s = Scheduler(task_provider_from_directory(tmp_path, make_task))
        s.register_worker(CallableWorker("reader", read_and_count))
        await asyncio.wait_for(s.wait_until_finished(), timeout=2.0)

        assert word_counts == {"one.txt": 1, "two.txt": 2}
