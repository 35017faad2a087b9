"""
providers.py — Task supply adapters

Every provider returned here follows the same contract:
  - each call returns the next task, or None once the supply is drained
  - after the first None, every later call returns None as well
  - a task is returned at most once
  - the only side effect of a call is advancing the underlying supply

The scheduler stops calling a provider after its first None, but providers
are safe to share with other callers that do not.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterable, Callable, Iterable, Iterator, Optional

from taskpull.observability.logger import get_logger
from taskpull.scheduler.types import Task, TaskProvider

log = get_logger(__name__)


def task_provider_from_list(tasks: list[Task]) -> TaskProvider:
    """
    Serve tasks from the front of ``tasks``, removing each one as it is served.

    The list is consumed in place, so tasks appended before it drains are
    served too. Once it has been seen empty the provider stays exhausted.
    """
    exhausted = False

    async def provider() -> Optional[Task]:
        nonlocal exhausted
        if exhausted:
            return None
        if not tasks:
            exhausted = True
            return None
        return tasks.pop(0)

    return provider


def task_provider_from_iterable(source: Iterable[Task]) -> TaskProvider:
    """Serve tasks lazily from any iterable, generators included."""
    iterator: Optional[Iterator[Task]] = iter(source)

    async def provider() -> Optional[Task]:
        nonlocal iterator
        if iterator is None:
            return None
        try:
            return next(iterator)
        except StopIteration:
            iterator = None
            return None

    return provider


def task_provider_from_async_iterable(source: AsyncIterable[Task]) -> TaskProvider:
    """Serve tasks from an async iterable (e.g. an async generator paging an API)."""
    iterator = source.__aiter__()
    exhausted = False

    async def provider() -> Optional[Task]:
        nonlocal exhausted
        if exhausted:
            return None
        try:
            return await iterator.__anext__()
        except StopAsyncIteration:
            exhausted = True
            return None

    return provider


def task_provider_from_directory(
    root: str | Path,
    make_task: Callable[[Path], Task],
    pattern: str = "*",
) -> TaskProvider:
    """
    Turn every file under ``root`` matching ``pattern`` into a task.

    The tree is walked lazily, one directory at a time, in sorted order so
    runs are reproducible. Directories are never handed to ``make_task`` and
    symlinked directories are not followed.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Task directory '{root}' does not exist or is not a directory.")

    def _walk(directory: Path) -> Iterator[Task]:
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            log.warning("providers.directory_unreadable", path=str(directory), error=str(e))
            return
        for entry in entries:
            if entry.is_dir():
                if not entry.is_symlink():
                    yield from _walk(entry)
            elif entry.match(pattern):
                yield make_task(entry)

    return task_provider_from_iterable(_walk(root))
