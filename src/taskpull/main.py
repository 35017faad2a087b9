"""
main.py — taskpull demo entry point

Runs the reference "double every payload" workload through the scheduler
and prints a summary table. Useful for eyeballing the concurrency ceiling
and the log output.

Usage:
    python -m taskpull                                  # 4 tasks × 5 actions, 2 workers
    python -m taskpull --tasks 2 --actions-per-task 3 --workers 1 --max-concurrent 1
    python -m taskpull --fail-every 7                   # runner raises on every 7th payload
    python -m taskpull --log-level DEBUG --config path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Optional

from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from taskpull.config.settings import ConfigError, Settings, load_settings
from taskpull.observability.logger import get_logger, setup_logging_from_settings
from taskpull.providers import task_provider_from_list
from taskpull.scheduler.scheduler import Scheduler
from taskpull.scheduler.types import Action, PerformAction, Task
from taskpull.workers.base import CallableWorker


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="taskpull",
        description="taskpull — run the doubling demo through the pull scheduler",
    )
    parser.add_argument("--tasks", type=int, default=4, help="Number of tasks to supply (default: 4)")
    parser.add_argument(
        "--actions-per-task", type=int, default=5,
        help="Actions each task submits concurrently (default: 5)",
    )
    parser.add_argument("--workers", type=int, default=2, help="Number of workers (default: 2)")
    parser.add_argument(
        "--max-concurrent", type=int, default=None,
        help="Task ceiling (default: scheduler.max_concurrent_tasks or 3 × workers)",
    )
    parser.add_argument(
        "--fail-every", type=int, default=0,
        help="Make the runner raise for every payload divisible by N (0 = never)",
    )
    parser.add_argument(
        "--action-delay", type=float, default=0.0,
        help="Seconds each action sleeps to simulate work (default: 0)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $TASKPULL_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    args = parser.parse_args(argv)
    for name in ("tasks", "actions_per_task", "workers"):
        if getattr(args, name) < 0:
            parser.error(f"--{name.replace('_', '-')} must be >= 0")
    if args.max_concurrent is not None and args.max_concurrent < 1:
        parser.error("--max-concurrent must be >= 1")
    return args


def bootstrap(args: argparse.Namespace) -> Settings:
    """
    Load config, validate it fully, and set up logging.

    Exits with code 1 (after printing a clear message) on invalid config.
    """
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(f"\nConfig validation failed:\n\n{problems}\n", file=sys.stderr)
        sys.exit(1)
    except OSError as exc:
        print(f"\nFailed to load config: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        sys.exit(1)

    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    setup_logging_from_settings(settings, level=args.log_level)
    return settings


def build_doubling_tasks(count: int, actions_per_task: int, results: dict[int, list[Any]]) -> list[Task]:
    """Task i submits payloads i*100 .. i*100+n-1 concurrently and records the results."""

    def make(index: int) -> Task:
        async def doubling_task(perform_action: PerformAction) -> None:
            payloads = [index * 100 + n for n in range(actions_per_task)]
            results[index] = await asyncio.gather(*(perform_action(Action(p)) for p in payloads))

        doubling_task.__qualname__ = f"doubling_task[{index}]"
        return doubling_task

    return [make(i) for i in range(count)]


async def run_demo(args: argparse.Namespace, settings: Settings) -> Scheduler:
    log = get_logger("taskpull.main")
    results: dict[int, list[Any]] = {}
    tasks = build_doubling_tasks(args.tasks, args.actions_per_task, results)

    provider = task_provider_from_list(tasks)
    if args.max_concurrent is not None:
        scheduler = Scheduler(
            provider,
            max_concurrent_tasks=args.max_concurrent,
            tasks_per_worker=settings.scheduler.tasks_per_worker,
        )
    else:
        scheduler = Scheduler.from_settings(settings, provider)

    async def double(action: Action) -> int:
        if args.action_delay:
            await asyncio.sleep(args.action_delay)
        if args.fail_every and action.payload % args.fail_every == 0:
            raise ValueError(f"refusing payload {action.payload}")
        return action.payload * 2

    log.info("demo.starting", tasks=args.tasks, actions_per_task=args.actions_per_task, workers=args.workers)
    for n in range(args.workers):
        scheduler.register_worker(CallableWorker(f"worker-{n}", double))
    if args.workers:
        await scheduler.wait_until_finished()
    log.info("demo.finished", completed_tasks=len(results), failed_tasks=len(scheduler.failed_tasks))
    return scheduler


def render_summary(scheduler: Scheduler, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="taskpull run", box=box.ROUNDED, border_style="dim")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    stats = scheduler.stats
    rows = [
        ("workers", str(len(scheduler.workers))),
        ("task ceiling", str(scheduler.max_concurrent_tasks)),
        ("peak running tasks", str(stats.peak_running_tasks)),
        ("tasks started", str(stats.tasks_started)),
        ("tasks succeeded", f"[green]{stats.tasks_succeeded}[/]"),
        ("tasks failed", f"[red]{stats.tasks_failed}[/]" if stats.tasks_failed else "0"),
        ("actions succeeded", f"[green]{stats.actions_succeeded}[/]"),
        ("actions failed", f"[red]{stats.actions_failed}[/]" if stats.actions_failed else "0"),
        ("duration (s)", f"{stats.duration_s or 0.0:.3f}"),
    ]
    for metric, value in rows:
        table.add_row(metric, value)
    console.print(table)
    if stats.last_error:
        console.print(f"[dim]last error: {stats.last_error}[/]")


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    settings = bootstrap(args)
    if args.workers == 0 and args.tasks:
        print("No workers: the scheduler would wait forever. Use --workers >= 1.", file=sys.stderr)
        return 1
    scheduler = await run_demo(args, settings)
    render_summary(scheduler)
    return 0


def cli() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))
