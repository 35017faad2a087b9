from taskpull.workers.base import CallableWorker, NamedWorker, PullLoopStats, Worker, run_pull_loop

__all__ = ["CallableWorker", "NamedWorker", "PullLoopStats", "Worker", "run_pull_loop"]
