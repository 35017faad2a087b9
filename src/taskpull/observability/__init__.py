from taskpull.observability.logger import (
    bind_worker,
    clear_context,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)

__all__ = [
    "bind_worker",
    "clear_context",
    "get_logger",
    "setup_logging",
    "setup_logging_from_settings",
]
