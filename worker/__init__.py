"""SEO Report Pipeline - Worker Package."""

# Lazy imports to avoid requiring all dependencies at import time
# Use explicit imports when these are needed:
# from worker.scheduler import ReportJobScheduler
# from worker.jobs import Job, JobStatus
# from worker.redis import get_redis_connection

from typing import Any

__all__ = [
    "ReportJobScheduler",
    "Job",
    "JobStatus",
    "get_redis_connection",
    "get_redis_connection_bytes",
]


def __getattr__(name: str) -> Any:
    """Lazy import for worker submodules."""
    if name == "ReportJobScheduler":
        from worker.scheduler import ReportJobScheduler

        return ReportJobScheduler
    elif name in ("Job", "JobStatus"):
        from worker.jobs import Job, JobStatus

        return locals()[name]
    elif name in ("get_redis_connection", "get_redis_connection_bytes"):
        from worker.redis import get_redis_connection, get_redis_connection_bytes

        return locals()[name]
    raise AttributeError(f"module 'worker' has no attribute '{name}'")
