"""RQ Worker entrypoint.

`python -m worker.main` starts a worker on the recurring report queue.
`python -m worker.main scheduler` runs the rq-scheduler loop that moves
due recurring schedules onto the queue.
"""

import os
import platform
import sys

import structlog
from rq import SimpleWorker, Worker

from api.config import get_settings
from api.logging import setup_logging
from worker.recurring import get_scheduler
from worker.redis import get_redis_connection_bytes

logger = structlog.get_logger(__name__)


def worker_queues() -> list[str]:
    settings = get_settings()
    return [settings.recurring_queue_name]


def run_worker() -> None:
    """Start the RQ worker."""
    settings = get_settings()
    setup_logging()

    queues = worker_queues()
    logger.info("worker_starting", env=settings.env, queues=queues)

    # Use SimpleWorker on Windows (no os.fork() support)
    worker_class = SimpleWorker if platform.system() == "Windows" else Worker

    worker = worker_class(
        queues,
        connection=get_redis_connection_bytes(),
        name=f"seo-report-worker-{os.getpid()}",
    )

    worker.work(logging_level=settings.log_level)


def run_recurring_scheduler(interval_seconds: int = 60) -> None:
    """Run the rq-scheduler loop (blocking)."""
    setup_logging()
    logger.info("recurring_scheduler_starting", interval_seconds=interval_seconds)
    scheduler = get_scheduler()
    scheduler.interval = interval_seconds
    scheduler.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "scheduler":
        run_recurring_scheduler()
    else:
        run_worker()
