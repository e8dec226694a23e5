"""APScheduler-based interval scheduling for watch runs."""

from __future__ import annotations

import logging

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from scripts.watcher.config import WatcherConfig
from scripts.watcher.db import Database
from scripts.watcher.watch import RepositoryWatch

logger = logging.getLogger("watcher.scheduler")


def _run_watch(config: WatcherConfig, db: Database) -> None:
    """Run one tracked scan. Failures are recorded and logged, never retried."""
    watch = RepositoryWatch(config, db)
    try:
        result = watch.run_with_tracking()
        for repo in result.repositories:
            logger.info("New repository %s", repo.full_name, extra={"org": repo.owner})
    except Exception as exc:
        logger.error("Scheduled watch run failed: %s", exc)
    finally:
        watch.close()


def _on_job_error(event) -> None:
    logger.error("Job %s raised an exception: %s", event.job_id, event.exception)


def build_scheduler(config: WatcherConfig, db: Database) -> BlockingScheduler:
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_job(
        _run_watch,
        "interval",
        minutes=config.scheduler.scan_interval_min,
        args=[config, db],
        id="repository_watch",
        max_instances=1,
        misfire_grace_time=config.scheduler.misfire_grace_time,
    )
    return scheduler


def start_scheduler(config: WatcherConfig, db: Database) -> None:
    """Start the blocking scheduler with the repository watch job."""
    scheduler = build_scheduler(config, db)
    logger.info(
        "Starting scheduler, scanning every %d min", config.scheduler.scan_interval_min
    )
    scheduler.start()
