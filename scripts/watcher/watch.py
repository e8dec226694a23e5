"""A tracked watch run: pick the check date, scan, persist, record the outcome."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from scripts.watcher.config import WatcherConfig
from scripts.watcher.db import Database
from scripts.watcher.models import ScanResult
from scripts.watcher.scanner import RepositoryScanner

logger = logging.getLogger("watcher.run")


def run_status(result: ScanResult) -> str:
    """SUCCESS, PARTIAL when some organisations failed, FAILED when all did."""
    if result.all_failed:
        return "FAILED"
    if result.failed_orgs:
        return "PARTIAL"
    return "SUCCESS"


class RepositoryWatch:
    """Runs a scan against the last check date stored for this watcher."""

    def __init__(
        self,
        config: WatcherConfig,
        db: Database,
        scanner: Optional[RepositoryScanner] = None,
    ) -> None:
        self.config = config
        self.db = db
        self.watcher = config.watcher_name
        self.scanner = scanner or RepositoryScanner.from_config(
            config.github, max_workers=config.max_workers
        )

    def close(self) -> None:
        self.scanner.close()

    def run_with_tracking(
        self,
        orgs: Optional[Sequence[str]] = None,
        since: Optional[datetime] = None,
    ) -> ScanResult:
        """Scan and record a watch_runs row around it.

        ``since`` overrides the stored last check date. A run in which every
        organisation failed is recorded as FAILED and does not advance the
        check date, since get_last_check_date() ignores it.
        """
        orgs = list(orgs or self.config.github.org_logins)
        if since is None:
            since = self.db.get_last_check_date(self.watcher)

        run_id = self.db.record_run_start(self.watcher, orgs)
        extra = {"watcher": self.watcher, "run_id": run_id}
        logger.info(
            "Watch run started, checking since %s", since or "the beginning", extra=extra
        )

        try:
            result = self.scanner.scan(orgs, since)
            self.db.upsert_repositories(run_id, result.repositories)
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
            )
            logger.error("Watch run failed: %s", exc, extra=extra)
            raise

        status = run_status(result)
        self.db.record_run_end(
            run_id=run_id,
            status=status,
            scan_started_at=result.scan_started_at,
            repos_found=len(result.repositories),
            failed_orgs=result.failed_orgs,
        )
        logger.info(
            "Watch run finished",
            extra={**extra, "status": status, "records": len(result.repositories)},
        )
        return result
