"""GCP Cloud Run Job entry point for the repository watcher.

Deployed as a Cloud Run Job triggered by Cloud Scheduler. Exits non-zero
when the run fails outright or every organisation fails.

Usage:
  python -m scripts.watcher.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

from scripts.watcher.config import load_config
from scripts.watcher.db import Database
from scripts.watcher.logging_config import configure_logging
from scripts.watcher.watch import RepositoryWatch

logger = logging.getLogger("watcher.cloudrun")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    config = load_config()
    db = Database(config.database)
    watch = RepositoryWatch(config, db)
    logger.info("Cloud Run Job started", extra={"watcher": config.watcher_name})

    try:
        result = watch.run_with_tracking()
    except Exception as exc:
        logger.error("Watch run failed: %s", exc, exc_info=True)
        sys.exit(1)
    finally:
        watch.close()
        db.close()

    if result.all_failed:
        logger.error("Every organisation failed: %s", ", ".join(result.failed_orgs))
        sys.exit(1)


if __name__ == "__main__":
    main()
