"""AWS Lambda handler for the repository watcher.

Deployed as a Lambda function triggered by an EventBridge schedule.

Event format (all keys optional):
  {}
  {"orgs": ["mozilla", "mozilla-services"]}
  {"orgs": ["mozilla"], "since": "2024-01-01T00:00:00Z"}
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

# Ensure the project root is on sys.path for Lambda packaging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

from scripts.watcher.config import load_config
from scripts.watcher.db import Database
from scripts.watcher.logging_config import configure_logging
from scripts.watcher.models import parse_timestamp
from scripts.watcher.watch import RepositoryWatch

logger = logging.getLogger("watcher.lambda")


def _parse_event(event: dict) -> tuple[Optional[list[str]], Optional[datetime]]:
    """Pull the optional org list and check date out of the event."""
    orgs = event.get("orgs")
    if orgs is not None:
        if not isinstance(orgs, list) or not all(isinstance(o, str) and o for o in orgs):
            raise ValueError(f"'orgs' must be a list of organisation names, got {orgs!r}")

    raw_since = event.get("since")
    if raw_since is None:
        return orgs, None
    if not isinstance(raw_since, str):
        raise ValueError(f"'since' must be an ISO-8601 string, got {raw_since!r}")
    try:
        return orgs, parse_timestamp(raw_since)
    except ValueError:
        raise ValueError(f"Invalid 'since' in event: {raw_since!r}")


def handler(event: dict, context) -> dict:
    """Lambda entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    try:
        orgs, since = _parse_event(event)
    except ValueError as exc:
        return {"statusCode": 400, "body": str(exc)}

    config = load_config()
    db = Database(config.database)
    watch = RepositoryWatch(config, db)
    logger.info("Lambda invoked", extra={"watcher": config.watcher_name})

    try:
        result = watch.run_with_tracking(orgs=orgs, since=since)
        return {
            "statusCode": 200,
            "body": json.dumps({
                "scan_started_at": result.scan_started_at.isoformat(),
                "repositories": [r.to_dict() for r in result.repositories],
                "failed_orgs": result.failed_orgs,
            }),
        }
    except Exception as exc:
        logger.error("Watch run failed: %s", exc, exc_info=True)
        return {"statusCode": 500, "body": json.dumps({"error": str(exc)})}
    finally:
        watch.close()
        db.close()
