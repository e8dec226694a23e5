"""CLI entry point: scan, init-db, scheduler, status."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from scripts.watcher.config import load_config
from scripts.watcher.db import Database
from scripts.watcher.logging_config import configure_logging
from scripts.watcher.models import ScanResult, ensure_utc
from scripts.watcher.scanner import RepositoryScanner
from scripts.watcher.watch import RepositoryWatch

logger = logging.getLogger("watcher.cli")


def _parse_since(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}")
    return ensure_utc(parsed)


def _print_result(result: ScanResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps({
            "scan_started_at": result.scan_started_at.isoformat(),
            "repositories": [r.to_dict() for r in result.repositories],
            "failed_orgs": result.failed_orgs,
        }, indent=2))
        return

    if not result.repositories:
        print("No new repositories.")
    for repo in result.repositories:
        print(f"{repo.created_at:%Y-%m-%d %H:%M}  {repo.full_name:<50}  {repo.html_url or ''}")
    for status in result.org_statuses:
        if not status.ok:
            print(f"warning: {status.org} could not be scanned: {status.error}", file=sys.stderr)


def cmd_scan(args: argparse.Namespace) -> None:
    """Run a one-shot scan, tracked in the database unless --no-db is given."""
    config = load_config()
    orgs = args.org or config.github.org_logins

    if args.no_db:
        with RepositoryScanner.from_config(config.github, config.max_workers) as scanner:
            result = scanner.scan(orgs, args.since)
        _print_result(result, args.json)
        return

    db = Database(config.database)
    watch = RepositoryWatch(config, db)
    try:
        result = watch.run_with_tracking(orgs=orgs, since=args.since)
    finally:
        watch.close()
        db.close()
    _print_result(result, args.json)
    if result.all_failed:
        sys.exit(1)


def cmd_init_db(args: argparse.Namespace) -> None:
    config = load_config()
    db = Database(config.database)
    try:
        db.ensure_schema()
    finally:
        db.close()


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from scripts.watcher.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent watch runs."""
    config = load_config()
    db = Database(config.database)

    try:
        runs = db.get_recent_runs(config.watcher_name, limit=args.limit)
        if not runs:
            print("No watch runs found.")
            return

        fmt = "{:<36}  {:<8}  {:<20}  {:<20}  {:>6}  {}"
        print(fmt.format("RUN ID", "STATUS", "STARTED", "CHECKED SINCE", "REPOS", "FAILED / ERROR"))
        print("-" * 120)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            checked = str(r["scan_started_at"])[:19] if r["scan_started_at"] else ""
            problem = r.get("error_message") or ", ".join(r.get("failed_orgs") or [])
            print(fmt.format(
                str(r["id"])[:36],
                r["status"],
                started,
                checked,
                r.get("repos_found", 0),
                problem[:40],
            ))
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-watcher",
        description="Watch GitHub organisations for newly created repositories",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Run a one-shot scan")
    scan_parser.add_argument(
        "--org", "-o",
        action="append",
        help="Organisation to scan (repeatable, default: GITHUB_ORG_LOGINS)",
    )
    scan_parser.add_argument(
        "--since", "-s",
        type=_parse_since,
        default=None,
        help="Only report repos created after this ISO-8601 time "
             "(default: start of the last recorded run)",
    )
    scan_parser.add_argument(
        "--no-db",
        action="store_true",
        help="Do not read or record runs in the database",
    )
    scan_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    scan_parser.set_defaults(func=cmd_scan)

    init_parser = subparsers.add_parser("init-db", help="Create the database tables")
    init_parser.set_defaults(func=cmd_init_db)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled scan loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent watch runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    configure_logging()
    args = build_parser().parse_args(argv)
    args.func(args)
