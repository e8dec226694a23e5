"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev)
  - AWS Secrets Manager (aws-secret://name#key)
  - GCP Secret Manager (gcp-secret://name)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from scripts.watcher.secrets import resolve_database_url, resolve_secret


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 4


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    org_logins: list[str] = field(default_factory=list)
    api_base_url: str = "https://api.github.com"
    user_agent: str = "repo-watcher"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class SchedulerConfig:
    scan_interval_min: int = 60
    misfire_grace_time: int = 300


@dataclass(frozen=True)
class WatcherConfig:
    github: GitHubConfig
    database: DatabaseConfig
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    watcher_name: str = "default"
    max_workers: int = 8


def parse_org_logins(raw: str) -> list[str]:
    """Split a comma-separated org list, dropping blanks and duplicates."""
    logins: list[str] = []
    for part in raw.split(","):
        login = part.strip()
        if login and login not in logins:
            logins.append(login)
    return logins


def load_config() -> WatcherConfig:
    """Load configuration from environment variables.

    The GitHub token may be a secret reference, resolved through AWS Secrets
    Manager or GCP Secret Manager. Locally, plain env vars or .env files
    are used.
    """
    load_dotenv()

    gh_token_raw = os.environ.get("GITHUB_TOKEN", "")
    if not gh_token_raw:
        raise ValueError("GITHUB_TOKEN environment variable is required")

    logins = parse_org_logins(os.environ.get("GITHUB_ORG_LOGINS", ""))
    if not logins:
        raise ValueError("GITHUB_ORG_LOGINS must name at least one organisation")

    github = GitHubConfig(
        token=resolve_secret(gh_token_raw),
        org_logins=logins,
        api_base_url=os.environ.get("GITHUB_API_BASE_URL", "https://api.github.com"),
        user_agent=os.environ.get("GITHUB_USER_AGENT", "repo-watcher"),
        timeout_seconds=float(os.environ.get("GITHUB_TIMEOUT_SECONDS", "30")),
    )

    database = DatabaseConfig(
        url=resolve_database_url(),
        min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "1")),
        max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "4")),
    )

    scheduler = SchedulerConfig(
        scan_interval_min=int(os.environ.get("SCAN_INTERVAL_MIN", "60")),
        misfire_grace_time=int(os.environ.get("SCHEDULER_MISFIRE_GRACE", "300")),
    )

    max_workers = int(os.environ.get("SCAN_MAX_WORKERS", "8"))
    if max_workers < 1:
        raise ValueError("SCAN_MAX_WORKERS must be at least 1")

    return WatcherConfig(
        github=github,
        database=database,
        scheduler=scheduler,
        watcher_name=os.environ.get("WATCHER_NAME", "default"),
        max_workers=max_workers,
    )
