"""Value types passed in and out of the repository scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare against GitHub timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp as returned by GitHub ("...Z" suffix)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


@dataclass(frozen=True)
class ScanRequest:
    organization_ids: frozenset[str]
    credential: str
    since: Optional[datetime] = None


@dataclass(frozen=True)
class RepositorySummary:
    """The fields the watcher cares about, plus the untouched API record."""

    name: str
    owner: str
    created_at: datetime
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def full_name(self) -> str:
        return self.raw.get("full_name") or f"{self.owner}/{self.name}"

    @property
    def html_url(self) -> Optional[str]:
        return self.raw.get("html_url")

    @classmethod
    def from_api(cls, record: dict[str, Any], org: str) -> "RepositorySummary":
        """Build a summary from one element of GET /orgs/{org}/repos.

        Raises KeyError when created_at is missing, TypeError when owner or
        created_at has the wrong type, ValueError when created_at is unparseable.
        """
        owner = record.get("owner") or {}
        if not isinstance(owner, dict):
            raise TypeError(f"owner is {type(owner).__name__}, expected an object")
        created_at = record["created_at"]
        if not isinstance(created_at, str):
            raise TypeError(f"created_at is {type(created_at).__name__}, expected a string")
        return cls(
            name=record.get("name", ""),
            owner=owner.get("login") or org,
            created_at=parse_timestamp(created_at),
            raw=record,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "owner": self.owner,
            "full_name": self.full_name,
            "html_url": self.html_url,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class OrgScanStatus:
    org: str
    pages_fetched: int = 0
    repos_found: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ScanResult:
    """Repositories in discovery order, plus when the scan began."""

    scan_started_at: datetime
    repositories: list[RepositorySummary] = field(default_factory=list)
    org_statuses: list[OrgScanStatus] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.repositories)

    def __iter__(self):
        return iter(self.repositories)

    @property
    def failed_orgs(self) -> list[str]:
        return [s.org for s in self.org_statuses if not s.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.org_statuses) and all(not s.ok for s in self.org_statuses)
