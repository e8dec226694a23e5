"""Shared fixtures: a fake requests.Session serving canned GitHub pages."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_repos(org: str, count: int, start: datetime = BASE_TIME, prefix: str = "repo") -> list[dict]:
    """Build ``count`` repository records created one minute apart from ``start``."""
    return [
        {
            "id": i,
            "name": f"{prefix}-{i}",
            "full_name": f"{org}/{prefix}-{i}",
            "owner": {"login": org},
            "html_url": f"https://github.com/{org}/{prefix}-{i}",
            "created_at": iso(start + timedelta(minutes=i)),
        }
        for i in range(count)
    ]


def make_response(payload, status_code: int = 200) -> MagicMock:
    """Build a minimal mock requests.Response whose json() returns payload."""
    resp = MagicMock()
    resp.status_code = status_code
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


class FakeGitHub:
    """Serves pages keyed by (org, page); unknown pages come back empty."""

    def __init__(self, pages: dict | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: list[tuple[str, int]] = []
        self.session = MagicMock()
        self.session.headers = {}
        self.session.get.side_effect = self._get

    def _get(self, url, params=None, timeout=None):
        org = url.split("/orgs/", 1)[1].split("/", 1)[0]
        page = int(params["page"])
        self.calls.append((org, page))
        value = self.pages.get((org, page), [])
        if isinstance(value, Exception):
            raise value
        if isinstance(value, MagicMock):
            return value
        return make_response(value)

    def pages_for(self, org: str) -> list[int]:
        return [page for o, page in self.calls if o == org]


@pytest.fixture
def github():
    return FakeGitHub()
