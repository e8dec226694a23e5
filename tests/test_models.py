"""Tests for scanner value types and error messages."""

from datetime import datetime, timezone

import pytest

from scripts.watcher.errors import MalformedResponseError, ScanError, TransportError
from scripts.watcher.models import OrgScanStatus, RepositorySummary, ScanResult, parse_timestamp


class TestParseTimestamp:
    def test_github_z_suffix(self):
        assert parse_timestamp("2024-03-01T12:00:00Z") == datetime(
            2024, 3, 1, 12, 0, tzinfo=timezone.utc
        )

    def test_naive_value_becomes_utc(self):
        assert parse_timestamp("2024-03-01T12:00:00").tzinfo == timezone.utc

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestRepositorySummary:
    def test_owner_falls_back_to_org(self):
        repo = RepositorySummary.from_api(
            {"name": "x", "created_at": "2024-03-01T12:00:00Z"}, "mozilla"
        )
        assert repo.owner == "mozilla"
        assert repo.full_name == "mozilla/x"
        assert repo.html_url is None

    def test_to_dict(self):
        repo = RepositorySummary.from_api(
            {
                "name": "x",
                "full_name": "mozilla/x",
                "owner": {"login": "mozilla"},
                "html_url": "https://github.com/mozilla/x",
                "created_at": "2024-03-01T12:00:00Z",
            },
            "mozilla",
        )
        assert repo.to_dict() == {
            "name": "x",
            "owner": "mozilla",
            "full_name": "mozilla/x",
            "html_url": "https://github.com/mozilla/x",
            "created_at": "2024-03-01T12:00:00+00:00",
        }


class TestScanResult:
    def test_failed_orgs_and_all_failed(self):
        result = ScanResult(
            scan_started_at=datetime.now(timezone.utc),
            org_statuses=[OrgScanStatus("a"), OrgScanStatus("b", error="x")],
        )
        assert result.failed_orgs == ["b"]
        assert not result.all_failed

    def test_empty_result_is_not_all_failed(self):
        assert not ScanResult(scan_started_at=datetime.now(timezone.utc)).all_failed


class TestErrors:
    def test_malformed_message_includes_upstream_text(self):
        err = MalformedResponseError("mozilla", 2, "Bad credentials")
        assert isinstance(err, ScanError)
        assert str(err) == (
            "Expected a list of repositories from GitHub: Bad credentials "
            "(org=mozilla, page=2)"
        )

    def test_transport_error_keeps_cause(self):
        cause = OSError("reset")
        err = TransportError("mozilla", 1, cause)
        assert err.cause is cause
        assert err.org == "mozilla"
