"""Scan GitHub organisations for repositories created since the last check."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

import requests

from scripts.watcher.config import GitHubConfig
from scripts.watcher.errors import MalformedResponseError, ScanError, TransportError
from scripts.watcher.models import (
    OrgScanStatus,
    RepositorySummary,
    ScanRequest,
    ScanResult,
    ensure_utc,
)

logger = logging.getLogger("watcher.scanner")

PAGE_SIZE = 100


def _unique(org_ids: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for org in org_ids:
        if org not in seen:
            seen.append(org)
    return seen


class RepositoryScanner:
    """Lists new repositories across several organisations concurrently.

    Each organisation is paged sequentially on its own worker; the pages of
    different organisations overlap. Results are buffered per organisation
    and concatenated in the order the organisations were given.
    """

    def __init__(
        self,
        token: str,
        api_base_url: str = "https://api.github.com",
        user_agent: str = "repo-watcher",
        timeout_seconds: float = 30.0,
        max_workers: int = 8,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base = api_base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_workers = max_workers
        self._token = token
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"token {token}",
        }
        # An injected session is shared by every worker; otherwise each
        # organisation opens its own session for the length of its page loop.
        self._session = session
        if session is not None:
            session.headers.update(self._headers)
        self._latest_run_date: Optional[datetime] = None
        self._dispatcher: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(cls, github: GitHubConfig, max_workers: int = 8) -> "RepositoryScanner":
        return cls(
            token=github.token,
            api_base_url=github.api_base_url,
            user_agent=github.user_agent,
            timeout_seconds=github.timeout_seconds,
            max_workers=max_workers,
        )

    @classmethod
    def for_request(cls, request: ScanRequest, **kwargs: Any) -> "RepositoryScanner":
        """Build a scanner authenticated with the request's own credential."""
        return cls(token=request.credential, **kwargs)

    def __enter__(self) -> "RepositoryScanner":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=True)
            self._dispatcher = None
        if self._session is not None:
            self._session.close()

    def get_latest_run_start_date(self) -> Optional[datetime]:
        """Start time of the most recent scan() call, or None if none ran yet."""
        return self._latest_run_date

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan(
        self,
        organization_ids: Iterable[str],
        since: Optional[datetime] = None,
    ) -> ScanResult:
        """Return every repository created after ``since`` in the given orgs.

        Never raises for a single organisation's failure: that organisation
        contributes no repositories and its OrgScanStatus carries the error.
        """
        started_at = datetime.now(timezone.utc)
        self._latest_run_date = started_at
        if since is not None:
            since = ensure_utc(since)

        orgs = _unique(organization_ids)
        result = ScanResult(scan_started_at=started_at)
        if not orgs:
            return result

        logger.info(
            "Scanning %d organisation(s) since %s",
            len(orgs),
            since.isoformat() if since else "the beginning",
        )
        workers = min(self._max_workers, len(orgs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scan") as pool:
            futures = [pool.submit(self._scan_org, org, since) for org in orgs]
            for future in futures:
                repos, status = future.result()
                result.repositories.extend(repos)
                result.org_statuses.append(status)

        logger.info(
            "Scan complete: %d new repositories, %d failed organisation(s)",
            len(result.repositories),
            len(result.failed_orgs),
            extra={"records": len(result.repositories)},
        )
        return result

    def scan_request(self, request: ScanRequest) -> ScanResult:
        """Scan on behalf of a request built with this scanner's credential.

        Use for_request() to get a scanner for a different credential.
        """
        if request.credential != self._token:
            raise ValueError("ScanRequest credential does not match this scanner's token")
        return self.scan(sorted(request.organization_ids), request.since)

    def submit(
        self,
        organization_ids: Iterable[str],
        since: Optional[datetime] = None,
    ) -> "Future[ScanResult]":
        """Start scan() in the background and return a Future for its result."""
        if self._dispatcher is None:
            self._dispatcher = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scan-dispatch")
        return self._dispatcher.submit(self.scan, list(organization_ids), since)

    def _scan_org(
        self,
        org: str,
        since: Optional[datetime],
    ) -> tuple[list[RepositorySummary], OrgScanStatus]:
        status = OrgScanStatus(org=org)
        start = time.monotonic()
        logger.debug("Start getting repos for %s", org, extra={"org": org})
        try:
            with self._open_session() as session:
                repos = self._collect_new_repos(session, org, since, status)
        except ScanError as exc:
            status.error = str(exc)
            status.repos_found = 0
            logger.warning(
                "Scan failed for %s: %s",
                org,
                exc,
                extra={"org": org, "page": exc.page},
            )
            return [], status

        status.repos_found = len(repos)
        logger.info(
            "Found %d new repositories in %s",
            len(repos),
            org,
            extra={
                "org": org,
                "records": len(repos),
                "duration_s": round(time.monotonic() - start, 3),
            },
        )
        return repos, status

    @contextmanager
    def _open_session(self) -> Iterator[requests.Session]:
        if self._session is not None:
            yield self._session
            return
        session = requests.Session()
        session.headers.update(self._headers)
        try:
            yield session
        finally:
            session.close()

    def _collect_new_repos(
        self,
        session: requests.Session,
        org: str,
        since: Optional[datetime],
        status: OrgScanStatus,
    ) -> list[RepositorySummary]:
        repos: list[RepositorySummary] = []
        page = 1
        while True:
            records = self._fetch_page(session, org, page)
            status.pages_fetched = page

            summaries = [self._to_summary(record, org, page) for record in records]
            kept = [s for s in summaries if since is None or s.created_at > since]
            repos.extend(kept)

            # sort=created lists newest first: a short page means the listing
            # is exhausted, a filtered-out record means the boundary is reached.
            if len(records) == PAGE_SIZE and len(kept) == len(records):
                logger.debug("Need more pages for %s", org, extra={"org": org, "page": page})
                page += 1
                continue
            return repos

    def _fetch_page(self, session: requests.Session, org: str, page: int) -> list[dict]:
        url = f"{self._base}/orgs/{org}/repos"
        params = {"per_page": str(PAGE_SIZE), "page": str(page), "sort": "created"}
        logger.debug("Getting page %d for %s", page, org, extra={"org": org, "page": page})

        try:
            resp = session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(org, page, exc) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(
                org, page, f"HTTP {resp.status_code} with a non-JSON body"
            ) from exc

        if not isinstance(data, list):
            upstream = data.get("message") if isinstance(data, dict) else None
            raise MalformedResponseError(org, page, upstream)

        logger.debug(
            "Got %d repositories for %s",
            len(data),
            org,
            extra={"org": org, "page": page, "records": len(data)},
        )
        return data

    @staticmethod
    def _to_summary(record: Any, org: str, page: int) -> RepositorySummary:
        if not isinstance(record, dict):
            raise MalformedResponseError(org, page, "repository entry is not an object")
        try:
            return RepositorySummary.from_api(record, org)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(
                org, page, f"unusable record {record.get('name')!r}: {exc}"
            ) from exc
