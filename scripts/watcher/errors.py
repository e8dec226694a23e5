"""Errors raised while scanning an organisation's repositories."""

from __future__ import annotations

from typing import Optional


class ScanError(Exception):
    """Base class for per-organisation scan failures."""

    def __init__(self, org: str, page: int, message: str) -> None:
        super().__init__(f"{message} (org={org}, page={page})")
        self.org = org
        self.page = page


class MalformedResponseError(ScanError):
    """GitHub returned something other than a list of repositories.

    Usually an error object such as ``{"message": "Bad credentials",
    "documentation_url": ...}``, which signals an auth or rate-limit problem.
    """

    def __init__(self, org: str, page: int, upstream_message: Optional[str] = None) -> None:
        detail = f": {upstream_message}" if upstream_message else ""
        super().__init__(
            org, page, f"Expected a list of repositories from GitHub{detail}"
        )
        self.upstream_message = upstream_message


class TransportError(ScanError):
    """The request failed before a usable JSON body came back."""

    def __init__(self, org: str, page: int, cause: Exception) -> None:
        super().__init__(org, page, f"Request failed: {cause}")
        self.cause = cause
