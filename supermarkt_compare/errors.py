from __future__ import annotations


class SearchError(RuntimeError):
    """Base class for failures inside a retailer connector."""


class AuthError(SearchError):
    """The retailer refused to issue a search token."""


class UpstreamError(SearchError):
    """A retailer endpoint answered with a non-2xx status or an unreadable body."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectorTimeout(SearchError):
    """A connector did not settle before its deadline."""

    def __init__(self, label: str, timeout_s: float):
        super().__init__(f"{label} did not respond within {timeout_s:g}s")
        self.timeout_s = timeout_s
