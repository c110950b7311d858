from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from .errors import UpstreamError


@dataclass(frozen=True)
class HttpClient:
    base_url: str
    token: str | None = None
    timeout_s: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)

    def url(self, path: str = "") -> str:
        if not path:
            return self.base_url
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")

    def get(
        self,
        path: str = "",
        *,
        params: dict | None = None,
        timeout_s: float | None = None,
    ) -> requests.Response:
        return requests.get(
            self.url(path),
            params=params,
            headers=self._headers(),
            timeout=timeout_s or self.timeout_s,
        )

    def post(
        self,
        path: str = "",
        *,
        json: Any = None,
        timeout_s: float | None = None,
    ) -> requests.Response:
        return requests.post(
            self.url(path),
            json=json,
            headers=self._headers(),
            timeout=timeout_s or self.timeout_s,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", **self.headers}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers


def json_or_raise(resp: requests.Response, what: str) -> Any:
    """Decode a JSON body, turning HTTP and decode failures into UpstreamError."""
    if not 200 <= resp.status_code < 300:
        raise UpstreamError(
            f"{what} returned HTTP {resp.status_code}: {resp.text[:200]}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError(f"Failed to decode JSON from {what}: {e}")
