from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from .base import Connector
from .errors import AuthError
from .http import HttpClient, json_or_raise
from .log import get_logger
from .models import RawProduct, Retailer

logger = get_logger(__name__)

TOKEN_URL = "https://api.ah.nl/mobile-auth/v1/auth/token/anonymous"
SEARCH_URL = "https://api.ah.nl/mobile-services/product/search/v2"

CLIENT_ID = "appie"
APP_HEADERS = {
    "User-Agent": "Appie/8.22.3",
    "X-Application": "AHWEBSHOP",
}

TOKEN_SAFETY_MARGIN_S = 60.0

# The search API sometimes reports 1.39 (euros) and sometimes 139 (cents).
MAJOR_UNIT_THRESHOLD = 50


def price_to_cents(value: Any) -> int:
    """Guess the unit of an AH price field and return whole cents.

    Values below MAJOR_UNIT_THRESHOLD are read as euros, anything else as
    cents. Missing or non-numeric values give 0.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value < 0:
        return 0
    if value < MAJOR_UNIT_THRESHOLD:
        return int(round(value * 100))
    return int(round(value))


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: float

    def valid(self, now: float) -> bool:
        return now < self.expires_at


class TokenCache:
    """One anonymous token, shared by every search in this process.

    The lock covers check-then-refresh so concurrent searches that all find an
    expired token trigger a single fetch.
    """

    def __init__(
        self,
        *,
        safety_margin_s: float = TOKEN_SAFETY_MARGIN_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.safety_margin_s = safety_margin_s
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: CachedToken | None = None

    def get(self, fetch: Callable[[], tuple[str, float]]) -> str:
        with self._lock:
            now = self._clock()
            if self._entry is not None and self._entry.valid(now):
                return self._entry.token
            token, ttl_s = fetch()
            self._entry = CachedToken(token=token, expires_at=now + ttl_s - self.safety_margin_s)
            logger.debug("Cached AH token for %.0fs", ttl_s - self.safety_margin_s)
            return token

    def reset(self) -> None:
        with self._lock:
            self._entry = None


class AlbertHeijnConnector(Connector):
    retailer = Retailer.AH

    def __init__(
        self,
        *,
        token_cache: TokenCache | None = None,
        max_results: int = 20,
        surface_errors: bool = False,
    ):
        super().__init__(max_results=max_results, surface_errors=surface_errors)
        self.token_cache = token_cache or TokenCache()

    def _fetch_token(self, timeout_s: float | None) -> tuple[str, float]:
        http = HttpClient(base_url=TOKEN_URL, headers=APP_HEADERS)
        try:
            data = json_or_raise(http.post(json={"clientId": CLIENT_ID}, timeout_s=timeout_s), "AH token endpoint")
        except Exception as e:  # noqa: BLE001
            raise AuthError(f"AH anonymous token request failed: {e}") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("AH token response has no access_token")
        ttl = data.get("expires_in")
        ttl_s = float(ttl) if isinstance(ttl, (int, float)) else 0.0
        logger.info("Fetched AH anonymous token (expires in %.0fs)", ttl_s)
        return str(token), ttl_s

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        token = self.token_cache.get(lambda: self._fetch_token(timeout_s))

        http = HttpClient(base_url=SEARCH_URL, token=token, headers=APP_HEADERS)
        resp = http.get(params={"query": query, "size": self.max_results}, timeout_s=timeout_s)
        data = json_or_raise(resp, "AH search")

        rows = data.get("products") or []
        return [_to_product(row) for row in rows[: self.max_results]]


def _to_product(row: dict[str, Any]) -> RawProduct:
    price = row.get("currentPrice")
    if price is None:
        price = row.get("priceBeforeBonus")

    images = row.get("images") or []
    image_url = images[0].get("url") if images and isinstance(images[0], dict) else None

    return RawProduct(
        id=str(row.get("webshopId", "")),
        name=str(row.get("title", "")),
        price=price_to_cents(price),
        unit_quantity=str(row.get("salesUnitSize") or row.get("unitPriceDescription") or ""),
        image_url=image_url or None,
        retailer=Retailer.AH,
    )
