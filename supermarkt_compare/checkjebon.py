"""Fallback prices from the checkjebon community dataset.

The dataset is one JSON document listing every supported supermarket::

    [{"n": "lidl", "d": [{"n": "Halfvolle melk", "l": "...", "p": 1.09, "s": "1 l"}, ...]}, ...]

Prices are euros. The document is refreshed at most every few hours and the
previous copy is kept when a refresh fails.
"""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .base import Connector
from .config import DEFAULT_DATASET_URL
from .errors import UpstreamError
from .http import HttpClient, json_or_raise
from .log import get_logger
from .models import RawProduct, Retailer

logger = get_logger(__name__)

CACHE_TTL_S = 6 * 60 * 60
RETRY_AFTER_S = 5 * 60

# "1kg" and "1 kg" should match each other.
_NUM_UNIT_RE = re.compile(r"(\d)\s*(kg|g|l|ml|st)\b", re.IGNORECASE)


@dataclass(frozen=True)
class DatasetRecord:
    name: str
    price: float
    unit: str = ""
    link: str = ""


@dataclass(frozen=True)
class DatasetSnapshot:
    stores: dict[str, list[DatasetRecord]] = field(default_factory=dict)
    fetched_at: float = 0.0


def parse_dataset(data: Any) -> dict[str, list[DatasetRecord]]:
    if not isinstance(data, list):
        raise UpstreamError("checkjebon dataset is not a list of supermarkets")
    stores: dict[str, list[DatasetRecord]] = {}
    for store in data:
        if not isinstance(store, dict) or not store.get("n"):
            continue
        records: list[DatasetRecord] = []
        for row in store.get("d") or []:
            if not isinstance(row, dict):
                continue
            price = row.get("p")
            if not row.get("n") or isinstance(price, bool) or not isinstance(price, (int, float)):
                continue
            records.append(
                DatasetRecord(
                    name=str(row["n"]),
                    price=float(price),
                    unit=str(row.get("s") or ""),
                    link=str(row.get("l") or ""),
                )
            )
        stores[str(store["n"])] = records
    return stores


class DatasetCache:
    """Process-wide copy of the dataset, refreshed once it is older than ``ttl_s``.

    Only one caller refreshes at a time. While a refresh is running, or for
    ``retry_after_s`` after one failed, other callers get the stale copy
    immediately. Callers only wait when there is no copy yet.
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_DATASET_URL,
        ttl_s: float = CACHE_TTL_S,
        retry_after_s: float = RETRY_AFTER_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.ttl_s = ttl_s
        self.retry_after_s = retry_after_s
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: DatasetSnapshot | None = None
        self._retry_at = 0.0

    def _usable(self, snapshot: DatasetSnapshot | None, now: float) -> bool:
        if snapshot is None:
            return False
        return now - snapshot.fetched_at < self.ttl_s or now < self._retry_at

    def get(self, *, timeout_s: float | None = None) -> DatasetSnapshot:
        snapshot = self._snapshot
        if self._usable(snapshot, self._clock()):
            return snapshot
        # a refresh is already running: serve the stale copy
        if not self._lock.acquire(blocking=snapshot is None):
            return snapshot
        try:
            now = self._clock()
            snapshot = self._snapshot
            if self._usable(snapshot, now):
                return snapshot
            try:
                stores = self._fetch(timeout_s)
            except Exception as e:  # noqa: BLE001
                if snapshot is None:
                    raise
                self._retry_at = now + self.retry_after_s
                logger.warning(
                    "checkjebon refresh failed, serving stale copy for %.0fs: %s", self.retry_after_s, e
                )
                return snapshot
            self._snapshot = DatasetSnapshot(stores=stores, fetched_at=now)
            self._retry_at = 0.0
            logger.info("Loaded checkjebon dataset: %d supermarkets", len(stores))
            return self._snapshot
        finally:
            self._lock.release()

    def _fetch(self, timeout_s: float | None) -> dict[str, list[DatasetRecord]]:
        http = HttpClient(base_url=self.url)
        return parse_dataset(json_or_raise(http.get(timeout_s=timeout_s), "checkjebon dataset"))

    def reset(self) -> None:
        with self._lock:
            self._snapshot = None
            self._retry_at = 0.0


def _normalize_text(text: str) -> str:
    return _NUM_UNIT_RE.sub(r"\1 \2", text.lower())


def match_records(records: list[DatasetRecord], query: str, limit: int = 20) -> list[DatasetRecord]:
    """Records whose name contains every query term (case-insensitive)."""
    terms = _normalize_text(query).split()
    if not terms:
        return []
    out: list[DatasetRecord] = []
    for rec in records:
        name = _normalize_text(rec.name)
        if all(term in name for term in terms):
            out.append(rec)
            if len(out) >= limit:
                break
    return out


class CheckjebonSource:
    """Searches one supermarket's block of the shared dataset."""

    def __init__(self, cache: DatasetCache | None = None, *, max_results: int = 20):
        self.cache = cache or DatasetCache()
        self.max_results = max_results

    def search(self, query: str, retailer: Retailer, *, timeout_s: float | None = None) -> list[RawProduct]:
        snapshot = self.cache.get(timeout_s=timeout_s)
        records = snapshot.stores.get(retailer.value)
        if not records:
            return []

        return [
            RawProduct(
                id=f"{retailer.value}-cjb-{i}",
                name=rec.name,
                price=max(0, int(round(rec.price * 100))),
                unit_quantity=rec.unit,
                image_url=None,
                retailer=retailer,
            )
            for i, rec in enumerate(match_records(records, query, self.max_results))
        ]


class CheckjebonConnector(Connector):
    """A retailer served purely from the dataset."""

    kind = "dataset"

    def __init__(
        self,
        retailer: Retailer,
        source: CheckjebonSource,
        *,
        max_results: int = 20,
        surface_errors: bool = False,
    ):
        super().__init__(max_results=max_results, surface_errors=surface_errors)
        self.retailer = retailer
        self.source = source

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        return self.source.search(query, self.retailer, timeout_s=timeout_s)
