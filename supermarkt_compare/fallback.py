from __future__ import annotations

import time
from typing import Callable

from .base import Connector
from .checkjebon import CheckjebonSource
from .log import get_logger
from .models import RawProduct

logger = get_logger(__name__)

# Floor for the fallback stage so a slow live call never leaves it a zero timeout.
MIN_FALLBACK_S = 0.5


class LiveThenFallback(Connector):
    """Ask the live API first; when it finds nothing, ask the dataset.

    ``live_share`` is the fraction of the caller's timeout handed to the live
    call. The fallback gets whatever is left of the budget.
    """

    kind = "live+dataset"

    def __init__(
        self,
        live: Connector,
        fallback: CheckjebonSource,
        *,
        live_share: float = 0.6,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not 0 < live_share <= 1:
            raise ValueError(f"live_share must be in (0, 1], got {live_share}")
        super().__init__(max_results=live.max_results, surface_errors=live.surface_errors)
        self.retailer = live.retailer
        self.live = live
        self.fallback = fallback
        self.live_share = live_share
        self._clock = clock

    def budget(self, timeout_s: float | None) -> tuple[float | None, float | None]:
        """Split a timeout into (live, fallback) stage budgets."""
        if timeout_s is None:
            return None, None
        live_s = timeout_s * self.live_share
        return live_s, max(timeout_s - live_s, MIN_FALLBACK_S)

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        live_s, _ = self.budget(timeout_s)
        started = self._clock()

        live_error: Exception | None = None
        try:
            products = self.live.search(query, household_id=household_id, timeout_s=live_s)
        except Exception as exc:  # noqa: BLE001
            live_error = exc
            products = []
        if products:
            return products

        remaining = None
        if timeout_s is not None:
            remaining = max(timeout_s - (self._clock() - started), MIN_FALLBACK_S)
        logger.debug("%s live search empty for %r, trying checkjebon", self.label, query)

        fallback_products = self.fallback.search(query, self.retailer, timeout_s=remaining)
        if not fallback_products and live_error is not None:
            raise live_error
        return fallback_products
