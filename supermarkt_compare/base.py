from __future__ import annotations

from abc import ABC, abstractmethod

from .log import get_logger
from .models import RETAILER_LABELS, RawProduct, Retailer

logger = get_logger(__name__)


class Connector(ABC):
    """Adapter from one retailer's search API to RawProduct lists.

    Subclasses implement ``_search`` and may raise freely; ``search`` applies
    the error policy. With ``surface_errors`` off, any failure is logged and
    reported as "no results"; with it on, the exception reaches the aggregator
    and ends up in that retailer's ``error`` field.
    """

    retailer: Retailer
    kind: str = "live"

    def __init__(self, *, max_results: int = 20, surface_errors: bool = False):
        self.max_results = max_results
        self.surface_errors = surface_errors

    @property
    def label(self) -> str:
        return RETAILER_LABELS[self.retailer]

    def search(
        self,
        query: str,
        *,
        household_id: str | None = None,
        timeout_s: float | None = None,
    ) -> list[RawProduct]:
        try:
            products = self._search(query, household_id=household_id, timeout_s=timeout_s)
        except Exception as exc:  # noqa: BLE001
            if self.surface_errors:
                raise
            logger.warning("%s search failed for %r: %s", self.label, query, exc)
            return []
        return products[: self.max_results]

    @abstractmethod
    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        raise NotImplementedError
