from __future__ import annotations

from typing import Any

from .base import Connector
from .errors import UpstreamError
from .http import HttpClient, json_or_raise
from .log import get_logger
from .models import RawProduct, Retailer

logger = get_logger(__name__)

GRAPHQL_URL = "https://web-gateway.dirk.nl/graphql"
DEFAULT_STORE_ID = 1

SEARCH_QUERY = """
  query SearchProducts($search: String!, $limit: Int!) {
    searchProducts(search: $search, limit: $limit) {
      products {
        product {
          productId
          headerText
          packaging
        }
      }
    }
  }
"""

PRICES_QUERY = """
  query GetPrices($productIds: [Int!]!, $storeId: Int!) {
    products(productIds: $productIds, storeId: $storeId) {
      productId
      normalPrice
      offerPrice
      productInformation {
        headerText
        packaging
      }
    }
  }
"""


class DirkConnector(Connector):
    """Dirk needs two round trips: text search for ids, then prices per store."""

    retailer = Retailer.DIRK

    def __init__(self, *, store_id: int = DEFAULT_STORE_ID, max_results: int = 20, surface_errors: bool = False):
        super().__init__(max_results=max_results, surface_errors=surface_errors)
        self.store_id = store_id
        self.http = HttpClient(base_url=GRAPHQL_URL, headers={"Content-Type": "application/json"})

    def _graphql(self, query: str, variables: dict[str, Any], *, timeout_s: float | None) -> dict[str, Any]:
        resp = self.http.post(json={"query": query, "variables": variables}, timeout_s=timeout_s)
        body = json_or_raise(resp, "Dirk GraphQL")
        if body.get("errors") and not body.get("data"):
            raise UpstreamError(f"Dirk GraphQL errors: {body['errors']}")
        return body.get("data") or {}

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        found = self._graphql(
            SEARCH_QUERY, {"search": query, "limit": self.max_results}, timeout_s=timeout_s
        )
        hits = (found.get("searchProducts") or {}).get("products") or []
        product_ids = [
            h["product"]["productId"]
            for h in hits
            if isinstance(h, dict) and isinstance(h.get("product"), dict) and h["product"].get("productId") is not None
        ][: self.max_results]
        if not product_ids:
            return []

        priced = self._graphql(
            PRICES_QUERY, {"productIds": product_ids, "storeId": self.store_id}, timeout_s=timeout_s
        )
        rows = [p for p in (priced.get("products") or []) if p is not None]
        logger.debug("Dirk priced %d of %d candidates", len(rows), len(product_ids))
        return [_to_product(row) for row in rows]


def _euros_to_cents(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return 0
    return int(round(value * 100))


def _to_product(row: dict[str, Any]) -> RawProduct:
    offer = _euros_to_cents(row.get("offerPrice"))
    price = offer or _euros_to_cents(row.get("normalPrice"))
    info = row.get("productInformation") or {}
    product_id = row.get("productId")

    return RawProduct(
        id=str(product_id),
        name=str(info.get("headerText") or f"Product {product_id}"),
        price=price,
        unit_quantity=str(info.get("packaging") or ""),
        image_url=None,
        retailer=Retailer.DIRK,
    )
