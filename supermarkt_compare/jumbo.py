from __future__ import annotations

from typing import Any

from .base import Connector
from .http import HttpClient, json_or_raise
from .models import RawProduct, Retailer

SEARCH_URL = "https://mobileapi.jumbo.com/v17/search"


class JumboConnector(Connector):
    retailer = Retailer.JUMBO

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        http = HttpClient(base_url=SEARCH_URL)
        resp = http.get(
            params={"q": query, "offset": 0, "limit": self.max_results},
            timeout_s=timeout_s,
        )
        data = json_or_raise(resp, "Jumbo search")

        block = data.get("products") or {}
        rows = block.get("data") if isinstance(block, dict) else block
        return [_to_product(row) for row in (rows or [])]


def _amount(price: Any) -> int | None:
    # Jumbo prices look like {"amount": 149, "currency": "EUR"} with amount in cents.
    if isinstance(price, dict):
        price = price.get("amount")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    return max(0, int(round(price)))


def _unit_quantity(row: dict[str, Any]) -> str:
    size = row.get("packSize")
    if isinstance(size, dict) and size.get("amount") is not None and size.get("unit"):
        amount = size["amount"]
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        return f"{amount} {size['unit']}"
    return str(row.get("quantity") or "")


def _image_url(row: dict[str, Any]) -> str | None:
    views = (row.get("imageInfo") or {}).get("primaryView") or []
    for view in views:
        url = view.get("url") if isinstance(view, dict) else None
        if url:
            return str(url)
    return None


def _to_product(row: dict[str, Any]) -> RawProduct:
    prices = row.get("prices") or {}
    promo = _amount(prices.get("promotionalPrice"))
    regular = _amount(prices.get("price"))
    price = promo if promo else regular

    return RawProduct(
        id=str(row.get("id", "")),
        name=str(row.get("title", "")),
        price=price or 0,
        unit_quantity=_unit_quantity(row),
        image_url=_image_url(row),
        retailer=Retailer.JUMBO,
    )
