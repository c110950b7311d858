from __future__ import annotations

import re
from typing import Any, Callable, Protocol

from .base import Connector
from .models import RawProduct, Retailer


class SessionClient(Protocol):
    """An authenticated Picnic session, built and logged in outside this package."""

    def search(self, text: str) -> list[dict[str, Any]]: ...


ClientProvider = Callable[[str], "SessionClient | None"]


class NoSessionClient(LookupError):
    pass


def no_clients(household_id: str) -> SessionClient | None:
    return None


class PicnicConnector(Connector):
    retailer = Retailer.PICNIC

    def __init__(
        self,
        *,
        client_for: ClientProvider = no_clients,
        max_results: int = 20,
        surface_errors: bool = False,
    ):
        super().__init__(max_results=max_results, surface_errors=surface_errors)
        self.client_for = client_for

    def _search(
        self,
        query: str,
        *,
        household_id: str | None,
        timeout_s: float | None,
    ) -> list[RawProduct]:
        client = self.client_for(household_id) if household_id else None
        if client is None:
            raise NoSessionClient(f"No Picnic session configured for household {household_id!r}")

        items = client.search(query.strip()) or []
        return [_to_product(item) for item in items[: self.max_results]]


# display_price is already cents, but as a string: "139". Only the leading
# digits count, so "139.0" is 139 and junk is 0.
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


def _leading_int(value: Any) -> int:
    m = _LEADING_INT_RE.match(str(value if value is not None else ""))
    return int(m.group(1)) if m else 0


def _to_product(item: dict[str, Any]) -> RawProduct:
    price = _leading_int(item.get("display_price"))
    return RawProduct(
        id=str(item.get("id", "")),
        name=str(item.get("name", "")),
        price=price,
        unit_quantity=str(item.get("unit_quantity") or ""),
        image_url=None,
        retailer=Retailer.PICNIC,
    )
