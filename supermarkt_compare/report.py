from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from .models import RETAILER_LABELS, RawProduct, RetailerResult
from .normalize import (
    extract_brand,
    format_price,
    quantity_key,
    quantity_label,
    unit_price,
    unit_price_cents,
)

SORT_KEYS = ("price", "unit_price")


@dataclass(frozen=True)
class Facet:
    value: str
    label: str
    count: int


@dataclass
class ProductRow:
    retailer: str
    retailer_label: str
    id: str
    name: str
    brand: str
    price: int
    display_price: str
    unit_quantity: str
    unit_price: str | None
    image_url: str | None


@dataclass
class RetailerStatus:
    retailer: str
    label: str
    count: int
    error: str | None


@dataclass
class SearchReport:
    timestamp: str
    query: str
    qty_filter: str | None
    brand_filter: str | None
    sort: str
    retailers: list[RetailerStatus]
    products: list[ProductRow]

    def summary_text(self) -> str:
        lines = [f"Search: {self.query!r}  ({self.timestamp})"]
        filters = []
        if self.qty_filter:
            filters.append(f"size={self.qty_filter}")
        if self.brand_filter:
            filters.append(f"brand={self.brand_filter}")
        if filters:
            lines.append("Filters: " + ", ".join(filters))
        lines.append("")
        for st in self.retailers:
            status = f"ERROR: {st.error}" if st.error else f"{st.count} products"
            lines.append(f"  {st.label:<14} {status}")
        lines.append("")
        lines.append(f"{len(self.products)} products, sorted by {self.sort.replace('_', ' ')}:")
        for i, p in enumerate(self.products, 1):
            per_unit = f"  ({p.unit_price})" if p.unit_price else ""
            size = f"  {p.unit_quantity}" if p.unit_quantity else ""
            lines.append(f"  {i}. {p.display_price or '-':>9}  {p.retailer_label:<12} {p.name}{size}{per_unit}")
        return "\n".join(lines)

    def write_json(self, path: str = "artifacts/search_report.json") -> str:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(asdict(self), indent=2, ensure_ascii=False))
        return str(out)


def merge_products(results: list[RetailerResult]) -> list[RawProduct]:
    return [p for r in results for p in r.products]


def sort_products(products: list[RawProduct], by: str = "price") -> list[RawProduct]:
    """Cheapest first. By unit price, products without a comparable size go last."""
    if by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {by!r} (expected one of {', '.join(SORT_KEYS)})")

    if by == "price":
        return sorted(products, key=lambda p: (p.price == 0, p.price, p.name.lower()))

    def _unit_key(p: RawProduct):
        up = unit_price_cents(p.price, p.unit_quantity)
        if up is None:
            return (1, 0, p.price, p.name.lower())
        cents, reference = up
        # Compare everything per kg or per liter.
        if reference == "100g":
            cents *= 10
        return (0, cents, p.price, p.name.lower())

    return sorted(products, key=_unit_key)


def filter_products(
    products: list[RawProduct],
    *,
    brand: str | None = None,
    qty_key: str | None = None,
) -> list[RawProduct]:
    out = products
    if brand:
        out = [p for p in out if extract_brand(p.name).lower() == brand.lower()]
    if qty_key:
        out = [p for p in out if quantity_key(p.unit_quantity) == qty_key]
    return out


def brand_facets(products: list[RawProduct]) -> list[Facet]:
    counts = Counter(extract_brand(p.name) for p in products)
    return [Facet(value=b, label=b, count=n) for b, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


def quantity_facets(products: list[RawProduct]) -> list[Facet]:
    counts: Counter[str] = Counter()
    labels: dict[str, str] = {}
    for p in products:
        key = quantity_key(p.unit_quantity)
        if key is None:
            continue
        counts[key] += 1
        labels.setdefault(key, quantity_label(p.unit_quantity) or key)
    return [
        Facet(value=k, label=labels[k], count=n)
        for k, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def build_report(
    query: str,
    results: list[RetailerResult],
    *,
    qty_filter: str | None = None,
    brand: str | None = None,
    sort: str = "price",
    limit: int = 0,
) -> SearchReport:
    products = filter_products(merge_products(results), brand=brand, qty_key=qty_filter)
    products = sort_products(products, by=sort)
    if limit > 0:
        products = products[:limit]

    return SearchReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        query=query,
        qty_filter=qty_filter,
        brand_filter=brand,
        sort=sort,
        retailers=[
            RetailerStatus(retailer=r.retailer.value, label=r.label, count=len(r.products), error=r.error)
            for r in results
        ],
        products=[
            ProductRow(
                retailer=p.retailer.value,
                retailer_label=RETAILER_LABELS[p.retailer],
                id=p.id,
                name=p.name,
                brand=extract_brand(p.name),
                price=p.price,
                display_price=format_price(p.price),
                unit_quantity=p.unit_quantity,
                unit_price=unit_price(p.price, p.unit_quantity),
                image_url=p.image_url,
            )
            for p in products
        ],
    )
