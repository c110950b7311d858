from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .models import ParsedQuantity


_UNIT_ALIASES: dict[str, str] = {
    "g": "g",
    "gr": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kilo": "kg",
    "ml": "ml",
    "l": "l",
    "liter": "l",
    "liters": "l",
    "litre": "l",
}

# Longest aliases first so "kg" wins over "g" and "liter" over "l".
_UNIT_PATTERN = "|".join(sorted(_UNIT_ALIASES, key=len, reverse=True))
_AMOUNT_PATTERN = r"\d+(?:[.,]\d+)?"

_QTY_RE = re.compile(
    rf"(?<![\d.,])(?:(\d+)\s*[x×]\s*)?({_AMOUNT_PATTERN})\s*({_UNIT_PATTERN})\b",
    re.IGNORECASE,
)

# "kwark 1kg", "bier 6 x 330 ml": some text, whitespace, then a quantity at the very end.
# The text part is lazy so a multipack prefix stays with the quantity.
_TRAILING_QTY_RE = re.compile(
    rf"^(.*?\S)\s+((?:\d+\s*[x×]\s*)?{_AMOUNT_PATTERN}\s*(?:{_UNIT_PATTERN}))$",
    re.IGNORECASE,
)

_UNIT_LABELS = {"g": "g", "kg": "kg", "ml": "ml", "l": "L"}

STORE_BRAND = "Huismerk"

KNOWN_BRANDS: list[str] = [
    "AH",
    "Albert Heijn",
    "Jumbo",
    "Campina",
    "Arla",
    "Optimel",
    "Melkan",
    "Zuivelhoeve",
    "Friesche Vlag",
    "Mona",
    "Danone",
    "Activia",
    "Alpro",
    "Almhof",
    "Yakult",
    "Vifit",
    "Milner",
    "Beemster",
    "Old Amsterdam",
    "Leerdammer",
    "Unox",
    "Conimex",
    "Calvé",
    "Hak",
    "Bonduelle",
    "Heinz",
    "Knorr",
    "Remia",
    "Lay's",
    "Duyvis",
    "Verkade",
    "Tony's Chocolonely",
    "Douwe Egberts",
    "Pickwick",
    "Lipton",
    "Coca-Cola",
    "Pepsi",
    "Spa",
    "Chaudfontaine",
    "Heineken",
    "Grolsch",
    "Amstel",
    "Hertog Jan",
    "Bolletje",
    "Liga",
    "Peijnenburg",
    "Kellogg's",
    "Quaker",
    "Dr. Oetker",
    "Becel",
    "Blue Band",
    "Iglo",
    "Mora",
    "Venz",
    "De Ruijter",
    "Hollandia",
    "Zwitsal",
    "Robijn",
    "Dreft",
    "Ariel",
]

# Multi-word brands must be tried before their single-word prefixes.
_BRANDS_BY_LENGTH = sorted(KNOWN_BRANDS, key=len, reverse=True)


@dataclass(frozen=True)
class QuerySplit:
    clean_query: str
    qty_filter: str | None


def _to_number(text: str) -> float:
    return float(text.replace(",", "."))


def parse_quantity(text: str | None) -> ParsedQuantity | None:
    """Parse a weight/volume like '500 g', '1,5 kg', '750ml' or '6 x 330 ml'.

    Piece counts ('1 stuk'), bare numbers and unknown units give None.
    """
    if not text:
        return None
    m = _QTY_RE.search(text)
    if not m:
        return None
    count, amount, unit = m.groups()
    value = _to_number(amount)
    if count:
        value *= int(count)
    if value <= 0:
        return None
    return ParsedQuantity(amount=value, unit=_UNIT_ALIASES[unit.lower()])


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def unit_price_cents(price_cents: int, quantity_text: str | None) -> tuple[int, str] | None:
    """Return (cents, reference) such as (28, '100g'), (279, 'kg') or (532, 'liter')."""
    if not price_cents:
        return None
    q = parse_quantity(quantity_text)
    if q is None:
        return None

    price = Decimal(price_cents)
    amount = Decimal(repr(q.amount))

    if q.unit == "g":
        if q.amount < 1000:
            return _round_half_up(price * 100 / amount), "100g"
        return _round_half_up(price * 1000 / amount), "kg"
    if q.unit == "kg":
        return _round_half_up(price / amount), "kg"
    if q.unit == "ml":
        return _round_half_up(price * 1000 / amount), "liter"
    return _round_half_up(price / amount), "liter"


def unit_price(price_cents: int, quantity_text: str | None) -> str | None:
    """Format the unit price, e.g. unit_price(139, '500g') -> '€ 0,28 / 100g'."""
    result = unit_price_cents(price_cents, quantity_text)
    if result is None:
        return None
    cents, reference = result
    return f"{_euros(cents)} / {reference}"


def _fold(q: ParsedQuantity) -> tuple[float, str]:
    # Only exactly 1000 g / 1000 ml fold; 500 ml stays its own bucket.
    if q.unit == "g" and q.amount == 1000:
        return 1.0, "kg"
    if q.unit == "ml" and q.amount == 1000:
        return 1.0, "l"
    return q.amount, q.unit


def _amount_text(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return repr(amount)


def quantity_key(text: str | None) -> str | None:
    q = parse_quantity(text)
    if q is None:
        return None
    amount, unit = _fold(q)
    return f"{_amount_text(amount)}_{unit}"


def quantity_label(text: str | None) -> str | None:
    q = parse_quantity(text)
    if q is None:
        return None
    amount, unit = _fold(q)
    return f"{_amount_text(amount).replace('.', ',')} {_UNIT_LABELS[unit]}"


def extract_quantity_from_query(query: str) -> QuerySplit:
    """Split 'kwark 1kg' into ('kwark', '1_kg'); queries without a trailing size pass through."""
    trimmed = query.strip()
    m = _TRAILING_QTY_RE.match(trimmed)
    if not m:
        return QuerySplit(clean_query=trimmed, qty_filter=None)
    key = quantity_key(m.group(2))
    if key is None:
        return QuerySplit(clean_query=trimmed, qty_filter=None)
    return QuerySplit(clean_query=m.group(1).strip(), qty_filter=key)


def extract_brand(product_name: str) -> str:
    name = (product_name or "").strip().lower()
    for brand in _BRANDS_BY_LENGTH:
        b = brand.lower()
        if name == b or name.startswith(b + " "):
            return brand
    return STORE_BRAND


def _euros(cents: int) -> str:
    return f"€ {cents // 100},{cents % 100:02d}"


def format_price(cents: int) -> str:
    """'€ 1,39' for 139; an empty string for 0."""
    if not cents:
        return ""
    return _euros(cents)
