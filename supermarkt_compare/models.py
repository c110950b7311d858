from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Retailer(str, Enum):
    AH = "ah"
    JUMBO = "jumbo"
    PICNIC = "picnic"
    DIRK = "dirk"
    DEKAMARKT = "dekamarkt"
    LIDL = "lidl"
    ALDI = "aldi"
    PLUS = "plus"
    HOOGVLIET = "hoogvliet"
    SPAR = "spar"
    VOMAR = "vomar"
    POIESZ = "poiesz"


RETAILER_LABELS: dict[Retailer, str] = {
    Retailer.AH: "Albert Heijn",
    Retailer.JUMBO: "Jumbo",
    Retailer.PICNIC: "Picnic",
    Retailer.DIRK: "Dirk",
    Retailer.DEKAMARKT: "DekaMarkt",
    Retailer.LIDL: "Lidl",
    Retailer.ALDI: "Aldi",
    Retailer.PLUS: "Plus",
    Retailer.HOOGVLIET: "Hoogvliet",
    Retailer.SPAR: "SPAR",
    Retailer.VOMAR: "Vomar",
    Retailer.POIESZ: "Poiesz",
}


@dataclass(frozen=True)
class RawProduct:
    """A single product returned by one retailer, price in cents."""

    id: str
    name: str
    price: int
    retailer: Retailer
    unit_quantity: str = ""          # free text as the retailer wrote it, e.g. "500 g"
    image_url: str | None = None

    def __post_init__(self):
        if not isinstance(self.price, int) or isinstance(self.price, bool) or self.price < 0:
            raise ValueError(f"price must be a non-negative int in cents, got {self.price!r}")

    @property
    def display_price(self) -> str:
        from .normalize import format_price

        return format_price(self.price)


@dataclass(frozen=True)
class RetailerResult:
    retailer: Retailer
    label: str
    products: list[RawProduct] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, retailer: Retailer, products: list[RawProduct]) -> "RetailerResult":
        return cls(retailer=retailer, label=RETAILER_LABELS[retailer], products=list(products))

    @classmethod
    def failure(cls, retailer: Retailer, message: str) -> "RetailerResult":
        return cls(retailer=retailer, label=RETAILER_LABELS[retailer], products=[], error=message)


@dataclass(frozen=True)
class ParsedQuantity:
    amount: float
    unit: str  # one of g, kg, ml, l
