import itertools
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from supermarkt_compare.aggregate import Aggregator, build_connectors
from supermarkt_compare.base import Connector
from supermarkt_compare.checkjebon import CheckjebonConnector
from supermarkt_compare.config import Config
from supermarkt_compare.fallback import LiveThenFallback
from supermarkt_compare.models import RawProduct, Retailer
from supermarkt_compare.picnic import PicnicConnector


def _product(retailer, name="Melk", price=139):
    return RawProduct(id=f"{retailer.value}-1", name=name, price=price, retailer=retailer, unit_quantity="1 L")


class Stub(Connector):
    def __init__(self, retailer, products=None, exc=None, block=None):
        super().__init__()
        self.retailer = retailer
        self.products = products or []
        self.exc = exc
        self.block = block
        self.calls = []

    def search(self, query, *, household_id=None, timeout_s=None):
        # Bypass the error policy so raised exceptions reach the aggregator.
        return self._search(query, household_id=household_id, timeout_s=timeout_s)

    def _search(self, query, *, household_id, timeout_s):
        self.calls.append((query, household_id, timeout_s))
        if self.block is not None:
            self.block.wait(5)
        if self.exc:
            raise self.exc
        return self.products


@pytest.fixture
def release():
    event = threading.Event()
    yield event
    event.set()


def test_one_result_per_connector_in_declaration_order():
    agg = Aggregator(
        {
            Retailer.DIRK: Stub(Retailer.DIRK, [_product(Retailer.DIRK)]),
            Retailer.AH: Stub(Retailer.AH, [_product(Retailer.AH)]),
            Retailer.LIDL: Stub(Retailer.LIDL),
        }
    )

    results = agg.search_all("melk", "fam1")

    assert [r.retailer for r in results] == [Retailer.AH, Retailer.DIRK, Retailer.LIDL]
    assert [r.label for r in results] == ["Albert Heijn", "Dirk", "Lidl"]
    assert all(r.error is None for r in results)


def test_query_and_household_are_passed_through():
    stub = Stub(Retailer.PICNIC)
    Aggregator({Retailer.PICNIC: stub}, timeout_s=3).search_all("  melk ", "fam1")
    assert stub.calls == [("melk", "fam1", 3)]


def test_failure_is_isolated():
    agg = Aggregator(
        {
            Retailer.AH: Stub(Retailer.AH, exc=RuntimeError("AH API down")),
            Retailer.JUMBO: Stub(Retailer.JUMBO, [_product(Retailer.JUMBO)]),
        }
    )

    ah, jumbo = agg.search_all("melk", "fam1")
    assert ah.products == []
    assert ah.error == "AH API down"
    assert jumbo.error is None
    assert len(jumbo.products) == 1


def test_error_without_message_uses_exception_name():
    [result] = Aggregator({Retailer.AH: Stub(Retailer.AH, exc=KeyError())}).search_all("melk", "fam1")
    assert result.error == "KeyError"


def test_slow_connector_times_out_without_blocking_others(release):
    agg = Aggregator(
        {
            Retailer.AH: Stub(Retailer.AH, [_product(Retailer.AH)]),
            Retailer.JUMBO: Stub(Retailer.JUMBO, [_product(Retailer.JUMBO)], block=release),
        },
        timeout_s=0.2,
    )

    started = time.monotonic()
    ah, jumbo = agg.search_all("melk", "fam1")
    elapsed = time.monotonic() - started

    assert elapsed < 2
    assert ah.error is None and len(ah.products) == 1
    assert jumbo.products == []
    assert "Jumbo did not respond within 0.2s" == jumbo.error


def test_wall_clock_is_bounded_by_one_deadline(release):
    agg = Aggregator(
        {r: Stub(r, block=release) for r in (Retailer.AH, Retailer.JUMBO, Retailer.DIRK, Retailer.PLUS)},
        timeout_s=0.3,
    )

    started = time.monotonic()
    results = agg.search_all("melk", "fam1")
    elapsed = time.monotonic() - started

    assert len(results) == 4
    assert all(r.error for r in results)
    assert elapsed < 1.2


@pytest.mark.parametrize("outcomes", list(itertools.product(["ok", "raise", "timeout"], repeat=3)))
def test_every_outcome_mix_yields_one_result_each(outcomes, release):
    retailers = [Retailer.AH, Retailer.JUMBO, Retailer.DIRK]
    connectors = {}
    for retailer, outcome in zip(retailers, outcomes):
        if outcome == "ok":
            connectors[retailer] = Stub(retailer, [_product(retailer)])
        elif outcome == "raise":
            connectors[retailer] = Stub(retailer, exc=RuntimeError("boom"))
        else:
            connectors[retailer] = Stub(retailer, block=release)

    results = Aggregator(connectors, timeout_s=0.3).search_all("melk", "fam1")

    assert [r.retailer for r in results] == retailers
    for result, outcome in zip(results, outcomes):
        if outcome == "ok":
            assert result.error is None and len(result.products) == 1
        else:
            assert result.error and result.products == []


def _resp(status=200, data=None):
    r = MagicMock()
    r.status_code = status
    r.text = ""
    r.json.return_value = data
    return r


def test_end_to_end_product_failure_and_empty_fallback():
    """AH finds one product, Picnic raises, Jumbo finds nothing live nor in the dataset."""

    def fake_get(url, params=None, headers=None, timeout=None):
        if "ah.nl" in url:
            return _resp(
                data={"products": [{"webshopId": "1", "title": "AH Melk", "currentPrice": 139, "salesUnitSize": "1 l"}]}
            )
        if "jumbo.com" in url:
            return _resp(data={"products": {"data": []}})
        return _resp(data=[{"n": "jumbo", "d": [{"n": "Jumbo Kaas", "p": 4.99, "s": "500 g"}]}])

    def broken_client(household_id):
        raise RuntimeError("Picnic session expired")

    cfg = Config(retailers=(Retailer.AH, Retailer.JUMBO, Retailer.PICNIC))
    connectors = build_connectors(cfg, client_for=broken_client)
    # Picnic errors must surface for this scenario.
    connectors[Retailer.PICNIC].surface_errors = True

    with patch("supermarkt_compare.http.requests") as http:
        http.post.return_value = _resp(data={"access_token": "t", "expires_in": 7200})
        http.get.side_effect = fake_get
        ah, jumbo, picnic = Aggregator(connectors, timeout_s=5).search_all("melk", "fam1")

    assert ah.error is None and [p.name for p in ah.products] == ["AH Melk"]
    assert jumbo.error is None and jumbo.products == []
    assert picnic.error == "Picnic session expired" and picnic.products == []


def test_build_connectors_wires_fallbacks():
    table = build_connectors(Config())

    assert list(table) == list(Retailer)
    assert isinstance(table[Retailer.JUMBO], LiveThenFallback)
    assert isinstance(table[Retailer.PICNIC], PicnicConnector)
    for retailer in (Retailer.LIDL, Retailer.ALDI, Retailer.PLUS, Retailer.DEKAMARKT):
        assert isinstance(table[retailer], CheckjebonConnector)
        assert table[retailer].retailer is retailer
    # One dataset shared by every dataset-backed retailer.
    assert table[Retailer.LIDL].source is table[Retailer.JUMBO].fallback


def test_build_connectors_respects_enabled_retailers():
    table = build_connectors(Config(retailers=(Retailer.AH, Retailer.LIDL)))
    assert list(table) == [Retailer.AH, Retailer.LIDL]


def test_no_connectors_gives_no_results():
    assert Aggregator({}).search_all("melk", "fam1") == []
