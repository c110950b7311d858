import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from supermarkt_compare.ah import AlbertHeijnConnector, TokenCache, price_to_cents
from supermarkt_compare.errors import AuthError, UpstreamError
from supermarkt_compare.models import RawProduct, Retailer


def _resp(status=200, data=None):
    r = MagicMock()
    r.status_code = status
    r.text = "" if data is None else str(data)
    r.json.return_value = data
    return r


def _token(token="test-token", expires_in=7200):
    return _resp(data={"access_token": token, "expires_in": expires_in})


def _products(*rows):
    return _resp(data={"products": list(rows)})


def _row(**kw):
    row = {
        "webshopId": "12345",
        "title": "AH Halfvolle melk",
        "currentPrice": 139,
        "salesUnitSize": "1 l",
        "images": [],
    }
    row.update(kw)
    return row


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def http():
    with patch("supermarkt_compare.http.requests") as mock_requests:
        yield mock_requests


def test_fetches_anonymous_token_before_searching(http):
    http.post.return_value = _token()
    http.get.return_value = _products(_row())

    AlbertHeijnConnector().search("melk")

    assert "auth/token/anonymous" in http.post.call_args[0][0]
    assert http.post.call_args[1]["json"] == {"clientId": "appie"}
    headers = http.get.call_args[1]["headers"]
    assert headers["Authorization"] == "Bearer test-token"
    assert http.get.call_args[1]["params"] == {"query": "melk", "size": 20}


def test_maps_products():
    with patch("supermarkt_compare.http.requests") as http:
        http.post.return_value = _token()
        http.get.return_value = _products(
            _row(images=[{"url": "https://static.ah.nl/melk.jpg", "width": 200}])
        )
        results = AlbertHeijnConnector().search("melk")

    assert results == [
        RawProduct(
            id="12345",
            name="AH Halfvolle melk",
            price=139,
            unit_quantity="1 l",
            image_url="https://static.ah.nl/melk.jpg",
            retailer=Retailer.AH,
        )
    ]
    assert results[0].display_price == "€ 1,39"


def test_euro_prices_are_converted_to_cents(http):
    http.post.return_value = _token()
    http.get.return_value = _products(_row(currentPrice=1.39, images=None))

    results = AlbertHeijnConnector().search("product")
    assert results[0].price == 139
    assert results[0].image_url is None


def test_falls_back_to_unit_price_description(http):
    http.post.return_value = _token()
    row = _row(unitPriceDescription="500 g")
    del row["salesUnitSize"]
    http.get.return_value = _products(row)

    assert AlbertHeijnConnector().search("kwark")[0].unit_quantity == "500 g"


def test_token_is_reused_within_ttl(http):
    http.post.return_value = _token("cached-token")
    http.get.return_value = _products()

    connector = AlbertHeijnConnector()
    connector.search("melk")
    connector.search("kaas")

    assert http.post.call_count == 1
    assert http.get.call_count == 2


def test_token_is_refetched_after_expiry(http):
    clock = FakeClock()
    http.post.return_value = _token(expires_in=120)
    http.get.return_value = _products()

    connector = AlbertHeijnConnector(token_cache=TokenCache(clock=clock))
    connector.search("melk")
    clock.now += 59
    connector.search("melk")
    assert http.post.call_count == 1

    # 120s TTL minus the 60s safety margin
    clock.now += 2
    connector.search("melk")
    assert http.post.call_count == 2


def test_concurrent_searches_share_one_token_fetch():
    cache = TokenCache()
    fetches = []
    lock = threading.Lock()

    def slow_fetch():
        with lock:
            fetches.append(1)
        time.sleep(0.2)
        return "shared-token", 7200

    with ThreadPoolExecutor(max_workers=8) as pool:
        tokens = list(pool.map(lambda _: cache.get(slow_fetch), range(8)))

    assert tokens == ["shared-token"] * 8
    assert len(fetches) == 1


def test_token_failure_gives_no_results(http):
    http.post.return_value = _resp(status=500)

    assert AlbertHeijnConnector().search("melk") == []
    http.get.assert_not_called()


def test_search_failure_gives_no_results(http):
    http.post.return_value = _token()
    http.get.return_value = _resp(status=500)

    assert AlbertHeijnConnector().search("melk") == []


def test_surface_errors_raises_auth_error(http):
    http.post.return_value = _resp(status=401)

    with pytest.raises(AuthError):
        AlbertHeijnConnector(surface_errors=True).search("melk")


def test_surface_errors_raises_upstream_error(http):
    http.post.return_value = _token()
    http.get.return_value = _resp(status=503)

    with pytest.raises(UpstreamError):
        AlbertHeijnConnector(surface_errors=True).search("melk")


def test_results_are_capped(http):
    http.post.return_value = _token()
    http.get.return_value = _products(*[_row(webshopId=str(i)) for i in range(30)])

    results = AlbertHeijnConnector().search("melk")
    assert len(results) == 20
    assert results[-1].id == "19"


@pytest.mark.parametrize(
    "value, cents",
    [(1.39, 139), (49.99, 4999), (139, 139), (50, 50), (1250, 1250), (None, 0), ("1.39", 0), (-3, 0)],
)
def test_price_to_cents(value, cents):
    assert price_to_cents(value) == cents
