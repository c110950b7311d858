from unittest.mock import MagicMock, patch

import pytest
import requests

from supermarkt_compare.jumbo import JumboConnector
from supermarkt_compare.models import RawProduct, Retailer


def _resp(status=200, data=None):
    r = MagicMock()
    r.status_code = status
    r.text = ""
    r.json.return_value = data
    return r


def _search_body(*rows):
    return {"products": {"data": list(rows), "total": len(rows)}}


@pytest.fixture
def http():
    with patch("supermarkt_compare.http.requests") as mock_requests:
        yield mock_requests


def test_calls_search_endpoint_with_query(http):
    http.get.return_value = _resp(data=_search_body())

    JumboConnector().search("melk")

    assert http.get.call_count == 1
    assert "jumbo.com" in http.get.call_args[0][0]
    assert http.get.call_args[1]["params"] == {"q": "melk", "offset": 0, "limit": 20}


def test_maps_products_without_image(http):
    http.get.return_value = _resp(
        data=_search_body(
            {
                "id": "67649PAK",
                "title": "Jumbo Halfvolle Melk",
                "quantity": "1 L",
                "prices": {"price": {"currency": "EUR", "amount": 149}},
            }
        )
    )

    assert JumboConnector().search("melk") == [
        RawProduct(
            id="67649PAK",
            name="Jumbo Halfvolle Melk",
            price=149,
            unit_quantity="1 L",
            image_url=None,
            retailer=Retailer.JUMBO,
        )
    ]


def test_prefers_promotional_price_and_structured_size(http):
    http.get.return_value = _resp(
        data=_search_body(
            {
                "id": "j-789",
                "title": "Jumbo Kwark",
                "quantity": "ca. een pond",
                "packSize": {"amount": 500.0, "unit": "g"},
                "prices": {"price": {"amount": 199}, "promotionalPrice": {"amount": 149}},
                "imageInfo": {"primaryView": [{"url": "https://static.jumbo.com/kwark.png", "width": 360}]},
            }
        )
    )

    [product] = JumboConnector().search("kwark")
    assert product.price == 149
    assert product.unit_quantity == "500 g"
    assert product.image_url == "https://static.jumbo.com/kwark.png"


def test_returns_empty_on_api_failure(http):
    http.get.return_value = _resp(status=500)
    assert JumboConnector().search("melk") == []


def test_returns_empty_on_network_error(http):
    http.get.side_effect = requests.ConnectionError("Network error")
    assert JumboConnector().search("melk") == []
