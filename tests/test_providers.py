"""Tests for data providers."""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from shopgrade.errors import DataUnavailableError
from shopgrade.providers import (
    EtsyMetricsProvider, StaticMetricsProvider, html_to_text, synthetic_price_points,
)
from shopgrade.seo_grader import ListingData


def _response(payload=None, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload or {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


def _etsy(**kwargs):
    kwargs.setdefault("retries", 3)
    return EtsyMetricsProvider(api_key="test-key", base_url="https://api.test/v3", timeout=5, **kwargs)


LISTING = {
    "listing_id": 42,
    "title": "Silver Ring &amp; Chain",
    "description": "<p>Handmade ring</p><p>Ships fast</p>",
    "tags": ["ring", "silver"],
    "images": [{"url_fullxfull": "https://img/1.jpg", "alt_text": "ring"}],
    "price": {"amount": 2999, "divisor": 100, "currency_code": "USD"},
    "num_favorers": 12,
    "views": 300,
}


class TestStaticProvider:
    def test_lookup(self):
        provider = StaticMetricsProvider(listings=[ListingData(listing_id=5, title="x")])
        assert provider.get_listing(5).title == "x"
        assert provider.get_listing("5").title == "x"

    def test_unknown_items(self):
        provider = StaticMetricsProvider()
        with pytest.raises(DataUnavailableError):
            provider.get_listing(1)
        with pytest.raises(DataUnavailableError):
            provider.get_shop("nope")
        with pytest.raises(DataUnavailableError):
            provider.get_competitor_prices("jewelry", [])

    def test_synthesized_prices(self):
        provider = StaticMetricsProvider(synthesize_prices=True)
        prices = [p.price for p in provider.get_competitor_prices("jewelry", ["ring"])]
        assert len(prices) == 50
        assert min(prices) == 36
        assert max(prices) == 54

    def test_synthetic_floor(self):
        assert all(p.price >= 5 for p in synthetic_price_points("books", 10))

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({
            "listings": [{"listing_id": 9, "title": "Ring"}],
            "shops": {"SilverNest": {"shop_name": "Silver Nest", "metrics": {"totalSales": 10}}},
            "competitor_prices": {"jewelry": [10, {"price": 20, "shop_name": "A"}]},
        }))
        provider = StaticMetricsProvider.from_json_file(str(path))
        assert provider.get_listing(9).title == "Ring"
        assert provider.get_shop("SilverNest").metrics.total_sales == 10
        prices = provider.get_competitor_prices("jewelry", [])
        assert [p.price for p in prices] == [10, 20]
        assert prices[1].shop_name == "A"


class TestHtmlToText:
    def test_strips_markup_and_entities(self):
        assert html_to_text("Rings &amp; <b>Things</b>") == "Rings & Things"

    def test_empty(self):
        assert html_to_text("") == ""
        assert html_to_text(None) == ""


class TestEtsyRequests:
    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_get_listing(self, mock_get, _sleep):
        mock_get.side_effect = [
            _response(LISTING),
            _response({"count": 2, "results": [{"rating": 5}, {"rating": 4}]}),
        ]
        listing = _etsy().get_listing(42)
        assert listing.title == "Silver Ring & Chain"
        assert "Handmade ring" in listing.description
        assert listing.price == pytest.approx(29.99)
        assert listing.images[0].alt_text == "ring"
        assert listing.reviews.count == 2
        assert listing.reviews.average == 4.5
        headers = mock_get.call_args_list[0].kwargs["headers"]
        assert headers["x-api-key"] == "test-key"

    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_client_error_fails_fast(self, mock_get, mock_sleep):
        mock_get.return_value = _response(status=404)
        with pytest.raises(DataUnavailableError, match="404"):
            _etsy().get_listing(1)
        assert mock_get.call_count == 1
        mock_sleep.assert_not_called()

    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_server_error_exhausts_retries(self, mock_get, mock_sleep):
        mock_get.return_value = _response(status=503)
        with pytest.raises(DataUnavailableError) as exc:
            _etsy().get_competitor_prices("jewelry", [])
        assert exc.value.source == "etsy"
        assert mock_get.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2, 4]

    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_rate_limit_backoff(self, mock_get, mock_sleep):
        mock_get.side_effect = [_response(status=429), _response({"results": []})]
        assert _etsy().get_competitor_prices("jewelry", ["ring"]) == []
        mock_sleep.assert_called_once_with(5)

    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_timeout_then_success(self, mock_get, _sleep):
        mock_get.side_effect = [
            requests.exceptions.Timeout(),
            _response({"results": [{"price": {"amount": 1500, "divisor": 100}, "shop_id": 3},
                                   {"price": {"amount": 0, "divisor": 100}}]}),
        ]
        prices = _etsy().get_competitor_prices("jewelry", ["silver", "ring"])
        assert [p.price for p in prices] == [15.0]
        assert mock_get.call_args.kwargs["params"]["keywords"] == "silver ring"

    @patch("shopgrade.providers.time.sleep")
    @patch("shopgrade.providers.requests.get")
    def test_missing_reviews_do_not_fail_listing(self, mock_get, _sleep):
        mock_get.side_effect = [_response(LISTING), _response(status=403)]
        listing = _etsy().get_listing(42)
        assert listing.reviews.count == 0


class TestEtsyShop:
    @patch("shopgrade.providers.requests.get")
    def test_shop_by_name(self, mock_get):
        mock_get.side_effect = [
            _response({"results": [{"shop_id": 777}]}),
            _response({
                "shop_name": "SilverNest", "listing_active_count": 40,
                "transaction_sold_count": 900, "review_average": 4.8, "review_count": 120,
            }),
            _response({"results": [LISTING]}),
        ]
        snapshot = _etsy().get_shop("SilverNest")
        assert snapshot.shop_id == "SilverNest"
        assert snapshot.metrics.total_sales == 900
        assert snapshot.metrics.average_rating == 4.8
        assert snapshot.metrics.average_listing_score > 0
        assert mock_get.call_args_list[1].args[0] == "https://api.test/v3/application/shops/777"

    @patch("shopgrade.providers.requests.get")
    def test_unknown_shop_name(self, mock_get):
        mock_get.return_value = _response({"results": []})
        with pytest.raises(DataUnavailableError, match="not found"):
            _etsy().get_shop("Ghost")

    @patch("shopgrade.providers.requests.get")
    def test_numeric_id_skips_lookup(self, mock_get):
        mock_get.return_value = _response({"shop_name": "N"})
        snapshot = _etsy(sample_listings=0).get_shop("123")
        assert snapshot.shop_name == "N"
        assert mock_get.call_count == 1
