"""Listing, shop and competitor price data sources.

The grading engines never fetch data themselves; they are handed a
MetricsProvider. Two implementations ship here:
- StaticMetricsProvider: in-memory data (tests, JSON files for the CLI)
- EtsyMetricsProvider: Etsy Open API v3 over requests, with retry logic
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests
from bs4 import BeautifulSoup

from shopgrade.config import config
from shopgrade.errors import DataUnavailableError
from shopgrade.rubric import Category
from shopgrade.seo_grader import ListingData, ListingImage, ListingReviews, grade_listing
from shopgrade.shop_comparator import ShopMetrics, ShopSnapshot
from shopgrade.smart_pricing import CompetitorPricePoint, base_price_for_category

logger = logging.getLogger(__name__)


class MetricsProvider(ABC):
    """Source of listing snapshots, shop metrics and competitor prices.

    Every method raises DataUnavailableError when the data cannot be had.
    """

    @abstractmethod
    def get_listing(self, listing_id: int) -> ListingData:
        ...

    @abstractmethod
    def get_shop(self, shop_id: str) -> ShopSnapshot:
        ...

    @abstractmethod
    def get_competitor_prices(self, category: str, keywords: list[str]) -> list[CompetitorPricePoint]:
        ...


def synthetic_price_points(category: str, count: int = 50) -> list[CompetitorPricePoint]:
    """Evenly spread prices within ±20% of the category base price (floor $5)."""
    base = base_price_for_category(category)
    spread = base * 0.4
    points = []
    for i in range(count):
        offset = spread * (i / (count - 1) - 0.5) if count > 1 else 0
        points.append(CompetitorPricePoint(
            price=round(max(5.0, base + offset), 2),
            shop_name=f"Competitor {i + 1}",
            sales_count=10 + i * 2,
        ))
    return points


# ── Static ───────────────────────────────────────────────

class StaticMetricsProvider(MetricsProvider):
    """Deterministic in-memory provider.

    With ``synthesize_prices`` on, categories without recorded competitor
    prices get a synthetic spread around the category base price.
    """

    def __init__(
        self,
        listings: Optional[list[ListingData]] = None,
        shops: Optional[list[ShopSnapshot]] = None,
        competitor_prices: Optional[dict[str, list[CompetitorPricePoint]]] = None,
        synthesize_prices: bool = False,
    ):
        self.listings = {l.listing_id: l for l in listings or []}
        self.shops = {s.shop_id: s for s in shops or []}
        self.competitor_prices = dict(competitor_prices or {})
        self.synthesize_prices = synthesize_prices

    def get_listing(self, listing_id: int) -> ListingData:
        try:
            return self.listings[int(listing_id)]
        except (KeyError, ValueError):
            raise DataUnavailableError(f"Unknown listing {listing_id}", source="static") from None

    def get_shop(self, shop_id: str) -> ShopSnapshot:
        try:
            return self.shops[shop_id]
        except KeyError:
            raise DataUnavailableError(f"Unknown shop {shop_id}", source="static") from None

    def get_competitor_prices(self, category: str, keywords: list[str]) -> list[CompetitorPricePoint]:
        if category in self.competitor_prices:
            return list(self.competitor_prices[category])
        if self.synthesize_prices:
            return synthetic_price_points(category)
        raise DataUnavailableError(f"No competitor prices for {category}", source="static")

    @classmethod
    def from_dict(cls, data: dict, synthesize_prices: bool = False) -> "StaticMetricsProvider":
        """Build from ``{"listings": [...], "shops": {...}, "competitor_prices": {...}}``.

        Shops map shop id to ``{"shop_name": ..., "metrics": {...}}``;
        competitor prices map category to a list of numbers or point dicts.
        """
        listings = [ListingData.from_dict(d) for d in data.get("listings") or []]
        shops = [
            ShopSnapshot(
                shop_id=str(shop_id),
                shop_name=info.get("shop_name", str(shop_id)),
                metrics=ShopMetrics.from_dict(info.get("metrics") or {}),
            )
            for shop_id, info in (data.get("shops") or {}).items()
        ]
        prices = {}
        for category, items in (data.get("competitor_prices") or {}).items():
            prices[category] = [
                CompetitorPricePoint(price=float(p)) if isinstance(p, (int, float))
                else CompetitorPricePoint(
                    price=float(p["price"]),
                    shop_name=p.get("shop_name", ""),
                    sales_count=int(p.get("sales_count", 0)),
                )
                for p in items
            ]
        return cls(listings, shops, prices, synthesize_prices=synthesize_prices)

    @classmethod
    def from_json_file(cls, path: str, synthesize_prices: bool = False) -> "StaticMetricsProvider":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f), synthesize_prices=synthesize_prices)


# ── Etsy Open API ────────────────────────────────────────

def html_to_text(html: str) -> str:
    """Etsy descriptions may carry markup and entities; keep the text and line breaks."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text()


def _money(price: Optional[dict]) -> float:
    if not price:
        return 0.0
    divisor = price.get("divisor") or 1
    return float(price.get("amount") or 0) / divisor


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class EtsyMetricsProvider(MetricsProvider):
    """Etsy Open API v3 client.

    Timeouts, 429 and 5xx responses back off and retry; other 4xx
    responses fail immediately. Exhausted retries raise
    DataUnavailableError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        sample_listings: int = 25,
    ):
        self.api_key = api_key if api_key is not None else config.ETSY_API_KEY
        self.base_url = (base_url or config.ETSY_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.retries = retries if retries is not None else config.HTTP_RETRIES
        self.sample_listings = sample_listings

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"x-api-key": self.api_key, "Accept": "application/json"}

        last_err = None
        for attempt in range(self.retries):
            try:
                r = requests.get(url, headers=headers, params=params, timeout=self.timeout)
                r.raise_for_status()
                return r.json()
            except requests.exceptions.Timeout:
                last_err = "request timed out"
                time.sleep(2 ** attempt)
            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status == 429:
                    last_err = "rate limited"
                    time.sleep(5 * (attempt + 1))
                elif status >= 500:
                    last_err = f"server error ({status})"
                    time.sleep(2 ** attempt)
                else:
                    raise DataUnavailableError(f"Etsy API HTTP {status} for {path}", source="etsy") from e
            except (requests.exceptions.RequestException, ValueError) as e:
                last_err = str(e)
                time.sleep(2 ** attempt)

        logger.error("Etsy API request %s failed after %d attempts: %s", path, self.retries, last_err)
        raise DataUnavailableError(f"Etsy API unavailable ({last_err})", source="etsy")

    def _listing_from_api(self, item: dict, reviews: ListingReviews) -> ListingData:
        return ListingData(
            listing_id=int(item.get("listing_id", 0)),
            title=html_to_text(item.get("title") or ""),
            description=html_to_text(item.get("description") or ""),
            tags=list(item.get("tags") or []),
            images=[
                ListingImage(url=img.get("url_fullxfull", ""), alt_text=img.get("alt_text"))
                for img in item.get("images") or []
            ],
            price=_money(item.get("price")),
            currency=(item.get("price") or {}).get("currency_code", "USD"),
            reviews=reviews,
            favorites=int(item.get("num_favorers") or 0),
            views=int(item.get("views") or 0),
        )

    def _get_reviews(self, listing_id: int) -> ListingReviews:
        try:
            data = self._get(f"/application/listings/{listing_id}/reviews", {"limit": 100})
        except DataUnavailableError as e:
            logger.warning("No reviews for listing %s: %s", listing_id, e)
            return ListingReviews()
        ratings = [float(r.get("rating") or 0) for r in data.get("results") or []]
        return ListingReviews(count=int(data.get("count") or len(ratings)), average=_average(ratings))

    def get_listing(self, listing_id: int) -> ListingData:
        item = self._get(f"/application/listings/{listing_id}", {"includes": "Images"})
        return self._listing_from_api(item, self._get_reviews(listing_id))

    def _resolve_shop_id(self, shop_id: str) -> str:
        if str(shop_id).isdigit():
            return str(shop_id)
        data = self._get("/application/shops", {"shop_name": shop_id})
        results = data.get("results") or []
        if not results:
            raise DataUnavailableError(f"Shop {shop_id} not found", source="etsy")
        return str(results[0]["shop_id"])

    def _content_scores(self, numeric_id: str) -> dict:
        """Average listing scores over a sample of the shop's active listings."""
        if self.sample_listings <= 0:
            return {}
        try:
            data = self._get(
                f"/application/shops/{numeric_id}/listings/active",
                {"limit": self.sample_listings, "includes": "Images"},
            )
        except DataUnavailableError as e:
            logger.warning("Could not sample listings for shop %s: %s", numeric_id, e)
            return {}

        grades = [
            grade_listing(self._listing_from_api(item, ListingReviews()))
            for item in data.get("results") or []
        ]
        if not grades:
            return {}
        return {
            "average_listing_score": _average([g.score for g in grades]),
            "image_quality_score": _average([g.breakdown[Category.IMAGES].score for g in grades]),
            "description_quality_score": _average([g.breakdown[Category.DESCRIPTION].score for g in grades]),
            "title_optimization_score": _average([g.breakdown[Category.TITLE].score for g in grades]),
        }

    def get_shop(self, shop_id: str) -> ShopSnapshot:
        numeric_id = self._resolve_shop_id(shop_id)
        shop = self._get(f"/application/shops/{numeric_id}")
        metrics = {
            "total_listings": shop.get("listing_active_count"),
            "total_sales": shop.get("transaction_sold_count"),
            "average_rating": shop.get("review_average"),
            "total_reviews": shop.get("review_count"),
            "total_favorites": shop.get("num_favorers"),
        }
        metrics.update(self._content_scores(numeric_id))
        return ShopSnapshot(
            shop_id=str(shop_id),
            shop_name=shop.get("shop_name") or str(shop_id),
            metrics=ShopMetrics.from_dict(metrics),
        )

    def get_competitor_prices(self, category: str, keywords: list[str]) -> list[CompetitorPricePoint]:
        query = " ".join(keywords) if keywords else category
        data = self._get("/application/listings/active", {"keywords": query, "limit": 50})
        return [
            CompetitorPricePoint(
                price=_money(item.get("price")),
                shop_name=f"Shop {item.get('shop_id', '')}",
                sales_count=0,
            )
            for item in data.get("results") or []
            if _money(item.get("price")) > 0
        ]
