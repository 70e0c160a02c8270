"""Smart Pricing Engine.

Price analysis for Etsy listings:
- Psychological (charm) pricing and its expected impact
- Competitor price range statistics, cached per category and keywords
- Optimal discount that keeps a target margin
- Bundle pricing, price elasticity and price history trends
- A deterministic pricing recommendation with alternatives

Competitor prices come from an injected MetricsProvider.
"""
import logging
import math
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from shopgrade.errors import DataUnavailableError
from shopgrade.rubric import round_half_up

logger = logging.getLogger(__name__)


# ── Data types ───────────────────────────────────────────

@dataclass
class CompetitorPricePoint:
    """One competitor listing price."""
    price: float
    shop_name: str = ""
    sales_count: int = 0


@dataclass
class CompetitorPriceData:
    min_price: float
    max_price: float
    average: float
    median: float
    p25: float
    p75: float
    sample_size: int
    top_performers: list[CompetitorPricePoint] = field(default_factory=list)


@dataclass
class PsychologicalPricing:
    current_price: float
    psychological_price: float
    impact: str
    suggestions: list[str] = field(default_factory=list)


@dataclass
class PriceAlternative:
    price: float
    reason: str
    expected_impact: str


@dataclass
class PricingRecommendation:
    listing_id: int
    current_price: float
    recommended_price: float
    psychological_price: float
    competitor_price: float
    expected_conversion_change: float
    expected_profit_change: float
    reasoning: str
    confidence: int
    alternatives: list[PriceAlternative] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        lines = [
            f"💰 Pricing Recommendation: listing {self.listing_id}",
            f"{'─' * 50}",
            f"  Current: ${self.current_price:.2f} → Recommended: ${self.recommended_price:.2f}",
            f"  Psychological: ${self.psychological_price:.2f} | "
            f"Competitor avg: ${self.competitor_price:.2f}",
            f"  Confidence: {self.confidence}% | Conversion: {self.expected_conversion_change:+.0f}%",
            f"  {self.reasoning}",
        ]
        if self.alternatives:
            lines.append("")
            lines.append("  📊 Alternatives:")
            for alt in self.alternatives:
                lines.append(f"    • ${alt.price:.2f}: {alt.reason} ({alt.expected_impact})")
        return "\n".join(lines)


@dataclass
class DiscountCalculation:
    original_price: float
    discounted_price: float
    discount_percentage: float
    target_margin: float
    cost_price: float
    profit_margin: float
    break_even_quantity: int
    recommended_quantity: int


@dataclass
class BundleProduct:
    listing_id: int
    price: float
    cost: float = 0.0


@dataclass
class BundlePricing:
    individual_price: float
    bundle_price: float
    savings: float
    expected_conversion_increase: float
    listing_ids: list[int]
    discount_percentage: float


@dataclass
class SalesPoint:
    """Observed demand at one price."""
    price: float
    quantity: float
    revenue: float


@dataclass
class PriceElasticity:
    elasticity: float
    optimal_price: float
    demand_at_optimal_price: float
    revenue_at_optimal_price: float
    recommendations: list[str] = field(default_factory=list)


@dataclass
class PriceHistoryEntry:
    date: datetime
    price: float
    sales: int
    revenue: float


@dataclass
class PriceHistoryAnalysis:
    trends: list[str]
    recommendations: list[str]
    optimal_price: float


@dataclass
class PricingRequest:
    """One listing in a bulk pricing run."""
    listing_id: int
    current_price: float
    category: str
    keywords: list[str] = field(default_factory=list)
    cost: Optional[float] = None
    target_margin: Optional[float] = None


# ── Constants ────────────────────────────────────────────

CATEGORY_BASE_PRICES = {
    "jewelry": 45,
    "home-decor": 35,
    "clothing": 25,
    "art-supplies": 15,
    "vintage": 30,
    "crafts": 20,
    "electronics": 60,
    "books": 12,
    "toys": 18,
    "beauty": 22,
}
DEFAULT_BASE_PRICE = 25

DEFAULT_CACHE_TTL = 300  # seconds

# Fraction of the margin headroom a recommended discount uses
DISCOUNT_SAFETY_FACTOR = 0.8
BUNDLE_DISCOUNT_PCT = 15
BUNDLE_CONVERSION_LIFT_PCT = 25

TOP_PERFORMERS = 5

# Fallback recommendation figures
RECOMMENDATION_CONFIDENCE = 60
RECOMMENDATION_CONVERSION_CHANGE = 5
RECOMMENDATION_PROFIT_CHANGE = 0

# (upper bound of % saved, impact) checked in order
IMPACT_BANDS = [
    (0.5, "Minimal impact - price is already psychologically optimized"),
    (2, "Low impact - slight conversion boost expected"),
    (5, "Medium impact - noticeable conversion improvement likely"),
]
HIGH_IMPACT = "High impact - significant conversion boost expected"

PRICE_TREND_THRESHOLD_PCT = 10


def base_price_for_category(category: str) -> float:
    return CATEGORY_BASE_PRICES.get((category or "").lower(), DEFAULT_BASE_PRICE)


# ── Psychological pricing ────────────────────────────────

def psychological_price(price: float) -> float:
    """Nearest whole unit minus a cent.

    $20.00 → $19.99
    $19.60 → $19.99
    $0.40  → $0.40
    """
    rounded = round_half_up(price)
    if rounded >= 1:
        return round(rounded - 0.01, 2)
    return round(price, 2)


def _impact(original: float, psychological: float) -> str:
    percentage = (original - psychological) / original * 100
    for upper, label in IMPACT_BANDS:
        if percentage < upper:
            return label
    return HIGH_IMPACT


def analyze_psychological_pricing(price: float) -> PsychologicalPricing:
    """Compare a price with its charm-priced counterpart."""
    if price <= 0:
        raise ValueError(f"Price must be positive, got {price}")

    psych = psychological_price(price)
    suggestions = []
    if round(abs(price - psych), 2) >= 0.01:
        suggestions.append(f"Consider pricing at ${psych:.2f} instead of ${price:.2f}")
    if price % 1 == 0 and price >= 10:
        suggestions.append("Round prices can appear less professional - try psychological pricing")
    if price % 5 == 0 and price >= 20:
        suggestions.append("Prices ending in 5 or 0 can be optimized with psychological pricing")

    return PsychologicalPricing(
        current_price=price,
        psychological_price=psych,
        impact=_impact(price, psych),
        suggestions=suggestions,
    )


# ── Statistics ───────────────────────────────────────────

def summarize_prices(points: list[CompetitorPricePoint]) -> CompetitorPriceData:
    """Range statistics over competitor prices (index-based percentiles)."""
    if not points:
        raise ValueError("No competitor prices to summarize")
    ordered = sorted(points, key=lambda p: p.price)
    prices = [p.price for p in ordered]
    n = len(prices)
    return CompetitorPriceData(
        min_price=prices[0],
        max_price=prices[-1],
        average=sum(prices) / n,
        median=prices[n // 2],
        p25=prices[int(n * 0.25)],
        p75=prices[int(n * 0.75)],
        sample_size=n,
        top_performers=ordered[-TOP_PERFORMERS:],
    )


def elasticity_recommendations(elasticity: float) -> list[str]:
    if elasticity < 1:
        return [
            "Low elasticity - price increases may increase revenue",
            "Consider premium pricing strategy",
        ]
    if elasticity < 2:
        return [
            "Moderate elasticity - small price changes have moderate impact",
            "Focus on value proposition to justify current pricing",
        ]
    return [
        "High elasticity - price changes have significant impact on demand",
        "Consider competitive pricing strategy",
        "Focus on cost optimization to maintain margins",
    ]


def margin_floor(cost: float, target_margin: float) -> float:
    """Lowest price that keeps target_margin percent of the price as profit."""
    if not 0 <= target_margin < 100:
        raise ValueError(f"Target margin must be in [0, 100), got {target_margin}")
    return cost / (1 - target_margin / 100)


# ── Engine ───────────────────────────────────────────────

class SmartPricingEngine:
    """Pricing analysis backed by a MetricsProvider for competitor prices."""

    def __init__(self, provider, cache_ttl: float = DEFAULT_CACHE_TTL):
        self.provider = provider
        self.cache_ttl = cache_ttl
        self._cache: dict[tuple, tuple[float, CompetitorPriceData]] = {}

    def get_competitor_price_range(self, category: str, keywords: list[str]) -> CompetitorPriceData:
        """Competitor price statistics, served from cache within the TTL.

        Raises DataUnavailableError when the provider has no prices.
        """
        key = (category, tuple(keywords))
        now = time.monotonic()
        self._drop_expired(now)
        cached = self._cache.get(key)
        if cached:
            return cached[1]

        try:
            points = self.provider.get_competitor_prices(category, keywords)
        except DataUnavailableError as e:
            logger.error("Failed to get competitor prices for %s %s: %s", category, keywords, e)
            raise
        if not points:
            raise DataUnavailableError(
                f"No competitor prices for {category}", source="competitor_prices",
            )

        data = summarize_prices(points)
        self._cache[key] = (now, data)
        return data

    def _drop_expired(self, now: float):
        for key in [k for k, (stamp, _) in self._cache.items() if now - stamp >= self.cache_ttl]:
            del self._cache[key]

    def clear_cache(self):
        self._cache.clear()

    def calculate_optimal_discount(
        self, current_price: float, target_margin: float, cost_price: float,
    ) -> DiscountCalculation:
        """Largest safe discount that still leaves target_margin percent profit."""
        if current_price <= 0:
            raise ValueError(f"Price must be positive, got {current_price}")
        if cost_price >= current_price:
            raise ValueError(f"Cost ${cost_price:.2f} is not below price ${current_price:.2f}")
        if not 0 <= target_margin < 100:
            raise ValueError(f"Target margin must be in [0, 100), got {target_margin}")

        margin = (current_price - cost_price) / current_price * 100
        max_discount = max(0.0, margin - target_margin)
        discount = max_discount * DISCOUNT_SAFETY_FACTOR
        discounted = current_price * (1 - discount / 100)
        break_even = math.ceil(cost_price / (discounted - cost_price))

        return DiscountCalculation(
            original_price=current_price,
            discounted_price=discounted,
            discount_percentage=discount,
            target_margin=target_margin,
            cost_price=cost_price,
            profit_margin=(discounted - cost_price) / discounted * 100,
            break_even_quantity=break_even,
            recommended_quantity=math.ceil(break_even * 1.5),
        )

    def suggest_bundle_pricing(self, products: list[BundleProduct]) -> BundlePricing:
        if not products:
            raise ValueError("A bundle needs at least one product")
        total = sum(p.price for p in products)
        bundle_price = total * (1 - BUNDLE_DISCOUNT_PCT / 100)
        return BundlePricing(
            individual_price=total,
            bundle_price=bundle_price,
            savings=total - bundle_price,
            expected_conversion_increase=BUNDLE_CONVERSION_LIFT_PCT,
            listing_ids=[p.listing_id for p in products],
            discount_percentage=BUNDLE_DISCOUNT_PCT,
        )

    def calculate_price_elasticity(self, history: list[SalesPoint]) -> PriceElasticity:
        """Arc elasticity between the cheapest and dearest observations."""
        if len(history) < 2:
            raise ValueError("Insufficient data for elasticity calculation")
        ordered = sorted(history, key=lambda p: p.price)
        low, high = ordered[0], ordered[-1]
        if low.price == high.price:
            raise ValueError("Elasticity needs at least two distinct prices")
        if low.price <= 0 or low.quantity == 0:
            raise ValueError("Lowest-price observation needs a positive price and quantity")

        price_change = (high.price - low.price) / low.price
        quantity_change = (low.quantity - high.quantity) / low.quantity
        elasticity = abs(quantity_change / price_change)
        best = max(history, key=lambda p: p.revenue)

        return PriceElasticity(
            elasticity=elasticity,
            optimal_price=best.price,
            demand_at_optimal_price=best.quantity,
            revenue_at_optimal_price=best.revenue,
            recommendations=elasticity_recommendations(elasticity),
        )

    def get_pricing_recommendation(
        self,
        listing_id: int,
        current_price: float,
        category: str,
        keywords: list[str],
        cost: Optional[float] = None,
        target_margin: Optional[float] = None,
    ) -> PricingRecommendation:
        """Recommend max(p25, psychological price), never below the margin floor."""
        competitors = self.get_competitor_price_range(category, keywords)
        psych = analyze_psychological_pricing(current_price)

        recommended = max(competitors.p25, psych.psychological_price)
        reasoning = "Based on competitor analysis and psychological pricing"
        if cost is not None and target_margin is not None:
            floor = margin_floor(cost, target_margin)
            if recommended < floor:
                recommended = floor
                reasoning += f"; raised to ${floor:.2f} to keep a {target_margin:g}% margin"

        alternatives = [
            PriceAlternative(competitors.average, "Match competitor average",
                             "Competitive positioning"),
            PriceAlternative(psych.psychological_price, "Psychological pricing optimization",
                             "Conversion boost"),
            PriceAlternative(competitors.p75, "Premium positioning",
                             "Higher margins, lower volume"),
            PriceAlternative(competitors.p25, "Value positioning",
                             "Higher volume, lower margins"),
        ]

        return PricingRecommendation(
            listing_id=listing_id,
            current_price=current_price,
            recommended_price=round(recommended, 2),
            psychological_price=psych.psychological_price,
            competitor_price=competitors.average,
            expected_conversion_change=RECOMMENDATION_CONVERSION_CHANGE,
            expected_profit_change=RECOMMENDATION_PROFIT_CHANGE,
            reasoning=reasoning,
            confidence=RECOMMENDATION_CONFIDENCE,
            alternatives=alternatives,
        )

    def analyze_bulk_pricing(self, requests: list[PricingRequest]) -> dict[int, PricingRecommendation]:
        """Recommendations per listing; failures are logged and skipped."""
        results = {}
        for req in requests:
            try:
                results[req.listing_id] = self.get_pricing_recommendation(
                    req.listing_id, req.current_price, req.category, req.keywords,
                    cost=req.cost, target_margin=req.target_margin,
                )
            except (DataUnavailableError, ValueError) as e:
                logger.error("Failed to analyze pricing for listing %s: %s", req.listing_id, e)
        return results

    def analyze_price_history(self, history: list[PriceHistoryEntry]) -> PriceHistoryAnalysis:
        if len(history) < 2:
            return PriceHistoryAnalysis(
                trends=["Insufficient data for analysis"],
                recommendations=["Collect more price history data"],
                optimal_price=history[0].price if history else 0,
            )

        ordered = sorted(history, key=lambda e: e.date)
        first, last = ordered[0].price, ordered[-1].price
        change = (last - first) / first * 100 if first else 0.0

        if change > PRICE_TREND_THRESHOLD_PCT:
            trends = ["Significant price increases over time"]
        elif change < -PRICE_TREND_THRESHOLD_PCT:
            trends = ["Significant price decreases over time"]
        else:
            trends = ["Stable pricing over time"]

        best = max(ordered, key=lambda e: e.revenue)
        recommendations = []
        if best.price != last:
            recommendations.append(
                f"Consider returning to ${best.price:.2f} (historically best revenue)"
            )

        return PriceHistoryAnalysis(
            trends=trends,
            recommendations=recommendations,
            optimal_price=best.price,
        )
