"""Shop Comparator.

Compare a shop against industry benchmarks and tracked competitors:
- Percentile rankings by linear interpolation between benchmark bounds
- Gaps where the shop trails the competitor average
- Recommendations keyed on weak rankings and content quality

Shop data comes from an injected MetricsProvider; the scoring functions
below take plain metrics and are usable without one.
"""
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Optional

from shopgrade.errors import DataUnavailableError
from shopgrade.rubric import Effort, Severity, round_half_up

logger = logging.getLogger(__name__)


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class ShopMetrics:
    """Shop-level aggregates used for comparison."""
    # Basic stats
    total_listings: float = 0
    total_sales: float = 0
    total_revenue: float = 0
    average_rating: float = 0
    total_reviews: float = 0
    # Performance
    conversion_rate: float = 0
    average_order_value: float = 0
    customer_retention_rate: float = 0
    # SEO
    average_listing_score: float = 0
    total_keywords_ranked: float = 0
    average_rank_position: float = 0
    # Engagement
    total_favorites: float = 0
    social_media_followers: float = 0
    email_subscribers: float = 0
    # Content quality
    image_quality_score: float = 0
    description_quality_score: float = 0
    title_optimization_score: float = 0
    # Business
    days_since_first_sale: float = 0
    monthly_growth_rate: float = 0
    seasonal_variation: float = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ShopMetrics":
        values = {}
        for f in fields(cls):
            raw = data.get(f.name, data.get(camel_case(f.name)))
            values[f.name] = float(raw) if raw is not None else 0.0
        return cls(**values)


@dataclass
class ShopSnapshot:
    shop_id: str
    shop_name: str
    metrics: ShopMetrics


@dataclass
class PercentileRankings:
    """0-100 positions; 75 means ahead of 75% of the benchmark range."""
    total_sales: int
    revenue: int
    conversion_rate: int
    average_rating: int
    listing_count: int
    seo_score: int
    overall: int


@dataclass
class ComparisonGap:
    category: str  # seo, pricing, content, engagement, growth
    metric: str
    your_value: float
    competitor_value: float
    gap: float
    importance: Severity
    description: str


@dataclass
class ComparisonRecommendation:
    category: str
    priority: Severity
    title: str
    description: str
    impact: str
    effort: Effort
    timeframe: str
    action_steps: list[str] = field(default_factory=list)


@dataclass
class IndustryBenchmark:
    category: str
    average: float
    top10_percent: float
    top25_percent: float
    median: float
    bottom25_percent: float
    sample_size: int
    last_updated: Optional[datetime] = None


@dataclass
class CompetitorShop:
    shop_id: str
    shop_name: str
    url: str
    category: str
    is_tracked: bool
    added_date: datetime
    last_analyzed: datetime
    metrics: ShopMetrics


@dataclass
class ShopComparison:
    shop_id: str
    shop_name: str
    metrics: ShopMetrics
    percentile_rankings: PercentileRankings
    gaps: list[ComparisonGap] = field(default_factory=list)
    recommendations: list[ComparisonRecommendation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Constants ────────────────────────────────────────────

INDUSTRY_BENCHMARKS = {
    b.category: b
    for b in [
        IndustryBenchmark("jewelry", average=150, top10_percent=5000, top25_percent=2000,
                          median=120, bottom25_percent=50, sample_size=10000),
        IndustryBenchmark("home_decor", average=200, top10_percent=3000, top25_percent=1500,
                          median=180, bottom25_percent=80, sample_size=8000),
        IndustryBenchmark("art", average=80, top10_percent=2000, top25_percent=800,
                          median=70, bottom25_percent=30, sample_size=5000),
    ]
}

# Revenue bounds are the sales bounds scaled by this factor
REVENUE_BENCHMARK_MULTIPLIER = 100

PERCENTILE_RANGES = {
    "conversion_rate": (1.0, 8.0),
    "average_rating": (3.5, 5.0),
    "listing_count": (10, 500),
    "seo_score": (30, 90),
}

DEFAULT_PERCENTILE = 50

# Gap fires when your value < competitor average * ratio
GAP_RATIOS = {
    "sales": 0.7,
    "revenue": 0.7,
    "conversion": 0.8,
    "seo": 0.8,
}

RECOMMENDATION_THRESHOLDS = {
    "seo_score": 50,
    "conversion_rate": 40,
    "content_quality": 70,
    "total_sales": 30,
}

SHOP_URL_PATTERN = re.compile(r"etsy\.com/shop/([^/?#]+)")


# ── Scoring ──────────────────────────────────────────────

def calculate_percentile(value: float, low: float, high: float) -> int:
    """Linear position of value between low (0) and high (100)."""
    if value <= low:
        return 0
    if value >= high:
        return 100
    return round_half_up((value - low) / (high - low) * 100)


def calculate_percentile_rankings(metrics: ShopMetrics, category: str) -> PercentileRankings:
    """Rank a shop against the category benchmark.

    Categories without a benchmark rank at the midpoint everywhere.
    """
    benchmark = INDUSTRY_BENCHMARKS.get(category)
    if benchmark is None:
        d = DEFAULT_PERCENTILE
        return PercentileRankings(d, d, d, d, d, d, d)

    sales = calculate_percentile(
        metrics.total_sales, benchmark.bottom25_percent, benchmark.top25_percent,
    )
    revenue = calculate_percentile(
        metrics.total_revenue,
        benchmark.bottom25_percent * REVENUE_BENCHMARK_MULTIPLIER,
        benchmark.top25_percent * REVENUE_BENCHMARK_MULTIPLIER,
    )
    conversion = calculate_percentile(metrics.conversion_rate, *PERCENTILE_RANGES["conversion_rate"])
    rating = calculate_percentile(metrics.average_rating, *PERCENTILE_RANGES["average_rating"])
    listings = calculate_percentile(metrics.total_listings, *PERCENTILE_RANGES["listing_count"])
    seo = calculate_percentile(metrics.average_listing_score, *PERCENTILE_RANGES["seo_score"])

    return PercentileRankings(
        total_sales=sales,
        revenue=revenue,
        conversion_rate=conversion,
        average_rating=rating,
        listing_count=listings,
        seo_score=seo,
        overall=round_half_up((sales + revenue + conversion + rating + seo) / 5),
    )


def _shortfall_pct(yours: float, theirs: float) -> int:
    return round_half_up((1 - yours / theirs) * 100)


def identify_gaps(yours: ShopMetrics, competitors: list[ShopMetrics]) -> list[ComparisonGap]:
    """Gaps where the shop trails the competitor average by more than the margin."""
    if not competitors:
        return []

    n = len(competitors)
    avg_sales = sum(m.total_sales for m in competitors) / n
    avg_revenue = sum(m.total_revenue for m in competitors) / n
    avg_conversion = sum(m.conversion_rate for m in competitors) / n
    avg_seo = sum(m.average_listing_score for m in competitors) / n

    gaps = []
    if yours.total_sales < avg_sales * GAP_RATIOS["sales"]:
        gaps.append(ComparisonGap(
            category="growth",
            metric="Total Sales",
            your_value=yours.total_sales,
            competitor_value=avg_sales,
            gap=avg_sales - yours.total_sales,
            importance=Severity.HIGH,
            description=f"You have {_shortfall_pct(yours.total_sales, avg_sales)}% fewer sales than competitors",
        ))

    if yours.total_revenue < avg_revenue * GAP_RATIOS["revenue"]:
        gaps.append(ComparisonGap(
            category="growth",
            metric="Total Revenue",
            your_value=yours.total_revenue,
            competitor_value=avg_revenue,
            gap=avg_revenue - yours.total_revenue,
            importance=Severity.HIGH,
            description=(
                f"You generate {_shortfall_pct(yours.total_revenue, avg_revenue)}% "
                f"less revenue than competitors"
            ),
        ))

    if yours.conversion_rate < avg_conversion * GAP_RATIOS["conversion"]:
        gaps.append(ComparisonGap(
            category="pricing",
            metric="Conversion Rate",
            your_value=yours.conversion_rate,
            competitor_value=avg_conversion,
            gap=avg_conversion - yours.conversion_rate,
            importance=Severity.CRITICAL,
            description=(
                f"Your conversion rate is {_shortfall_pct(yours.conversion_rate, avg_conversion)}% "
                f"lower than competitors"
            ),
        ))

    if yours.average_listing_score < avg_seo * GAP_RATIOS["seo"]:
        gaps.append(ComparisonGap(
            category="seo",
            metric="Average SEO Score",
            your_value=yours.average_listing_score,
            competitor_value=avg_seo,
            gap=avg_seo - yours.average_listing_score,
            importance=Severity.HIGH,
            description=(
                f"Your SEO scores are {_shortfall_pct(yours.average_listing_score, avg_seo)}% "
                f"lower than competitors"
            ),
        ))

    return gaps


def generate_recommendations(
    metrics: ShopMetrics,
    gaps: list[ComparisonGap],
    rankings: PercentileRankings,
) -> list[ComparisonRecommendation]:
    """Recommendations for rankings and content scores below their thresholds."""
    t = RECOMMENDATION_THRESHOLDS
    recommendations = []

    if rankings.seo_score < t["seo_score"]:
        recommendations.append(ComparisonRecommendation(
            category="seo",
            priority=Severity.HIGH,
            title="Improve SEO Scores",
            description=(
                "Your SEO scores are below industry average. "
                "Focus on optimizing titles, descriptions, and tags."
            ),
            impact="High - Better search visibility",
            effort=Effort.MEDIUM,
            timeframe="2-4 weeks",
            action_steps=[
                "Optimize listing titles with relevant keywords",
                "Improve product descriptions with better formatting",
                "Add more relevant tags to listings",
                "Use high-quality, keyword-rich images",
            ],
        ))

    if rankings.conversion_rate < t["conversion_rate"]:
        recommendations.append(ComparisonRecommendation(
            category="pricing",
            priority=Severity.CRITICAL,
            title="Optimize Pricing Strategy",
            description=(
                "Your conversion rate is significantly below average. "
                "Review your pricing strategy."
            ),
            impact="Critical - Direct revenue impact",
            effort=Effort.LOW,
            timeframe="1-2 weeks",
            action_steps=[
                "Analyze competitor pricing",
                "Test psychological pricing ($19.99 vs $20)",
                "Offer bundle deals",
                "Add free shipping threshold",
            ],
        ))

    if (metrics.image_quality_score < t["content_quality"]
            or metrics.description_quality_score < t["content_quality"]):
        recommendations.append(ComparisonRecommendation(
            category="content",
            priority=Severity.MEDIUM,
            title="Enhance Content Quality",
            description="Improve the quality of your product images and descriptions.",
            impact="Medium - Better customer experience",
            effort=Effort.MEDIUM,
            timeframe="3-4 weeks",
            action_steps=[
                "Retake product photos with better lighting",
                "Add lifestyle images showing products in use",
                "Write more detailed, benefit-focused descriptions",
                "Add size charts and care instructions",
            ],
        ))

    if rankings.total_sales < t["total_sales"]:
        recommendations.append(ComparisonRecommendation(
            category="growth",
            priority=Severity.HIGH,
            title="Accelerate Sales Growth",
            description=(
                "Your sales volume is significantly below competitors. "
                "Focus on marketing and promotion."
            ),
            impact="High - Revenue growth",
            effort=Effort.HIGH,
            timeframe="4-6 weeks",
            action_steps=[
                "Launch Etsy Ads campaigns",
                "Increase social media marketing",
                "Collaborate with influencers",
                "Run seasonal promotions",
            ],
        ))

    return recommendations


def extract_shop_id_from_url(url: str) -> Optional[str]:
    """'https://www.etsy.com/shop/SilverNest?ref=x' → 'SilverNest'."""
    m = SHOP_URL_PATTERN.search(url or "")
    return m.group(1) if m else None


# ── Comparator ───────────────────────────────────────────

class ShopComparator:
    """Compares shops using data from a MetricsProvider and tracks competitors."""

    def __init__(self, provider):
        self.provider = provider
        self.competitors: dict[str, CompetitorShop] = {}

    def compare_shop(
        self,
        shop_id: str,
        category: str,
        competitor_ids: tuple[str, ...] | list[str] = (),
    ) -> Optional[ShopComparison]:
        """Compare a shop against its category benchmark and competitors.

        Returns None when the shop's own data cannot be fetched. Competitors
        that fail to load are logged and left out of the averages.
        """
        try:
            subject = self.provider.get_shop(shop_id)
        except DataUnavailableError as e:
            logger.error("Failed to fetch shop data for %s: %s", shop_id, e)
            return None

        competitor_metrics = []
        for cid in competitor_ids:
            try:
                competitor_metrics.append(self.provider.get_shop(cid).metrics)
            except DataUnavailableError as e:
                logger.warning("Skipping competitor %s: %s", cid, e)

        rankings = calculate_percentile_rankings(subject.metrics, category)
        gaps = identify_gaps(subject.metrics, competitor_metrics)
        recommendations = generate_recommendations(subject.metrics, gaps, rankings)

        return ShopComparison(
            shop_id=shop_id,
            shop_name=subject.shop_name,
            metrics=subject.metrics,
            percentile_rankings=rankings,
            gaps=gaps,
            recommendations=recommendations,
        )

    def add_competitor(self, shop_url: str, category: str) -> bool:
        """Start tracking a competitor by its Etsy shop URL."""
        shop_id = extract_shop_id_from_url(shop_url)
        if not shop_id:
            logger.warning("Invalid shop URL: %s", shop_url)
            return False

        try:
            snapshot = self.provider.get_shop(shop_id)
        except DataUnavailableError as e:
            logger.error("Failed to fetch competitor %s: %s", shop_id, e)
            return False

        now = datetime.now()
        self.competitors[shop_id] = CompetitorShop(
            shop_id=shop_id,
            shop_name=snapshot.shop_name,
            url=shop_url,
            category=category,
            is_tracked=True,
            added_date=now,
            last_analyzed=now,
            metrics=snapshot.metrics,
        )
        logger.info("Tracking competitor %s (%s)", shop_id, category)
        return True

    def remove_competitor(self, shop_id: str) -> bool:
        return self.competitors.pop(shop_id, None) is not None

    def get_competitors(self) -> list[CompetitorShop]:
        return list(self.competitors.values())

    def update_competitor_metrics(self, shop_id: str) -> bool:
        """Refresh a tracked competitor's metrics."""
        competitor = self.competitors.get(shop_id)
        if competitor is None:
            return False
        try:
            snapshot = self.provider.get_shop(shop_id)
        except DataUnavailableError as e:
            logger.error("Failed to refresh competitor %s: %s", shop_id, e)
            return False
        competitor.metrics = snapshot.metrics
        competitor.last_analyzed = datetime.now()
        return True

    def get_industry_benchmark(self, category: str) -> Optional[IndustryBenchmark]:
        return INDUSTRY_BENCHMARKS.get(category)
