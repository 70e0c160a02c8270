"""Shop Health Monitor.

Scores a whole shop on six weighted categories:
- SEO: listing grades from the SEO grader
- Performance: conversion, rating, review volume
- Content: images, description length, tag count per listing
- Engagement: response rate and time, satisfaction
- Business: sales velocity, inventory turnover, margins
- Compliance: policies, about page, banner

Each run is recorded as a trend point so progress can be followed over
the retention window.
"""
import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from shopgrade.history import GradeHistoryStore
from shopgrade.rubric import Effort, Severity, clamp_score, round_half_up, score_to_grade
from shopgrade.seo_grader import ListingData, SEOGrader
from shopgrade.shop_comparator import camel_case

logger = logging.getLogger(__name__)


class HealthCategory(str, Enum):
    SEO = "seo"
    PERFORMANCE = "performance"
    CONTENT = "content"
    ENGAGEMENT = "engagement"
    BUSINESS = "business"
    COMPLIANCE = "compliance"


@dataclass
class ShopHealthMetrics:
    """Shop-level inputs. Anything left as None is skipped when averaging."""
    average_conversion_rate: Optional[float] = None  # percent
    average_rating: Optional[float] = None
    total_reviews: Optional[float] = None
    response_rate: Optional[float] = None  # percent
    average_response_time: Optional[float] = None  # hours
    customer_satisfaction: Optional[float] = None  # 0-100
    sales_velocity: Optional[float] = None  # sales per day
    inventory_turnover: Optional[float] = None
    profit_margins: Optional[float] = None  # percent
    policy_completeness: Optional[float] = None  # 0-100
    about_page_quality: Optional[float] = None  # 0-100
    shop_banner_quality: Optional[float] = None  # 0-100

    @classmethod
    def from_dict(cls, data: dict) -> "ShopHealthMetrics":
        values = {}
        for f in fields(cls):
            raw = data.get(f.name, data.get(camel_case(f.name)))
            values[f.name] = float(raw) if raw is not None else None
        return cls(**values)


@dataclass
class HealthIssue:
    id: str
    category: HealthCategory
    severity: Severity
    title: str
    description: str
    impact: str
    fix: str
    effort: Effort
    priority: int  # 1 = most urgent
    affected_listings: list[int] = field(default_factory=list)


@dataclass
class HealthRecommendation:
    id: str
    category: HealthCategory
    priority: Severity
    title: str
    description: str
    expected_impact: str
    timeframe: str
    action_steps: list[str]
    effort: Effort
    estimated_effort: str
    potential_roi: str


@dataclass
class HealthTrend:
    date: datetime
    score: int
    issues: int
    improvements: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "score": self.score,
            "issues": self.issues,
            "improvements": list(self.improvements),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HealthTrend":
        return cls(
            date=datetime.fromisoformat(data["date"]),
            score=int(data["score"]),
            issues=int(data["issues"]),
            improvements=list(data.get("improvements", [])),
        )


@dataclass
class TimelinePoint:
    date: datetime
    expected_score: int
    actions: list[str]


@dataclass
class ShopHealthScore:
    overall: int
    grade: str
    breakdown: dict[HealthCategory, int]
    issues: list[HealthIssue] = field(default_factory=list)
    recommendations: list[HealthRecommendation] = field(default_factory=list)
    quick_wins: list[HealthRecommendation] = field(default_factory=list)
    trends: list[HealthTrend] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["breakdown"] = {c.value: s for c, s in self.breakdown.items()}
        data["trends"] = [t.to_dict() for t in self.trends]
        data["last_updated"] = self.last_updated.isoformat()
        return data

    def summary(self) -> str:
        lines = [f"🏥 Shop Health: {self.grade} ({self.overall}/100)", ""]
        for category, score in self.breakdown.items():
            bar = "█" * (score // 10) + "░" * (10 - score // 10)
            lines.append(f"  {category.value.title()}: {score}/100 [{bar}]")
        if self.issues:
            lines.append("")
            lines.append("⚠️ Issues:")
            for issue in self.issues:
                lines.append(f"  [{issue.severity.value}] {issue.title}")
        if self.quick_wins:
            lines.append("")
            lines.append("⚡ Quick wins:")
            for win in self.quick_wins:
                lines.append(f"  • {win.title} ({win.estimated_effort})")
        return "\n".join(lines)


# ── Constants ────────────────────────────────────────────

HEALTH_WEIGHTS = {
    HealthCategory.SEO: 0.25,
    HealthCategory.PERFORMANCE: 0.20,
    HealthCategory.CONTENT: 0.15,
    HealthCategory.ENGAGEMENT: 0.15,
    HealthCategory.BUSINESS: 0.15,
    HealthCategory.COMPLIANCE: 0.10,
}

HEALTH_THRESHOLDS = {
    "critical": 30,
    "high": 50,
    "medium": 70,
    "low": 85,
}

GOOD_SEO_SCORE = 80
RECOMMENDATION_THRESHOLD = 80
TREND_RETENTION_DAYS = 30

# (minimum, points) checked in order; per listing, summing to 100 at best
IMAGE_POINTS = [(5, 40), (3, 30), (1, 20)]
DESCRIPTION_POINTS = [(250, 30), (100, 20), (50, 10)]
TAG_POINTS = [(10, 30), (8, 25), (5, 15)]

# (days ahead, expected gain, actions)
IMPROVEMENT_MILESTONES = [
    (7, 5, ["Complete quick wins", "Optimize top 5 listings"]),
    (14, 12, ["Improve content quality", "Enhance SEO"]),
    (30, 25, ["Complete all recommendations", "Monitor performance"]),
]

# category → (title, description template, impact, fix, effort, priority)
HEALTH_ISSUES = {
    HealthCategory.SEO: (
        "Poor SEO Performance",
        "Your overall SEO score is {score}%. This significantly impacts search visibility.",
        "High - Reduced search visibility and organic traffic",
        "Optimize listing titles, descriptions, and tags",
        Effort.MEDIUM, 1,
    ),
    HealthCategory.PERFORMANCE: (
        "Low Performance Metrics",
        "Your performance score is {score}%. This affects sales conversion.",
        "High - Reduced sales and revenue",
        "Improve conversion rates and customer satisfaction",
        Effort.HIGH, 1,
    ),
    HealthCategory.CONTENT: (
        "Poor Content Quality",
        "Your content score is {score}%. This affects customer experience.",
        "Medium - Reduced customer engagement and conversion",
        "Improve images, descriptions, and overall content quality",
        Effort.MEDIUM, 2,
    ),
    HealthCategory.ENGAGEMENT: (
        "Low Customer Engagement",
        "Your engagement score is {score}%. This affects customer relationships.",
        "Medium - Reduced customer loyalty and repeat sales",
        "Improve customer communication and response times",
        Effort.MEDIUM, 3,
    ),
    HealthCategory.BUSINESS: (
        "Business Performance Issues",
        "Your business score is {score}%. This affects profitability.",
        "High - Reduced profitability and growth",
        "Optimize pricing, inventory, and business operations",
        Effort.HIGH, 2,
    ),
    HealthCategory.COMPLIANCE: (
        "Compliance Issues",
        "Your compliance score is {score}%. This affects shop credibility.",
        "Medium - Reduced shop credibility and trust",
        "Complete shop policies and improve shop presentation",
        Effort.LOW, 4,
    ),
}

HEALTH_RECOMMENDATIONS = {
    HealthCategory.SEO: dict(
        id="seo_optimization",
        title="Optimize SEO Performance",
        description="Improve your listing SEO to increase search visibility and organic traffic.",
        expected_impact="20-40% increase in organic traffic",
        timeframe="2-4 weeks",
        action_steps=[
            "Audit all listing titles and optimize with relevant keywords",
            "Improve product descriptions with better formatting and keywords",
            "Add more relevant and unique tags to listings",
            "Optimize image alt text and file names",
        ],
        effort=Effort.MEDIUM,
        estimated_effort="Medium (2-3 hours per listing)",
        potential_roi="High - Direct impact on search visibility",
    ),
    HealthCategory.PERFORMANCE: dict(
        id="performance_improvement",
        title="Improve Performance Metrics",
        description="Focus on improving conversion rates and customer satisfaction.",
        expected_impact="15-30% increase in conversion rate",
        timeframe="3-6 weeks",
        action_steps=[
            "Analyze and optimize pricing strategy",
            "Improve product photography and descriptions",
            "Add customer reviews and testimonials",
            "Implement customer service best practices",
        ],
        effort=Effort.HIGH,
        estimated_effort="High (4-6 hours per listing)",
        potential_roi="High - Direct impact on sales",
    ),
    HealthCategory.CONTENT: dict(
        id="content_enhancement",
        title="Enhance Content Quality",
        description="Improve the quality and completeness of your listing content.",
        expected_impact="10-25% improvement in customer engagement",
        timeframe="2-4 weeks",
        action_steps=[
            "Retake product photos with better lighting and styling",
            "Add lifestyle images showing products in use",
            "Write more detailed and compelling descriptions",
            "Add size charts, care instructions, and specifications",
        ],
        effort=Effort.MEDIUM,
        estimated_effort="Medium (1-2 hours per listing)",
        potential_roi="Medium - Improved customer experience",
    ),
    HealthCategory.ENGAGEMENT: dict(
        id="engagement_boost",
        title="Boost Customer Engagement",
        description="Improve customer communication and engagement strategies.",
        expected_impact="15-25% improvement in customer satisfaction",
        timeframe="1-2 weeks",
        action_steps=[
            "Respond to messages within 2 hours",
            "Follow up with customers after purchase",
            "Encourage and respond to reviews",
            "Create engaging social media content",
        ],
        effort=Effort.LOW,
        estimated_effort="Low (30 minutes daily)",
        potential_roi="Medium - Improved customer relationships",
    ),
    HealthCategory.BUSINESS: dict(
        id="business_optimization",
        title="Optimize Business Operations",
        description="Improve business processes and profitability.",
        expected_impact="10-20% increase in profitability",
        timeframe="4-8 weeks",
        action_steps=[
            "Review and optimize pricing strategy",
            "Improve inventory management",
            "Analyze and reduce operational costs",
            "Implement better financial tracking",
        ],
        effort=Effort.HIGH,
        estimated_effort="High (6-8 hours weekly)",
        potential_roi="High - Direct impact on profitability",
    ),
    HealthCategory.COMPLIANCE: dict(
        id="compliance_completion",
        title="Complete Compliance Requirements",
        description="Ensure all shop policies and information are complete and up-to-date.",
        expected_impact="Improved shop credibility and trust",
        timeframe="1 week",
        action_steps=[
            "Complete shop policies (shipping, returns, etc.)",
            "Write a compelling about page",
            "Update shop banner and profile images",
            "Ensure all required information is present",
        ],
        effort=Effort.LOW,
        estimated_effort="Low (2-3 hours total)",
        potential_roi="Medium - Improved shop credibility",
    ),
}


# ── Category scores ──────────────────────────────────────

def _mean_of_present(values: list[Optional[float]]) -> int:
    present = [v for v in values if v is not None]
    if not present:
        return 0
    return clamp_score(round_half_up(sum(present) / len(present)))


def _points(value: int, table: list[tuple[int, int]]) -> int:
    for minimum, points in table:
        if value >= minimum:
            return points
    return 0


def calculate_seo_health(listings: list[ListingData], grader: SEOGrader) -> int:
    """Mean listing score averaged with the share of listings scoring 80+."""
    if not listings:
        return 0
    total = 0
    good = 0
    for listing in listings:
        try:
            score = grader.grade_listing(listing).score
        except Exception:
            logger.exception("Error grading listing %s", listing.listing_id)
            continue
        total += score
        if score >= GOOD_SEO_SCORE:
            good += 1
    average = total / len(listings)
    good_pct = good / len(listings) * 100
    return clamp_score(round_half_up((average + good_pct) / 2))


def calculate_performance_health(m: ShopHealthMetrics) -> int:
    return _mean_of_present([
        None if m.average_conversion_rate is None
        else min(100, m.average_conversion_rate / 5 * 100),
        None if m.average_rating is None
        else max(0, min(100, (m.average_rating - 3.5) / 1.5 * 100)),
        None if m.total_reviews is None
        else min(100, m.total_reviews / 100 * 100),
    ])


def listing_content_points(listing: ListingData) -> int:
    return (
        _points(len(listing.images), IMAGE_POINTS)
        + _points(len(listing.description), DESCRIPTION_POINTS)
        + _points(len(listing.tags), TAG_POINTS)
    )


def calculate_content_health(listings: list[ListingData]) -> int:
    if not listings:
        return 0
    total = sum(listing_content_points(l) for l in listings)
    return clamp_score(round_half_up(total / len(listings)))


def calculate_engagement_health(m: ShopHealthMetrics) -> int:
    return _mean_of_present([
        m.response_rate,
        None if m.average_response_time is None
        else max(0, 100 - m.average_response_time / 24 * 100),
        m.customer_satisfaction,
    ])


def calculate_business_health(m: ShopHealthMetrics) -> int:
    return _mean_of_present([
        None if m.sales_velocity is None else min(100, m.sales_velocity / 10 * 100),
        None if m.inventory_turnover is None else min(100, m.inventory_turnover * 10),
        m.profit_margins,
    ])


def calculate_compliance_health(m: ShopHealthMetrics) -> int:
    return _mean_of_present([m.policy_completeness, m.about_page_quality, m.shop_banner_quality])


# ── Synthesis ────────────────────────────────────────────

def calculate_health_score(breakdown: dict[HealthCategory, int]) -> int:
    return round_half_up(sum(breakdown[c] * w for c, w in HEALTH_WEIGHTS.items()))


def identify_health_issues(
    breakdown: dict[HealthCategory, int],
    listings: list[ListingData],
) -> list[HealthIssue]:
    """One issue per category under the medium threshold, most urgent first."""
    issues = []
    for category, score in breakdown.items():
        if score >= HEALTH_THRESHOLDS["medium"]:
            continue
        title, description, impact, fix, effort, priority = HEALTH_ISSUES[category]
        issues.append(HealthIssue(
            id=f"{category.value}_overall",
            category=category,
            severity=Severity.CRITICAL if score < HEALTH_THRESHOLDS["critical"] else Severity.HIGH,
            title=title,
            description=description.format(score=score),
            impact=impact,
            fix=fix,
            effort=effort,
            priority=priority,
            affected_listings=(
                [l.listing_id for l in listings] if category is HealthCategory.SEO else []
            ),
        ))
    return sorted(issues, key=lambda i: i.priority)


def recommendation_priority(score: int) -> Severity:
    if score < 50:
        return Severity.CRITICAL
    if score < 70:
        return Severity.HIGH
    return Severity.MEDIUM


def generate_health_recommendations(breakdown: dict[HealthCategory, int]) -> list[HealthRecommendation]:
    return [
        HealthRecommendation(
            category=category,
            priority=recommendation_priority(score),
            **HEALTH_RECOMMENDATIONS[category],
        )
        for category, score in breakdown.items()
        if score < RECOMMENDATION_THRESHOLD
    ]


def get_quick_wins(recommendations: list[HealthRecommendation]) -> list[HealthRecommendation]:
    """Low-effort recommendations with high or critical priority."""
    return [
        r for r in recommendations
        if r.effort is Effort.LOW and r.priority in (Severity.HIGH, Severity.CRITICAL)
    ]


# ── Monitor ──────────────────────────────────────────────

class ShopHealthMonitor:
    """Computes shop health and keeps its trend history.

    Without an injected store, trends live in memory for this instance.
    """

    def __init__(self, grader: Optional[SEOGrader] = None, history: Optional[GradeHistoryStore] = None):
        self.grader = grader or SEOGrader()
        self.history = history or GradeHistoryStore(
            redis_url=None, retention_days=TREND_RETENTION_DAYS,
        )

    def calculate_shop_health(
        self,
        shop_id: str,
        listings: list[ListingData],
        metrics: ShopHealthMetrics,
        now: Optional[datetime] = None,
    ) -> ShopHealthScore:
        """Score the shop and record the result as a trend point.

        ``trends`` on the result holds the points recorded before this run.
        """
        now = now or datetime.now()
        breakdown = {
            HealthCategory.SEO: calculate_seo_health(listings, self.grader),
            HealthCategory.PERFORMANCE: calculate_performance_health(metrics),
            HealthCategory.CONTENT: calculate_content_health(listings),
            HealthCategory.ENGAGEMENT: calculate_engagement_health(metrics),
            HealthCategory.BUSINESS: calculate_business_health(metrics),
            HealthCategory.COMPLIANCE: calculate_compliance_health(metrics),
        }
        overall = calculate_health_score(breakdown)
        recommendations = generate_health_recommendations(breakdown)

        score = ShopHealthScore(
            overall=overall,
            grade=score_to_grade(overall),
            breakdown=breakdown,
            issues=identify_health_issues(breakdown, listings),
            recommendations=recommendations,
            quick_wins=get_quick_wins(recommendations),
            trends=self.get_health_trends(shop_id, now=now),
            last_updated=now,
        )
        self._save_trend(shop_id, score)
        return score

    def _save_trend(self, shop_id: str, score: ShopHealthScore):
        trend = HealthTrend(
            date=score.last_updated,
            score=score.overall,
            issues=len(score.issues),
            improvements=[r.title for r in score.recommendations],
        )
        if not self.history.add_health_trend(shop_id, trend.to_dict()):
            logger.warning("Health trend for shop %s was not saved", shop_id)

    def get_health_trends(self, shop_id: str, now: Optional[datetime] = None) -> list[HealthTrend]:
        """Trend points inside the retention window, oldest first."""
        entries = self.history.get_health_trends(shop_id, now=now)
        return [HealthTrend.from_dict(e) for e in reversed(entries)]

    def get_health_improvement_timeline(
        self, shop_id: str, now: Optional[datetime] = None,
    ) -> list[TimelinePoint]:
        """Projected scores one week, two weeks and one month out."""
        now = now or datetime.now()
        trends = self.get_health_trends(shop_id, now=now)
        current = trends[-1].score if trends else 0
        return [
            TimelinePoint(
                date=now + timedelta(days=days),
                expected_score=min(100, current + gain),
                actions=list(actions),
            )
            for days, gain, actions in IMPROVEMENT_MILESTONES
        ]
