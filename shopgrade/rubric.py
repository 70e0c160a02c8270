"""Grading rubric.

Thresholds, weights, letter-grade boundaries and the static advice tables
shared by the listing grader, the shop health monitor and the comparator.
Tune the rubric here; the grading code only reads these constants.
"""
import math
from enum import Enum


class Category(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    TAGS = "tags"
    IMAGES = "images"
    PRICING = "pricing"
    ENGAGEMENT = "engagement"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Effort(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


MAX_SCORE = 100


# ── Criteria ─────────────────────────────────────────────

CRITERIA = {
    Category.TITLE: {
        "min_length": 30,
        "max_length": 140,
        "keyword_density": 0.10,
        "ideal_min": 60,
        "ideal_max": 100,
    },
    Category.DESCRIPTION: {
        "min_length": 200,
        "max_length": 5000,
        "keyword_density": 0.05,
        "ideal_words_min": 250,
        "ideal_words_max": 600,
    },
    Category.TAGS: {
        "min_count": 8,
        "max_count": 13,
        "keyword_relevance": 0.8,
        "uniqueness": 0.7,
        "max_avg_length": 20,
    },
    Category.IMAGES: {
        "min_count": 5,
        "max_count": 10,
        "variety_min": 3,
    },
    Category.PRICING: {
        "competitive_min": 0,
        "competitive_max": 1000,
        "free_shipping": 35,
        "charm_endings": (99, 95),
    },
    Category.ENGAGEMENT: {
        "min_reviews": 10,
        "min_rating": 4.5,
        "min_favorites": 50,
        "min_conversion_pct": 2.0,
    },
}

DIMENSION_WEIGHTS = {
    Category.TITLE: 0.20,
    Category.DESCRIPTION: 0.25,
    Category.TAGS: 0.20,
    Category.IMAGES: 0.15,
    Category.PRICING: 0.10,
    Category.ENGAGEMENT: 0.10,
}

# Inclusive lower bounds, highest first.
GRADE_BOUNDARIES = [
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
]
FAILING_GRADE = "F"
GRADES = [g for _, g in GRADE_BOUNDARIES] + [FAILING_GRADE]

IMPROVEMENT_THRESHOLD = 90


# ── Lexicons ─────────────────────────────────────────────

EMOTIONAL_WORDS = [
    "beautiful", "stunning", "amazing", "perfect", "lovely",
    "gorgeous", "unique", "handmade", "artisan",
]

CTA_WORDS = ["buy", "order", "shop", "get", "grab", "purchase"]

FORMATTING_MARKERS = ["\n", "•", "-", "*"]

FEATURE_MARKERS = ["•", "-", "✓"]


# ── Advice tables ────────────────────────────────────────

ISSUE_FIXES = {
    Category.TITLE: "Optimize title length and include relevant keywords",
    Category.DESCRIPTION: "Improve description formatting and add more details",
    Category.TAGS: "Add more relevant and unique tags",
    Category.IMAGES: "Add more high-quality images with alt text",
    Category.PRICING: "Adjust pricing strategy for better conversion",
    Category.ENGAGEMENT: "Focus on improving customer experience and reviews",
}

ISSUE_IMPACTS = {
    Category.TITLE: "High - Affects search visibility and click-through rates",
    Category.DESCRIPTION: "High - Affects conversion rates and customer understanding",
    Category.TAGS: "Medium - Affects search discoverability",
    Category.IMAGES: "Medium - Affects visual appeal and conversion",
    Category.PRICING: "High - Directly affects sales conversion",
    Category.ENGAGEMENT: "Medium - Affects trust and social proof",
}

IMPROVEMENT_SUGGESTIONS = {
    Category.TITLE: "Optimize title for better search visibility",
    Category.DESCRIPTION: "Enhance description for improved conversion",
    Category.TAGS: "Improve tag strategy for better discoverability",
    Category.IMAGES: "Upgrade image quality and variety",
    Category.PRICING: "Refine pricing strategy for better conversion",
    Category.ENGAGEMENT: "Focus on improving customer engagement",
}

EXPECTED_IMPROVEMENTS = {
    Category.TITLE: "10-20% increase in search visibility",
    Category.DESCRIPTION: "15-25% improvement in conversion rate",
    Category.TAGS: "5-15% increase in organic traffic",
    Category.IMAGES: "10-20% improvement in engagement",
    Category.PRICING: "5-15% increase in conversion rate",
    Category.ENGAGEMENT: "10-20% improvement in customer satisfaction",
}

IMPROVEMENT_EFFORT = {
    Category.TITLE: Effort.LOW,
    Category.DESCRIPTION: Effort.MEDIUM,
    Category.TAGS: Effort.LOW,
    Category.IMAGES: Effort.HIGH,
    Category.PRICING: Effort.MEDIUM,
    Category.ENGAGEMENT: Effort.HIGH,
}

# (excellent >= 90, good >= 80, fair >= 70, poor)
FEEDBACK = {
    Category.TITLE: (
        "Excellent title! Well-optimized for search and conversion.",
        "Good title with room for minor improvements.",
        "Title needs some optimization to improve search visibility.",
        "Title requires significant improvement for better SEO performance.",
    ),
    Category.DESCRIPTION: (
        "Outstanding description! Comprehensive and well-structured.",
        "Good description with minor areas for improvement.",
        "Description needs optimization for better conversion.",
        "Description requires significant improvement.",
    ),
    Category.TAGS: (
        "Excellent tag strategy! Well-optimized for search.",
        "Good tags with room for minor improvements.",
        "Tags need optimization for better discoverability.",
        "Tag strategy requires significant improvement.",
    ),
    Category.IMAGES: (
        "Excellent image strategy! High-quality and well-optimized.",
        "Good images with minor areas for improvement.",
        "Images need optimization for better conversion.",
        "Image strategy requires significant improvement.",
    ),
    Category.PRICING: (
        "Excellent pricing strategy! Well-positioned for conversion.",
        "Good pricing with minor optimization opportunities.",
        "Pricing needs optimization for better conversion.",
        "Pricing strategy requires significant improvement.",
    ),
    Category.ENGAGEMENT: (
        "Excellent engagement! Strong social proof and conversion.",
        "Good engagement with room for improvement.",
        "Engagement needs improvement for better performance.",
        "Engagement strategy requires significant improvement.",
    ),
}

_ADVICE_TABLES = {
    "ISSUE_FIXES": ISSUE_FIXES,
    "ISSUE_IMPACTS": ISSUE_IMPACTS,
    "IMPROVEMENT_SUGGESTIONS": IMPROVEMENT_SUGGESTIONS,
    "EXPECTED_IMPROVEMENTS": EXPECTED_IMPROVEMENTS,
    "IMPROVEMENT_EFFORT": IMPROVEMENT_EFFORT,
    "FEEDBACK": FEEDBACK,
    "CRITERIA": CRITERIA,
    "DIMENSION_WEIGHTS": DIMENSION_WEIGHTS,
}

for _name, _table in _ADVICE_TABLES.items():
    _missing = set(Category) - set(_table)
    if _missing:
        raise RuntimeError(f"{_name} missing categories: {sorted(c.value for c in _missing)}")


# ── Helpers ──────────────────────────────────────────────

def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up.

    The value is first rounded to 6 places so float noise from weighted
    sums (e.g. 72.49999999) lands on the intended side.
    """
    return int(math.floor(round(value, 6) + 0.5))


def clamp_score(score: float) -> int:
    """Clamp a score into [0, MAX_SCORE]."""
    return int(max(0, min(MAX_SCORE, score)))


def score_to_grade(score: float) -> str:
    """Map a 0-100 score to a letter grade (A+ … F)."""
    for lower, grade in GRADE_BOUNDARIES:
        if score >= lower:
            return grade
    return FAILING_GRADE


def severity_for_score(score: float) -> Severity:
    if score < 70:
        return Severity.HIGH
    if score < 80:
        return Severity.MEDIUM
    return Severity.LOW


def feedback_for(category: Category, score: float) -> str:
    excellent, good, fair, poor = FEEDBACK[Category(category)]
    if score >= 90:
        return excellent
    if score >= 80:
        return good
    if score >= 70:
        return fair
    return poor
