"""Listing SEO Grader.

Grades an Etsy listing snapshot on six dimensions and combines them into
a single 0-100 score and A+ … F letter grade:
- Title (length, keyword density, persuasive and brand words)
- Description (length, density, formatting, call to action, features)
- Tags (count, relevance, uniqueness, length, long-tail, brand)
- Images (count, alt text, variety, quality)
- Pricing (charm pricing, competitive band, free shipping threshold)
- Engagement (reviews, rating, favorites, conversion)

Every grader is a pure function. Sparse or malformed input lowers the
score and adds an issue string; it never raises.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from shopgrade.rubric import (
    CRITERIA,
    CTA_WORDS,
    DIMENSION_WEIGHTS,
    EMOTIONAL_WORDS,
    EXPECTED_IMPROVEMENTS,
    FEATURE_MARKERS,
    FORMATTING_MARKERS,
    IMPROVEMENT_EFFORT,
    IMPROVEMENT_SUGGESTIONS,
    IMPROVEMENT_THRESHOLD,
    ISSUE_FIXES,
    ISSUE_IMPACTS,
    MAX_SCORE,
    Category,
    Effort,
    Severity,
    clamp_score,
    feedback_for,
    round_half_up,
    score_to_grade,
    severity_for_score,
)

logger = logging.getLogger(__name__)


def split_list(value: str) -> list[str]:
    """Split a "|" or "," separated string, dropping blanks."""
    sep = "|" if "|" in value else ","
    return [v.strip() for v in value.split(sep) if v.strip()]


# ── Data model ───────────────────────────────────────────

@dataclass
class ListingImage:
    url: str
    alt_text: Optional[str] = None


@dataclass
class ListingReviews:
    count: int = 0
    average: float = 0.0


@dataclass
class ListingData:
    """Snapshot of a marketplace listing. Read-only input to grading."""
    listing_id: int
    title: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    images: list[ListingImage] = field(default_factory=list)
    price: float = 0.0
    currency: str = "USD"
    reviews: ListingReviews = field(default_factory=ListingReviews)
    favorites: int = 0
    views: int = 0
    category: str = ""
    conversion_rate: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ListingData":
        """Build from a JSON-style dict (camelCase or snake_case keys)."""
        images = []
        for img in data.get("images") or []:
            if isinstance(img, str):
                images.append(ListingImage(url=img))
            elif isinstance(img, dict):
                images.append(ListingImage(
                    url=img.get("url", ""),
                    alt_text=img.get("alt_text", img.get("altText")),
                ))

        tags = data.get("tags")
        reviews = data.get("reviews") or {}
        conversion = data.get("conversion_rate", data.get("conversionRate"))

        return cls(
            listing_id=int(data.get("listing_id", data.get("listingId", 0)) or 0),
            title=data.get("title") or "",
            description=data.get("description") or "",
            tags=split_list(tags) if isinstance(tags, str) else [str(t) for t in tags or []],
            images=images,
            price=float(data.get("price") or 0),
            currency=data.get("currency") or "USD",
            reviews=ListingReviews(
                count=int(reviews.get("count") or 0),
                average=float(reviews.get("average") or 0),
            ),
            favorites=int(data.get("favorites") or 0),
            views=int(data.get("views") or 0),
            category=data.get("category") or "",
            conversion_rate=float(conversion) if conversion is not None else None,
        )


@dataclass
class GradeBreakdown:
    """Result for one grading dimension."""
    grade: str
    score: int
    max_score: int = MAX_SCORE
    feedback: str = ""
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "grade": self.grade,
            "score": self.score,
            "max_score": self.max_score,
            "feedback": self.feedback,
            "issues": list(self.issues),
        }


@dataclass
class SEOIssue:
    category: Category
    severity: Severity
    issue: str
    description: str
    fix: str
    impact: str


@dataclass
class SEOImprovement:
    category: Category
    priority: Severity
    suggestion: str
    description: str
    expected_improvement: str
    effort: Effort


@dataclass
class SEOGradeHistory:
    date: datetime
    grade: str
    score: int
    improvements: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "grade": self.grade,
            "score": self.score,
            "improvements": list(self.improvements),
            "issues": list(self.issues),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SEOGradeHistory":
        return cls(
            date=datetime.fromisoformat(data["date"]),
            grade=data["grade"],
            score=int(data["score"]),
            improvements=list(data.get("improvements", [])),
            issues=list(data.get("issues", [])),
        )


@dataclass
class SEOGrade:
    """Overall listing grade with per-dimension breakdown."""
    overall: str
    score: int
    breakdown: dict[Category, GradeBreakdown]
    issues: list[SEOIssue] = field(default_factory=list)
    improvements: list[SEOImprovement] = field(default_factory=list)
    history: list[SEOGradeHistory] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "score": self.score,
            "breakdown": {c.value: b.to_dict() for c, b in self.breakdown.items()},
            "issues": [
                {
                    "category": i.category.value,
                    "severity": i.severity.value,
                    "issue": i.issue,
                    "description": i.description,
                    "fix": i.fix,
                    "impact": i.impact,
                }
                for i in self.issues
            ],
            "improvements": [
                {
                    "category": imp.category.value,
                    "priority": imp.priority.value,
                    "suggestion": imp.suggestion,
                    "description": imp.description,
                    "expected_improvement": imp.expected_improvement,
                    "effort": imp.effort.value,
                }
                for imp in self.improvements
            ],
            "history": [h.to_dict() for h in self.history],
        }

    def summary(self) -> str:
        lines = [f"📊 SEO Grade: {self.overall} ({self.score}/100)", ""]
        for category, b in self.breakdown.items():
            bar = "█" * (b.score // 10) + "░" * (10 - b.score // 10)
            lines.append(f"  {category.value.title()}: {b.grade} {b.score}/100 [{bar}]")
            for issue in b.issues:
                lines.append(f"    → {issue}")

        if self.improvements:
            lines.append("")
            lines.append("🚀 Improvements:")
            for imp in self.improvements:
                lines.append(
                    f"  [{imp.priority.value}] {imp.suggestion} "
                    f"(effort: {imp.effort.value}, expected: {imp.expected_improvement})"
                )
        return "\n".join(lines)


# ── Text helpers ─────────────────────────────────────────

def calculate_keyword_density(text: str, keywords: list[str]) -> float:
    """Keyword phrase occurrences divided by the word count of text.

    Multi-word keywords match as consecutive words.
    """
    words = text.lower().split()
    if not words:
        return 0.0

    count = 0
    for keyword in keywords:
        kw_words = keyword.lower().split()
        if not kw_words:
            continue
        span = len(kw_words)
        for i in range(len(words) - span + 1):
            if words[i:i + span] == kw_words:
                count += 1
    return count / len(words)


def has_emotional_words(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in EMOTIONAL_WORDS)


def has_brand_words(text: str) -> bool:
    # Heuristic until shop names are available to match against
    return len(text) > 0


def has_good_formatting(text: str) -> bool:
    return any(marker in text for marker in FORMATTING_MARKERS)


def has_call_to_action(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in CTA_WORDS)


def has_feature_list(text: str) -> bool:
    return any(marker in text for marker in FEATURE_MARKERS)


def calculate_tag_relevance(tags: list[str], category: str) -> float:
    # Simplified: more tags, more chances to match buyer searches
    return min(1.0, len(tags) / 10)


def calculate_tag_uniqueness(tags: list[str]) -> float:
    if not tags:
        return 1.0
    return len({t.lower() for t in tags}) / len(tags)


def has_long_tail_keywords(tags: list[str]) -> bool:
    return any(len(t.split()) >= 2 for t in tags)


def has_brand_tags(tags: list[str]) -> bool:
    return len(tags) > 0


def check_image_variety(images: list[ListingImage]) -> bool:
    # Real variety needs image analysis; count is the stand-in
    return len(images) >= CRITERIA[Category.IMAGES]["variety_min"]


def check_image_quality(images: list[ListingImage]) -> bool:
    return len(images) > 0


def is_psychological_pricing(price: float) -> bool:
    """True when the price ends in .99 or .95."""
    cents = round_half_up(price * 100) % 100
    return cents in CRITERIA[Category.PRICING]["charm_endings"]


def is_competitive_pricing(price: float, category: str) -> bool:
    limits = CRITERIA[Category.PRICING]
    return limits["competitive_min"] < price < limits["competitive_max"]


def has_free_shipping_threshold(price: float) -> bool:
    return price >= CRITERIA[Category.PRICING]["free_shipping"]


def _finish(category: Category, score: float, issues: list[str]) -> GradeBreakdown:
    score = clamp_score(score)
    return GradeBreakdown(
        grade=score_to_grade(score),
        score=score,
        max_score=MAX_SCORE,
        feedback=feedback_for(category, score),
        issues=issues,
    )


# ── Dimension graders ────────────────────────────────────

def grade_title(title: str, tags: list[str]) -> GradeBreakdown:
    """Grade the listing title."""
    c = CRITERIA[Category.TITLE]
    issues = []
    score = 100
    length = len(title)

    if length < c["min_length"]:
        issues.append(f"Title too short ({length} chars, need {c['min_length']}+)")
        score -= 20
    elif length > c["max_length"]:
        issues.append(f"Title too long ({length} chars, max {c['max_length']})")
        score -= 15

    density = calculate_keyword_density(title, tags)
    if density < c["keyword_density"]:
        issues.append(
            f"Low keyword density ({round_half_up(density * 100)}%, "
            f"need {round_half_up(c['keyword_density'] * 100)}%+)"
        )
        score -= 15

    if not has_emotional_words(title):
        issues.append("Missing emotional/persuasive words")
        score -= 10

    if not has_brand_words(title):
        issues.append("Missing brand/shop name")
        score -= 5

    if length < c["ideal_min"] or length > c["ideal_max"]:
        issues.append(
            f"Title length not optimized for search ({c['ideal_min']}-{c['ideal_max']} chars ideal)"
        )
        score -= 10

    return _finish(Category.TITLE, score, issues)


def grade_description(description: str, tags: list[str]) -> GradeBreakdown:
    """Grade the listing description."""
    c = CRITERIA[Category.DESCRIPTION]
    issues = []
    score = 100
    length = len(description)

    if length < c["min_length"]:
        issues.append(f"Description too short ({length} chars, need {c['min_length']}+)")
        score -= 25
    elif length > c["max_length"]:
        issues.append(f"Description too long ({length} chars, max {c['max_length']})")
        score -= 10

    density = calculate_keyword_density(description, tags)
    if density < c["keyword_density"]:
        issues.append(
            f"Low keyword density ({round_half_up(density * 100)}%, "
            f"need {round_half_up(c['keyword_density'] * 100)}%+)"
        )
        score -= 15

    if not has_good_formatting(description):
        issues.append("Poor formatting - add bullet points, line breaks, or structure")
        score -= 15

    if not has_call_to_action(description):
        issues.append("Missing call to action")
        score -= 10

    if not has_feature_list(description):
        issues.append("Missing feature list or specifications")
        score -= 10

    word_count = len(description.split())
    if word_count < c["ideal_words_min"] or word_count > c["ideal_words_max"]:
        issues.append(
            f"Description length not optimized "
            f"({c['ideal_words_min']}-{c['ideal_words_max']} words ideal)"
        )
        score -= 10

    return _finish(Category.DESCRIPTION, score, issues)


def grade_tags(tags: list[str], category: str = "") -> GradeBreakdown:
    """Grade the listing tags."""
    c = CRITERIA[Category.TAGS]
    issues = []
    score = 100
    count = len(tags)

    if count < c["min_count"]:
        issues.append(f"Too few tags ({count}, need {c['min_count']}+)")
        score -= 20
    elif count > c["max_count"]:
        issues.append(f"Too many tags ({count}, max {c['max_count']})")
        score -= 10

    relevance = calculate_tag_relevance(tags, category)
    if relevance < c["keyword_relevance"]:
        issues.append(
            f"Low tag relevance ({round_half_up(relevance * 100)}%, "
            f"need {round_half_up(c['keyword_relevance'] * 100)}%+)"
        )
        score -= 15

    uniqueness = calculate_tag_uniqueness(tags)
    if uniqueness < c["uniqueness"]:
        issues.append(
            f"Low tag uniqueness ({round_half_up(uniqueness * 100)}%, "
            f"need {round_half_up(c['uniqueness'] * 100)}%+)"
        )
        score -= 10

    avg_length = sum(len(t) for t in tags) / count if count else 0.0
    if avg_length > c["max_avg_length"]:
        issues.append(f"Tags too long (avg {avg_length:.1f} chars, max {c['max_avg_length']})")
        score -= 10

    if not has_long_tail_keywords(tags):
        issues.append("Missing long-tail keywords")
        score -= 10

    if not has_brand_tags(tags):
        issues.append("Missing brand/shop tags")
        score -= 5

    return _finish(Category.TAGS, score, issues)


def grade_images(images: list[ListingImage]) -> GradeBreakdown:
    """Grade the listing images.

    Variety and quality are count-based stand-ins; meaningful checks
    would need actual image analysis.
    """
    c = CRITERIA[Category.IMAGES]
    issues = []
    score = 100
    count = len(images)

    if count < c["min_count"]:
        issues.append(f"Too few images ({count}, need {c['min_count']}+)")
        score -= 25
    elif count > c["max_count"]:
        issues.append(f"Too many images ({count}, max {c['max_count']})")
        score -= 5

    if not any(img.alt_text and img.alt_text.strip() for img in images):
        issues.append("Missing alt text on images")
        score -= 20

    if not check_image_variety(images):
        issues.append("Images lack variety (add different angles/styles)")
        score -= 10

    if not check_image_quality(images):
        issues.append("Image quality could be improved")
        score -= 15

    return _finish(Category.IMAGES, score, issues)


def grade_pricing(price: float, category: str = "") -> GradeBreakdown:
    """Grade the listing price."""
    issues = []
    score = 100

    if not is_psychological_pricing(price):
        issues.append("Price not using psychological pricing ($19.99 vs $20)")
        score -= 10

    if not is_competitive_pricing(price, category):
        issues.append("Price may not be competitive in category")
        score -= 15

    if not has_free_shipping_threshold(price):
        issues.append("Consider offering free shipping")
        score -= 5

    return _finish(Category.PRICING, score, issues)


def grade_engagement(reviews: ListingReviews, favorites: int, views: int) -> GradeBreakdown:
    """Grade social proof and conversion."""
    c = CRITERIA[Category.ENGAGEMENT]
    issues = []
    score = 100

    if reviews.count < c["min_reviews"]:
        issues.append(f"Low review count ({reviews.count}, aim for {c['min_reviews']}+)")
        score -= 20

    if reviews.average < c["min_rating"]:
        issues.append(f"Low average rating ({reviews.average:.1f}, aim for {c['min_rating']}+)")
        score -= 15

    if favorites < c["min_favorites"]:
        issues.append(f"Low favorites count ({favorites}, aim for {c['min_favorites']}+)")
        score -= 10

    if views > 0:
        conversion = reviews.count / views * 100
        if conversion < c["min_conversion_pct"]:
            issues.append(
                f"Low conversion rate ({conversion:.1f}%, aim for {c['min_conversion_pct']:.0f}%+)"
            )
            score -= 15

    return _finish(Category.ENGAGEMENT, score, issues)


# ── Aggregation & synthesis ──────────────────────────────

def calculate_overall_score(breakdown: dict[Category, GradeBreakdown]) -> int:
    """Weighted mean of the six dimension scores, rounded half-up."""
    total = sum(breakdown[c].score * w for c, w in DIMENSION_WEIGHTS.items())
    return round_half_up(total)


def identify_issues(breakdown: dict[Category, GradeBreakdown]) -> list[SEOIssue]:
    """One SEOIssue per issue string, severity from the dimension score."""
    issues = []
    for category, b in breakdown.items():
        severity = severity_for_score(b.score)
        for text in b.issues:
            issues.append(SEOIssue(
                category=category,
                severity=severity,
                issue=text,
                description=text,
                fix=ISSUE_FIXES[category],
                impact=ISSUE_IMPACTS[category],
            ))
    return issues


def generate_improvements(breakdown: dict[Category, GradeBreakdown]) -> list[SEOImprovement]:
    """One SEOImprovement per dimension scoring below 90."""
    improvements = []
    for category, b in breakdown.items():
        if b.score >= IMPROVEMENT_THRESHOLD:
            continue
        improvements.append(SEOImprovement(
            category=category,
            priority=severity_for_score(b.score),
            suggestion=IMPROVEMENT_SUGGESTIONS[category],
            description=b.feedback,
            expected_improvement=EXPECTED_IMPROVEMENTS[category],
            effort=IMPROVEMENT_EFFORT[category],
        ))
    return improvements


def grade_listing(listing: ListingData) -> SEOGrade:
    """Grade a listing on all six dimensions.

    Args:
        listing: Listing snapshot.

    Returns:
        SEOGrade with breakdown, issues and improvements. ``history`` is
        left empty; SEOGrader fills it when a history store is attached.
    """
    breakdown = {
        Category.TITLE: grade_title(listing.title, listing.tags),
        Category.DESCRIPTION: grade_description(listing.description, listing.tags),
        Category.TAGS: grade_tags(listing.tags, listing.category),
        Category.IMAGES: grade_images(listing.images),
        Category.PRICING: grade_pricing(listing.price, listing.category),
        Category.ENGAGEMENT: grade_engagement(listing.reviews, listing.favorites, listing.views),
    }

    score = calculate_overall_score(breakdown)
    return SEOGrade(
        overall=score_to_grade(score),
        score=score,
        breakdown=breakdown,
        issues=identify_issues(breakdown),
        improvements=generate_improvements(breakdown),
    )


def bulk_grade_listings(listings: list[ListingData]) -> dict[int, SEOGrade]:
    """Grade listings one by one; a failing item is logged and skipped."""
    results = {}
    for listing in listings:
        try:
            results[listing.listing_id] = grade_listing(listing)
        except Exception:
            logger.exception("Error grading listing %s", getattr(listing, "listing_id", "?"))
    return results


class SEOGrader:
    """Listing grader with optional grade history.

    Grading itself is stateless; the instance only carries the history
    store, so one grader can be shared or created per call.
    """

    def __init__(self, history=None):
        self.history = history

    def grade_listing(self, listing: ListingData) -> SEOGrade:
        grade = grade_listing(listing)
        if self.history is not None:
            grade.history = self.get_grade_history(listing.listing_id)
        return grade

    def bulk_grade_listings(self, listings: list[ListingData]) -> dict[int, SEOGrade]:
        results = {}
        for listing in listings:
            try:
                results[listing.listing_id] = self.grade_listing(listing)
            except Exception:
                logger.exception("Error grading listing %s", getattr(listing, "listing_id", "?"))
        return results

    def save_grade_to_history(self, listing_id: int, grade: SEOGrade) -> bool:
        """Record a grade. Returns False when no store is attached."""
        if self.history is None:
            return False
        entry = SEOGradeHistory(
            date=datetime.now(),
            grade=grade.overall,
            score=grade.score,
            improvements=[imp.suggestion for imp in grade.improvements],
            issues=[i.issue for i in grade.issues],
        )
        saved = self.history.add_grade(listing_id, entry.to_dict())
        if saved:
            logger.info("Saved grade for listing %s: %s", listing_id, grade.overall)
        return saved

    def get_grade_history(self, listing_id: int) -> list[SEOGradeHistory]:
        if self.history is None:
            return []
        return [SEOGradeHistory.from_dict(d) for d in self.history.get_grades(listing_id)]
