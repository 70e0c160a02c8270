"""Tests for seo_grader module."""
import random
from copy import deepcopy

import pytest

from shopgrade.history import GradeHistoryStore
from shopgrade.rubric import Category, Effort, Severity
from shopgrade.seo_grader import (
    GradeBreakdown, ListingData, ListingImage, ListingReviews, SEOGrader,
    bulk_grade_listings, calculate_keyword_density, calculate_overall_score,
    calculate_tag_uniqueness, generate_improvements, grade_description,
    grade_engagement, grade_images, grade_listing, grade_pricing, grade_tags,
    grade_title, identify_issues, is_psychological_pricing,
)

TAGS = [
    "silver ring", "handmade", "gift", "engraved ring", "sterling silver",
    "boho jewelry", "stacking ring", "minimalist ring", "gift for her", "promise ring",
]
TITLE = "Handmade Silver Ring With Intricate Engraved Details For Gift"


def _description():
    return (
        "This handmade silver ring is a beautiful gift.\n"
        "• Sterling silver band\n"
        "• Engraved by hand\n"
        + "handmade silver ring gift " * 70
        + "\nOrder yours today."
    )


def _make_listing(**overrides):
    data = dict(
        listing_id=101,
        title=TITLE,
        description=_description(),
        tags=list(TAGS),
        images=[ListingImage(url=f"https://img/{i}.jpg", alt_text=f"ring view {i}") for i in range(6)],
        price=39.99,
        reviews=ListingReviews(count=50, average=4.9),
        favorites=120,
        views=1000,
        category="jewelry",
    )
    data.update(overrides)
    return ListingData(**data)


def _breakdown(scores):
    return {c: GradeBreakdown(grade="", score=s) for c, s in zip(Category, scores)}


# ── Scenarios ────────────────────────────────────────────

class TestGradeListing:
    def test_well_optimized_listing(self):
        grade = grade_listing(_make_listing())
        assert grade.score == 100
        assert grade.overall == "A+"
        assert grade.issues == []
        assert grade.improvements == []

    def test_empty_listing(self):
        grade = grade_listing(ListingData(listing_id=1))
        assert grade.breakdown[Category.TITLE].score == 40
        assert grade.breakdown[Category.DESCRIPTION].score == 15
        assert grade.breakdown[Category.TAGS].score == 50
        assert grade.breakdown[Category.IMAGES].score == 30
        assert grade.breakdown[Category.PRICING].score == 70
        assert grade.breakdown[Category.ENGAGEMENT].score == 55
        assert grade.score == 39
        assert grade.overall == "F"
        assert "Too few tags (0, need 8+)" in grade.breakdown[Category.TAGS].issues

    def test_titled_listing_earns_brand_points(self):
        grade = grade_listing(ListingData(listing_id=1, title="Silver Ring"))
        assert grade.breakdown[Category.TITLE].score == 45
        assert grade.score == 40

    @pytest.mark.parametrize("listing", [
        ListingData(listing_id=1),
        ListingData(listing_id=2, title="Silver Ring", price=20.0, tags=["ring"]),
        _make_listing(),
    ])
    def test_score_matches_breakdown(self, listing):
        grade = grade_listing(listing)
        assert calculate_overall_score(grade.breakdown) == grade.score

    def test_idempotent(self):
        listing = _make_listing(price=20.0, tags=["ring"])
        assert grade_listing(listing).to_dict() == grade_listing(listing).to_dict()

    def test_does_not_mutate_input(self):
        listing = _make_listing(tags=["a", "a", "b"])
        before = deepcopy(listing)
        grade_listing(listing)
        assert listing == before

    def test_to_dict_is_json_ready(self):
        import json
        data = grade_listing(_make_listing(price=35.0)).to_dict()
        encoded = json.loads(json.dumps(data))
        assert encoded["breakdown"]["pricing"]["score"] == 90
        assert encoded["issues"][0]["category"] == "pricing"

    def test_summary(self):
        text = grade_listing(ListingData(listing_id=1)).summary()
        assert "SEO Grade: F" in text
        assert "Improvements" in text


class TestTitle:
    def test_boundary_29_vs_30(self):
        short = grade_title("a" * 29, [])
        ok = grade_title("a" * 30, [])
        assert "Title too short (29 chars, need 30+)" in short.issues
        assert not any("too short" in i for i in ok.issues)
        assert ok.score - short.score == 20

    def test_too_long(self):
        result = grade_title("handmade " * 20, ["handmade"])
        assert any("too long" in i for i in result.issues)

    def test_keyword_density(self):
        assert calculate_keyword_density("silver ring for her", ["silver ring"]) == pytest.approx(0.25)
        assert calculate_keyword_density("", ["x"]) == 0.0


class TestDescription:
    def test_full_marks(self):
        assert grade_description(_description(), TAGS).score == 100

    def test_empty(self):
        result = grade_description("", [])
        assert result.score == 15
        assert "Missing call to action" in result.issues


class TestTags:
    def test_empty_tags_count_as_unique(self):
        assert calculate_tag_uniqueness([]) == 1.0
        result = grade_tags([])
        assert result.score == 50
        assert not any("uniqueness" in i for i in result.issues)

    def test_duplicates(self):
        tags = ["Ring", "ring", "RING", "gift", "gift", "gift", "silver", "silver"]
        result = grade_tags(tags)
        assert any("Low tag uniqueness" in i for i in result.issues)

    def test_too_many(self):
        result = grade_tags([f"tag phrase {i}" for i in range(14)])
        assert "Too many tags (14, max 13)" in result.issues

    def test_long_tags(self):
        result = grade_tags([f"another long tag phrase {i}" for i in range(8)])
        assert any("Tags too long" in i for i in result.issues)


class TestImages:
    def test_alt_text_blank_counts_as_missing(self):
        images = [ListingImage(url="u", alt_text="  ") for _ in range(5)]
        assert "Missing alt text on images" in grade_images(images).issues

    def test_no_images(self):
        assert grade_images([]).score == 30


class TestPricing:
    def test_charm_pricing(self):
        assert is_psychological_pricing(19.99)
        assert is_psychological_pricing(24.95)
        assert not is_psychological_pricing(20.0)
        assert not is_psychological_pricing(19.98)

    def test_round_price_issue(self):
        result = grade_pricing(20.0)
        assert "Price not using psychological pricing ($19.99 vs $20)" in result.issues
        assert result.score == 85

    def test_out_of_band(self):
        assert grade_pricing(1500.0).score == 75
        assert grade_pricing(-1.0).score == 70


class TestEngagement:
    def test_low_conversion(self):
        result = grade_engagement(ListingReviews(count=5, average=4.8), favorites=80, views=1000)
        assert "Low conversion rate (0.5%, aim for 2%+)" in result.issues

    def test_zero_views_skips_conversion(self):
        result = grade_engagement(ListingReviews(count=20, average=4.8), favorites=80, views=0)
        assert result.score == 100


# ── Aggregation ──────────────────────────────────────────

class TestOverallScore:
    def test_weighted_mean(self):
        assert calculate_overall_score(_breakdown([100, 100, 100, 100, 100, 100])) == 100
        assert calculate_overall_score(_breakdown([40, 15, 50, 30, 70, 55])) == 39

    def test_half_rounds_up(self):
        # 0.15 * 50 + 0.10 * 50 + 0.75 * 0 = 12.5
        assert calculate_overall_score(_breakdown([0, 0, 0, 50, 50, 0])) == 13

    def test_random_breakdowns_match_exact_arithmetic(self):
        rng = random.Random(42)
        weights = [20, 25, 20, 15, 10, 10]
        for _ in range(500):
            scores = [rng.randint(0, 100) for _ in range(6)]
            exact = (sum(w * s for w, s in zip(weights, scores)) + 50) // 100
            result = calculate_overall_score(_breakdown(scores))
            assert result == exact
            assert 0 <= result <= 100


class TestSynthesis:
    def test_issue_severity_from_score(self):
        grade = grade_listing(_make_listing(price=35.0))
        [issue] = grade.issues
        assert issue.category == Category.PRICING
        assert issue.severity == Severity.LOW

    def test_improvements_below_90(self):
        breakdown = _breakdown([95, 85, 60, 90, 100, 89])
        improvements = generate_improvements(breakdown)
        categories = [i.category for i in improvements]
        assert categories == [Category.DESCRIPTION, Category.TAGS, Category.ENGAGEMENT]
        tags = improvements[1]
        assert tags.priority == Severity.HIGH
        assert tags.effort == Effort.LOW

    def test_one_issue_per_string(self):
        breakdown = {c: GradeBreakdown(grade="F", score=10, issues=["x", "y"]) for c in Category}
        assert len(identify_issues(breakdown)) == 12


class TestListingFromDict:
    def test_camel_and_snake(self):
        listing = ListingData.from_dict({
            "listingId": 7,
            "title": "t",
            "images": ["https://a", {"url": "https://b", "altText": "alt"}],
            "reviews": {"count": 3, "average": 4.5},
            "conversionRate": 2.5,
        })
        assert listing.listing_id == 7
        assert listing.images[1].alt_text == "alt"
        assert listing.reviews.count == 3
        assert listing.conversion_rate == 2.5

    def test_string_tags_are_split(self):
        assert ListingData.from_dict({"listing_id": 1, "tags": "silver ring|gift"}).tags == ["silver ring", "gift"]
        assert ListingData.from_dict({"listing_id": 1, "tags": "ring, gift"}).tags == ["ring", "gift"]
        assert ListingData.from_dict({"listing_id": 1, "tags": None}).tags == []


class TestBulk:
    def test_bulk_grade(self):
        results = bulk_grade_listings([_make_listing(listing_id=1), _make_listing(listing_id=2)])
        assert set(results) == {1, 2}

    def test_bulk_skips_failures(self):
        bad = _make_listing(listing_id=3)
        bad.tags = None
        results = bulk_grade_listings([_make_listing(listing_id=1), bad])
        assert set(results) == {1}


class TestSEOGrader:
    def test_save_without_store(self):
        grader = SEOGrader()
        assert grader.save_grade_to_history(1, grade_listing(_make_listing())) is False
        assert grader.get_grade_history(1) == []

    def test_history_round_trip(self):
        grader = SEOGrader(history=GradeHistoryStore(redis_url=None))
        listing = _make_listing(price=20.0)
        first = grader.grade_listing(listing)
        assert first.history == []
        assert grader.save_grade_to_history(listing.listing_id, first) is True

        second = grader.grade_listing(listing)
        [entry] = second.history
        assert entry.score == first.score
        assert entry.grade == first.overall
        assert entry.issues == [i.issue for i in first.issues]
