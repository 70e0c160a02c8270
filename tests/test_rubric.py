"""Tests for rubric module."""
import pytest

from shopgrade.rubric import (
    CRITERIA, DIMENSION_WEIGHTS, EXPECTED_IMPROVEMENTS, FEEDBACK, GRADES,
    IMPROVEMENT_EFFORT, IMPROVEMENT_SUGGESTIONS, ISSUE_FIXES, ISSUE_IMPACTS,
    Category, Severity,
    clamp_score, feedback_for, round_half_up, score_to_grade, severity_for_score,
)


class TestTables:
    def test_weights_sum_to_one(self):
        assert sum(DIMENSION_WEIGHTS.values()) == pytest.approx(1.0)

    @pytest.mark.parametrize("table", [
        CRITERIA, DIMENSION_WEIGHTS, ISSUE_FIXES, ISSUE_IMPACTS,
        IMPROVEMENT_SUGGESTIONS, EXPECTED_IMPROVEMENTS, IMPROVEMENT_EFFORT, FEEDBACK,
    ])
    def test_every_category_covered(self, table):
        assert set(table) == set(Category)

    def test_feedback_has_four_bands(self):
        for bands in FEEDBACK.values():
            assert len(bands) == 4


class TestScoreToGrade:
    @pytest.mark.parametrize("score,grade", [
        (100, "A+"), (97, "A+"), (96, "A"), (93, "A"), (92, "A-"), (90, "A-"),
        (89, "B+"), (87, "B+"), (83, "B"), (80, "B-"), (79, "C+"), (73, "C"),
        (70, "C-"), (69, "D+"), (63, "D"), (60, "D-"), (59, "F"), (0, "F"),
    ])
    def test_boundaries(self, score, grade):
        assert score_to_grade(score) == grade

    def test_monotonic(self):
        order = {g: i for i, g in enumerate(GRADES)}
        previous = order[score_to_grade(0)]
        for score in range(1, 101):
            current = order[score_to_grade(score)]
            assert current <= previous
            previous = current


class TestHelpers:
    def test_clamp(self):
        assert clamp_score(-15) == 0
        assert clamp_score(130) == 100
        assert clamp_score(55) == 55

    def test_round_half_up(self):
        assert round_half_up(72.5) == 73
        assert round_half_up(72.49) == 72
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3

    def test_round_half_up_weighted_sum(self):
        assert round_half_up(0.15 * 50 + 0.1 * 50) == 13

    def test_severity(self):
        assert severity_for_score(69) == Severity.HIGH
        assert severity_for_score(70) == Severity.MEDIUM
        assert severity_for_score(79) == Severity.MEDIUM
        assert severity_for_score(80) == Severity.LOW

    def test_feedback_bands(self):
        assert feedback_for(Category.TITLE, 95).startswith("Excellent")
        assert feedback_for(Category.TITLE, 85).startswith("Good")
        assert "needs some optimization" in feedback_for(Category.TITLE, 75)
        assert "significant" in feedback_for(Category.TITLE, 10)

    def test_feedback_accepts_string_category(self):
        assert feedback_for("tags", 95) == FEEDBACK[Category.TAGS][0]
