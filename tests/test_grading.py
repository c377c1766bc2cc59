# tests/test_grading.py - Mark weighting, grade bands and ranking
from decimal import Decimal

import pytest

from app.services import grading
from app.services.grading import GradeBand


class TestWeighting:
    def test_components_are_weighted_fifteen_fifteen_seventy(self):
        assert grading.weighted_total(Decimal("80"), Decimal("70"), Decimal("60")) == Decimal("64.50")

    def test_missing_component_counts_as_zero(self):
        assert grading.weighted_total(None, None, Decimal("100")) == Decimal("70.00")

    def test_weights_follow_settings(self, monkeypatch):
        from app.core.config import settings
        monkeypatch.setattr(settings, "MARKS_OPENING_WEIGHT", 0)
        monkeypatch.setattr(settings, "MARKS_MIDTERM_WEIGHT", 0)
        monkeypatch.setattr(settings, "MARKS_FINAL_WEIGHT", 100)
        assert grading.weighted_total(Decimal("10"), Decimal("10"), Decimal("55")) == Decimal("55.00")


class TestBands:
    @pytest.mark.parametrize("score,grade,points", [
        ("100", "A", 12),
        ("80", "A", 12),
        ("79.50", "A-", 11),
        ("64.50", "B-", 8),
        ("44.99", "D+", 4),
        ("29.50", "E", 1),
        ("0", "E", 1),
    ])
    def test_default_scale(self, score, grade, points):
        band = grading.band_for(Decimal(score))
        assert (band.grade, band.points) == (grade, points)

    def test_custom_scale_order_does_not_matter(self):
        scale = [GradeBand("FAIL", Decimal("0"), Decimal("49"), 0), GradeBand("PASS", Decimal("50"), Decimal("100"), 1)]
        assert grading.grade_for(Decimal("49.5"), scale) == "FAIL"
        assert grading.grade_for(Decimal("50"), scale) == "PASS"

    def test_points_for_unknown_grade(self):
        assert grading.points_for("B+") == 10
        assert grading.points_for("Z") == 1


class TestRanking:
    def test_ties_share_a_position(self):
        assert grading.rank([Decimal("70"), Decimal("80"), Decimal("70"), Decimal("60")]) == [2, 1, 2, 4]

    def test_mean_of_nothing_is_zero(self):
        assert grading.mean([]) == Decimal("0.00")
        assert grading.mean([Decimal("50"), Decimal("61")]) == Decimal("55.50")

    def test_trend_and_improvement(self):
        assert grading.trend(Decimal("50"), Decimal("60")) == grading.IMPROVING
        assert grading.trend(Decimal("60"), Decimal("50")) == grading.DECLINING
        assert grading.trend(Decimal("60"), Decimal("60")) == grading.STABLE
        assert grading.improvement_percentage(Decimal("50"), Decimal("60")) == Decimal("20.00")
        assert grading.improvement_percentage(Decimal("0"), Decimal("60")) is None


class TestScaleValidation:
    def test_default_scale_is_valid(self):
        assert grading.validate_scale(grading.DEFAULT_SCALE) is None

    @pytest.mark.parametrize("bands,message", [
        ([], "At least one grade band"),
        ([GradeBand("A", Decimal("50"), Decimal("100"), 12), GradeBand("A", Decimal("0"), Decimal("49"), 1)], "unique"),
        ([GradeBand("A", Decimal("50"), Decimal("100"), 12), GradeBand("B", Decimal("10"), Decimal("49"), 1)], "start at 0"),
        ([GradeBand("A", Decimal("50"), Decimal("100"), 12), GradeBand("B", Decimal("0"), Decimal("50"), 1)], "overlap"),
        ([GradeBand("A", Decimal("50"), Decimal("100"), 2), GradeBand("B", Decimal("0"), Decimal("49"), 5)], "more points"),
        ([GradeBand("A", Decimal("60"), Decimal("50"), 12)], "0 <= min <= max <= 100"),
    ])
    def test_unusable_scales(self, bands, message):
        assert message in grading.validate_scale(bands)
