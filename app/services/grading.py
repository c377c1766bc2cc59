# app/services/grading.py - Mark weighting and the grade scale
"""
Pure functions shared by mark entry, class rankings and report cards.

A subject total is the weighted sum of the opening, mid-term and final
exam scores (each out of 100). Grades come from a scale of bands, highest
first; a score takes the first band whose minimum it reaches, so fractional
scores between two integer bands fall into the lower one.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence

from app.core.config import settings

SCORE = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

EXAM_TYPES = ("CAT", "Mid-Term", "End of Term", "Mock", "KCSE")
DEFAULT_EXAM_TYPE = "End of Term"

IMPROVING = "Improving"
DECLINING = "Declining"
STABLE = "Stable"


@dataclass(frozen=True)
class GradeBand:
    grade: str
    min_percentage: Decimal
    max_percentage: Decimal
    points: int


DEFAULT_SCALE: List[GradeBand] = [
    GradeBand("A", Decimal("80"), Decimal("100"), 12),
    GradeBand("A-", Decimal("75"), Decimal("79"), 11),
    GradeBand("B+", Decimal("70"), Decimal("74"), 10),
    GradeBand("B", Decimal("65"), Decimal("69"), 9),
    GradeBand("B-", Decimal("60"), Decimal("64"), 8),
    GradeBand("C+", Decimal("55"), Decimal("59"), 7),
    GradeBand("C", Decimal("50"), Decimal("54"), 6),
    GradeBand("C-", Decimal("45"), Decimal("49"), 5),
    GradeBand("D+", Decimal("40"), Decimal("44"), 4),
    GradeBand("D", Decimal("35"), Decimal("39"), 3),
    GradeBand("D-", Decimal("30"), Decimal("34"), 2),
    GradeBand("E", Decimal("0"), Decimal("29"), 1),
]


def to_score(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(SCORE, rounding=ROUND_HALF_UP)


def component_weights() -> tuple:
    """(opening, mid-term, final) weights as fractions"""
    return (
        to_score(settings.MARKS_OPENING_WEIGHT) / HUNDRED,
        to_score(settings.MARKS_MIDTERM_WEIGHT) / HUNDRED,
        to_score(settings.MARKS_FINAL_WEIGHT) / HUNDRED,
    )


def weighted_total(opening, midterm, final_exam) -> Decimal:
    """Weighted subject total out of 100; a missing component counts as zero"""
    w_opening, w_midterm, w_final = component_weights()
    total = to_score(opening) * w_opening + to_score(midterm) * w_midterm + to_score(final_exam) * w_final
    return to_score(total)


def sorted_scale(bands: Iterable[GradeBand]) -> List[GradeBand]:
    return sorted(bands, key=lambda band: band.min_percentage, reverse=True)


def band_for(percentage, scale: Optional[Sequence[GradeBand]] = None) -> GradeBand:
    scale = sorted_scale(scale or DEFAULT_SCALE)
    score = to_score(percentage)
    for band in scale:
        if score >= band.min_percentage:
            return band
    return scale[-1]


def grade_for(percentage, scale: Optional[Sequence[GradeBand]] = None) -> str:
    return band_for(percentage, scale).grade


def points_for(grade: str, scale: Optional[Sequence[GradeBand]] = None) -> int:
    for band in scale or DEFAULT_SCALE:
        if band.grade == grade:
            return band.points
    return 1


def mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return to_score(sum(values, ZERO) / len(values))


def rank(scores: Sequence[Decimal]) -> List[int]:
    """Competition ranking: equal scores share a position (1, 1, 3)"""
    ordered = sorted(scores, reverse=True)
    return [ordered.index(score) + 1 for score in scores]


def trend(first: Decimal, last: Decimal) -> str:
    if last > first:
        return IMPROVING
    if last < first:
        return DECLINING
    return STABLE


def improvement_percentage(first: Decimal, last: Decimal) -> Optional[Decimal]:
    if first == 0:
        return None
    return to_score((last - first) / first * HUNDRED)


def validate_scale(bands: Sequence[GradeBand]) -> Optional[str]:
    """Error message for an unusable scale, or None"""
    if not bands:
        return "At least one grade band is required"
    grades = [band.grade for band in bands]
    if len(set(grades)) != len(grades):
        return "Grades must be unique"
    for band in bands:
        if not band.grade or not band.grade.strip():
            return "Grade is required"
        if not (0 <= band.min_percentage <= band.max_percentage <= 100):
            return f"Grade {band.grade}: percentages must satisfy 0 <= min <= max <= 100"
        if not (0 <= band.points <= 12):
            return f"Grade {band.grade}: points must be between 0 and 12"
    ordered = sorted_scale(bands)
    if ordered[-1].min_percentage != 0:
        return "The lowest grade must start at 0"
    for higher, lower in zip(ordered, ordered[1:]):
        if lower.max_percentage >= higher.min_percentage:
            return f"Grades {lower.grade} and {higher.grade} overlap"
        if lower.points > higher.points:
            return f"Grade {lower.grade} cannot carry more points than {higher.grade}"
    return None
