"""Pairwise compatibility scoring between two people.

All functions here are pure and symmetric in their two operands. Missing
information (unknown age, no diagnosis) always resolves to the neutral 50.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from bedwise.domain.catalog import find_conflict, get_diagnosis_category
from bedwise.domain.models import PairCompatibility, Person


NEUTRAL_SCORE = 50


@dataclass(frozen=True)
class DiagnosisScore:
    score: int
    conflict: Optional[str] = None


@dataclass(frozen=True)
class CompatibilityLabel:
    label: str
    color: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_age(date_of_birth: Optional[date], as_of: date) -> Optional[int]:
    if date_of_birth is None:
        return None
    age = as_of.year - date_of_birth.year
    if (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def score_age_compatibility(first_age: Optional[int], second_age: Optional[int]) -> int:
    """Score how close two ages are, 100 for the same age down to 0 past 20 years."""
    if first_age is None or second_age is None:
        return NEUTRAL_SCORE

    difference = abs(first_age - second_age)
    if difference <= 5:
        return 100 - difference * 5
    if difference <= 10:
        return 75 - (difference - 5) * 5
    if difference <= 20:
        return max(0, 50 - (difference - 10) * 5)
    return 0


def score_diagnosis_compatibility(
    first: Optional[str],
    second: Optional[str],
) -> DiagnosisScore:
    """Score two free-text diagnoses.

    Exact (case-insensitive) match scores 100, containment either way 90.
    Otherwise both are classified through the catalog: a declared conflict
    scores 0 and carries the conflict reason, the same category 75, two
    different categories 40, and a single known category stays neutral.
    """
    if not first or not second:
        return DiagnosisScore(score=NEUTRAL_SCORE)

    lowered_first = first.lower()
    lowered_second = second.lower()
    if lowered_first == lowered_second:
        return DiagnosisScore(score=100)
    if lowered_first in lowered_second or lowered_second in lowered_first:
        return DiagnosisScore(score=90)

    first_category = get_diagnosis_category(first)
    second_category = get_diagnosis_category(second)

    conflict = find_conflict(first_category, second_category)
    if conflict is not None:
        return DiagnosisScore(score=0, conflict=conflict.reason)
    if first_category and second_category and first_category == second_category:
        return DiagnosisScore(score=75)
    if first_category and second_category:
        return DiagnosisScore(score=40)
    return DiagnosisScore(score=NEUTRAL_SCORE)


def score_pair(
    first: Person,
    second: Person,
    *,
    as_of: date,
    age_weight: float,
    diagnosis_weight: float,
) -> PairCompatibility:
    """Roommate composite used by the optimizer (age and diagnosis only)."""
    age_score = score_age_compatibility(
        calculate_age(first.date_of_birth, as_of),
        calculate_age(second.date_of_birth, as_of),
    )
    diagnosis = score_diagnosis_compatibility(first.diagnosis, second.diagnosis)
    composite = age_score * age_weight + diagnosis.score * diagnosis_weight
    return PairCompatibility(
        age_score=age_score,
        diagnosis_score=diagnosis.score,
        composite=composite,
        conflict=diagnosis.conflict,
    )


def compatibility_label(score: float) -> CompatibilityLabel:
    if score >= 80:
        return CompatibilityLabel(label="Excellent", color="green")
    if score >= 60:
        return CompatibilityLabel(label="Good", color="green")
    if score >= 40:
        return CompatibilityLabel(label="Moderate", color="yellow")
    return CompatibilityLabel(label="Low", color="orange")
