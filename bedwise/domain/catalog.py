"""Diagnosis category catalog and declared category conflicts.

Free-text diagnoses are classified by case-insensitive substring match
against each category's keywords. Categories are scanned in declaration
order and the first hit wins, so "Stroke Recovery" lands in Rehabilitation
before the bare "Stroke" keyword of Neurological is tried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


DIAGNOSIS_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Dementia", ("Alzheimer's", "Dementia", "Memory Loss", "Cognitive Decline", "Lewy Body")),
    (
        "Cardiac",
        (
            "CHF",
            "Heart Failure",
            "Cardiac",
            "Congestive Heart",
            "Arrhythmia",
            "Atrial Fibrillation",
        ),
    ),
    ("Respiratory", ("COPD", "Pneumonia", "Respiratory", "Emphysema", "Bronchitis", "Pulmonary")),
    (
        "Rehabilitation",
        (
            "Hip Replacement",
            "Knee Replacement",
            "Stroke Recovery",
            "Post-Surgical",
            "Physical Therapy",
            "Joint Replacement",
        ),
    ),
    ("Neurological", ("Stroke", "Parkinson's", "MS", "Multiple Sclerosis", "Neuropathy", "Seizure")),
    ("Oncology", ("Cancer", "Oncology", "Chemotherapy", "Radiation", "Tumor", "Malignant")),
    ("Renal", ("Kidney", "Renal", "Dialysis", "CKD", "ESRD")),
    ("Diabetes", ("Diabetes", "Diabetic", "Hyperglycemia", "Insulin")),
    ("Infectious", ("Infection", "Sepsis", "MRSA", "C. diff", "VRE", "Infectious")),
    (
        "Immunocompromised",
        ("Immunocompromised", "HIV", "AIDS", "Transplant", "Immunodeficiency"),
    ),
)


@dataclass(frozen=True)
class CategoryConflict:
    category: str
    conflicts_with: frozenset[str]
    reason: str

    def matches(self, first: Optional[str], second: Optional[str]) -> bool:
        return (first == self.category and second in self.conflicts_with) or (
            second == self.category and first in self.conflicts_with
        )


DIAGNOSIS_CONFLICTS: tuple[CategoryConflict, ...] = (
    CategoryConflict(
        category="Infectious",
        conflicts_with=frozenset({"Immunocompromised"}),
        reason="Infectious conditions may pose risk to immunocompromised residents",
    ),
    # Soft heuristic: flags supervision burden, never used as a placement filter.
    CategoryConflict(
        category="Dementia",
        conflicts_with=frozenset({"Dementia"}),
        reason="Two residents with dementia may require additional supervision",
    ),
)


def category_names() -> tuple[str, ...]:
    return tuple(name for name, _ in DIAGNOSIS_CATEGORIES)


def get_diagnosis_category(diagnosis: Optional[str]) -> Optional[str]:
    """Return the first catalog category whose keyword occurs in `diagnosis`."""
    if not diagnosis:
        return None
    lowered = diagnosis.lower()
    for category, keywords in DIAGNOSIS_CATEGORIES:
        for keyword in keywords:
            if keyword.lower() in lowered:
                return category
    return None


def find_conflict(first: Optional[str], second: Optional[str]) -> Optional[CategoryConflict]:
    """Return the declared conflict between two categories, if any."""
    if first is None or second is None:
        return None
    for conflict in DIAGNOSIS_CONFLICTS:
        if conflict.matches(first, second):
            return conflict
    return None
