"""Rank every vacant bed for one candidate person."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from bedwise.domain.constraints import EngineConfig
from bedwise.domain.models import (
    Bed,
    BedInfo,
    CompatibilityScore,
    OccupancySnapshot,
    Person,
    RoommateInfo,
)
from bedwise.services.constraint_service import ConstraintSurface, resolve_surface
from bedwise.services.scoring_service import (
    calculate_age,
    round_half_up,
    score_age_compatibility,
    score_diagnosis_compatibility,
)
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)

ROOMMATE_GENDER_WARNING = "Gender mismatch with existing roommate"
BATHROOM_GENDER_WARNING = "Gender mismatch with shared bathroom"


@dataclass(frozen=True)
class _Filtered:
    bed_id: str
    rule: str


def _hard_filter(candidate: Person, surface: ConstraintSurface) -> Optional[str]:
    """Name the hard rule the bed violates for `candidate`, or None."""
    if any(person.gender != candidate.gender for person in surface.room_occupants):
        return "room_gender"

    group_genders = {person.gender for _, person in surface.group_occupants}
    if len(group_genders) > 1 or (group_genders and candidate.gender not in group_genders):
        return "bathroom_gender"

    if not candidate.is_isolation and any(p.is_isolation for p in surface.room_occupants):
        return "isolation"
    if candidate.is_isolation and any(not p.is_isolation for p in surface.room_occupants):
        return "isolation"
    return None


def _flexibility(
    candidate: Person,
    surface: ConstraintSurface,
    vacant_in_room: int,
    warnings: list[str],
) -> int:
    if not surface.room_occupants:
        score = 100 if surface.room_bed_count == 1 else 60
    else:
        room_genders = {person.gender for person in surface.room_occupants}
        if room_genders == {candidate.gender}:
            score = 80 if vacant_in_room == 1 else 70
        else:
            score = 0
            warnings.append(ROOMMATE_GENDER_WARNING)

    group_genders = {person.gender for _, person in surface.group_occupants}
    if group_genders and group_genders != {candidate.gender}:
        score = 0
        if BATHROOM_GENDER_WARNING not in warnings:
            warnings.append(BATHROOM_GENDER_WARNING)
    return score


def score_bed(
    candidate: Person,
    bed: Bed,
    surface: ConstraintSurface,
    snapshot: OccupancySnapshot,
    config: EngineConfig,
) -> CompatibilityScore:
    """Score one bed that already passed the hard filters."""
    warnings: list[str] = []
    candidate_age = calculate_age(candidate.date_of_birth, snapshot.as_of)

    age_score = 100
    diagnosis_score = 100
    roommate_info: Optional[RoommateInfo] = None

    if surface.room_occupants:
        roommate = surface.room_occupants[0]
        roommate_age = calculate_age(roommate.date_of_birth, snapshot.as_of)
        age_score = score_age_compatibility(candidate_age, roommate_age)
        if age_score < 50 and candidate_age is not None and roommate_age is not None:
            warnings.append(f"Age gap: {abs(candidate_age - roommate_age)} years")

        diagnosis = score_diagnosis_compatibility(candidate.diagnosis, roommate.diagnosis)
        diagnosis_score = diagnosis.score
        if diagnosis.conflict:
            warnings.append(diagnosis.conflict)

        roommate_info = RoommateInfo(
            person_id=roommate.person_id,
            name=roommate.full_name,
            age=roommate_age,
            diagnosis=roommate.diagnosis,
        )

    vacant_in_room = len(snapshot.vacant_beds_in_room(surface.room))
    flexibility_score = _flexibility(candidate, surface, vacant_in_room, warnings)

    total_score = round_half_up(
        age_score * config.ranking_age_weight
        + diagnosis_score * config.ranking_diagnosis_weight
        + flexibility_score * config.ranking_flexibility_weight
    )

    return CompatibilityScore(
        bed_id=bed.bed_id,
        total_score=total_score,
        age_score=age_score,
        diagnosis_score=diagnosis_score,
        flexibility_score=flexibility_score,
        bed_info=BedInfo(
            room_number=surface.room.room_number,
            bed_label=bed.bed_label,
            wing_name=surface.room.wing_name,
        ),
        roommate=roommate_info,
        warnings=tuple(warnings),
    )


def rank_beds(
    candidate: Person,
    snapshot: OccupancySnapshot,
    config: Optional[EngineConfig] = None,
) -> list[CompatibilityScore]:
    """Score every vacant bed the candidate may legally take, best first.

    The candidate may be hypothetical (absent from the snapshot). A candidate
    who currently occupies a bed is never counted as their own roommate.
    Exactly one entry is flagged `recommended` unless the result is empty.
    """
    config = config or EngineConfig()
    scored: list[CompatibilityScore] = []
    filtered: list[_Filtered] = []

    for bed in snapshot.vacant_beds():
        surface = resolve_surface(snapshot, bed, ignore_person_id=candidate.person_id)
        if surface is None:
            continue
        violated_rule = _hard_filter(candidate, surface)
        if violated_rule is not None:
            filtered.append(_Filtered(bed_id=bed.bed_id, rule=violated_rule))
            continue
        scored.append(score_bed(candidate, bed, surface, snapshot, config))

    scored.sort(key=lambda item: item.total_score, reverse=True)
    if scored:
        scored[0] = replace(scored[0], recommended=True)

    for item in filtered:
        logger.debug("Bed filtered | bed_id=%s | rule=%s", item.bed_id, item.rule)
    logger.info(
        "Bed ranking completed | person_id=%s | scored=%s | filtered=%s | top_score=%s",
        candidate.person_id,
        len(scored),
        len(filtered),
        scored[0].total_score if scored else None,
    )
    return scored
