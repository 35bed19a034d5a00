"""Occupancy optimization: consolidation moves and direct placements.

A greedy, single-hop search over the occupancy snapshot. Consolidation
relocates every occupant of a partially filled room into one other room of
the same gender so the whole source room opens up for unplaced people of a
different gender. Direct placements list compatible rooms for each unplaced
person without moving anyone.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from itertools import product
from statistics import mean
from typing import Optional

from bedwise.domain.constraints import EngineConfig
from bedwise.domain.models import (
    Bed,
    Gender,
    MoveRecommendation,
    OccupancySnapshot,
    PairCompatibility,
    Person,
    Room,
)
from bedwise.services.constraint_service import check_constraint
from bedwise.services.scoring_service import round_half_up, score_pair
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RoomState:
    room: Room
    occupants: tuple[tuple[Bed, Person], ...]
    vacant: tuple[Bed, ...]
    in_service_count: int

    @property
    def genders(self) -> set[str]:
        return {person.gender for _, person in self.occupants}

    @property
    def gender(self) -> Optional[Gender]:
        """Effective gender; None when empty or (anomalously) mixed."""
        genders = self.genders
        if len(genders) != 1:
            return None
        return self.occupants[0][1].gender

    @property
    def primary_occupant(self) -> Optional[Person]:
        return self.occupants[0][1] if self.occupants else None


@dataclass(frozen=True)
class _ConsolidationPlan:
    source: RoomState
    target: RoomState
    beneficiary_genders: tuple[str, ...]
    pair_scores: dict[str, PairCompatibility]


def build_room_states(snapshot: OccupancySnapshot) -> list[RoomState]:
    states: list[RoomState] = []
    for room in snapshot.rooms:
        beds = snapshot.beds_in_room(room)
        states.append(
            RoomState(
                room=room,
                occupants=tuple(snapshot.occupants_of_room(room)),
                vacant=tuple(bed for bed in beds if bed.status == "vacant"),
                in_service_count=sum(1 for bed in beds if bed.status != "out_of_service"),
            )
        )
    return states


def compatibility_band(composite: float) -> str:
    if composite >= 70:
        return "Good"
    if composite >= 40:
        return "Moderate"
    return "Low"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _evaluate_target(
    source: RoomState,
    target: RoomState,
    snapshot: OccupancySnapshot,
    config: EngineConfig,
) -> Optional[tuple[dict[str, PairCompatibility], float]]:
    """Score every (mover, resident) pair; None if any pair or placement fails.

    Returns each mover's score against the target's primary occupant and the
    mean composite over all pairs.
    """
    for (_, mover), target_bed in zip(source.occupants, target.vacant):
        legality = check_constraint(
            snapshot,
            target_bed.bed_id,
            mover.gender,
            mover.is_isolation,
            ignore_person_id=mover.person_id,
        )
        if not legality.compatible:
            return None

    composites: list[float] = []
    primary_scores: dict[str, PairCompatibility] = {}
    for (_, mover), (_, resident) in product(source.occupants, target.occupants):
        pair = score_pair(
            mover,
            resident,
            as_of=snapshot.as_of,
            age_weight=config.roommate_age_weight,
            diagnosis_weight=config.roommate_diagnosis_weight,
        )
        if pair.conflict is not None or pair.composite < config.consolidation_min_composite:
            logger.debug(
                "Consolidation pair rejected | mover=%s | resident=%s | composite=%.1f | conflict=%s",
                mover.person_id,
                resident.person_id,
                pair.composite,
                pair.conflict,
            )
            return None
        composites.append(pair.composite)
        primary_scores.setdefault(mover.person_id, pair)
    return primary_scores, mean(composites)


def _find_consolidation(
    source: RoomState,
    states: list[RoomState],
    claimed: set[str],
    unplaced_genders: Counter,
    snapshot: OccupancySnapshot,
    config: EngineConfig,
) -> Optional[_ConsolidationPlan]:
    gender = source.gender
    if gender is None:
        logger.warning(
            "Skipping consolidation for mixed-gender room | room=%s | genders=%s",
            source.room.room_number,
            sorted(source.genders),
        )
        return None

    # Occupants left behind in the bathroom group keep binding the source room.
    group_genders = {
        person.gender
        for room in snapshot.bathroom_group_rooms(source.room)
        for _, person in snapshot.occupants_of_room(room)
    }
    beneficiaries = tuple(
        sorted(
            other
            for other, count in unplaced_genders.items()
            if other != gender and count > 0 and group_genders <= {other}
        )
    )
    if not beneficiaries:
        if group_genders:
            logger.debug(
                "Consolidation skipped, bathroom group stays bound | room=%s | genders=%s",
                source.room.room_number,
                sorted(group_genders),
            )
        return None

    best: Optional[_ConsolidationPlan] = None
    best_mean = -1.0
    for target in states:
        if target.room.room_id == source.room.room_id or target.room.room_id in claimed:
            continue
        if not target.occupants or target.gender != gender:
            continue
        if len(target.vacant) < len(source.occupants):
            continue
        evaluation = _evaluate_target(source, target, snapshot, config)
        if evaluation is None:
            continue
        pair_scores, average = evaluation
        if average > best_mean:
            best_mean = average
            best = _ConsolidationPlan(
                source=source,
                target=target,
                beneficiary_genders=beneficiaries,
                pair_scores=pair_scores,
            )
    return best


def _consolidation_moves(
    plan: _ConsolidationPlan,
    snapshot: OccupancySnapshot,
) -> list[MoveRecommendation]:
    freed = plan.source.in_service_count
    reason = (
        f"Would free all {_plural(freed, 'bed')} in Room {plan.source.room.room_number} "
        f"for {' and '.join(plan.beneficiary_genders)} residents"
    )
    moves: list[MoveRecommendation] = []
    for (current_bed, mover), target_bed in zip(plan.source.occupants, plan.target.vacant):
        moves.append(
            MoveRecommendation(
                person_id=mover.person_id,
                person_name=mover.full_name,
                current_bed_id=current_bed.bed_id,
                current_bed=snapshot.bed_display_label(current_bed.bed_id),
                target_bed_id=target_bed.bed_id,
                target_bed=snapshot.bed_display_label(target_bed.bed_id),
                reason=reason,
                impact=freed,
                kind="consolidation",
                compatibility=plan.pair_scores.get(mover.person_id),
            )
        )
    return moves


def _direct_placements(
    person: Person,
    states: list[RoomState],
    claimed: set[str],
    snapshot: OccupancySnapshot,
    config: EngineConfig,
) -> list[MoveRecommendation]:
    placements: list[MoveRecommendation] = []
    for state in states:
        if state.room.room_id in claimed or not state.vacant:
            continue
        if state.occupants and state.gender != person.gender:
            continue
        target_bed = state.vacant[0]
        legality = check_constraint(
            snapshot,
            target_bed.bed_id,
            person.gender,
            person.is_isolation,
            ignore_person_id=person.person_id,
        )
        if not legality.compatible:
            continue

        roommate = state.primary_occupant
        if roommate is None:
            pair = PairCompatibility(age_score=100, diagnosis_score=100, composite=100.0)
            band = compatibility_band(pair.composite)
            reason = f"{band} compatibility: empty room in {state.room.wing_name or 'facility'}"
        else:
            pair = score_pair(
                person,
                roommate,
                as_of=snapshot.as_of,
                age_weight=config.roommate_age_weight,
                diagnosis_weight=config.roommate_diagnosis_weight,
            )
            band = compatibility_band(pair.composite)
            reason = (
                f"{band} compatibility with {roommate.full_name} "
                f"({round_half_up(pair.composite)}%)"
            )
            if pair.conflict:
                reason = f"{reason}; {pair.conflict}"

        placements.append(
            MoveRecommendation(
                person_id=person.person_id,
                person_name=person.full_name,
                target_bed_id=target_bed.bed_id,
                target_bed=snapshot.bed_display_label(target_bed.bed_id),
                reason=reason,
                impact=len(state.vacant),
                kind="direct_placement",
                compatibility=pair,
            )
        )
    return placements


def optimize(
    snapshot: OccupancySnapshot,
    unplaced: Optional[list[Person]] = None,
    config: Optional[EngineConfig] = None,
) -> list[MoveRecommendation]:
    """Propose consolidation moves first, then direct placements.

    `unplaced` defaults to the snapshot's active persons without a bed.
    """
    config = config or EngineConfig()
    unplaced = list(snapshot.unplaced_persons() if unplaced is None else unplaced)
    states = build_room_states(snapshot)
    unplaced_genders = Counter(person.gender for person in unplaced)
    claimed: set[str] = set()

    consolidations: list[MoveRecommendation] = []
    if config.consolidation_enabled:
        for source in states:
            if source.room.room_id in claimed or source.room.bed_count <= 1:
                continue
            if not source.vacant or not source.occupants:
                continue
            plan = _find_consolidation(
                source, states, claimed, unplaced_genders, snapshot, config
            )
            if plan is None:
                continue
            consolidations.extend(_consolidation_moves(plan, snapshot))
            claimed.update({plan.source.room.room_id, plan.target.room.room_id})
            logger.debug(
                "Consolidation planned | source=%s | target=%s",
                plan.source.room.room_number,
                plan.target.room.room_number,
            )

    consolidations.sort(key=lambda rec: rec.impact, reverse=True)
    seen_people: set[str] = set()
    unique_consolidations: list[MoveRecommendation] = []
    for rec in consolidations:
        if rec.person_id in seen_people:
            continue
        seen_people.add(rec.person_id)
        unique_consolidations.append(rec)

    placements: list[MoveRecommendation] = []
    if config.direct_placements_enabled:
        covered = {rec.person_id for rec in unique_consolidations}
        seen_pairs: set[tuple[str, str]] = set()
        for person in unplaced:
            if person.person_id in covered:
                continue
            for rec in _direct_placements(person, states, claimed, snapshot, config):
                key = (rec.person_id, rec.target_bed_id)
                if key in seen_pairs:
                    continue
                seen_pairs.add(key)
                placements.append(rec)

    placements.sort(
        key=lambda rec: (
            rec.person_name,
            rec.person_id,
            -(rec.compatibility.composite if rec.compatibility else 0.0),
            -rec.impact,
        )
    )

    logger.info(
        "Occupancy optimization completed | unplaced=%s | consolidation_moves=%s | "
        "direct_placements=%s | rooms_claimed=%s",
        len(unplaced),
        len(unique_consolidations),
        len(placements),
        len(claimed),
    )
    return unique_consolidations + placements
