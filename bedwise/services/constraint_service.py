"""Hard legality checks for placing a person on a bed.

Gender segregation spans a room and every room sharing its bathroom group.
Isolation precautions apply within the room only. Missing reference data
fails open: the result is compatible but flagged `confirmed=False`, and the
caller re-validates at commit time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bedwise.domain.models import (
    Bed,
    ConstraintResult,
    Gender,
    OccupancySnapshot,
    Person,
    Room,
)
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ConstraintSurface:
    """Room plus bathroom-group occupants relevant to one target bed."""

    room: Room
    room_bed_count: int
    group_rooms: tuple[Room, ...]
    room_occupants: tuple[Person, ...]
    group_occupants: tuple[tuple[Room, Person], ...]

    @property
    def is_multi_bed(self) -> bool:
        return self.room_bed_count > 1

    @property
    def shared_bathroom_rooms(self) -> tuple[str, ...]:
        return tuple(room.room_number for room in self.group_rooms)

    @property
    def has_constraints(self) -> bool:
        return self.is_multi_bed or bool(self.group_rooms)

    @property
    def all_occupants(self) -> list[Person]:
        return list(self.room_occupants) + [person for _, person in self.group_occupants]


def _fail_open(bed_id: str, detail: str) -> ConstraintResult:
    logger.warning("Constraint check failed open | bed_id=%s | detail=%s", bed_id, detail)
    return ConstraintResult(compatible=True, confirmed=False)


def resolve_surface(
    snapshot: OccupancySnapshot,
    bed: Bed,
    *,
    ignore_person_id: Optional[str] = None,
) -> Optional[ConstraintSurface]:
    """Collect the occupants whose gender and isolation status bind `bed`.

    `ignore_person_id` drops one person from the occupant lists, used when
    that person is the one being moved.
    """
    room = snapshot.get_room(bed.room_id)
    if room is None:
        return None

    def _keep(person: Person) -> bool:
        return person.person_id != ignore_person_id

    room_occupants = tuple(
        person for _, person in snapshot.occupants_of_room(room) if _keep(person)
    )
    group_rooms = tuple(snapshot.bathroom_group_rooms(room))
    group_occupants = tuple(
        (group_room, person)
        for group_room in group_rooms
        for _, person in snapshot.occupants_of_room(group_room)
        if _keep(person)
    )
    return ConstraintSurface(
        room=room,
        room_bed_count=max(1, room.bed_count),
        group_rooms=group_rooms,
        room_occupants=room_occupants,
        group_occupants=group_occupants,
    )


def _isolation_violation(
    surface: ConstraintSurface,
    candidate_isolation: bool,
) -> Optional[str]:
    room_number = surface.room.room_number
    if not candidate_isolation and any(person.is_isolation for person in surface.room_occupants):
        return (
            f"Room {room_number} has a resident under isolation precautions. "
            "Only another isolation resident may share this room."
        )
    if candidate_isolation and any(not person.is_isolation for person in surface.room_occupants):
        return (
            f"Room {room_number} has a resident who is not under isolation. "
            "Isolation residents may only share a room with other isolation residents."
        )
    return None


def check_constraint(
    snapshot: OccupancySnapshot,
    bed_id: str,
    candidate_gender: Gender,
    candidate_isolation: bool = False,
    *,
    ignore_person_id: Optional[str] = None,
) -> ConstraintResult:
    """Decide whether a candidate may legally take `bed_id`. Never raises."""
    bed = snapshot.get_bed(bed_id)
    if bed is None:
        return _fail_open(bed_id, "bed not in snapshot")
    surface = resolve_surface(snapshot, bed, ignore_person_id=ignore_person_id)
    if surface is None:
        return _fail_open(bed_id, f"room {bed.room_id} not in snapshot")

    if not surface.has_constraints:
        return ConstraintResult(compatible=True, room_bed_count=surface.room_bed_count)

    base = {
        "room_bed_count": surface.room_bed_count,
        "shared_bathroom_rooms": surface.shared_bathroom_rooms,
    }

    isolation_reason = _isolation_violation(surface, candidate_isolation)
    if isolation_reason is not None:
        return ConstraintResult(
            compatible=False,
            reason=isolation_reason,
            isolation_conflict=True,
            **base,
        )

    occupants = surface.all_occupants
    if not occupants:
        return ConstraintResult(compatible=True, **base)

    existing_genders = {person.gender for person in occupants}
    if len(existing_genders) > 1:
        logger.warning(
            "Mixed-gender occupancy detected | room=%s | genders=%s",
            surface.room.room_number,
            sorted(existing_genders),
        )
        return ConstraintResult(
            compatible=False,
            reason="Room or shared bathroom already has mixed genders",
            **base,
        )

    existing_gender = occupants[0].gender
    if existing_gender != candidate_gender:
        if surface.room_occupants and surface.is_multi_bed:
            reason = (
                f"Room {surface.room.room_number} already has a {existing_gender} resident. "
                "Semi-private and triple rooms cannot have mixed sexes."
            )
        else:
            occupied_group_rooms = []
            for group_room, _ in surface.group_occupants:
                if group_room.room_number not in occupied_group_rooms:
                    occupied_group_rooms.append(group_room.room_number)
            reason = (
                f"Shared bathroom with Room {', '.join(occupied_group_rooms)} has "
                f"{existing_gender} resident(s). Rooms sharing a bathroom cannot have mixed sexes."
            )
        return ConstraintResult(
            compatible=False,
            reason=reason,
            existing_gender=existing_gender,
            **base,
        )

    return ConstraintResult(compatible=True, existing_gender=existing_gender, **base)


def required_gender(
    snapshot: OccupancySnapshot,
    bed_id: str,
    *,
    ignore_person_id: Optional[str] = None,
) -> Optional[Gender]:
    """Gender any new occupant of `bed_id` must have, or None when unrestricted."""
    bed = snapshot.get_bed(bed_id)
    if bed is None:
        return None
    surface = resolve_surface(snapshot, bed, ignore_person_id=ignore_person_id)
    if surface is None or not surface.has_constraints:
        return None
    occupants = surface.all_occupants
    if not occupants:
        return None
    return occupants[0].gender
