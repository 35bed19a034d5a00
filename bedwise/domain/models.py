"""Domain models for the occupancy graph and derived placement results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional


Gender = Literal["male", "female", "other"]
BedStatus = Literal["vacant", "occupied", "out_of_service"]
PersonStatus = Literal["active", "discharged", "deceased"]
IsolationType = Literal["respiratory", "contact", "droplet", "airborne"]
RecommendationKind = Literal["consolidation", "direct_placement"]

GENDERS: tuple[str, ...] = ("male", "female", "other")
BED_STATUSES: tuple[str, ...] = ("vacant", "occupied", "out_of_service")
PERSON_STATUSES: tuple[str, ...] = ("active", "discharged", "deceased")
ISOLATION_TYPES: tuple[str, ...] = ("respiratory", "contact", "droplet", "airborne")


@dataclass(frozen=True)
class Person:
    person_id: str
    first_name: str
    last_name: str
    gender: Gender
    date_of_birth: Optional[date] = None
    diagnosis: Optional[str] = None
    is_isolation: bool = False
    isolation_type: Optional[IsolationType] = None
    status: PersonStatus = "active"
    bed_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class Bed:
    bed_id: str
    room_id: str
    bed_label: str
    status: BedStatus = "vacant"
    out_of_service_reason: Optional[str] = None


@dataclass(frozen=True)
class Room:
    room_id: str
    room_number: str
    bed_ids: tuple[str, ...]
    wing_id: Optional[str] = None
    wing_name: str = ""
    has_shared_bathroom: bool = False
    shared_bathroom_group_id: Optional[str] = None

    @property
    def bed_count(self) -> int:
        return len(self.bed_ids)


@dataclass(frozen=True)
class OccupancySnapshot:
    """Read-only view of beds, rooms and persons at one point in time.

    Bed enumeration order inside a room (`Room.bed_ids`) and room order
    (`rooms`) are the deterministic orders every engine operation follows.
    """

    rooms: tuple[Room, ...]
    beds: tuple[Bed, ...]
    persons: tuple[Person, ...]
    as_of: date
    anomalies: tuple[str, ...] = ()
    _room_index: dict[str, Room] = field(init=False, repr=False, compare=False)
    _bed_index: dict[str, Bed] = field(init=False, repr=False, compare=False)
    _person_index: dict[str, Person] = field(init=False, repr=False, compare=False)
    _occupant_index: dict[str, Person] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_room_index", {room.room_id: room for room in self.rooms})
        object.__setattr__(self, "_bed_index", {bed.bed_id: bed for bed in self.beds})
        object.__setattr__(
            self, "_person_index", {person.person_id: person for person in self.persons}
        )
        occupants: dict[str, Person] = {}
        for person in self.persons:
            if not person.is_active or person.bed_id is None:
                continue
            bed = self._bed_index.get(person.bed_id)
            if bed is None or bed.status != "occupied":
                continue
            occupants.setdefault(person.bed_id, person)
        object.__setattr__(self, "_occupant_index", occupants)

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._room_index.get(room_id)

    def get_bed(self, bed_id: str) -> Optional[Bed]:
        return self._bed_index.get(bed_id)

    def get_person(self, person_id: str) -> Optional[Person]:
        return self._person_index.get(person_id)

    def occupant_of(self, bed_id: str) -> Optional[Person]:
        """Active person on an occupied bed, if any."""
        return self._occupant_index.get(bed_id)

    def beds_in_room(self, room: Room) -> list[Bed]:
        return [
            self._bed_index[bed_id]
            for bed_id in room.bed_ids
            if bed_id in self._bed_index
        ]

    def occupants_of_room(self, room: Room) -> list[tuple[Bed, Person]]:
        pairs: list[tuple[Bed, Person]] = []
        for bed in self.beds_in_room(room):
            occupant = self.occupant_of(bed.bed_id)
            if occupant is not None:
                pairs.append((bed, occupant))
        return pairs

    def vacant_beds_in_room(self, room: Room) -> list[Bed]:
        return [bed for bed in self.beds_in_room(room) if bed.status == "vacant"]

    def bathroom_group_rooms(self, room: Room) -> list[Room]:
        """Other rooms sharing sanitary facilities with `room`, in room order."""
        if not room.has_shared_bathroom or not room.shared_bathroom_group_id:
            return []
        return [
            other
            for other in self.rooms
            if other.room_id != room.room_id
            and other.shared_bathroom_group_id == room.shared_bathroom_group_id
        ]

    def vacant_beds(self) -> list[Bed]:
        """Vacant beds in room order, then bed order within each room."""
        ordered: list[Bed] = []
        for room in self.rooms:
            ordered.extend(self.vacant_beds_in_room(room))
        return ordered

    def unplaced_persons(self) -> list[Person]:
        """Active persons without a bed they actually occupy."""
        placed = {person.person_id for person in self._occupant_index.values()}
        return [
            person
            for person in self.persons
            if person.is_active and person.person_id not in placed
        ]

    def bed_display_label(self, bed_id: str) -> str:
        bed = self.get_bed(bed_id)
        if bed is None:
            return ""
        room = self.get_room(bed.room_id)
        room_number = room.room_number if room is not None else "?"
        return f"Room {room_number}{bed.bed_label}"


@dataclass(frozen=True)
class ConstraintResult:
    compatible: bool
    reason: Optional[str] = None
    existing_gender: Optional[Gender] = None
    room_bed_count: Optional[int] = None
    shared_bathroom_rooms: tuple[str, ...] = ()
    isolation_conflict: bool = False
    # False when the check failed open on missing reference data.
    confirmed: bool = True


@dataclass(frozen=True)
class RoommateInfo:
    person_id: str
    name: str
    age: Optional[int]
    diagnosis: Optional[str]


@dataclass(frozen=True)
class BedInfo:
    room_number: str
    bed_label: str
    wing_name: str


@dataclass(frozen=True)
class CompatibilityScore:
    bed_id: str
    total_score: int
    age_score: int
    diagnosis_score: int
    flexibility_score: int
    bed_info: BedInfo
    roommate: Optional[RoommateInfo] = None
    warnings: tuple[str, ...] = ()
    recommended: bool = False


@dataclass(frozen=True)
class PairCompatibility:
    age_score: int
    diagnosis_score: int
    composite: float
    conflict: Optional[str] = None


@dataclass(frozen=True)
class MoveRecommendation:
    person_id: str
    person_name: str
    target_bed_id: str
    target_bed: str
    reason: str
    impact: int
    kind: RecommendationKind
    current_bed_id: Optional[str] = None
    current_bed: Optional[str] = None
    compatibility: Optional[PairCompatibility] = None

    @property
    def is_direct_placement(self) -> bool:
        return self.current_bed_id is None


@dataclass(frozen=True)
class CensusStats:
    total_beds: int
    occupied_beds: int
    vacant_beds: int
    out_of_service_beds: int
    male_occupied: int
    female_occupied: int
    isolation_count: int
    occupancy_rate: float
