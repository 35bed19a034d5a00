"""Parse raw occupancy rows into a typed, immutable snapshot.

This is the only place that validates shape. Rows coming from the
persistence layer or an API payload are checked once with pydantic; the
engine downstream works on the frozen dataclasses without re-checking.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bedwise.domain.models import (
    Bed,
    BedStatus,
    Gender,
    IsolationType,
    OccupancySnapshot,
    Person,
    PersonStatus,
    Room,
)
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)


class SnapshotValidationError(Exception):
    """Raised when raw snapshot rows cannot be parsed into the data model."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


class RoomRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    room_number: str = Field(min_length=1)
    wing_id: Optional[str] = None
    wing_name: str = ""
    has_shared_bathroom: bool = False
    shared_bathroom_group_id: Optional[str] = None

    @field_validator("shared_bathroom_group_id")
    @classmethod
    def blank_group_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class BedRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    bed_label: str = ""
    status: BedStatus = "vacant"
    out_of_service_reason: Optional[str] = None


class PersonRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    gender: Gender
    date_of_birth: Optional[date] = None
    diagnosis: Optional[str] = None
    is_isolation: bool = False
    isolation_type: Optional[IsolationType] = None
    status: PersonStatus = "active"
    bed_id: Optional[str] = None

    @field_validator("diagnosis", "bed_id", "date_of_birth", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def _parse_rows(
    model: type[BaseModel],
    rows: Iterable[dict[str, Any]],
    label: str,
    problems: list[str],
) -> list:
    parsed = []
    for index, row in enumerate(rows):
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"])
                problems.append(f"{label}[{index}].{location}: {error['msg']}")
    return parsed


def _to_person(row: PersonRow) -> Person:
    return Person(
        person_id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender,
        date_of_birth=row.date_of_birth,
        diagnosis=row.diagnosis,
        is_isolation=row.is_isolation,
        isolation_type=row.isolation_type,
        status=row.status,
        bed_id=row.bed_id,
    )


def _duplicates(identifiers: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    repeated: list[str] = []
    for identifier in identifiers:
        if identifier in seen and identifier not in repeated:
            repeated.append(identifier)
        seen.add(identifier)
    return repeated


def _integrity_anomalies(beds: list[Bed], persons: list[Person]) -> list[str]:
    anomalies: list[str] = []
    active_by_bed: dict[str, list[str]] = defaultdict(list)
    bed_status = {bed.bed_id: bed.status for bed in beds}
    for person in persons:
        if not person.is_active or person.bed_id is None:
            continue
        active_by_bed[person.bed_id].append(person.person_id)
        status = bed_status.get(person.bed_id)
        if status is None:
            anomalies.append(f"person {person.person_id} references unknown bed {person.bed_id}")
        elif status != "occupied":
            anomalies.append(
                f"person {person.person_id} references bed {person.bed_id} with status {status}"
            )
    for bed in beds:
        holders = active_by_bed.get(bed.bed_id, [])
        if bed.status == "occupied" and not holders:
            anomalies.append(f"bed {bed.bed_id} is occupied but has no active occupant")
        if len(holders) > 1:
            anomalies.append(
                f"bed {bed.bed_id} is referenced by {len(holders)} active persons: {', '.join(holders)}"
            )
    return anomalies


def build_snapshot(
    *,
    rooms: Iterable[dict[str, Any]],
    beds: Iterable[dict[str, Any]],
    persons: Iterable[dict[str, Any]],
    as_of: Optional[date] = None,
) -> OccupancySnapshot:
    """Validate raw rows and return an immutable snapshot.

    Shape problems raise `SnapshotValidationError` listing every problem at
    once. Occupancy integrity problems are tolerated and recorded on
    `snapshot.anomalies`.
    """
    problems: list[str] = []
    room_rows = _parse_rows(RoomRow, rooms, "rooms", problems)
    bed_rows = _parse_rows(BedRow, beds, "beds", problems)
    person_rows = _parse_rows(PersonRow, persons, "persons", problems)

    for label, rows in (("room", room_rows), ("bed", bed_rows), ("person", person_rows)):
        for duplicate in _duplicates(row.id for row in rows):
            problems.append(f"duplicate {label} id {duplicate}")

    room_ids = {row.id for row in room_rows}
    for row in bed_rows:
        if row.room_id not in room_ids:
            problems.append(f"bed {row.id} references unknown room {row.room_id}")

    if problems:
        raise SnapshotValidationError(problems)

    bed_ids_by_room: dict[str, list[str]] = defaultdict(list)
    for row in bed_rows:
        bed_ids_by_room[row.room_id].append(row.id)

    snapshot_rooms = [
        Room(
            room_id=row.id,
            room_number=row.room_number,
            bed_ids=tuple(bed_ids_by_room.get(row.id, ())),
            wing_id=row.wing_id,
            wing_name=row.wing_name,
            has_shared_bathroom=row.has_shared_bathroom,
            shared_bathroom_group_id=row.shared_bathroom_group_id,
        )
        for row in room_rows
    ]
    snapshot_beds = [
        Bed(
            bed_id=row.id,
            room_id=row.room_id,
            bed_label=row.bed_label,
            status=row.status,
            out_of_service_reason=row.out_of_service_reason,
        )
        for row in bed_rows
    ]
    snapshot_persons = [_to_person(row) for row in person_rows]

    anomalies = _integrity_anomalies(snapshot_beds, snapshot_persons)
    for anomaly in anomalies:
        logger.warning("Snapshot integrity anomaly | %s", anomaly)

    snapshot = OccupancySnapshot(
        rooms=tuple(snapshot_rooms),
        beds=tuple(snapshot_beds),
        persons=tuple(snapshot_persons),
        as_of=as_of or date.today(),
        anomalies=tuple(anomalies),
    )
    logger.info(
        "Snapshot built | rooms=%s | beds=%s | persons=%s | anomalies=%s",
        len(snapshot_rooms),
        len(snapshot_beds),
        len(snapshot_persons),
        len(anomalies),
    )
    return snapshot


def candidate_from_payload(payload: dict[str, Any], *, default_id: str = "candidate") -> Person:
    """Build a possibly hypothetical candidate person from a raw payload."""
    row = dict(payload)
    row.setdefault("id", default_id)
    row.setdefault("bed_id", None)
    try:
        parsed = PersonRow.model_validate(row)
    except ValidationError as exc:
        raise SnapshotValidationError(
            [f"candidate.{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        ) from exc
    return _to_person(parsed)
