from __future__ import annotations

from datetime import date

from bedwise.domain.models import Bed, OccupancySnapshot, Room
from bedwise.services.constraint_service import check_constraint, required_gender


def test_single_room_without_bathroom_group_is_unconstrained(facility) -> None:
    snapshot = facility.add_room("110", ("A",)).build()
    result = check_constraint(snapshot, "110A", "male")
    assert result.compatible
    assert result.confirmed
    assert result.room_bed_count == 1
    assert required_gender(snapshot, "110A") is None


def test_semi_private_room_rejects_other_gender(facility) -> None:
    snapshot = facility.add_room("101").place("101A", "f1", "female").build()

    rejected = check_constraint(snapshot, "101B", "male")
    assert not rejected.compatible
    assert rejected.existing_gender == "female"
    assert rejected.reason == (
        "Room 101 already has a female resident. "
        "Semi-private and triple rooms cannot have mixed sexes."
    )

    accepted = check_constraint(snapshot, "101B", "female")
    assert accepted.compatible
    assert accepted.existing_gender == "female"
    assert required_gender(snapshot, "101B") == "female"


def test_empty_multi_bed_room_accepts_anyone(facility) -> None:
    snapshot = facility.add_room("102").build()
    assert check_constraint(snapshot, "102A", "male").compatible
    assert check_constraint(snapshot, "102A", "female").compatible


def test_bathroom_group_propagates_gender(facility) -> None:
    snapshot = (
        facility.add_room("103", ("A",), bathroom_group="bath-1")
        .add_room("104", ("A",), bathroom_group="bath-1")
        .place("103A", "m1", "male")
        .build()
    )

    result = check_constraint(snapshot, "104A", "female")
    assert not result.compatible
    assert result.existing_gender == "male"
    assert result.shared_bathroom_rooms == ("103",)
    assert result.reason == (
        "Shared bathroom with Room 103 has male resident(s). "
        "Rooms sharing a bathroom cannot have mixed sexes."
    )
    assert required_gender(snapshot, "104A") == "male"
    assert check_constraint(snapshot, "104A", "male").compatible


def test_bathroom_group_without_flag_is_ignored(facility) -> None:
    facility.add_room("105", ("A",)).add_room("106", ("A",))
    facility.rooms[0]["shared_bathroom_group_id"] = "bath-2"
    facility.rooms[1]["shared_bathroom_group_id"] = "bath-2"
    snapshot = facility.place("105A", "m1", "male").build()
    assert check_constraint(snapshot, "106A", "female").compatible


def test_mixed_occupancy_is_rejected_for_everyone(facility) -> None:
    snapshot = (
        facility.add_room("107", ("A", "B", "C"))
        .place("107A", "m1", "male")
        .place("107B", "f1", "female")
        .build()
    )
    for gender in ("male", "female", "other"):
        result = check_constraint(snapshot, "107C", gender)
        assert not result.compatible
        assert result.reason == "Room or shared bathroom already has mixed genders"


def test_isolation_resident_only_shares_with_isolation(facility) -> None:
    snapshot = (
        facility.add_room("201")
        .add_room("202")
        .place("201A", "iso", "male", is_isolation=True)
        .place("202A", "plain", "male")
        .build()
    )

    blocked = check_constraint(snapshot, "201B", "male", candidate_isolation=False)
    assert not blocked.compatible
    assert blocked.isolation_conflict
    assert "Room 201" in (blocked.reason or "")

    assert check_constraint(snapshot, "201B", "male", candidate_isolation=True).compatible

    reverse = check_constraint(snapshot, "202B", "male", candidate_isolation=True)
    assert not reverse.compatible
    assert reverse.isolation_conflict


def test_isolation_does_not_cross_bathroom_group(facility) -> None:
    snapshot = (
        facility.add_room("301", ("A",), bathroom_group="bath-3")
        .add_room("302", ("A",), bathroom_group="bath-3")
        .place("301A", "iso", "female", is_isolation=True)
        .build()
    )
    assert check_constraint(snapshot, "302A", "female", candidate_isolation=False).compatible


def test_mover_is_not_their_own_roommate(facility) -> None:
    snapshot = facility.add_room("401").place("401A", "m1", "male").build()
    assert not check_constraint(snapshot, "401B", "female").compatible
    assert check_constraint(snapshot, "401B", "female", ignore_person_id="m1").compatible


def test_unknown_bed_fails_open_unconfirmed(facility) -> None:
    snapshot = facility.add_room("501").build()
    result = check_constraint(snapshot, "missing-bed", "male")
    assert result.compatible
    assert not result.confirmed
    assert required_gender(snapshot, "missing-bed") is None


def test_bed_with_unknown_room_fails_open() -> None:
    snapshot = OccupancySnapshot(
        rooms=(Room(room_id="r1", room_number="1", bed_ids=("b1",)),),
        beds=(Bed(bed_id="orphan", room_id="gone", bed_label="A"),),
        persons=(),
        as_of=date(2026, 6, 1),
    )
    result = check_constraint(snapshot, "orphan", "female")
    assert result.compatible
    assert not result.confirmed
