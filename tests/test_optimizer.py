from __future__ import annotations

from dataclasses import replace

from bedwise.domain.constraints import EngineConfig
from bedwise.services.optimizer_service import compatibility_band, optimize


def _consolidation_ward(facility):
    return (
        facility.add_room("201")
        .add_room("202")
        .add_room("203")
        .place("201A", "m1", "male", first_name="Carl", last_name="Moss", date_of_birth="1948-02-01")
        .place("202A", "m2", "male", first_name="Dan", last_name="Reed", date_of_birth="1948-05-01")
        .admit("f1", "female", first_name="Fay", last_name="Lund", date_of_birth="1950-01-01")
    )


def test_end_to_end_direct_placements(facility) -> None:
    snapshot = (
        facility.add_room("101")
        .add_room("102")
        .add_room("103", ("A",))
        .place("101A", "m-old", "male", first_name="Sam", last_name="Stone",
               date_of_birth="1950-01-01", diagnosis="COPD")
        .place("103A", "f-old", "female", first_name="Rita", last_name="Vale")
        .admit("fa", "female", first_name="Alice", last_name="Archer")
        .admit("mb", "male", first_name="Bob", last_name="Baker",
               date_of_birth="1950-01-01", diagnosis="COPD")
        .build()
    )

    recommendations = optimize(snapshot)

    assert all(rec.kind == "direct_placement" for rec in recommendations)
    assert [(rec.person_id, rec.target_bed_id) for rec in recommendations] == [
        ("fa", "102A"),
        ("mb", "102A"),
        ("mb", "101B"),
    ]

    alice = recommendations[0]
    assert alice.target_bed == "Room 102A"
    assert alice.reason == "Good compatibility: empty room in West"
    assert alice.impact == 2
    assert alice.is_direct_placement

    bob_shared = recommendations[2]
    assert bob_shared.reason == "Good compatibility with Sam Stone (100%)"
    assert bob_shared.impact == 1
    assert bob_shared.compatibility is not None
    assert bob_shared.compatibility.composite == 100


def test_consolidation_frees_room_for_other_gender(facility) -> None:
    snapshot = _consolidation_ward(facility).build()

    recommendations = optimize(snapshot)
    consolidations = [rec for rec in recommendations if rec.kind == "consolidation"]

    assert len(consolidations) == 1
    move = consolidations[0]
    assert move.person_id == "m1"
    assert move.current_bed_id == "201A"
    assert move.current_bed == "Room 201A"
    assert move.target_bed_id == "202B"
    assert move.reason == "Would free all 2 beds in Room 201 for female residents"
    assert move.impact == 2
    assert not move.is_direct_placement

    placements = [rec for rec in recommendations if rec.kind == "direct_placement"]
    assert [(rec.person_id, rec.target_bed_id) for rec in placements] == [("f1", "203A")]
    assert recommendations.index(move) < recommendations.index(placements[0])


def test_consolidation_never_duplicates_a_person(facility) -> None:
    snapshot = _consolidation_ward(facility).build()

    for _ in range(2):
        consolidations = [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]
        people = [rec.person_id for rec in consolidations]
        pairs = [(rec.person_id, rec.target_bed_id) for rec in consolidations]
        assert len(people) == len(set(people))
        assert len(pairs) == len(set(pairs))


def test_consolidation_requires_other_gender_demand(facility) -> None:
    snapshot = (
        facility.add_room("201")
        .add_room("202")
        .place("201A", "m1", "male")
        .place("202A", "m2", "male")
        .admit("m3", "male")
        .build()
    )
    assert not [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]


def test_consolidation_rejects_diagnosis_conflict(facility) -> None:
    snapshot = (
        facility.add_room("201")
        .add_room("202")
        .place("201A", "m1", "male", date_of_birth="1948-01-01", diagnosis="Sepsis")
        .place("202A", "m2", "male", date_of_birth="1948-01-01", diagnosis="Heart transplant")
        .admit("f1", "female")
        .build()
    )
    assert not [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]


def test_consolidation_rejects_low_composite(facility) -> None:
    snapshot = (
        facility.add_room("201")
        .add_room("202")
        .place("201A", "m1", "male", date_of_birth="1930-01-01", diagnosis="CHF")
        .place("202A", "m2", "male", date_of_birth="1960-01-01", diagnosis="COPD")
        .admit("f1", "female")
        .build()
    )
    # age 0 and diagnosis 40 give a composite of 24, under the default 30
    assert not [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]

    permissive = EngineConfig(consolidation_min_composite=20.0)
    assert [rec for rec in optimize(snapshot, config=permissive) if rec.kind == "consolidation"]


def test_impact_counts_in_service_beds_only(facility) -> None:
    snapshot = (
        facility.add_room("301", ("A", "B", "C"), out_of_service=("C",))
        .add_room("302")
        .place("301A", "m1", "male")
        .place("302A", "m2", "male")
        .admit("f1", "female")
        .build()
    )
    consolidations = [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]
    assert len(consolidations) == 1
    assert consolidations[0].impact == 2
    assert consolidations[0].reason == "Would free all 2 beds in Room 301 for female residents"


def test_configuration_toggles(facility) -> None:
    snapshot = _consolidation_ward(facility).build()
    defaults = EngineConfig()

    no_consolidation = optimize(snapshot, config=replace(defaults, consolidation_enabled=False))
    assert {rec.kind for rec in no_consolidation} == {"direct_placement"}

    no_direct = optimize(snapshot, config=replace(defaults, direct_placements_enabled=False))
    assert {rec.kind for rec in no_direct} == {"consolidation"}


def test_explicit_unplaced_list_overrides_snapshot(facility) -> None:
    snapshot = _consolidation_ward(facility).build()
    assert optimize(snapshot, unplaced=[]) == []


def test_isolation_candidate_skips_non_isolation_rooms(facility) -> None:
    snapshot = (
        facility.add_room("401")
        .place("401A", "f1", "female")
        .admit("f2", "female", is_isolation=True)
        .build()
    )
    assert optimize(snapshot) == []


def test_compatibility_band_thresholds() -> None:
    assert compatibility_band(70) == "Good"
    assert compatibility_band(69.9) == "Moderate"
    assert compatibility_band(40) == "Moderate"
    assert compatibility_band(39.9) == "Low"


def test_consolidation_skipped_while_bathroom_group_stays_bound(facility) -> None:
    snapshot = (
        facility.add_room("201", bathroom_group="bath-1")
        .add_room("205", ("A",), bathroom_group="bath-1")
        .add_room("202")
        .place("201A", "m1", "male")
        .place("205A", "m2", "male")
        .place("202A", "m3", "male")
        .admit("f1", "female")
        .build()
    )
    consolidations = [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]
    assert "201A" not in {rec.current_bed_id for rec in consolidations}
    assert [(rec.person_id, rec.target_bed_id) for rec in consolidations] == [("m3", "201B")]


def test_consolidation_allowed_when_bathroom_group_is_empty(facility) -> None:
    snapshot = (
        facility.add_room("201", bathroom_group="bath-1")
        .add_room("205", ("A",), bathroom_group="bath-1")
        .add_room("202")
        .place("201A", "m1", "male")
        .place("202A", "m3", "male")
        .admit("f1", "female")
        .build()
    )
    consolidations = [rec for rec in optimize(snapshot) if rec.kind == "consolidation"]
    assert [(rec.person_id, rec.target_bed_id) for rec in consolidations] == [("m1", "202B")]
    assert consolidations[0].reason == "Would free all 2 beds in Room 201 for female residents"


def test_direct_placements_ordered_by_compatibility(facility) -> None:
    snapshot = (
        facility.add_room("301")
        .add_room("302")
        .add_room("303")
        .place("301A", "low", "female", first_name="Lena", last_name="Low",
               date_of_birth="1930-01-01", diagnosis="COPD")
        .place("302A", "mid", "female", first_name="Mia", last_name="Mid",
               date_of_birth="1950-01-01", diagnosis="COPD")
        .place("303A", "good", "female", first_name="Gina", last_name="Good",
               date_of_birth="1950-01-01", diagnosis="CHF")
        .admit("g1", "female", first_name="Gail", last_name="Park",
               date_of_birth="1950-01-01", diagnosis="CHF")
        .build()
    )

    recommendations = optimize(snapshot)

    assert [rec.target_bed_id for rec in recommendations] == ["303B", "302B", "301B"]
    assert [rec.reason for rec in recommendations] == [
        "Good compatibility with Gina Good (100%)",
        "Moderate compatibility with Mia Mid (64%)",
        "Low compatibility with Lena Low (24%)",
    ]
