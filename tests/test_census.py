from __future__ import annotations

from bedwise.services.census_service import compute_census, compute_census_by_wing


def _facility(facility):
    return (
        facility.add_room("101", ("A", "B"), wing="East")
        .add_room("102", ("A", "B", "C"), wing="East", out_of_service=("C",))
        .add_room("201", ("A",), wing="West")
        .place("101A", "m1", "male")
        .place("101B", "m2", "male", is_isolation=True)
        .place("102A", "f1", "female")
        .admit("f2", "female", is_isolation=True)
        .build()
    )


def test_facility_census(facility) -> None:
    stats = compute_census(_facility(facility))
    assert stats.total_beds == 6
    assert stats.occupied_beds == 3
    assert stats.vacant_beds == 2
    assert stats.out_of_service_beds == 1
    assert stats.male_occupied == 2
    assert stats.female_occupied == 1
    assert stats.isolation_count == 1
    assert stats.occupancy_rate == 60.0


def test_wing_census(facility) -> None:
    snapshot = _facility(facility)
    east = compute_census(snapshot, "wing-east")
    assert east.total_beds == 5
    assert east.occupancy_rate == 75.0

    by_wing = compute_census_by_wing(snapshot)
    assert set(by_wing) == {"wing-east", "wing-west"}
    assert by_wing["wing-west"].vacant_beds == 1
    assert by_wing["wing-west"].occupancy_rate == 0.0


def test_empty_facility_has_zero_rate(facility) -> None:
    stats = compute_census(facility.add_room("101", ("A",), out_of_service=("A",)).build())
    assert stats.total_beds == 1
    assert stats.out_of_service_beds == 1
    assert stats.occupancy_rate == 0.0
    assert stats.isolation_count == 0
