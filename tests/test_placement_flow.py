from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bedwise.controllers.placement_controller import router as placement_router
from bedwise.repository.data_repository import BedConflictError, DataRepository
from bedwise.services.placement_service import (
    PlacementConflictError,
    PlacementService,
)
from bedwise.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, **overrides)


def _build_repository(tmp_path, filename: str = "placement.db", **overrides):
    settings = _build_test_settings(tmp_path, filename, **overrides)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_data()
    return settings, repository


def _build_test_app(tmp_path, **overrides) -> tuple[FastAPI, DataRepository]:
    settings, repository = _build_repository(tmp_path, "placement_flow.db", **overrides)
    app = FastAPI()
    app.include_router(placement_router)
    app.state.repository = repository
    app.state.placement_service = PlacementService(repository=repository, settings=settings)
    return app, repository


class _StaleRepository(DataRepository):
    """Serves snapshot rows captured before a concurrent write landed."""

    def __init__(self, settings, rows) -> None:
        super().__init__(settings)
        self._rows = rows

    def export_snapshot_rows(self):
        return self._rows


def test_seed_is_idempotent_and_consistent(tmp_path) -> None:
    settings, repository = _build_repository(tmp_path)
    repository.initialize_database()
    repository.seed_demo_data()

    snapshot = PlacementService(repository=repository, settings=settings).snapshot()
    assert len(snapshot.rooms) == 6
    assert len(snapshot.beds) == 11
    assert snapshot.anomalies == ()
    assert {person.person_id for person in snapshot.unplaced_persons()} == {"res-5", "res-6"}


def test_repository_rejects_second_assignment_to_same_bed(tmp_path) -> None:
    _, repository = _build_repository(tmp_path)
    first = repository.create_resident("Ann", "One", "female")
    second = repository.create_resident("Bea", "Two", "female")

    repository.assign_resident("room-102-A", first)
    with pytest.raises(BedConflictError):
        repository.assign_resident("room-102-A", second)

    assert repository.get_resident(second)["bed_id"] is None
    assert repository.get_bed_status("room-102-A") == "occupied"


def test_service_rejects_incompatible_assignment(tmp_path) -> None:
    settings, repository = _build_repository(tmp_path)
    service = PlacementService(repository=repository, settings=settings)

    with pytest.raises(PlacementConflictError) as excinfo:
        service.assign("res-6", "room-101-B")
    assert "Room 101 already has a male resident" in str(excinfo.value)
    assert repository.get_bed_status("room-101-B") == "vacant"


def test_lost_race_surfaces_as_conflict(tmp_path) -> None:
    settings, repository = _build_repository(tmp_path)
    stale_rows = repository.export_snapshot_rows()
    repository.assign_resident("room-102-A", "res-5")

    stale_service = PlacementService(
        repository=_StaleRepository(settings, stale_rows),
        settings=settings,
    )
    with pytest.raises(BedConflictError):
        stale_service.assign("res-6", "room-102-A")
    assert repository.get_resident("res-6")["bed_id"] is None


def test_move_releases_previous_bed(tmp_path) -> None:
    settings, repository = _build_repository(tmp_path)
    service = PlacementService(repository=repository, settings=settings)

    service.assign("res-5", "room-102-A")
    service.move("res-5", "room-101-B")

    assert repository.get_bed_status("room-102-A") == "vacant"
    assert repository.get_bed_status("room-101-B") == "occupied"
    assert repository.get_resident("res-5")["bed_id"] == "room-101-B"


def test_placement_http_flow(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    required = client.get("/beds/room-104-A/required_gender")
    assert required.status_code == 200
    assert required.json() == {"bed_id": "room-104-A", "required_gender": "female"}

    check = client.post(
        "/constraints/check",
        json={"bed_id": "room-101-B", "gender": "female"},
    )
    assert check.status_code == 200
    assert check.json()["compatible"] is False
    assert check.json()["existing_gender"] == "male"

    ranked = client.post("/recommendations/beds", json={"person_id": "res-6"})
    assert ranked.status_code == 200
    ranked_payload = ranked.json()
    assert sum(1 for item in ranked_payload if item["recommended"]) == 1
    assert "room-101-B" not in {item["bed_id"] for item in ranked_payload}
    assert all(item["label"] in {"Excellent", "Good", "Moderate", "Low"} for item in ranked_payload)

    moves = client.post("/recommendations/moves", json={})
    assert moves.status_code == 200
    assert {item["person_id"] for item in moves.json()} <= {"res-5", "res-6"}

    rejected = client.post("/assignments", json={"person_id": "res-6", "bed_id": "room-101-B"})
    assert rejected.status_code == 409

    accepted = client.post("/assignments", json={"person_id": "res-6", "bed_id": "room-104-A"})
    assert accepted.status_code == 200
    assert accepted.json()["constraints"]["compatible"] is True
    assert repository.get_resident("res-6")["bed_id"] == "room-104-A"

    census = client.get("/census")
    assert census.status_code == 200
    assert census.json()["occupied_beds"] == 5
    assert census.json()["female_occupied"] == 3

    released = client.delete("/assignments/res-6")
    assert released.status_code == 200
    assert released.json()["released_bed_id"] == "room-104-A"


def test_hypothetical_candidate_ranking(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post(
        "/recommendations/beds",
        json={"candidate": {"gender": "male", "is_isolation": True, "date_of_birth": "1941-01-01"}},
    )
    assert response.status_code == 200
    bed_ids = {item["bed_id"] for item in response.json()}
    assert {"room-201-B", "room-201-C"} <= bed_ids
    assert "room-101-B" not in bed_ids

    ambiguous = client.post(
        "/recommendations/beds",
        json={"person_id": "res-5", "candidate": {"gender": "male"}},
    )
    assert ambiguous.status_code == 400


def test_admit_then_move_and_census_by_wing(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    admitted = client.post(
        "/residents",
        json={"first_name": "Omar", "last_name": "Pike", "gender": "male", "diagnosis": "COPD"},
    )
    assert admitted.status_code == 201
    person_id = admitted.json()["person_id"]

    assert client.post("/moves", json={"person_id": person_id, "bed_id": "room-102-A"}).status_code == 200
    assert client.post("/moves", json={"person_id": person_id, "bed_id": "room-102-B"}).status_code == 200
    assert repository.get_bed_status("room-102-A") == "vacant"

    wings = client.get("/census/wings")
    assert wings.status_code == 200
    assert set(wings.json()) == {"wing-rehab", "wing-ltc"}

    rehab = client.get("/census", params={"wing_id": "wing-rehab"})
    assert rehab.json()["total_beds"] == 6


def test_bed_status_and_isolation_updates(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    out = client.put(
        "/beds/room-102-B/status",
        json={"status": "out_of_service", "reason": "Bed frame repair"},
    )
    assert out.status_code == 204
    assert repository.get_bed_status("room-102-B") == "out_of_service"

    occupied = client.put("/beds/room-101-A/status", json={"status": "out_of_service"})
    assert occupied.status_code == 409

    invalid = client.put("/beds/room-102-B/status", json={"status": "occupied"})
    assert invalid.status_code == 422

    missing = client.put("/beds/no-such-bed/status", json={"status": "vacant"})
    assert missing.status_code == 404

    isolate = client.put(
        "/residents/res-5/isolation",
        json={"is_isolation": True, "isolation_type": "contact"},
    )
    assert isolate.status_code == 204
    assert repository.get_resident("res-5")["is_isolation"] is True
    assert repository.get_resident("res-5")["isolation_type"] == "contact"

    unknown = client.put("/residents/nobody/isolation", json={"is_isolation": False})
    assert unknown.status_code == 404


def test_strict_commit_rejects_unconfirmed_checks(tmp_path) -> None:
    lenient_app, _ = _build_test_app(tmp_path)
    lenient = TestClient(lenient_app).post(
        "/assignments", json={"person_id": "res-5", "bed_id": "no-such-bed"}
    )
    assert lenient.status_code == 404

    strict_app, _ = _build_test_app(tmp_path / "strict", strict_commit=True)
    strict = TestClient(strict_app).post(
        "/assignments", json={"person_id": "res-5", "bed_id": "no-such-bed"}
    )
    assert strict.status_code == 409


def test_unknown_person_is_not_found(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.post("/recommendations/beds", json={"person_id": "ghost"}).status_code == 404
    assert client.post(
        "/assignments", json={"person_id": "ghost", "bed_id": "room-102-A"}
    ).status_code == 404
    assert client.delete("/assignments/ghost").status_code == 404


def test_discharge_releases_bed_and_leaves_snapshot(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/residents/res-1/discharge", json={"discharge_date": "2026-06-01"})
    assert response.status_code == 204
    assert repository.get_bed_status("room-101-A") == "vacant"
    resident = repository.get_resident("res-1")
    assert resident["status"] == "discharged"
    assert resident["discharge_date"] == "2026-06-01"

    census = client.get("/census").json()
    assert census["male_occupied"] == 1

    again = client.post("/residents/res-1/discharge", json={})
    assert again.status_code == 404


def test_move_recommendations_reject_placed_residents(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    placed = client.post("/recommendations/moves", json={"person_ids": ["res-5", "res-1"]})
    assert placed.status_code == 400

    unplaced = client.post("/recommendations/moves", json={"person_ids": ["res-5"]})
    assert unplaced.status_code == 200
    assert {item["person_id"] for item in unplaced.json()} <= {"res-5"}
