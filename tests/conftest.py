from __future__ import annotations

from datetime import date
from typing import Any, Optional

import pytest

from bedwise.domain.models import OccupancySnapshot
from bedwise.services.snapshot_service import build_snapshot


AS_OF = date(2026, 6, 1)


class FacilityBuilder:
    """Builds raw rows for a small facility; bed ids read like '101A'."""

    def __init__(self) -> None:
        self.rooms: list[dict[str, Any]] = []
        self.beds: list[dict[str, Any]] = []
        self.persons: list[dict[str, Any]] = []

    def add_room(
        self,
        number: str,
        labels: tuple[str, ...] = ("A", "B"),
        *,
        bathroom_group: Optional[str] = None,
        wing: str = "West",
        out_of_service: tuple[str, ...] = (),
    ) -> "FacilityBuilder":
        room_id = f"room-{number}"
        self.rooms.append(
            {
                "id": room_id,
                "room_number": number,
                "wing_id": f"wing-{wing.lower()}",
                "wing_name": wing,
                "has_shared_bathroom": bathroom_group is not None,
                "shared_bathroom_group_id": bathroom_group,
            }
        )
        for label in labels:
            self.beds.append(
                {
                    "id": f"{number}{label}",
                    "room_id": room_id,
                    "bed_label": label,
                    "status": "out_of_service" if label in out_of_service else "vacant",
                }
            )
        return self

    def _person(self, person_id: str, gender: str, **fields: Any) -> dict[str, Any]:
        row = {
            "id": person_id,
            "first_name": fields.pop("first_name", person_id.title()),
            "last_name": fields.pop("last_name", "Test"),
            "gender": gender,
            "date_of_birth": fields.pop("date_of_birth", None),
            "diagnosis": fields.pop("diagnosis", None),
            "is_isolation": fields.pop("is_isolation", False),
            "bed_id": None,
        }
        row.update(fields)
        return row

    def place(self, bed_id: str, person_id: str, gender: str, **fields: Any) -> "FacilityBuilder":
        row = self._person(person_id, gender, **fields)
        row["bed_id"] = bed_id
        self.persons.append(row)
        for bed in self.beds:
            if bed["id"] == bed_id:
                bed["status"] = "occupied"
        return self

    def admit(self, person_id: str, gender: str, **fields: Any) -> "FacilityBuilder":
        self.persons.append(self._person(person_id, gender, **fields))
        return self

    def build(self, as_of: date = AS_OF) -> OccupancySnapshot:
        return build_snapshot(
            rooms=self.rooms,
            beds=self.beds,
            persons=self.persons,
            as_of=as_of,
        )


@pytest.fixture
def facility() -> FacilityBuilder:
    return FacilityBuilder()
