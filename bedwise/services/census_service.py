"""Bed census figures derived from an occupancy snapshot."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from bedwise.domain.models import CensusStats, OccupancySnapshot


_FRAME_COLUMNS = ["bed_id", "wing_id", "wing_name", "status", "gender", "is_isolation"]


def build_bed_frame(snapshot: OccupancySnapshot) -> pd.DataFrame:
    """One row per bed with its wing and (if occupied) occupant attributes."""
    rows = []
    for room in snapshot.rooms:
        for bed in snapshot.beds_in_room(room):
            occupant = snapshot.occupant_of(bed.bed_id)
            rows.append(
                {
                    "bed_id": bed.bed_id,
                    "wing_id": room.wing_id or "",
                    "wing_name": room.wing_name,
                    "status": bed.status,
                    "gender": occupant.gender if occupant is not None else None,
                    "is_isolation": bool(occupant is not None and occupant.is_isolation),
                }
            )
    return pd.DataFrame(rows, columns=_FRAME_COLUMNS)


def _stats_from_frame(frame: pd.DataFrame) -> CensusStats:
    total = int(len(frame))
    status_counts = frame["status"].value_counts()
    occupied = int(status_counts.get("occupied", 0))
    vacant = int(status_counts.get("vacant", 0))
    out_of_service = int(status_counts.get("out_of_service", 0))
    occupied_frame = frame[frame["status"] == "occupied"]
    gender_counts = occupied_frame["gender"].value_counts()

    in_service = total - out_of_service
    occupancy_rate = (occupied / in_service) * 100.0 if in_service > 0 else 0.0

    return CensusStats(
        total_beds=total,
        occupied_beds=occupied,
        vacant_beds=vacant,
        out_of_service_beds=out_of_service,
        male_occupied=int(gender_counts.get("male", 0)),
        female_occupied=int(gender_counts.get("female", 0)),
        isolation_count=int(occupied_frame["is_isolation"].sum()),
        occupancy_rate=round(occupancy_rate, 1),
    )


def compute_census(snapshot: OccupancySnapshot, wing_id: Optional[str] = None) -> CensusStats:
    """Census for the whole facility or a single wing.

    Occupancy rate is occupied over in-service beds, as a percentage.
    Isolation counts only residents actually placed on a bed.
    """
    frame = build_bed_frame(snapshot)
    if wing_id is not None:
        frame = frame[frame["wing_id"] == wing_id]
    return _stats_from_frame(frame)


def compute_census_by_wing(snapshot: OccupancySnapshot) -> dict[str, CensusStats]:
    frame = build_bed_frame(snapshot)
    return {
        str(wing_id): _stats_from_frame(wing_frame)
        for wing_id, wing_frame in frame.groupby("wing_id", sort=True)
    }
