"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from bedwise.utils.config import Settings, get_settings
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(Exception):
    """Base persistence failure."""


class RecordNotFoundError(RepositoryError):
    """Raised when a bed or resident id does not exist."""


class BedConflictError(RepositoryError):
    """Raised when a conditional write loses to a concurrent change."""


_DEMO_WINGS = [
    ("wing-rehab", "Rehabilitation", "rehab", 1),
    ("wing-ltc", "Long Term Care", "long_term", 2),
]

# (room id, wing id, room number, has shared bathroom, bathroom group, bed labels)
_DEMO_ROOMS = [
    ("room-101", "wing-rehab", "101", 0, None, ("A", "B")),
    ("room-102", "wing-rehab", "102", 0, None, ("A", "B")),
    ("room-103", "wing-rehab", "103", 1, "bath-103-104", ("A",)),
    ("room-104", "wing-rehab", "104", 1, "bath-103-104", ("A",)),
    ("room-201", "wing-ltc", "201", 0, None, ("A", "B", "C")),
    ("room-202", "wing-ltc", "202", 0, None, ("A", "B")),
]

# (resident id, first, last, gender, dob, diagnosis, isolation, isolation type, bed id)
_DEMO_RESIDENTS = [
    ("res-1", "John", "Smith", "male", "1945-03-15", "Hip Replacement", 0, None, "room-101-A"),
    ("res-2", "Mary", "Johnson", "female", "1950-07-22", "CHF", 0, None, "room-103-A"),
    ("res-3", "Robert", "Williams", "male", "1940-11-08", "COPD", 1, "droplet", "room-201-A"),
    ("res-4", "Patricia", "Brown", "female", "1948-01-30", "Alzheimer's Disease", 0, None, "room-202-A"),
    ("res-5", "Michael", "Jones", "male", "1952-09-12", "Diabetes Type 2", 0, None, None),
    ("res-6", "Linda", "Davis", "female", "1947-05-02", "Knee Replacement", 0, None, None),
]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DataRepository:
    """Encapsulates SQLite access so the placement engine stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Wings (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        wing_type TEXT NOT NULL DEFAULT 'long_term',
                        display_order INTEGER NOT NULL DEFAULT 0
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        wing_id TEXT,
                        room_number TEXT NOT NULL,
                        has_shared_bathroom INTEGER NOT NULL DEFAULT 0
                            CHECK (has_shared_bathroom IN (0,1)),
                        shared_bathroom_group_id TEXT,
                        FOREIGN KEY (wing_id) REFERENCES Wings(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Beds (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        bed_label TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'vacant'
                            CHECK (status IN ('vacant', 'occupied', 'out_of_service')),
                        out_of_service_reason TEXT,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Residents (
                        id TEXT PRIMARY KEY,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        gender TEXT NOT NULL CHECK (gender IN ('male', 'female', 'other')),
                        date_of_birth TEXT,
                        diagnosis TEXT,
                        is_isolation INTEGER NOT NULL DEFAULT 0 CHECK (is_isolation IN (0,1)),
                        isolation_type TEXT,
                        status TEXT NOT NULL DEFAULT 'active',
                        bed_id TEXT,
                        admission_date TEXT,
                        discharge_date TEXT,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (bed_id) REFERENCES Beds(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_beds_room
                    ON Beds(room_id);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_residents_bed_status
                    ON Residents(bed_id, status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed a small demo facility only when no rooms exist."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                cursor.executemany(
                    """
                    INSERT INTO Wings (id, name, wing_type, display_order)
                    VALUES (?, ?, ?, ?);
                    """,
                    _DEMO_WINGS,
                )
                occupied_beds = {row[8] for row in _DEMO_RESIDENTS if row[8] is not None}
                bed_entries = []
                for room_id, wing_id, number, shared, group_id, labels in _DEMO_ROOMS:
                    cursor.execute(
                        """
                        INSERT INTO Rooms (
                            id, wing_id, room_number, has_shared_bathroom, shared_bathroom_group_id
                        )
                        VALUES (?, ?, ?, ?, ?);
                        """,
                        (room_id, wing_id, number, shared, group_id),
                    )
                    for label in labels:
                        bed_id = f"{room_id}-{label}"
                        status = "occupied" if bed_id in occupied_beds else "vacant"
                        bed_entries.append((bed_id, room_id, label, status))

                cursor.executemany(
                    """
                    INSERT INTO Beds (id, room_id, bed_label, status)
                    VALUES (?, ?, ?, ?);
                    """,
                    bed_entries,
                )
                today = date.today().isoformat()
                cursor.executemany(
                    """
                    INSERT INTO Residents (
                        id, first_name, last_name, gender, date_of_birth, diagnosis,
                        is_isolation, isolation_type, bed_id, admission_date
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [row + (today,) for row in _DEMO_RESIDENTS],
                )
                conn.commit()
            logger.info(
                "Demo seed completed | rooms=%s | beds=%s | residents=%s",
                len(_DEMO_ROOMS),
                len(bed_entries),
                len(_DEMO_RESIDENTS),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def create_resident(
        self,
        first_name: str,
        last_name: str,
        gender: str,
        *,
        date_of_birth: Optional[str] = None,
        diagnosis: Optional[str] = None,
        is_isolation: bool = False,
        isolation_type: Optional[str] = None,
    ) -> str:
        """Admit a resident without a bed; placement is a separate command."""
        resident_id = uuid4().hex
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Residents (
                    id, first_name, last_name, gender, date_of_birth, diagnosis,
                    is_isolation, isolation_type, admission_date
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    resident_id,
                    first_name,
                    last_name,
                    gender,
                    date_of_birth,
                    diagnosis,
                    1 if is_isolation else 0,
                    isolation_type,
                    date.today().isoformat(),
                ),
            )
        return resident_id

    def export_snapshot_rows(self) -> dict[str, list[dict[str, Any]]]:
        """Return raw room, bed and active resident rows for snapshot ingestion."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    r.id,
                    r.room_number,
                    r.wing_id,
                    COALESCE(w.name, '') AS wing_name,
                    r.has_shared_bathroom,
                    r.shared_bathroom_group_id
                FROM Rooms AS r
                LEFT JOIN Wings AS w ON w.id = r.wing_id
                ORDER BY COALESCE(w.display_order, 0) ASC, r.room_number ASC;
                """
            )
            rooms = [
                {
                    "id": str(row["id"]),
                    "room_number": str(row["room_number"]),
                    "wing_id": row["wing_id"],
                    "wing_name": str(row["wing_name"]),
                    "has_shared_bathroom": bool(row["has_shared_bathroom"]),
                    "shared_bathroom_group_id": row["shared_bathroom_group_id"],
                }
                for row in cursor.fetchall()
            ]

            cursor.execute(
                """
                SELECT id, room_id, bed_label, status, out_of_service_reason
                FROM Beds
                ORDER BY room_id ASC, bed_label ASC;
                """
            )
            beds = [dict(row) for row in cursor.fetchall()]

            cursor.execute(
                """
                SELECT
                    id, first_name, last_name, gender, date_of_birth, diagnosis,
                    is_isolation, isolation_type, status, bed_id
                FROM Residents
                WHERE status = 'active'
                ORDER BY last_name ASC, first_name ASC, id ASC;
                """
            )
            persons = [
                {**dict(row), "is_isolation": bool(row["is_isolation"])}
                for row in cursor.fetchall()
            ]
        return {"rooms": rooms, "beds": beds, "persons": persons}

    def get_resident(self, resident_id: str) -> Optional[dict[str, Any]]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Residents WHERE id = ?;", (resident_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return {**dict(row), "is_isolation": bool(row["is_isolation"])}

    def get_bed_status(self, bed_id: str) -> Optional[str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT status FROM Beds WHERE id = ?;", (bed_id,))
            row = cursor.fetchone()
            return None if row is None else str(row["status"])

    def _claim_vacant_bed(self, cursor: sqlite3.Cursor, bed_id: str) -> None:
        cursor.execute(
            """
            UPDATE Beds
            SET status = 'occupied', updated_at = ?
            WHERE id = ? AND status = 'vacant';
            """,
            (_utc_now(), bed_id),
        )
        if cursor.rowcount == 1:
            return
        cursor.execute("SELECT status FROM Beds WHERE id = ?;", (bed_id,))
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"bed {bed_id} not found")
        raise BedConflictError(f"bed {bed_id} is no longer vacant (status={row['status']})")

    def _release_bed(self, cursor: sqlite3.Cursor, bed_id: str) -> None:
        cursor.execute(
            """
            UPDATE Beds
            SET status = 'vacant', updated_at = ?
            WHERE id = ? AND status = 'occupied';
            """,
            (_utc_now(), bed_id),
        )

    def _active_resident_bed(self, cursor: sqlite3.Cursor, resident_id: str) -> Optional[str]:
        cursor.execute(
            "SELECT bed_id, status FROM Residents WHERE id = ?;",
            (resident_id,),
        )
        row = cursor.fetchone()
        if row is None or row["status"] != "active":
            raise RecordNotFoundError(f"active resident {resident_id} not found")
        return row["bed_id"]

    def assign_resident(self, bed_id: str, resident_id: str) -> None:
        """Place an unplaced resident on a vacant bed in one transaction.

        The bed update is conditional on the bed still being vacant, so the
        first of two racing assignments wins and the other raises.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            current_bed = self._active_resident_bed(cursor, resident_id)
            if current_bed is not None:
                raise BedConflictError(
                    f"resident {resident_id} already occupies bed {current_bed}"
                )
            self._claim_vacant_bed(cursor, bed_id)
            cursor.execute(
                "UPDATE Residents SET bed_id = ?, updated_at = ? WHERE id = ?;",
                (bed_id, _utc_now(), resident_id),
            )
        logger.info("Resident assigned | resident_id=%s | bed_id=%s", resident_id, bed_id)

    def move_resident(self, resident_id: str, target_bed_id: str) -> Optional[str]:
        """Move a resident to a vacant bed; returns the bed they left."""
        with self._connect() as conn:
            cursor = conn.cursor()
            source_bed = self._active_resident_bed(cursor, resident_id)
            if source_bed == target_bed_id:
                raise BedConflictError(f"resident {resident_id} already occupies bed {target_bed_id}")
            self._claim_vacant_bed(cursor, target_bed_id)
            if source_bed is not None:
                self._release_bed(cursor, source_bed)
            cursor.execute(
                "UPDATE Residents SET bed_id = ?, updated_at = ? WHERE id = ?;",
                (target_bed_id, _utc_now(), resident_id),
            )
        logger.info(
            "Resident moved | resident_id=%s | from_bed=%s | to_bed=%s",
            resident_id,
            source_bed,
            target_bed_id,
        )
        return source_bed

    def unassign_resident(self, resident_id: str) -> Optional[str]:
        """Remove a resident from their bed; returns the bed released."""
        with self._connect() as conn:
            cursor = conn.cursor()
            bed_id = self._active_resident_bed(cursor, resident_id)
            if bed_id is None:
                return None
            self._release_bed(cursor, bed_id)
            cursor.execute(
                "UPDATE Residents SET bed_id = NULL, updated_at = ? WHERE id = ?;",
                (_utc_now(), resident_id),
            )
        logger.info("Resident unassigned | resident_id=%s | bed_id=%s", resident_id, bed_id)
        return bed_id

    def discharge_resident(self, resident_id: str, discharge_date: Optional[str] = None) -> None:
        """Soft-delete a resident through status, releasing any bed."""
        with self._connect() as conn:
            cursor = conn.cursor()
            bed_id = self._active_resident_bed(cursor, resident_id)
            if bed_id is not None:
                self._release_bed(cursor, bed_id)
            cursor.execute(
                """
                UPDATE Residents
                SET status = 'discharged', bed_id = NULL, discharge_date = ?, updated_at = ?
                WHERE id = ?;
                """,
                (discharge_date or date.today().isoformat(), _utc_now(), resident_id),
            )
        logger.info("Resident discharged | resident_id=%s", resident_id)

    def set_bed_status(self, bed_id: str, status: str, reason: Optional[str] = None) -> None:
        """Toggle a bed between vacant and out of service.

        Occupancy is changed only through assign/move/unassign, so a bed with
        an occupant cannot be re-statused here.
        """
        if status not in {"vacant", "out_of_service"}:
            raise ValueError("status must be 'vacant' or 'out_of_service'")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Beds
                SET status = ?, out_of_service_reason = ?, updated_at = ?
                WHERE id = ? AND status != 'occupied';
                """,
                (status, reason if status == "out_of_service" else None, _utc_now(), bed_id),
            )
            if cursor.rowcount == 1:
                return
            cursor.execute("SELECT status FROM Beds WHERE id = ?;", (bed_id,))
            row = cursor.fetchone()
            if row is None:
                raise RecordNotFoundError(f"bed {bed_id} not found")
            raise BedConflictError(f"bed {bed_id} is occupied; unassign the resident first")

    def set_isolation(
        self,
        resident_id: str,
        is_isolation: bool,
        isolation_type: Optional[str] = None,
    ) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Residents
                SET is_isolation = ?, isolation_type = ?, updated_at = ?
                WHERE id = ? AND status = 'active';
                """,
                (
                    1 if is_isolation else 0,
                    isolation_type if is_isolation else None,
                    _utc_now(),
                    resident_id,
                ),
            )
            if cursor.rowcount != 1:
                raise RecordNotFoundError(f"active resident {resident_id} not found")
