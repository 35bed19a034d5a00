"""Placement workflow: fresh snapshots in, checked single-entity writes out."""

from __future__ import annotations

from datetime import date
from threading import RLock
from typing import Any, Optional

from bedwise.domain.constraints import (
    EngineConfig,
    engine_config_from_settings,
    validate_engine_config,
)
from bedwise.domain.models import (
    CensusStats,
    CompatibilityScore,
    ConstraintResult,
    Gender,
    MoveRecommendation,
    OccupancySnapshot,
    Person,
)
from bedwise.repository.data_repository import (
    BedConflictError,
    DataRepository,
    RecordNotFoundError,
)
from bedwise.services.census_service import compute_census, compute_census_by_wing
from bedwise.services.constraint_service import check_constraint, required_gender
from bedwise.services.optimizer_service import optimize
from bedwise.services.ranking_service import rank_beds
from bedwise.services.snapshot_service import build_snapshot, candidate_from_payload
from bedwise.utils.config import Settings, get_settings
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)


class PlacementError(Exception):
    """Raised when a placement command is invalid."""


class PersonNotFoundError(PlacementError):
    """Raised when a person id is not an active resident."""


class BedNotFoundError(PlacementError):
    """Raised when a bed id is not in the facility."""


class PlacementConflictError(PlacementError):
    """Raised when the commit-time constraint re-check rejects a placement."""

    def __init__(self, message: str, result: Optional[ConstraintResult] = None) -> None:
        super().__init__(message)
        self.result = result


class PlacementService:
    """Runs engine operations on fresh snapshots and guards every write."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._config = config or engine_config_from_settings(self._settings)
        validate_engine_config(self._config)
        # Serializes check-then-write within one process; the conditional
        # repository write covers writers in other processes.
        self._write_lock = RLock()

    @property
    def config(self) -> EngineConfig:
        return self._config

    def snapshot(self, as_of: Optional[date] = None) -> OccupancySnapshot:
        rows = self._repository.export_snapshot_rows()
        return build_snapshot(
            rooms=rows["rooms"],
            beds=rows["beds"],
            persons=rows["persons"],
            as_of=as_of,
        )

    def _require_person(self, snapshot: OccupancySnapshot, person_id: str) -> Person:
        person = snapshot.get_person(person_id)
        if person is None:
            raise PersonNotFoundError(f"active resident {person_id} not found")
        return person

    def _require_bed(self, snapshot: OccupancySnapshot, bed_id: str) -> None:
        if snapshot.get_bed(bed_id) is None:
            raise BedNotFoundError(f"bed {bed_id} not found")

    # --- read side ---

    def check_bed(
        self,
        bed_id: str,
        gender: Gender,
        is_isolation: bool = False,
        person_id: Optional[str] = None,
    ) -> ConstraintResult:
        snapshot = self.snapshot()
        return check_constraint(
            snapshot,
            bed_id,
            gender,
            is_isolation,
            ignore_person_id=person_id,
        )

    def required_gender(self, bed_id: str) -> Optional[Gender]:
        snapshot = self.snapshot()
        self._require_bed(snapshot, bed_id)
        return required_gender(snapshot, bed_id)

    def recommend_beds(
        self,
        *,
        person_id: Optional[str] = None,
        candidate: Optional[dict[str, Any]] = None,
    ) -> list[CompatibilityScore]:
        """Rank vacant beds for an existing resident or a hypothetical one."""
        if (person_id is None) == (candidate is None):
            raise PlacementError("provide exactly one of person_id or candidate")
        snapshot = self.snapshot()
        if person_id is not None:
            person = self._require_person(snapshot, person_id)
        else:
            person = candidate_from_payload(candidate or {})
        return rank_beds(person, snapshot, self._config)

    def recommend_moves(self, person_ids: Optional[list[str]] = None) -> list[MoveRecommendation]:
        snapshot = self.snapshot()
        unplaced = None
        if person_ids is not None:
            unplaced = [self._require_person(snapshot, person_id) for person_id in person_ids]
            open_ids = {person.person_id for person in snapshot.unplaced_persons()}
            placed = [person.person_id for person in unplaced if person.person_id not in open_ids]
            if placed:
                raise PlacementError(f"residents already placed: {', '.join(placed)}")
        return optimize(snapshot, unplaced, self._config)

    def census(self, wing_id: Optional[str] = None) -> CensusStats:
        return compute_census(self.snapshot(), wing_id)

    def census_by_wing(self) -> dict[str, CensusStats]:
        return compute_census_by_wing(self.snapshot())

    # --- write side ---

    def admit(
        self,
        *,
        first_name: str,
        last_name: str,
        gender: Gender,
        date_of_birth: Optional[date] = None,
        diagnosis: Optional[str] = None,
        is_isolation: bool = False,
        isolation_type: Optional[str] = None,
    ) -> str:
        person_id = self._repository.create_resident(
            first_name,
            last_name,
            gender,
            date_of_birth=date_of_birth.isoformat() if date_of_birth else None,
            diagnosis=diagnosis,
            is_isolation=is_isolation,
            isolation_type=isolation_type,
        )
        logger.info("Resident admitted | person_id=%s", person_id)
        return person_id

    def _recheck(
        self, snapshot: OccupancySnapshot, person: Person, bed_id: str
    ) -> ConstraintResult:
        result = check_constraint(
            snapshot,
            bed_id,
            person.gender,
            person.is_isolation,
            ignore_person_id=person.person_id,
        )
        if not result.compatible:
            logger.info(
                "Placement rejected at commit | person_id=%s | bed_id=%s | reason=%s",
                person.person_id,
                bed_id,
                result.reason,
            )
            raise PlacementConflictError(result.reason or "placement is not allowed", result)
        if not result.confirmed:
            if self._settings.strict_commit:
                raise PlacementConflictError(
                    f"constraints for bed {bed_id} could not be confirmed", result
                )
            logger.warning(
                "Committing placement with unconfirmed constraints | person_id=%s | bed_id=%s",
                person.person_id,
                bed_id,
            )
        return result

    def assign(self, person_id: str, bed_id: str) -> ConstraintResult:
        """Place an unplaced resident after re-checking constraints."""
        with self._write_lock:
            snapshot = self.snapshot()
            person = self._require_person(snapshot, person_id)
            result = self._recheck(snapshot, person, bed_id)
            try:
                self._repository.assign_resident(bed_id, person_id)
            except RecordNotFoundError as exc:
                raise BedNotFoundError(str(exc)) from exc
        return result

    def move(self, person_id: str, bed_id: str) -> ConstraintResult:
        """Move a resident (placed or not) to a vacant bed after re-checking."""
        with self._write_lock:
            snapshot = self.snapshot()
            person = self._require_person(snapshot, person_id)
            result = self._recheck(snapshot, person, bed_id)
            try:
                self._repository.move_resident(person_id, bed_id)
            except RecordNotFoundError as exc:
                raise BedNotFoundError(str(exc)) from exc
        return result

    def unassign(self, person_id: str) -> Optional[str]:
        with self._write_lock:
            try:
                return self._repository.unassign_resident(person_id)
            except RecordNotFoundError as exc:
                raise PersonNotFoundError(str(exc)) from exc

    def discharge(self, person_id: str, discharge_date: Optional[date] = None) -> None:
        with self._write_lock:
            try:
                self._repository.discharge_resident(
                    person_id,
                    discharge_date.isoformat() if discharge_date else None,
                )
            except RecordNotFoundError as exc:
                raise PersonNotFoundError(str(exc)) from exc

    def set_bed_status(self, bed_id: str, status: str, reason: Optional[str] = None) -> None:
        if status not in {"vacant", "out_of_service"}:
            raise PlacementError("bed status can only be set to vacant or out_of_service")
        with self._write_lock:
            try:
                self._repository.set_bed_status(bed_id, status, reason)
            except RecordNotFoundError as exc:
                raise BedNotFoundError(str(exc)) from exc
        logger.info("Bed status changed | bed_id=%s | status=%s", bed_id, status)

    def set_isolation(
        self,
        person_id: str,
        is_isolation: bool,
        isolation_type: Optional[str] = None,
    ) -> None:
        with self._write_lock:
            try:
                self._repository.set_isolation(person_id, is_isolation, isolation_type)
            except RecordNotFoundError as exc:
                raise PersonNotFoundError(str(exc)) from exc
        logger.info(
            "Isolation updated | person_id=%s | is_isolation=%s | type=%s",
            person_id,
            is_isolation,
            isolation_type,
        )


__all__ = [
    "BedConflictError",
    "BedNotFoundError",
    "PersonNotFoundError",
    "PlacementConflictError",
    "PlacementError",
    "PlacementService",
]
