"""HTTP controller layer for bed constraints, recommendations and placements."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from bedwise.controllers.dependencies import get_placement_service
from bedwise.domain.models import (
    CensusStats,
    CompatibilityScore,
    ConstraintResult,
    Gender,
    IsolationType,
    MoveRecommendation,
)
from bedwise.services.placement_service import (
    BedConflictError,
    BedNotFoundError,
    PersonNotFoundError,
    PlacementConflictError,
    PlacementError,
    PlacementService,
)
from bedwise.services.scoring_service import compatibility_label
from bedwise.services.snapshot_service import SnapshotValidationError
from bedwise.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["placement"])


class ConstraintCheckRequest(BaseModel):
    bed_id: str = Field(min_length=1)
    gender: Gender
    is_isolation: bool = False
    person_id: Optional[str] = None


class ConstraintCheckResponse(BaseModel):
    compatible: bool
    reason: Optional[str] = None
    existing_gender: Optional[Gender] = None
    room_bed_count: Optional[int] = None
    shared_bathroom_rooms: list[str] = Field(default_factory=list)
    isolation_conflict: bool = False
    confirmed: bool = True


class RequiredGenderResponse(BaseModel):
    bed_id: str
    required_gender: Optional[Gender] = None


class CandidateRequest(BaseModel):
    """A not-yet-admitted resident described only by placement attributes."""

    first_name: str = ""
    last_name: str = ""
    gender: Gender
    date_of_birth: Optional[date] = None
    diagnosis: Optional[str] = None
    is_isolation: bool = False
    isolation_type: Optional[IsolationType] = None


class BedRecommendationRequest(BaseModel):
    person_id: Optional[str] = None
    candidate: Optional[CandidateRequest] = None


class BedInfoResponse(BaseModel):
    room_number: str
    bed_label: str
    wing_name: str


class RoommateResponse(BaseModel):
    person_id: str
    name: str
    age: Optional[int] = None
    diagnosis: Optional[str] = None


class BedScoreResponse(BaseModel):
    bed_id: str
    total_score: int = Field(ge=0, le=100)
    age_score: int = Field(ge=0, le=100)
    diagnosis_score: int = Field(ge=0, le=100)
    flexibility_score: int = Field(ge=0, le=100)
    label: str
    label_color: str
    bed_info: BedInfoResponse
    roommate: Optional[RoommateResponse] = None
    warnings: list[str] = Field(default_factory=list)
    recommended: bool = False


class MoveRecommendationRequest(BaseModel):
    person_ids: Optional[list[str]] = None


class PairCompatibilityResponse(BaseModel):
    age_score: int
    diagnosis_score: int
    composite: float
    conflict: Optional[str] = None


class MoveRecommendationResponse(BaseModel):
    kind: str
    person_id: str
    person_name: str
    current_bed_id: Optional[str] = None
    current_bed: Optional[str] = None
    target_bed_id: str
    target_bed: str
    reason: str
    impact: int = Field(ge=0)
    compatibility: Optional[PairCompatibilityResponse] = None


class CensusResponse(BaseModel):
    total_beds: int = Field(ge=0)
    occupied_beds: int = Field(ge=0)
    vacant_beds: int = Field(ge=0)
    out_of_service_beds: int = Field(ge=0)
    male_occupied: int = Field(ge=0)
    female_occupied: int = Field(ge=0)
    isolation_count: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0.0, le=100.0)


class AdmitResidentRequest(CandidateRequest):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class AdmitResidentResponse(BaseModel):
    person_id: str


class PlacementRequest(BaseModel):
    person_id: str = Field(min_length=1)
    bed_id: str = Field(min_length=1)


class PlacementResponse(BaseModel):
    person_id: str
    bed_id: str
    constraints: ConstraintCheckResponse


class UnassignResponse(BaseModel):
    person_id: str
    released_bed_id: Optional[str] = None


class BedStatusRequest(BaseModel):
    status: str
    reason: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        if value not in {"vacant", "out_of_service"}:
            raise ValueError("status must be 'vacant' or 'out_of_service'")
        return value


class IsolationRequest(BaseModel):
    is_isolation: bool
    isolation_type: Optional[IsolationType] = None


class DischargeRequest(BaseModel):
    discharge_date: Optional[date] = None


def _constraint_response(result: ConstraintResult) -> ConstraintCheckResponse:
    return ConstraintCheckResponse(
        compatible=result.compatible,
        reason=result.reason,
        existing_gender=result.existing_gender,
        room_bed_count=result.room_bed_count,
        shared_bathroom_rooms=list(result.shared_bathroom_rooms),
        isolation_conflict=result.isolation_conflict,
        confirmed=result.confirmed,
    )


def _score_response(item: CompatibilityScore) -> BedScoreResponse:
    label = compatibility_label(item.total_score)
    return BedScoreResponse(
        bed_id=item.bed_id,
        total_score=item.total_score,
        age_score=item.age_score,
        diagnosis_score=item.diagnosis_score,
        flexibility_score=item.flexibility_score,
        label=label.label,
        label_color=label.color,
        bed_info=BedInfoResponse(
            room_number=item.bed_info.room_number,
            bed_label=item.bed_info.bed_label,
            wing_name=item.bed_info.wing_name,
        ),
        roommate=(
            RoommateResponse(
                person_id=item.roommate.person_id,
                name=item.roommate.name,
                age=item.roommate.age,
                diagnosis=item.roommate.diagnosis,
            )
            if item.roommate is not None
            else None
        ),
        warnings=list(item.warnings),
        recommended=item.recommended,
    )


def _move_response(item: MoveRecommendation) -> MoveRecommendationResponse:
    pair = item.compatibility
    return MoveRecommendationResponse(
        kind=item.kind,
        person_id=item.person_id,
        person_name=item.person_name,
        current_bed_id=item.current_bed_id,
        current_bed=item.current_bed,
        target_bed_id=item.target_bed_id,
        target_bed=item.target_bed,
        reason=item.reason,
        impact=item.impact,
        compatibility=(
            PairCompatibilityResponse(
                age_score=pair.age_score,
                diagnosis_score=pair.diagnosis_score,
                composite=pair.composite,
                conflict=pair.conflict,
            )
            if pair is not None
            else None
        ),
    )


def _census_response(stats: CensusStats) -> CensusResponse:
    return CensusResponse(
        total_beds=stats.total_beds,
        occupied_beds=stats.occupied_beds,
        vacant_beds=stats.vacant_beds,
        out_of_service_beds=stats.out_of_service_beds,
        male_occupied=stats.male_occupied,
        female_occupied=stats.female_occupied,
        isolation_count=stats.isolation_count,
        occupancy_rate=stats.occupancy_rate,
    )


def _raise_http(exc: Exception, failure_detail: str) -> None:
    """Translate domain exceptions to HTTP errors; anything else is a 500."""
    if isinstance(exc, (PersonNotFoundError, BedNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (PlacementConflictError, BedConflictError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, (PlacementError, SnapshotValidationError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.exception(failure_detail)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=failure_detail,
    ) from exc


@router.post(
    "/constraints/check",
    response_model=ConstraintCheckResponse,
    status_code=status.HTTP_200_OK,
)
async def check_constraints(
    payload: ConstraintCheckRequest,
    service: PlacementService = Depends(get_placement_service),
) -> ConstraintCheckResponse:
    """Advisory legality check; callers re-validate at commit time."""
    try:
        result = service.check_bed(
            payload.bed_id,
            payload.gender,
            payload.is_isolation,
            person_id=payload.person_id,
        )
        return _constraint_response(result)
    except Exception as exc:
        _raise_http(exc, "Failed to check bed constraints")


@router.get(
    "/beds/{bed_id}/required_gender",
    response_model=RequiredGenderResponse,
    status_code=status.HTTP_200_OK,
)
async def get_required_gender(
    bed_id: str,
    service: PlacementService = Depends(get_placement_service),
) -> RequiredGenderResponse:
    try:
        return RequiredGenderResponse(bed_id=bed_id, required_gender=service.required_gender(bed_id))
    except Exception as exc:
        _raise_http(exc, "Failed to resolve required gender")


@router.post(
    "/recommendations/beds",
    response_model=list[BedScoreResponse],
    status_code=status.HTTP_200_OK,
)
async def recommend_beds(
    payload: BedRecommendationRequest,
    service: PlacementService = Depends(get_placement_service),
) -> list[BedScoreResponse]:
    """Rank legal vacant beds for a resident or a prospective admission."""
    try:
        scores = service.recommend_beds(
            person_id=payload.person_id,
            candidate=(
                payload.candidate.model_dump(mode="json")
                if payload.candidate is not None
                else None
            ),
        )
        return [_score_response(item) for item in scores]
    except Exception as exc:
        _raise_http(exc, "Failed to rank beds")


@router.post(
    "/recommendations/moves",
    response_model=list[MoveRecommendationResponse],
    status_code=status.HTTP_200_OK,
)
async def recommend_moves(
    payload: MoveRecommendationRequest,
    service: PlacementService = Depends(get_placement_service),
) -> list[MoveRecommendationResponse]:
    try:
        moves = service.recommend_moves(payload.person_ids)
        return [_move_response(item) for item in moves]
    except Exception as exc:
        _raise_http(exc, "Failed to optimize occupancy")


@router.get(
    "/census",
    response_model=CensusResponse,
    status_code=status.HTTP_200_OK,
)
async def get_census(
    wing_id: Optional[str] = Query(default=None),
    service: PlacementService = Depends(get_placement_service),
) -> CensusResponse:
    try:
        return _census_response(service.census(wing_id))
    except Exception as exc:
        _raise_http(exc, "Failed to compute census")


@router.get(
    "/census/wings",
    response_model=dict[str, CensusResponse],
    status_code=status.HTTP_200_OK,
)
async def get_census_by_wing(
    service: PlacementService = Depends(get_placement_service),
) -> dict[str, CensusResponse]:
    try:
        return {
            wing_id: _census_response(stats)
            for wing_id, stats in service.census_by_wing().items()
        }
    except Exception as exc:
        _raise_http(exc, "Failed to compute census")


@router.post(
    "/residents",
    response_model=AdmitResidentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def admit_resident(
    payload: AdmitResidentRequest,
    service: PlacementService = Depends(get_placement_service),
) -> AdmitResidentResponse:
    try:
        person_id = service.admit(
            first_name=payload.first_name,
            last_name=payload.last_name,
            gender=payload.gender,
            date_of_birth=payload.date_of_birth,
            diagnosis=payload.diagnosis,
            is_isolation=payload.is_isolation,
            isolation_type=payload.isolation_type,
        )
        return AdmitResidentResponse(person_id=person_id)
    except Exception as exc:
        _raise_http(exc, "Failed to admit resident")


@router.post(
    "/assignments",
    response_model=PlacementResponse,
    status_code=status.HTTP_200_OK,
)
async def assign_bed(
    payload: PlacementRequest,
    service: PlacementService = Depends(get_placement_service),
) -> PlacementResponse:
    """Commit a placement after re-checking constraints on a fresh snapshot."""
    try:
        result = service.assign(payload.person_id, payload.bed_id)
        return PlacementResponse(
            person_id=payload.person_id,
            bed_id=payload.bed_id,
            constraints=_constraint_response(result),
        )
    except Exception as exc:
        _raise_http(exc, "Failed to assign bed")


@router.post(
    "/moves",
    response_model=PlacementResponse,
    status_code=status.HTTP_200_OK,
)
async def move_resident(
    payload: PlacementRequest,
    service: PlacementService = Depends(get_placement_service),
) -> PlacementResponse:
    try:
        result = service.move(payload.person_id, payload.bed_id)
        return PlacementResponse(
            person_id=payload.person_id,
            bed_id=payload.bed_id,
            constraints=_constraint_response(result),
        )
    except Exception as exc:
        _raise_http(exc, "Failed to move resident")


@router.delete(
    "/assignments/{person_id}",
    response_model=UnassignResponse,
    status_code=status.HTTP_200_OK,
)
async def unassign_bed(
    person_id: str,
    service: PlacementService = Depends(get_placement_service),
) -> UnassignResponse:
    try:
        released = service.unassign(person_id)
        return UnassignResponse(person_id=person_id, released_bed_id=released)
    except Exception as exc:
        _raise_http(exc, "Failed to unassign resident")


@router.put(
    "/beds/{bed_id}/status",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def update_bed_status(
    bed_id: str,
    payload: BedStatusRequest,
    service: PlacementService = Depends(get_placement_service),
) -> None:
    try:
        service.set_bed_status(bed_id, payload.status, payload.reason)
    except Exception as exc:
        _raise_http(exc, "Failed to update bed status")


@router.put(
    "/residents/{person_id}/isolation",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def update_isolation(
    person_id: str,
    payload: IsolationRequest,
    service: PlacementService = Depends(get_placement_service),
) -> None:
    try:
        service.set_isolation(person_id, payload.is_isolation, payload.isolation_type)
    except Exception as exc:
        _raise_http(exc, "Failed to update isolation status")


@router.post(
    "/residents/{person_id}/discharge",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def discharge_resident(
    person_id: str,
    payload: DischargeRequest,
    service: PlacementService = Depends(get_placement_service),
) -> None:
    """Discharge releases the bed; the resident record is kept."""
    try:
        service.discharge(person_id, payload.discharge_date)
    except Exception as exc:
        _raise_http(exc, "Failed to discharge resident")
