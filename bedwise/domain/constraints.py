"""Engine tunables and their validation rules."""

from __future__ import annotations

import math
from dataclasses import dataclass

from bedwise.utils.config import Settings


@dataclass(frozen=True)
class EngineConfig:
    ranking_age_weight: float = 0.30
    ranking_diagnosis_weight: float = 0.40
    ranking_flexibility_weight: float = 0.30
    roommate_age_weight: float = 0.4
    roommate_diagnosis_weight: float = 0.6
    consolidation_min_composite: float = 30.0
    consolidation_enabled: bool = True
    direct_placements_enabled: bool = True


def engine_config_from_settings(settings: Settings) -> EngineConfig:
    return EngineConfig(
        ranking_age_weight=settings.ranking_age_weight,
        ranking_diagnosis_weight=settings.ranking_diagnosis_weight,
        ranking_flexibility_weight=settings.ranking_flexibility_weight,
        roommate_age_weight=settings.roommate_age_weight,
        roommate_diagnosis_weight=settings.roommate_diagnosis_weight,
        consolidation_min_composite=settings.consolidation_min_composite,
        consolidation_enabled=settings.optimizer_consolidation_enabled,
        direct_placements_enabled=settings.optimizer_direct_placements_enabled,
    )


def _weights_sum_to_one(*weights: float) -> bool:
    return math.isclose(sum(weights), 1.0, abs_tol=1e-9)


def validate_engine_config(config: EngineConfig) -> None:
    ranking_weights = (
        config.ranking_age_weight,
        config.ranking_diagnosis_weight,
        config.ranking_flexibility_weight,
    )
    roommate_weights = (config.roommate_age_weight, config.roommate_diagnosis_weight)
    if any(weight < 0.0 for weight in ranking_weights):
        raise ValueError("ranking weights must be >= 0")
    if not _weights_sum_to_one(*ranking_weights):
        raise ValueError("ranking weights must sum to 1")
    if any(weight < 0.0 for weight in roommate_weights):
        raise ValueError("roommate weights must be >= 0")
    if not _weights_sum_to_one(*roommate_weights):
        raise ValueError("roommate weights must sum to 1")
    if not 0.0 <= config.consolidation_min_composite <= 100.0:
        raise ValueError("consolidation_min_composite must be between 0 and 100")
