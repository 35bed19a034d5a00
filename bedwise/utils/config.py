"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str = "Bedwise Placement Engine"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/bedwise.db")
    seed_demo_data: bool = True

    # Commit-time re-check: reject fail-open (unconfirmed) constraint results.
    strict_commit: bool = False

    ranking_age_weight: float = 0.30
    ranking_diagnosis_weight: float = 0.40
    ranking_flexibility_weight: float = 0.30
    roommate_age_weight: float = 0.4
    roommate_diagnosis_weight: float = 0.6
    consolidation_min_composite: float = 30.0
    optimizer_consolidation_enabled: bool = True
    optimizer_direct_placements_enabled: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; tests clear the cache to re-read."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("BEDWISE_APP_NAME", defaults.app_name),
        app_version=os.getenv("BEDWISE_APP_VERSION", defaults.app_version),
        log_level=os.getenv("BEDWISE_LOG_LEVEL", defaults.log_level),
        database_path=Path(os.getenv("BEDWISE_DATABASE_PATH", str(defaults.database_path))),
        seed_demo_data=_env_bool("BEDWISE_SEED_DEMO_DATA", defaults.seed_demo_data),
        strict_commit=_env_bool("BEDWISE_STRICT_COMMIT", defaults.strict_commit),
        ranking_age_weight=_env_float("BEDWISE_RANKING_AGE_WEIGHT", defaults.ranking_age_weight),
        ranking_diagnosis_weight=_env_float(
            "BEDWISE_RANKING_DIAGNOSIS_WEIGHT", defaults.ranking_diagnosis_weight
        ),
        ranking_flexibility_weight=_env_float(
            "BEDWISE_RANKING_FLEXIBILITY_WEIGHT", defaults.ranking_flexibility_weight
        ),
        roommate_age_weight=_env_float("BEDWISE_ROOMMATE_AGE_WEIGHT", defaults.roommate_age_weight),
        roommate_diagnosis_weight=_env_float(
            "BEDWISE_ROOMMATE_DIAGNOSIS_WEIGHT", defaults.roommate_diagnosis_weight
        ),
        consolidation_min_composite=_env_float(
            "BEDWISE_CONSOLIDATION_MIN_COMPOSITE", defaults.consolidation_min_composite
        ),
        optimizer_consolidation_enabled=_env_bool(
            "BEDWISE_OPTIMIZER_CONSOLIDATION", defaults.optimizer_consolidation_enabled
        ),
        optimizer_direct_placements_enabled=_env_bool(
            "BEDWISE_OPTIMIZER_DIRECT_PLACEMENTS", defaults.optimizer_direct_placements_enabled
        ),
    )
