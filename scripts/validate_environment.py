#!/usr/bin/env python3
"""Validate local Bedwise environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bedwise.repository.data_repository import DataRepository
from bedwise.services.placement_service import PlacementService
from bedwise.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="bedwise-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("pandas", "pandas"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "bedwise_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization and demo seed
        try:
            repository.initialize_database()
            repository.seed_demo_data()
            ok, line = _print_result("Database initialization and demo seed", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        service = PlacementService(repository=repository, settings=validation_settings)

        # CHECK 4: Snapshot ingestion
        try:
            snapshot = service.snapshot()
            if snapshot.anomalies:
                raise RuntimeError("; ".join(snapshot.anomalies))
            ok, line = _print_result(
                "Snapshot ingestion",
                True,
                f": {len(snapshot.rooms)} rooms, {len(snapshot.beds)} beds",
            )
        except Exception as exc:
            ok, line = _print_result("Snapshot ingestion", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Ranking and optimization
        try:
            census = service.census()
            moves = service.recommend_moves()
            ok, line = _print_result(
                "Engine run",
                True,
                f": occupancy={census.occupancy_rate}% recommendations={len(moves)}",
            )
        except Exception as exc:
            ok, line = _print_result("Engine run", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Bedwise Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
