"""Import wearable FIT exports as garmin sessions for one profile.

Re-running the script is safe: the file name is the external id, so a file
seen before updates its session instead of creating another one.
"""
from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

import structlog

from activity_engine.core.config import settings
from activity_engine.core.database import Base, SessionLocal, engine
from activity_engine.core.logging import get_logger, setup_logging
from activity_engine.importers.fit import UnsupportedSportError, build_session_payload, extract_fit
from activity_engine.services.activity_service import ActivityService

logger = get_logger("import_fit")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import .fit activity files into the activity store.")
    parser.add_argument(
        "--profile",
        default=settings.FIT_IMPORT_PROFILE_ID,
        help="health_profile_id owning the imported sessions (default: FIT_IMPORT_PROFILE_ID).",
    )
    parser.add_argument(
        "--fit-dir",
        default=str(settings.FIT_IMPORT_DIR),
        help="Directory containing .fit files.",
    )
    parser.add_argument(
        "--reports-dir",
        default=str(settings.REPORTS_DIR),
        help="Where the failure and JSON reports are written.",
    )
    return parser.parse_args()


def import_fit_files(profile_id: str, fit_dir: Path, reports_dir: Path) -> dict:
    Base.metadata.create_all(bind=engine)
    reports_dir.mkdir(parents=True, exist_ok=True)

    if not fit_dir.exists():
        logger.error("fit_directory_missing", fit_dir=str(fit_dir))
        return {}

    files = sorted(f for f in os.listdir(fit_dir) if f.lower().endswith(".fit"))
    logger.info("fit_import_started", fit_dir=str(fit_dir), file_count=len(files), health_profile_id=profile_id)

    failed_imports: list[tuple[str, str]] = []
    created_count = 0
    updated_count = 0
    skipped_count = 0

    db = SessionLocal()
    try:
        structlog.contextvars.bind_contextvars(health_profile_id=profile_id)
        service = ActivityService(db)
        for filename in files:
            try:
                extracted = extract_fit(str(fit_dir / filename))
                payload = build_session_payload(extracted, external_id=filename)
            except UnsupportedSportError as exc:
                skipped_count += 1
                logger.info("fit_file_skipped", file=filename, reason=str(exc))
                continue
            except Exception as exc:
                failed_imports.append((filename, str(exc)))
                logger.warning("fit_file_unreadable", file=filename, error=str(exc))
                continue

            try:
                session, created = service.create_or_update(profile_id, payload)
            except Exception as exc:
                failed_imports.append((filename, str(exc)))
                logger.error("fit_file_import_failed", file=filename, error=str(exc))
                continue

            if created:
                created_count += 1
            else:
                updated_count += 1
            logger.info(
                "fit_file_imported",
                file=filename,
                session_id=session.id,
                created=created,
                activity_type=session.activity_type,
                activity_date=session.activity_date.isoformat(),
                distance_meters=session.distance_meters,
                parser=extracted.get("parser"),
            )
    finally:
        structlog.contextvars.unbind_contextvars("health_profile_id")
        db.close()

    failed_report_path = reports_dir / "failed_fit_imports.txt"
    with open(failed_report_path, "w", encoding="utf-8") as report:
        report.write(f"Total failed files: {len(failed_imports)}\n\n")
        for file_name, error in failed_imports:
            report.write(f"{file_name}\t{error}\n")

    json_report = {
        "source_directory": os.path.basename(os.path.normpath(fit_dir)),
        "health_profile_id": profile_id,
        "total_files": len(files),
        "created": created_count,
        "updated": updated_count,
        "skipped": skipped_count,
        "failed": len(failed_imports),
        "failures": [{"file": file_name, "reason": error} for file_name, error in failed_imports],
    }
    json_report_path = reports_dir / "fit_import_report.json"
    with open(json_report_path, "w", encoding="utf-8") as report_json:
        json.dump(json_report, report_json, indent=2)

    logger.info(
        "fit_import_complete",
        failure_report=str(failed_report_path),
        json_report=str(json_report_path),
        created=created_count,
        updated=updated_count,
        skipped=skipped_count,
        failed=len(failed_imports),
    )
    return json_report


if __name__ == "__main__":
    args = parse_args()
    setup_logging(debug=settings.DEBUG, level=settings.LOG_LEVEL)
    if not args.profile:
        raise SystemExit("A profile id is required (--profile or FIT_IMPORT_PROFILE_ID).")
    import_fit_files(args.profile, Path(args.fit_dir), Path(args.reports_dir))
