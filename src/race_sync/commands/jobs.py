import json
import logging
from typing import Any

from race_sync.classes.race_api import RaceApiClient
from race_sync.classes.race_sheet_repository import RaceSheetRepository
from race_sync.classes.sheets_service import build_race_sheet_repository
from race_sync.classes.tracks import load_track_table
from race_sync.config import SyncSettings, load_settings
from race_sync.errors import RaceSyncError
from race_sync.logging import configure_logging
from race_sync.services.database_sync import DatabaseSyncService
from race_sync.services.dated_sheets import DatedSheetService
from race_sync.services.formula_sync import FormulaSyncService
from race_sync.services.race_ingestion import RaceIngestionService
from race_sync.services.totals_sync import TotalsSyncService

logger = logging.getLogger(__name__)


def exit_code(summary: dict[str, Any]) -> int:
    if summary.get("success") is False or summary.get("failed"):
        return 1
    return 0


def emit_summary(summary: dict[str, Any]) -> int:
    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    return exit_code(summary)


def build_runtime() -> tuple[SyncSettings, RaceSheetRepository]:
    configure_logging()
    settings = load_settings()
    return settings, build_race_sheet_repository(settings)


def _failure(exc: Exception) -> int:
    logger.error("%s", exc)
    return emit_summary({"success": False, "error": str(exc)})


def run_daily_sync(args: Any) -> int:
    try:
        settings, repo = build_runtime()
        service = DatabaseSyncService(repo, RaceApiClient.from_settings(settings), settings)
    except RaceSyncError as exc:
        return _failure(exc)

    if args.catch_up:
        summary = service.run_catch_up()
    else:
        summary = service.run_daily_tracking_sync(skip_tee=args.skip_tee)
    if args.totals and summary.get("success") is not False:
        totals = TotalsSyncService(repo, settings).sync_daily_totals()
        summary = {**summary, "totals": totals, "success": totals.get("success") is not False}
    return emit_summary(summary)


def run_dated_sheets(args: Any) -> int:
    try:
        settings, repo = build_runtime()
    except RaceSyncError as exc:
        return _failure(exc)
    service = DatedSheetService(repo, settings)
    if args.reset:
        return emit_summary(service.clear_extraction_flags())
    return emit_summary(service.process_dated_sheets())


def run_formula_sync(args: Any) -> int:
    try:
        settings, repo = build_runtime()
    except RaceSyncError as exc:
        return _failure(exc)
    service = FormulaSyncService(repo, settings)
    if args.reset:
        return emit_summary(service.clear_tee_formula_sync_progress())
    if args.columns:
        return emit_summary(service.sync_tee_formula_columns(args.columns))
    return emit_summary(service.sync_tee_formulas())


def run_ingest(args: Any) -> int:
    try:
        settings, repo = build_runtime()
        service = RaceIngestionService(repo, RaceApiClient.from_settings(settings), settings, load_track_table())
    except RaceSyncError as exc:
        return _failure(exc)
    if args.clear_markers:
        return emit_summary(service.clear_ingestion_markers(args.sheet))
    if args.historical:
        return emit_summary(service.ingest_historical(args.sheet, force=args.force))
    return emit_summary(service.ingest_daily())
