"""Pull daily entries and winners from the race backend into DATABASE, then TEE."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable

import pytz

from race_sync.classes.race_api import RaceApiClient
from race_sync.classes.race_sheet_repository import RaceSheetRepository
from race_sync.classes.reconcile import ReconcilePlan, ReconcileWindow, plan_entries, plan_winners
from race_sync.classes.tracking_sheet import DatabaseSheet, ReportSheet
from race_sync.classes.tracking_sheet_domain import entries_from_rows, group_by_race, iso_to_date_token, tee_block_rows
from race_sync.config import SyncSettings

logger = logging.getLogger(__name__)


def previous_local_date(timezone: str, now: datetime.datetime | None = None) -> datetime.date:
    """Yesterday in ``timezone`` (the tracks report in US Eastern time)."""
    tz = pytz.timezone(timezone)
    current = now.astimezone(tz) if now is not None else datetime.datetime.now(tz)
    return current.date() - datetime.timedelta(days=1)


class DatabaseSyncService:
    def __init__(
        self,
        repo: RaceSheetRepository,
        api: RaceApiClient,
        settings: SyncSettings,
        *,
        now: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.repo = repo
        self.api = api
        self.settings = settings
        self._now = now
        self.database = DatabaseSheet(repo, settings.database_sheet, settings.track_code_cell)

    def yesterday(self) -> datetime.date:
        return previous_local_date(self.settings.timezone, self._now() if self._now else None)

    def _window(self, track_code: str, date_token: str) -> ReconcileWindow:
        return ReconcileWindow(
            track_code=track_code,
            date_token=date_token,
            min_race=self.settings.min_race_number,
            max_race=self.settings.max_race_number,
        )

    def sync_date(self, iso_date: str, track_code: str | None = None) -> dict[str, Any]:
        """Append unseen entries, race metadata and winners for one date.

        Raises ``RaceApiError`` when the entries endpoint fails.
        """
        self.repo.require_sheet(self.settings.database_sheet)
        track_code = track_code or self.database.track_code()
        entries = self.api.fetch_entries(iso_date, track_code)
        winners = self.api.fetch_winners(iso_date, track_code)
        logger.info("[%s] %s: fetched %d entries, %d winners", iso_date, track_code, len(entries), len(winners))

        summary: dict[str, Any] = {
            "track_code": track_code,
            "date": iso_date,
            "fetched": 0,
            "appended": 0,
            "skipped": 0,
            "races_metadata_appended": 0,
            "winners_appended": 0,
        }
        if not entries and not winners:
            logger.warning("[%s] %s: no entries or winners returned from API", iso_date, track_code)
            summary["message"] = "No data returned from API."
            return summary

        window = self._window(track_code, iso_to_date_token(iso_date))
        plan = ReconcilePlan()
        plan_entries(entries, self.database.entry_keys(), self.database.metadata_keys(), window, plan)
        plan_winners(winners, self.database.winner_keys(), window, plan)

        summary["fetched"] = plan.fetched
        summary["skipped"] = plan.skipped
        summary["appended"] = self.database.append_entries(plan.entry_rows)
        summary["races_metadata_appended"] = self.database.append_metadata(plan.metadata_rows)
        summary["winners_appended"] = self.database.append_winners(plan.winner_rows)

        if plan.fetched and not plan.entry_rows:
            logger.warning(
                "[%s] %s: %d entries fetched but none appended (duplicates or filtered)",
                iso_date,
                track_code,
                plan.fetched,
            )
        logger.info(
            "[%s] %s: entries %d/%d, metadata %d, winners %d",
            iso_date,
            track_code,
            summary["appended"],
            plan.fetched,
            summary["races_metadata_appended"],
            summary["winners_appended"],
        )
        return summary

    def populate_tee(self, iso_date: str, track_code: str | None = None) -> dict[str, Any]:
        """Rewrite each TEE race block with the DATABASE rows for ``iso_date``."""
        self.repo.require_sheet(self.settings.tee_sheet)
        track_code = track_code or self.database.track_code()
        date_token = iso_to_date_token(iso_date)
        entries, _extracted = entries_from_rows(
            self.database.entry_rows(),
            track_code=track_code,
            date_token=date_token,
            min_race=self.settings.min_race_number,
            max_race=self.settings.max_race_number,
        )
        by_race = group_by_race(entries)

        tee = ReportSheet(self.repo, self.settings.tee_sheet, self.settings.max_horses_per_race)
        races = range(self.settings.min_race_number, self.settings.max_race_number + 1)
        headers = tee.header_rows(races)
        processed: dict[int, dict[str, Any]] = {}
        for race in races:
            header_row = headers.get(race)
            if header_row is None:
                processed[race] = {"written": 0, "message": "Header not found."}
                continue
            written = tee.replace_block(header_row, tee_block_rows(by_race.get(race, [])))
            processed[race] = {"written": written}
        tee.flush()
        return {"track_code": track_code, "date": iso_date, "races_processed": processed}

    def run_daily_tracking_sync(self, *, skip_tee: bool = False) -> dict[str, Any]:
        """Sync yesterday into DATABASE, then rebuild TEE from it."""
        iso_date = self.yesterday().isoformat()
        try:
            track_code = self.database.track_code()
            database = self.sync_date(iso_date, track_code)
            result: dict[str, Any] = {"success": True, "database": database}
            if not skip_tee:
                result["tee"] = self.populate_tee(iso_date, track_code)
        except Exception as exc:
            logger.exception("Daily tracking sync failed for %s", iso_date)
            return {"success": False, "date": iso_date, "error": str(exc)}
        logger.info(
            "Daily sync %s: %s entries, %s metadata, %s winners",
            iso_date,
            database["appended"],
            database["races_metadata_appended"],
            database["winners_appended"],
        )
        return result

    def run_catch_up(self) -> dict[str, Any]:
        """Sync every date after the latest one in DATABASE, through yesterday."""
        try:
            self.repo.require_sheet(self.settings.database_sheet)
            track_code = self.database.track_code()
            last_date = self.database.latest_date(
                track_code, self.settings.min_race_number, self.settings.max_race_number
            )
        except Exception as exc:
            logger.exception("Catch-up retrieval failed")
            return {"success": False, "error": str(exc)}

        if last_date is None:
            return {
                "success": False,
                "message": "No existing data found in DATABASE. Run the daily sync first.",
            }

        yesterday = self.yesterday()
        dates = []
        current = last_date + datetime.timedelta(days=1)
        while current <= yesterday:
            dates.append(current)
            current += datetime.timedelta(days=1)

        if not dates:
            return {"success": True, "message": "Already up to date. No days to catch up.", "dates_processed": 0}

        logger.info("Catching up %d days (%s to %s)", len(dates), dates[0], dates[-1])
        results: list[dict[str, Any]] = []
        errors: list[dict[str, str]] = []
        for day in dates:
            iso_date = day.isoformat()
            try:
                results.append({"success": True, **self.sync_date(iso_date, track_code)})
            except Exception as exc:
                logger.exception("Catch-up failed for %s", iso_date)
                results.append({"date": iso_date, "success": False, "error": str(exc)})
                errors.append({"date": iso_date, "error": str(exc)})
        return {"success": True, "dates_processed": len(dates), "results": results, "errors": errors}
