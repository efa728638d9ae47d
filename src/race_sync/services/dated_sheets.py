"""Copy unextracted DATABASE rows into dated ``MM/dd/yy`` report sheets.

Rows are grouped by date and dates run oldest first under the execution
budget. A date's rows are flagged in column G only after the date succeeds,
so an interrupted or failed run picks them up again next time.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from race_sync.classes.batch import TimeBudget
from race_sync.classes.race_models import RaceMetadata
from race_sync.classes.race_sheet_repository import RaceSheetRepository
from race_sync.classes.tracking_sheet import DatabaseSheet, ReportSheet
from race_sync.classes.tracking_sheet_domain import (
    DatabaseEntry,
    date_token_to_sheet_name,
    entries_from_rows,
    group_by_date,
    group_by_race,
    metadata_for_date,
    tee_block_rows,
    winners_for_date,
)
from race_sync.config import SyncSettings

logger = logging.getLogger(__name__)


class DatedSheetService:
    def __init__(
        self,
        repo: RaceSheetRepository,
        settings: SyncSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repo = repo
        self.settings = settings
        self.clock = clock
        self.database = DatabaseSheet(repo, settings.database_sheet, settings.track_code_cell)

    def _race_range(self) -> range:
        return range(self.settings.min_race_number, self.settings.max_race_number + 1)

    def process_date(
        self,
        date_token: str,
        entries: list[DatabaseEntry],
        winners: dict[int, Any],
        metadata: dict[int, RaceMetadata],
    ) -> dict[str, Any]:
        """Write one date's entries, winners and metadata into its sheet."""
        sheet_name = date_token_to_sheet_name(date_token)
        is_new_sheet = not self.repo.has_sheet(sheet_name)
        if is_new_sheet:
            self.repo.duplicate_sheet(self.settings.tee_sheet, sheet_name)
            logger.info("Created sheet %s from %s", sheet_name, self.settings.tee_sheet)
        else:
            logger.info("Updating existing sheet %s", sheet_name)

        report = ReportSheet(self.repo, sheet_name, self.settings.max_horses_per_race)
        by_race = group_by_race(entries)
        headers = report.header_rows(self._race_range())
        races_processed = 0
        for race_number, race_entries in by_race.items():
            header_row = headers.get(race_number)
            if header_row is None:
                logger.warning("%s: header for race %s not found", sheet_name, race_number)
                continue
            rows = tee_block_rows(race_entries)
            if is_new_sheet:
                report.replace_block(header_row, rows)
            else:
                report.merge_block(header_row, rows)
            if race_number in winners:
                if not report.set_winner_if_empty(header_row, winners[race_number]):
                    logger.debug("%s: race %s winner already set", sheet_name, race_number)
            if race_number in metadata:
                report.set_metadata_if_empty(race_number, metadata[race_number])
            races_processed += 1
        report.flush()
        return {"sheet_name": sheet_name, "is_new_sheet": is_new_sheet, "races_processed": races_processed}

    def process_dated_sheets(self) -> dict[str, Any]:
        budget = TimeBudget(self.settings.max_execution_seconds, self.clock)
        try:
            self.repo.require_sheet(self.settings.database_sheet)
            entries, extracted = entries_from_rows(
                self.database.entry_rows(with_flag=True),
                min_race=self.settings.min_race_number,
                max_race=self.settings.max_race_number,
                skip_extracted=True,
            )
            winner_rows = self.database.winner_rows()
            metadata_rows = self.database.metadata_rows()
        except Exception as exc:
            logger.exception("Dated sheet processing failed")
            return {"success": False, "error": str(exc)}

        by_date = group_by_date(entries)
        logger.info("Found %d dates to process (%d rows already extracted)", len(by_date), extracted)
        summary: dict[str, Any] = {
            "success": True,
            "total_dates": len(by_date),
            "processed_dates": 0,
            "entries_marked": 0,
            "skipped_extracted": extracted,
            "errors": [],
        }

        for date_token, date_entries in by_date.items():
            if budget.exhausted():
                logger.info("Time budget reached after %d dates; stopping", summary["processed_dates"])
                summary["message"] = "Time limit reached. Run again to resume from unprocessed entries."
                break
            try:
                result = self.process_date(
                    date_token,
                    date_entries,
                    winners_for_date(winner_rows, date_token, self.settings.min_race_number, self.settings.max_race_number),
                    metadata_for_date(metadata_rows, date_token, self.settings.min_race_number, self.settings.max_race_number),
                )
                marked = self.database.mark_extracted([entry.row_number for entry in date_entries])
            except Exception as exc:
                logger.exception("Error processing date %s", date_token)
                summary["errors"].append({"date": date_token, "error": str(exc)})
                continue
            summary["processed_dates"] += 1
            summary["entries_marked"] += marked
            logger.info("Processed %s: %d races, %d entries marked", result["sheet_name"], result["races_processed"], marked)

        if summary["processed_dates"] == summary["total_dates"]:
            summary["message"] = "All dates processed successfully!"
        return summary

    def clear_extraction_flags(self) -> dict[str, Any]:
        try:
            self.repo.require_sheet(self.settings.database_sheet)
            cleared = self.database.clear_extracted()
        except Exception as exc:
            logger.exception("Clearing extraction flags failed")
            return {"success": False, "error": str(exc)}
        if not cleared:
            return {"success": False, "error": "No data found"}
        logger.info("Cleared extraction flags for %d rows", cleared)
        return {"success": True, "rows_cleared": cleared}
