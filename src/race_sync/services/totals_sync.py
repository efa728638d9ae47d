"""Append a TOTALS row for every dated sheet that does not have one yet."""

from __future__ import annotations

import logging
from typing import Any

from race_sync.classes.race_sheet_repository import RaceSheetRepository, a1
from race_sync.classes.reconcile import next_append_row
from race_sync.classes.tracking_sheet_domain import date_sheet_titles, totals_label_to_sheet_name, totals_row
from race_sync.config import SyncSettings
from race_sync.errors import SheetNotFoundError

logger = logging.getLogger(__name__)


class TotalsSyncService:
    def __init__(self, repo: RaceSheetRepository, settings: SyncSettings) -> None:
        self.repo = repo
        self.settings = settings

    def _label_column(self) -> list[list[Any]]:
        return self.repo.read_range(a1(self.settings.totals_sheet, 1, self.settings.totals_start_row, 1))

    def existing_dates(self) -> set[str]:
        return {totals_label_to_sheet_name(row[0]) for row in self._label_column() if row and row[0] not in (None, "")}

    def append_totals_row(self, sheet_name: str, row: int) -> None:
        label, formulas = totals_row(sheet_name, self.settings.tee_total_cells)
        # label as plain text so the sheet does not coerce it to a date
        self.repo.write_raw([label], a1(self.settings.totals_sheet, 1, row))
        self.repo.write_range([formulas], a1(self.settings.totals_sheet, 2, row, 1 + len(formulas), row))

    def sync_daily_totals(self) -> dict[str, Any]:
        try:
            self.repo.require_sheet(self.settings.totals_sheet)
            titles = self.repo.sheet_titles()
            dated = date_sheet_titles(titles, self.settings.skipped_sheet_names)
            if not dated:
                logger.warning("No date-named sheets found")
                return {"success": False, "error": "No date-named sheets found"}

            existing = self.existing_dates()
            missing = [name for name in dated if name not in existing]
            logger.info("%d dated sheets, %d in TOTALS, %d missing", len(dated), len(existing), len(missing))
            if not missing:
                return {"success": True, "appended": 0, "message": "All dates already synced"}

            next_row = max(
                next_append_row(self._label_column(), self.settings.totals_start_row),
                self.settings.totals_start_row,
            )
        except Exception as exc:
            logger.exception("Daily totals sync failed")
            return {"success": False, "error": str(exc)}

        summary: dict[str, Any] = {
            "success": True,
            "total_sheets": len(dated),
            "existing_dates": len(existing),
            "missing_dates": len(missing),
            "appended": 0,
            "errors": [],
        }
        available = set(titles)
        for sheet_name in missing:
            try:
                if sheet_name not in available:
                    raise SheetNotFoundError(sheet_name)
                self.append_totals_row(sheet_name, next_row)
            except Exception as exc:
                logger.exception("Error appending totals for %s", sheet_name)
                summary["errors"].append({"date": sheet_name, "error": str(exc)})
                continue
            logger.info("Appended totals row for %s at row %d", sheet_name, next_row)
            next_row += 1
            summary["appended"] += 1
        return summary
