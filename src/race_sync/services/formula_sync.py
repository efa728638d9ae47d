"""Propagate TEE formulas to every dated sheet, leaving data cells untouched.

The full sync is resumable: a session marker in ``TEE!BS1`` and a per-sheet
flag in ``BS2`` let an interrupted run skip sheets it already finished. The
column sync is cheap enough to simply rerun and keeps no markers.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

from race_sync.classes.batch import ResumableBatchProcessor, TimeBudget
from race_sync.classes.job_state import JobStateStore, SheetCellJobStateStore
from race_sync.classes.race_sheet_repository import RaceSheetRepository, a1, column_letter
from race_sync.classes.tracking_sheet_domain import (
    FormulaCell,
    FormulaRun,
    column_formula_runs,
    date_sheet_titles,
    extract_formulas,
    normalize_columns,
    row_formula_runs,
)
from race_sync.config import SyncSettings

logger = logging.getLogger(__name__)

# TEE keeps its working area well inside column BZ
FORMULA_SCAN_LAST_COLUMN = 78


class FormulaSyncService:
    def __init__(
        self,
        repo: RaceSheetRepository,
        settings: SyncSettings,
        *,
        store: JobStateStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        marker_factory: Callable[[], str] | None = None,
    ) -> None:
        self.repo = repo
        self.settings = settings
        self.clock = clock
        self.store = store or SheetCellJobStateStore(
            repo,
            settings.tee_sheet,
            settings.formula_progress_cell,
            settings.formula_sheet_flag_cell,
        )
        self._marker_factory = marker_factory

    def _processor(self) -> ResumableBatchProcessor:
        kwargs: dict[str, Any] = {}
        if self._marker_factory is not None:
            kwargs["marker_factory"] = self._marker_factory
        return ResumableBatchProcessor(
            self.store,
            max_seconds=self.settings.max_execution_seconds,
            clock=self.clock,
            unit_label="sheet",
            **kwargs,
        )

    def dated_sheets(self) -> list[str]:
        return date_sheet_titles(self.repo.sheet_titles(), self.settings.skipped_sheet_names)

    def tee_formulas(self, columns: Sequence[int] | None = None) -> list[FormulaCell]:
        tee = self.settings.tee_sheet
        if columns is None:
            return extract_formulas(self.repo.read_formulas(a1(tee, 1, 1, FORMULA_SCAN_LAST_COLUMN)))
        cells: list[FormulaCell] = []
        for col in columns:
            cells.extend(extract_formulas(self.repo.read_formulas(a1(tee, col, 1, col)), first_col=col))
        return cells

    def _write_runs(self, sheet_name: str, runs: Sequence[FormulaRun]) -> int:
        data = [(run.a1(sheet_name), run.formulas) for run in runs]
        self.repo.write_ranges(data)
        return sum(len(run.formulas) * len(run.formulas[0]) for run in runs)

    def sync_tee_formulas(self) -> dict[str, Any]:
        """Full sync of every TEE formula cell to all dated sheets."""
        try:
            self.repo.require_sheet(self.settings.tee_sheet)
            sheets = self.dated_sheets()
            if not sheets:
                return {"success": False, "error": "No dated sheets found"}
            formulas = self.tee_formulas()
            logger.info("Found %d formula cells in %s", len(formulas), self.settings.tee_sheet)
            if not formulas:
                self.store.clear_session()
                return {"success": False, "error": "No formulas found in TEE sheet"}
        except Exception as exc:
            logger.exception("TEE formula sync failed")
            return {"success": False, "error": str(exc)}

        runs = row_formula_runs(formulas)
        result = self._processor().run(sheets, lambda sheet: self._write_runs(sheet, runs))
        summary: dict[str, Any] = {
            "success": True,
            "total_sheets": result.total_units,
            "processed_sheets": result.processed,
            "skipped_sheets": result.skipped,
            "updated_cells": sum(result.results.values()),
            "errors": result.errors,
            "resumed": result.resumed,
        }
        if result.error is not None:
            summary["success"] = False
            summary["error"] = result.error
            summary["message"] = "Sync progress could not be recorded. Run again to retry."
        elif result.completed:
            summary["message"] = "All sheets synced successfully!"
        elif result.stopped_early:
            summary["message"] = "Time limit reached. Run again to resume."
        else:
            summary["message"] = f"Sync paused. {result.processed}/{result.pending_units} sheets completed."
        return summary

    def sync_tee_formula_columns(self, columns: Sequence[str | int]) -> dict[str, Any]:
        """Copy the formulas of ``columns`` (letters or numbers) to all dated sheets."""
        if not columns:
            return {"success": False, "error": "No columns specified. Use the full sync instead."}
        budget = TimeBudget(self.settings.max_execution_seconds, self.clock)
        try:
            column_numbers = normalize_columns(columns)
            self.repo.require_sheet(self.settings.tee_sheet)
            sheets = self.dated_sheets()
            if not sheets:
                return {"success": False, "error": "No dated sheets found"}
            formulas = self.tee_formulas(column_numbers)
            if not formulas:
                return {"success": False, "error": "No formulas found in specified column(s)"}
        except Exception as exc:
            logger.exception("TEE column formula sync failed")
            return {"success": False, "error": str(exc)}

        letters = [column_letter(col) for col in column_numbers]
        logger.info("Syncing column(s) %s to %d sheets", ", ".join(letters), len(sheets))
        runs = column_formula_runs(formulas)
        summary: dict[str, Any] = {
            "success": True,
            "total_sheets": len(sheets),
            "processed_sheets": 0,
            "updated_cells": 0,
            "errors": [],
            "columns": letters,
        }
        for sheet_name in sheets:
            if budget.exhausted():
                logger.info("Time budget reached after %d sheets; stopping", summary["processed_sheets"])
                summary["message"] = "Time limit reached. Run the column sync again to continue."
                break
            try:
                updated = self._write_runs(sheet_name, runs)
            except Exception as exc:
                logger.exception("Error syncing %s", sheet_name)
                summary["errors"].append({"sheet": sheet_name, "error": str(exc)})
                continue
            summary["processed_sheets"] += 1
            summary["updated_cells"] += updated
        if summary["processed_sheets"] == summary["total_sheets"]:
            summary["message"] = "All sheets synced successfully!"
        return summary

    def clear_tee_formula_sync_progress(self) -> dict[str, Any]:
        try:
            self.repo.require_sheet(self.settings.tee_sheet)
            cleared = self._processor().reset(self.dated_sheets())
        except Exception as exc:
            logger.exception("Clearing formula sync progress failed")
            return {"success": False, "error": str(exc)}
        return {"success": True, "sheets_cleared": cleared}
