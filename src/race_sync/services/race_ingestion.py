"""Push race sheet data to the backend ingestion endpoint.

Daily ingestion sends every race sheet whose event date is today in one
request. Historical ingestion sends sheets one at a time and marks each
successfully submitted sheet in ``AG2`` so reruns skip it.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, Sequence

from race_sync.classes.batch import TimeBudget
from race_sync.classes.race_api import IngestionResult, RaceApiClient
from race_sync.classes.race_models import Race, Winner
from race_sync.classes.race_sheet import RaceSheet, RaceSheetReader, header_winners
from race_sync.classes.race_sheet_repository import RaceSheetRepository, quote_sheet
from race_sync.classes.sanitizer import count_unsafe_fields, sanitize_races
from race_sync.classes.tracking_sheet_domain import is_truthy_flag
from race_sync.classes.tracks import TrackTable
from race_sync.config import SyncSettings

logger = logging.getLogger(__name__)


def convert_winners_to_internal(winners: Mapping[str, Mapping[str, Any]], tracks: TrackTable) -> dict[str, dict[str, Any]]:
    """Re-key winner payloads from external race ids to ``CODE_YYYYMMDD_NN``."""
    converted: dict[str, dict[str, Any]] = {}
    for external_id, winner in winners.items():
        internal_id = tracks.to_internal_race_id(external_id)
        if internal_id is None:
            logger.warning("Skipping winner with unconvertible race id %s", external_id)
            continue
        converted[internal_id] = {**winner, "race_id": internal_id}
    if len(converted) != len(winners):
        logger.warning("%d winners could not be converted to internal race ids", len(winners) - len(converted))
    return converted


class RaceIngestionService:
    def __init__(
        self,
        repo: RaceSheetRepository,
        api: RaceApiClient,
        settings: SyncSettings,
        tracks: TrackTable,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo = repo
        self.api = api
        self.settings = settings
        self.tracks = tracks
        self.clock = clock
        self.sleep = sleep

    def _reader(self, race_min: int) -> RaceSheetReader:
        return RaceSheetReader(
            self.repo,
            race_min=race_min,
            race_max=self.settings.race_number_max,
            min_entries=self.settings.min_entries_per_race,
            horse_max=self.settings.horse_number_max,
        )

    def _is_template(self, title: str) -> bool:
        return title.upper() in {name.upper() for name in self.settings.template_sheets}

    def submit(
        self,
        races: Sequence[Race],
        winners: Mapping[str, Winner],
        *,
        internal_winner_ids: bool,
    ) -> IngestionResult:
        payload_races = [race.to_payload() for race in races]
        unsafe = count_unsafe_fields(payload_races)
        if unsafe:
            logger.warning("Removing %d unsafe numeric values before submission", unsafe)
        race_winners = {race_id: winner.to_payload() for race_id, winner in winners.items()}
        if internal_winner_ids:
            race_winners = convert_winners_to_internal(race_winners, self.tracks)
        return self.api.submit_races(self.settings.source_identifier, sanitize_races(payload_races), race_winners)

    def ingest_daily(self) -> dict[str, Any]:
        """Send today's races from every race sheet, with winners from UTILITY."""
        reader = self._reader(self.settings.race_number_min)
        try:
            titles = self.repo.sheet_titles()
            races: list[Race] = []
            for title in titles:
                if self._is_template(title):
                    logger.debug("Skipping template sheet %s", title)
                    continue
                sheet = reader.read(title, require_today=True)
                if sheet is None or not sheet.races:
                    logger.info("No valid race data found in %s", title)
                    continue
                logger.info("Extracted %d races from %s", len(sheet.races), title)
                races.extend(sheet.races)

            if not races:
                return {"success": False, "error": "No race data found"}

            winners: dict[str, Winner] = {}
            if self.settings.utility_sheet in titles:
                winners = reader.read_utility_winners(self.settings.utility_sheet, [race.race_id for race in races])
            else:
                logger.warning("%s sheet not found; no winners will be sent", self.settings.utility_sheet)
            logger.info("Sending %d races and %d winners", len(races), len(winners))
            result = self.submit(races, winners, internal_winner_ids=False)
        except Exception as exc:
            logger.exception("Daily race ingestion failed")
            return {"success": False, "error": str(exc)}
        return result.to_summary()

    def _marker_range(self, title: str) -> str:
        return f"{quote_sheet(title)}!{self.settings.ingestion_marker_cell}"

    def is_ingested(self, title: str) -> bool:
        return is_truthy_flag(self.repo.read_cell(self._marker_range(title)))

    def mark_ingested(self, title: str) -> None:
        self.repo.write_raw([[True]], self._marker_range(title))

    def ingest_sheet(self, title: str) -> IngestionResult:
        """Submit one historical sheet; mark it only when the backend accepts it."""
        sheet: RaceSheet | None = self._reader(self.settings.min_race_number).read(title, require_today=False)
        if sheet is None or not sheet.races:
            return IngestionResult(success=False, error=f"No race data found in {title}")
        winners = header_winners(sheet, sheet.race_ids, self.settings.min_race_number, self.settings.horse_number_max)
        logger.info("Extracted %d winners for %d races from %s", len(winners), len(sheet.races), title)
        result = self.submit(sheet.races, winners, internal_winner_ids=True)
        if result.success:
            self.mark_ingested(title)
        return result

    def ingest_historical(
        self,
        sheet_names: Iterable[str] | None = None,
        *,
        force: bool = False,
        batch_size: int | None = None,
        delay: float | None = None,
        max_seconds: float | None = None,
    ) -> dict[str, Any]:
        batch_size = batch_size or self.settings.ingestion_batch_size
        delay = self.settings.ingestion_batch_delay if delay is None else delay
        budget = TimeBudget(max_seconds or self.settings.max_execution_seconds, self.clock)
        wanted = set(sheet_names) if sheet_names else None
        results: dict[str, Any] = {
            "total_sheets": 0,
            "processed": 0,
            "success": 0,
            "failed": 0,
            "skipped": 0,
            "already_ingested": 0,
            "errors": [],
            "processed_sheets": [],
            "stopped_early": False,
            "last_processed_sheet": None,
        }
        try:
            titles = self.repo.sheet_titles()
            pending = []
            for title in titles:
                if self._is_template(title) or (wanted is not None and title not in wanted):
                    results["skipped"] += 1
                    continue
                if not force and self.is_ingested(title):
                    results["already_ingested"] += 1
                    continue
                pending.append(title)
        except Exception as exc:
            logger.exception("Historical ingestion failed")
            return {"success": False, "error": str(exc)}

        results["total_sheets"] = len(pending)
        logger.info("Found %d sheets to process (%d already ingested)", len(pending), results["already_ingested"])
        for position, title in enumerate(pending):
            if budget.exhausted():
                logger.info("Time budget reached; last processed sheet %s", results["last_processed_sheet"])
                results["stopped_early"] = True
                break
            logger.info("[%d/%d] %s (%.0fs)", position + 1, len(pending), title, budget.elapsed)
            try:
                result = self.ingest_sheet(title)
            except Exception as exc:
                logger.exception("Error processing %s", title)
                results["failed"] += 1
                results["errors"].append({"sheet_name": title, "error": str(exc)})
                continue
            results["processed"] += 1
            if result.success:
                results["success"] += 1
                results["processed_sheets"].append(
                    {
                        "sheet_name": title,
                        "races_processed": result.races_processed,
                        "entries_processed": result.entries_processed,
                        "status": "ingested",
                    }
                )
                results["last_processed_sheet"] = title
            else:
                results["failed"] += 1
                results["errors"].append({"sheet_name": title, "error": result.error})
            if results["processed"] % batch_size == 0 and position < len(pending) - 1:
                self.sleep(delay)

        logger.info(
            "Historical ingestion: %d success, %d failed, %d already ingested",
            results["success"],
            results["failed"],
            results["already_ingested"],
        )
        return results

    def clear_ingestion_markers(self, sheet_names: Iterable[str] | None = None) -> dict[str, Any]:
        wanted = set(sheet_names) if sheet_names else None
        cleared = 0
        errors = []
        try:
            titles = self.repo.sheet_titles()
        except Exception as exc:
            logger.exception("Clearing ingestion markers failed")
            return {"success": False, "error": str(exc)}
        for title in titles:
            if self._is_template(title) or (wanted is not None and title not in wanted):
                continue
            try:
                self.repo.clear_range(self._marker_range(title))
            except Exception as exc:
                logger.exception("Could not clear ingestion marker for %s", title)
                errors.append({"sheet_name": title, "error": str(exc)})
                continue
            cleared += 1
        logger.info("Cleared ingestion markers on %d sheets", cleared)
        return {"success": not errors, "sheets_cleared": cleared, "errors": errors}
