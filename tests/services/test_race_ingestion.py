import dataclasses
import itertools
import logging

from conftest import entry_row

from race_sync.classes.race_api import IngestionResult
from race_sync.classes.tracks import Track, TrackTable
from race_sync.services.race_ingestion import RaceIngestionService, convert_winners_to_internal

TRACKS = TrackTable([Track(name="GULFSTREAM", code="GP")])


class FakeApi:
    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    def submit_races(self, source, races, race_winners):
        self.calls.append({"source": source, "races": races, "race_winners": race_winners})
        track = races[0]["track"] if races else None
        if track in self.failures:
            return IngestionResult(success=False, error=self.failures[track])
        return IngestionResult(
            success=True,
            races_processed=len(races),
            entries_processed=sum(len(race["entries"]) for race in races),
            processed_races=[race["race_id"] for race in races],
        )


def _service(repo, settings, api, **kwargs):
    return RaceIngestionService(repo, api, settings, TRACKS, **kwargs)


def test_convert_winners_to_internal(caplog):
    caplog.set_level(logging.WARNING)
    winners = {
        "GULFSTREAM 09-05-25 Race 03": {"race_id": "GULFSTREAM 09-05-25 Race 03", "winning_horse_number": 2},
        "SARATOGA 09-05-25 Race 03": {"race_id": "SARATOGA 09-05-25 Race 03", "winning_horse_number": 1},
    }

    converted = convert_winners_to_internal(winners, TRACKS)

    assert converted == {"GP_20250905_03": {"race_id": "GP_20250905_03", "winning_horse_number": 2}}
    assert "could not be converted" in caplog.text


def test_ingest_daily_sends_todays_races_with_utility_winners(workbook, repo, settings, race_sheet_factory):
    race_sheet_factory("GP", {1: ([entry_row(1)], None, None), 3: ([entry_row(1), entry_row(2)], None, None)})
    race_sheet_factory("OLD", {3: ([entry_row(1)], None, None)}, today_serial=45906)
    race_sheet_factory("TEMPLATE", {3: ([entry_row(1)], None, None)})
    workbook.add_sheet("UTILITY")
    workbook.set_cell("UTILITY", "C279", 19.6)
    workbook.set_cell("UTILITY", "D279", 2)
    api = FakeApi()

    summary = _service(repo, settings, api).ingest_daily()

    assert summary == {
        "success": True,
        "races_processed": 2,
        "entries_processed": 3,
        "processed_races": ["GULFSTREAM 09-05-25 Race 01", "GULFSTREAM 09-05-25 Race 03"],
    }
    call = api.calls[0]
    assert call["source"] == "google_sheets_daily_update"
    assert [race["race_number"] for race in call["races"]] == ["1", "3"]
    assert call["races"][1]["entries"][0]["will_pay_2"] == "$25.40"
    assert call["race_winners"] == {
        "GULFSTREAM 09-05-25 Race 03": {
            "race_id": "GULFSTREAM 09-05-25 Race 03",
            "winning_horse_number": 2,
            "extraction_method": "simple_correct",
            "extraction_confidence": "high",
            "winning_payout_2_dollar": 19.6,
        }
    }


def test_ingest_daily_without_races(workbook, repo, settings, race_sheet_factory):
    race_sheet_factory("OLD", {3: ([entry_row(1)], None, None)}, today_serial=45906)
    api = FakeApi()

    assert _service(repo, settings, api).ingest_daily() == {"success": False, "error": "No race data found"}
    assert api.calls == []


def test_ingest_daily_reports_backend_failure(workbook, repo, settings, race_sheet_factory):
    race_sheet_factory("GP", {3: ([entry_row(1)], None, None)})

    summary = _service(repo, settings, FakeApi(failures={"GULFSTREAM": "bad race"})).ingest_daily()

    assert summary["success"] is False
    assert summary["error"] == "bad race"


def test_ingest_sheet_marks_success_and_converts_winner_ids(workbook, repo, settings, race_sheet_factory):
    race_sheet_factory("GP", {1: ([entry_row(1)], 1, None), 3: ([entry_row(1), entry_row(2)], 2, "$12.40")})
    api = FakeApi()
    service = _service(repo, settings, api)

    result = service.ingest_sheet("GP")

    assert result.success
    assert [race["race_number"] for race in api.calls[0]["races"]] == ["3"]
    winner = api.calls[0]["race_winners"]["GP_20250905_03"]
    assert winner["winning_payout_2_dollar"] == 12.4
    assert winner["extraction_method"] == "header"
    assert service.is_ingested("GP")
    assert workbook.ranges_written("RAW") == ["'GP'!AG2"]


def test_ingest_sheet_without_races_is_not_marked(workbook, repo, settings):
    workbook.add_sheet("EMPTY")
    service = _service(repo, settings, FakeApi())

    result = service.ingest_sheet("EMPTY")

    assert result.error == "No race data found in EMPTY"
    assert not service.is_ingested("EMPTY")


def _historical_workbook(workbook, race_sheet_factory):
    for title in ("GP1", "GP2", "DONE"):
        race_sheet_factory(title, {3: ([entry_row(1)], 1, None)})
    race_sheet_factory("TEMPLATE", {3: ([entry_row(1)], 1, None)})
    workbook.set_cell("DONE", "AG2", True)


def test_ingest_historical_processes_pending_sheets(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    sleeps = []
    service = _service(repo, settings, FakeApi(), sleep=sleeps.append)

    results = service.ingest_historical(batch_size=1, delay=0.25)

    assert results["total_sheets"] == 2
    assert results["processed"] == 2
    assert results["success"] == 2
    assert results["failed"] == 0
    assert results["skipped"] == 1
    assert results["already_ingested"] == 1
    assert results["last_processed_sheet"] == "GP2"
    assert results["stopped_early"] is False
    assert results["processed_sheets"][0] == {
        "sheet_name": "GP1",
        "races_processed": 1,
        "entries_processed": 1,
        "status": "ingested",
    }
    assert sleeps == [0.25]
    assert service.is_ingested("GP1") and service.is_ingested("GP2")


def test_ingest_historical_is_idempotent(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    api = FakeApi()
    service = _service(repo, settings, api, sleep=lambda _delay: None)
    service.ingest_historical()

    rerun = service.ingest_historical()

    assert rerun["total_sheets"] == 0
    assert rerun["already_ingested"] == 3
    assert len(api.calls) == 2


def test_ingest_historical_force_and_sheet_filter(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    api = FakeApi()
    service = _service(repo, settings, api, sleep=lambda _delay: None)

    results = service.ingest_historical(["DONE"], force=True)

    assert results["processed"] == 1
    assert results["skipped"] == 3
    assert results["last_processed_sheet"] == "DONE"


def test_ingest_historical_records_failures(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    race_sheet_factory("SA", {3: ([entry_row(1)], 1, None)}, track="SANTA ANITA")
    service = _service(repo, settings, FakeApi(failures={"SANTA ANITA": "bad race"}), sleep=lambda _delay: None)

    results = service.ingest_historical()

    assert results["failed"] == 1
    assert results["errors"] == [{"sheet_name": "SA", "error": "bad race"}]
    assert not service.is_ingested("SA")


def test_ingest_historical_stops_at_time_limit(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    clock = itertools.chain([0, 0], itertools.repeat(100)).__next__
    limited = dataclasses.replace(settings, max_execution_seconds=10)
    service = _service(repo, limited, FakeApi(), clock=clock, sleep=lambda _delay: None)

    results = service.ingest_historical()

    assert results["processed"] == 1
    assert results["stopped_early"] is True
    assert results["last_processed_sheet"] == "GP1"
    assert not service.is_ingested("GP2")


def test_clear_ingestion_markers(workbook, repo, settings, race_sheet_factory):
    _historical_workbook(workbook, race_sheet_factory)
    service = _service(repo, settings, FakeApi())

    summary = service.clear_ingestion_markers(["DONE"])

    assert summary == {"success": True, "sheets_cleared": 1, "errors": []}
    assert not service.is_ingested("DONE")
    assert service.clear_ingestion_markers()["sheets_cleared"] == 3
