import pytest
import requests

from race_sync.classes.race_api import IngestionResult, RaceApiClient, spreadsheet_url
from race_sync.errors import ConfigError, RaceApiError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("get", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("post", url, **kwargs)


def _client(session):
    return RaceApiClient(
        "https://races.example.test/",
        "secret-key",
        source_spreadsheet_url=spreadsheet_url("sheet-id"),
        session=session,
    )


def test_requires_api_key():
    with pytest.raises(ConfigError):
        RaceApiClient("https://races.example.test", "")


def test_from_settings(settings):
    client = RaceApiClient.from_settings(settings, session=FakeSession())

    assert client.base_url == "https://races.example.test"
    assert client.source_spreadsheet_url == "https://docs.google.com/spreadsheets/d/sheet-id/edit"


def test_fetch_entries_sends_auth_headers_and_params():
    session = FakeSession([FakeResponse(payload={"success": True, "entries": [{"race_id": "GP_20250905_3"}]})])

    entries = _client(session).fetch_entries("2025-09-05", "GP")

    assert entries == [{"race_id": "GP_20250905_3"}]
    method, url, kwargs = session.calls[0]
    assert url == "https://races.example.test/api/races/entries/daily"
    assert kwargs["params"] == {"date": "2025-09-05", "trackCode": "GP"}
    assert kwargs["headers"] == {
        "X-API-Key": "secret-key",
        "X-Source-Spreadsheet-URL": "https://docs.google.com/spreadsheets/d/sheet-id/edit",
    }


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status_code=500, text="boom"),
        FakeResponse(payload=None, text="<html>"),
        FakeResponse(payload={"success": False}),
    ],
)
def test_fetch_entries_raises_on_failure(response):
    with pytest.raises(RaceApiError):
        _client(FakeSession([response])).fetch_entries("2025-09-05", "GP")


def test_fetch_entries_wraps_transport_errors():
    session = FakeSession(error=requests.ConnectionError("down"))

    with pytest.raises(RaceApiError, match="down"):
        _client(session).fetch_entries("2025-09-05", "GP")


def test_fetch_winners_treats_failures_as_empty():
    assert _client(FakeSession([FakeResponse(status_code=404)])).fetch_winners("2025-09-05", "GP") == []
    assert _client(FakeSession(error=requests.Timeout("slow"))).fetch_winners("2025-09-05", "GP") == []
    ok = FakeSession([FakeResponse(payload={"success": True, "winners": [{"race_id": "GP_20250905_3"}]})])
    assert _client(ok).fetch_winners("2025-09-05", "GP") == [{"race_id": "GP_20250905_3"}]
    assert ok.calls[0][1].endswith("/api/races/winners/daily")


def test_submit_races_success():
    payload = {"statistics": {"races_processed": 2, "entries_processed": 14}, "processed_races": ["a", "b"]}
    session = FakeSession([FakeResponse(payload=payload)])

    result = _client(session).submit_races("race_sync", [{"race_id": "a"}, {"race_id": "b"}], {})

    assert result.success
    assert result.to_summary() == {
        "success": True,
        "races_processed": 2,
        "entries_processed": 14,
        "processed_races": ["a", "b"],
    }
    _method, url, kwargs = session.calls[0]
    assert url == "https://races.example.test/api/races/daily"
    assert kwargs["json"] == {"source": "race_sync", "races": [{"race_id": "a"}, {"race_id": "b"}], "race_winners": {}}
    assert kwargs["headers"] == {"X-API-Key": "secret-key"}


def test_submit_races_reports_backend_errors():
    session = FakeSession([FakeResponse(status_code=422, payload={"message": "bad race", "errors": ["x"]})])

    result = _client(session).submit_races("race_sync", [], {})

    assert result.to_summary() == {"success": False, "error": "bad race", "errors": ["x"], "statistics": None}


def test_submit_races_handles_non_json_and_transport_errors():
    result = _client(FakeSession([FakeResponse(status_code=502, text="gateway")])).submit_races("s", [], {})
    assert result.error == "Backend error: 502 - gateway"

    result = _client(FakeSession(error=requests.ConnectionError("down"))).submit_races("s", [], {})
    assert not result.success
    assert "down" in result.error


def test_ingestion_result_defaults():
    assert IngestionResult(success=False, error="x").to_summary()["errors"] == []
