"""HTTP client for the race backend (daily entries/winners, race ingestion)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from race_sync.config import SyncSettings
from race_sync.errors import ConfigError, RaceApiError

logger = logging.getLogger(__name__)

ENTRIES_PATH = "/api/races/entries/daily"
WINNERS_PATH = "/api/races/winners/daily"
INGEST_PATH = "/api/races/daily"


@dataclass
class IngestionResult:
    success: bool
    races_processed: int = 0
    entries_processed: int = 0
    processed_races: list[Any] = field(default_factory=list)
    error: str | None = None
    errors: list[Any] = field(default_factory=list)
    statistics: dict[str, Any] | None = None

    def to_summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {"success": self.success}
        if self.success:
            summary.update(
                races_processed=self.races_processed,
                entries_processed=self.entries_processed,
                processed_races=self.processed_races,
            )
        else:
            summary.update(error=self.error, errors=self.errors, statistics=self.statistics)
        return summary


def spreadsheet_url(spreadsheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"


class RaceApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        source_spreadsheet_url: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("RACE_API_KEY is not set.")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.source_spreadsheet_url = source_spreadsheet_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: SyncSettings, session: requests.Session | None = None) -> "RaceApiClient":
        return cls(
            settings.api_base_url,
            settings.api_key,
            source_spreadsheet_url=spreadsheet_url(settings.spreadsheet_id),
            timeout=settings.request_timeout,
            session=session,
        )

    def _get_headers(self) -> dict[str, str]:
        headers = {"X-API-Key": self.api_key}
        if self.source_spreadsheet_url:
            headers["X-Source-Spreadsheet-URL"] = self.source_spreadsheet_url
        return headers

    def _get(self, path: str, iso_date: str, track_code: str) -> requests.Response:
        return self.session.get(
            f"{self.base_url}{path}",
            params={"date": iso_date, "trackCode": track_code},
            headers=self._get_headers(),
            timeout=self.timeout,
        )

    def fetch_entries(self, iso_date: str, track_code: str) -> list[dict[str, Any]]:
        """Entries for one track and date; any failure is raised."""
        try:
            response = self._get(ENTRIES_PATH, iso_date, track_code)
        except requests.RequestException as exc:
            raise RaceApiError(f"Entries API request failed: {exc}") from exc
        if response.status_code != 200:
            raise RaceApiError(f"Entries API error ({response.status_code}): {response.text}", response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise RaceApiError(f"Entries API returned invalid JSON: {response.text}", response.status_code) from exc
        if not payload.get("success"):
            raise RaceApiError(f"Entries API responded with success=false: {response.text}", response.status_code)
        return payload.get("entries") or []

    def fetch_winners(self, iso_date: str, track_code: str) -> list[dict[str, Any]]:
        """Winners for one track and date; failures mean no winners yet."""
        try:
            response = self._get(WINNERS_PATH, iso_date, track_code)
        except requests.RequestException as exc:
            logger.warning("Winners API request failed for %s on %s: %s", track_code, iso_date, exc)
            return []
        if response.status_code != 200:
            logger.info(
                "Winners API returned %s for %s on %s; races may not be complete",
                response.status_code,
                track_code,
                iso_date,
            )
            return []
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Winners API returned invalid JSON for %s on %s", track_code, iso_date)
            return []
        if not payload.get("success"):
            logger.info("Winners API responded with success=false for %s on %s", track_code, iso_date)
            return []
        return payload.get("winners") or []

    def submit_races(
        self,
        source: str,
        races: list[dict[str, Any]],
        race_winners: dict[str, dict[str, Any]],
    ) -> IngestionResult:
        """POST a sanitized ingestion payload."""
        body = {"source": source, "races": races, "race_winners": race_winners}
        logger.info("Sending %d races and %d winners to backend", len(races), len(race_winners))
        try:
            response = self.session.post(
                f"{self.base_url}{INGEST_PATH}",
                json=body,
                headers={"X-API-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Error sending data to backend: %s", exc)
            return IngestionResult(success=False, error=str(exc))

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError:
                logger.error("Backend returned invalid JSON: %s", response.text)
                return IngestionResult(success=False, error="Invalid JSON response from backend")
            statistics = data.get("statistics") or {}
            return IngestionResult(
                success=True,
                races_processed=statistics.get("races_processed") or len(races),
                entries_processed=statistics.get("entries_processed") or 0,
                processed_races=data.get("processed_races") or [],
                statistics=statistics or None,
            )

        logger.error("Backend returned %s: %s", response.status_code, response.text)
        try:
            data = response.json()
        except ValueError:
            return IngestionResult(success=False, error=f"Backend error: {response.status_code} - {response.text}")
        return IngestionResult(
            success=False,
            error=data.get("message") or f"Backend error: {response.status_code}",
            errors=data.get("errors") or [],
            statistics=data.get("statistics"),
        )
