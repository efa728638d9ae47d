"""race_sync configuration helpers.

Settings are resolved once at startup from ``config.yaml`` (repo root), an
optional ``.env`` file and the process environment, and handed to services as
one frozen ``SyncSettings`` value.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from race_sync.errors import ConfigError
from race_sync.paths import config_path as default_config_path

DEFAULT_SOURCE_IDENTIFIER = "google_sheets_daily_update"
DEFAULT_TEMPLATE_SHEETS = ("UTILITY", "TEMPLATE", "RATIO TEMPLATE")


@dataclass(frozen=True)
class SyncSettings:
    api_base_url: str
    api_key: str
    spreadsheet_id: str
    credentials_file: str = "client_secret.json"
    source_identifier: str = DEFAULT_SOURCE_IDENTIFIER
    request_timeout: float = 30.0
    timezone: str = "America/New_York"

    # race windows
    race_number_min: int = 1
    race_number_max: int = 15
    min_race_number: int = 3
    max_race_number: int = 15
    horse_number_max: int = 16
    min_entries_per_race: int = 1

    # sheet names and cells
    database_sheet: str = "DATABASE"
    tee_sheet: str = "TEE"
    totals_sheet: str = "TOTALS"
    utility_sheet: str = "UTILITY"
    template_sheets: tuple[str, ...] = DEFAULT_TEMPLATE_SHEETS
    track_code_cell: str = "J1"
    totals_start_row: int = 11
    tee_total_cells: tuple[str, str, str, str] = ("BI2", "BJ2", "BM2", "BN2")
    formula_progress_cell: str = "BS1"
    formula_sheet_flag_cell: str = "BS2"
    ingestion_marker_cell: str = "AG2"

    # batch processing
    max_execution_seconds: float = 330.0
    ingestion_batch_size: int = 5
    ingestion_batch_delay: float = 0.5

    @property
    def max_horses_per_race(self) -> int:
        return self.horse_number_max

    @property
    def skipped_sheet_names(self) -> frozenset[str]:
        """Sheets that never hold dated report data."""
        names = {
            self.totals_sheet,
            self.tee_sheet,
            self.database_sheet,
            self.utility_sheet,
            *self.template_sheets,
        }
        return frozenset(name.upper() for name in names)


def load_yaml_config(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _section(config_data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return section


def _require(value: Any, name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ConfigError(f"{name} is not set.")
    return text


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def resolve_settings(config_data: Mapping[str, Any], env: Mapping[str, str]) -> SyncSettings:
    """Build validated settings; environment values win over config.yaml."""
    api = _section(config_data, "api")
    sheets = _section(config_data, "sheets")
    tracking = _section(config_data, "tracking")
    batch = _section(config_data, "batch")

    defaults = SyncSettings(api_base_url="-", api_key="-", spreadsheet_id="-")

    settings = SyncSettings(
        api_base_url=_require(env.get("RACE_API_BASE_URL") or api.get("base_url"), "RACE_API_BASE_URL").rstrip("/"),
        api_key=_require(env.get("RACE_API_KEY") or api.get("key"), "RACE_API_KEY"),
        spreadsheet_id=_require(env.get("SPREADSHEET_ID") or sheets.get("spreadsheet_id"), "SPREADSHEET_ID"),
        credentials_file=str(
            env.get("GOOGLE_CREDENTIALS_FILE") or sheets.get("credentials_file") or defaults.credentials_file
        ),
        source_identifier=str(api.get("source", defaults.source_identifier)),
        request_timeout=_as_float(api.get("timeout", defaults.request_timeout), "api.timeout"),
        timezone=str(tracking.get("timezone", defaults.timezone)),
        race_number_min=_as_int(tracking.get("race_number_min", defaults.race_number_min), "race_number_min"),
        race_number_max=_as_int(tracking.get("race_number_max", defaults.race_number_max), "race_number_max"),
        min_race_number=_as_int(tracking.get("min_race_number", defaults.min_race_number), "min_race_number"),
        max_race_number=_as_int(tracking.get("max_race_number", defaults.max_race_number), "max_race_number"),
        horse_number_max=_as_int(tracking.get("horse_number_max", defaults.horse_number_max), "horse_number_max"),
        min_entries_per_race=_as_int(
            tracking.get("min_entries_per_race", defaults.min_entries_per_race), "min_entries_per_race"
        ),
        database_sheet=str(sheets.get("database", defaults.database_sheet)),
        tee_sheet=str(sheets.get("tee", defaults.tee_sheet)),
        totals_sheet=str(sheets.get("totals", defaults.totals_sheet)),
        utility_sheet=str(sheets.get("utility", defaults.utility_sheet)),
        template_sheets=tuple(sheets.get("templates", defaults.template_sheets)),
        track_code_cell=str(tracking.get("track_code_cell", defaults.track_code_cell)),
        totals_start_row=_as_int(tracking.get("totals_start_row", defaults.totals_start_row), "totals_start_row"),
        tee_total_cells=tuple(tracking.get("tee_total_cells", defaults.tee_total_cells)),
        formula_progress_cell=str(batch.get("formula_progress_cell", defaults.formula_progress_cell)),
        formula_sheet_flag_cell=str(batch.get("formula_sheet_flag_cell", defaults.formula_sheet_flag_cell)),
        ingestion_marker_cell=str(batch.get("ingestion_marker_cell", defaults.ingestion_marker_cell)),
        max_execution_seconds=_as_float(
            env.get("MAX_EXECUTION_SECONDS") or batch.get("max_execution_seconds", defaults.max_execution_seconds),
            "max_execution_seconds",
        ),
        ingestion_batch_size=_as_int(batch.get("ingestion_batch_size", defaults.ingestion_batch_size), "batch_size"),
        ingestion_batch_delay=_as_float(
            batch.get("ingestion_batch_delay", defaults.ingestion_batch_delay), "ingestion_batch_delay"
        ),
    )
    _validate(settings)
    return settings


def _validate(settings: SyncSettings) -> None:
    if settings.min_race_number > settings.max_race_number:
        raise ConfigError("min_race_number must not exceed max_race_number")
    if settings.race_number_min > settings.race_number_max:
        raise ConfigError("race_number_min must not exceed race_number_max")
    if settings.horse_number_max < 1:
        raise ConfigError("horse_number_max must be positive")
    if settings.max_execution_seconds <= 0:
        raise ConfigError("max_execution_seconds must be positive")
    if len(settings.tee_total_cells) != 4:
        raise ConfigError("tee_total_cells needs exactly four cells (bet, collect, bets, wins)")


def load_settings(config_path: Path | None = None) -> SyncSettings:
    load_dotenv()
    config_data = load_yaml_config(config_path or default_config_path())
    return resolve_settings(config_data, os.environ)
