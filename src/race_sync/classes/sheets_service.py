"""Factory for building SheetClient instances for race_sync."""

import logging
from typing import Any

from race_sync.classes.race_sheet_repository import RaceSheetRepository
from race_sync.classes.sheet_client import SheetClient, service_account_provider
from race_sync.config import SyncSettings
from race_sync.paths import credentials_path


def make_sheet_client(
    settings: SyncSettings,
    *,
    service: Any | None = None,
    credentials_provider: Any | None = None,
    logger: logging.Logger | None = None,
) -> SheetClient:
    if credentials_provider is None and service is None:
        credentials_provider = service_account_provider(str(credentials_path(settings.credentials_file)))
    return SheetClient(
        spreadsheet_id=settings.spreadsheet_id,
        service=service,
        credentials_provider=credentials_provider,
        logger=logger,
    )


def build_race_sheet_repository(settings: SyncSettings, *, service: Any | None = None) -> RaceSheetRepository:
    return RaceSheetRepository(make_sheet_client(settings, service=service))
