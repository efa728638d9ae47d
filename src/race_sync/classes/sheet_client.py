"""Thin client over the Google Sheets v4 values and spreadsheet APIs."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

UNFORMATTED = "UNFORMATTED_VALUE"
FORMATTED = "FORMATTED_VALUE"
FORMULA = "FORMULA"

CredentialsProvider = Callable[[], Any]


def service_account_provider(credentials_file: str) -> CredentialsProvider:
    def _provide() -> Any:
        return service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)

    return _provide


class SheetClient:
    def __init__(
        self,
        spreadsheet_id: str | None,
        *,
        service: Any | None = None,
        credentials_provider: CredentialsProvider | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self._service = service
        self._credentials_provider = credentials_provider
        self.logger = logger or logging.getLogger(__name__)

    @property
    def service(self) -> Any:
        if self._service is None:
            if self._credentials_provider is None:
                raise RuntimeError("SheetClient needs a service or a credentials provider")
            self._service = build(
                "sheets", "v4", credentials=self._credentials_provider(), cache_discovery=False
            )
        return self._service

    def get_values(self, cell_range: str, value_render_option: str = UNFORMATTED) -> list[list[Any]]:
        result = (
            self.service.spreadsheets()
            .values()
            .get(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
                valueRenderOption=value_render_option,
                dateTimeRenderOption="SERIAL_NUMBER",
            )
            .execute()
        )
        return result.get("values", [])

    def write_values(
        self,
        values: Sequence[Sequence[Any]],
        cell_range: str,
        value_input_option: str = "USER_ENTERED",
    ) -> int:
        body = {"values": [list(row) for row in values]}
        result = (
            self.service.spreadsheets()
            .values()
            .update(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
                valueInputOption=value_input_option,
                body=body,
            )
            .execute()
        )
        updated = result.get("updatedCells", 0)
        self.logger.debug("%s cells updated in %s", updated, cell_range)
        return updated

    def batch_write_values(
        self,
        data: Sequence[tuple[str, Sequence[Sequence[Any]]]],
        value_input_option: str = "USER_ENTERED",
    ) -> int:
        """Write several ranges in one request; returns total updated cells."""
        if not data:
            return 0
        body = {
            "valueInputOption": value_input_option,
            "data": [{"range": cell_range, "values": [list(row) for row in values]} for cell_range, values in data],
        }
        result = (
            self.service.spreadsheets()
            .values()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
            .execute()
        )
        updated = result.get("totalUpdatedCells", 0)
        self.logger.debug("%s cells updated across %d ranges", updated, len(data))
        return updated

    def clear_range(self, cell_range: str) -> None:
        self.service.spreadsheets().values().clear(
            spreadsheetId=self.spreadsheet_id, range=cell_range, body={}
        ).execute()

    def _sheet_properties(self) -> list[dict[str, Any]]:
        metadata = self.service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        return [sheet.get("properties", {}) for sheet in metadata.get("sheets", [])]

    def sheet_titles(self) -> list[str]:
        return [props.get("title", "") for props in self._sheet_properties()]

    def find_sheet_id(self, title: str, *, partial: bool = False) -> int | None:
        for props in self._sheet_properties():
            sheet_title = props.get("title", "")
            if sheet_title == title or (partial and title in sheet_title):
                return props.get("sheetId")
        return None

    def duplicate_sheet(self, source_sheet_id: int, new_title: str) -> int:
        body = {
            "requests": [
                {
                    "duplicateSheet": {
                        "sourceSheetId": source_sheet_id,
                        "newSheetName": new_title,
                    }
                }
            ]
        }
        result = self.service.spreadsheets().batchUpdate(spreadsheetId=self.spreadsheet_id, body=body).execute()
        replies = result.get("replies", [])
        new_id = replies[0]["duplicateSheet"]["properties"]["sheetId"]
        self.logger.info("Duplicated sheet %s as %s (id %s)", source_sheet_id, new_title, new_id)
        return new_id
