"""Exception types raised across race_sync."""


class RaceSyncError(Exception):
    """Base class for errors raised by race_sync."""


class ConfigError(RaceSyncError):
    """Required configuration is missing or inconsistent."""


class SheetNotFoundError(RaceSyncError):
    """An expected sheet (tab) does not exist in the spreadsheet."""

    def __init__(self, title: str) -> None:
        super().__init__(f'Sheet "{title}" not found.')
        self.title = title


class RaceApiError(RaceSyncError):
    """The race backend answered with an error for a required request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
