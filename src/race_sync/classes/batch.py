"""Resumable processing of many units (sheets, dates) under a wall-clock budget.

A run either starts a session (new marker) or resumes the one recorded in the
job-state store, skipping units already stamped with that session's marker.
Units are stamped only after they succeed. A session that finishes every
pending unit clears its marker and the unit flags, so the next run starts over.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from race_sync.classes.job_state import JobStateStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_EXECUTION_SECONDS = 330.0


def epoch_millis_marker() -> str:
    return str(int(time.time() * 1000))


class TimeBudget:
    def __init__(self, max_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_seconds = max_seconds
        self._clock = clock
        self._started = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def exhausted(self) -> bool:
        return self.elapsed >= self.max_seconds


@dataclass
class BatchResult:
    total_units: int
    pending_units: int = 0
    processed: int = 0
    skipped: int = 0
    resumed: bool = False
    stopped_early: bool = False
    completed: bool = False
    errors: list[dict[str, str]] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)
    last_processed: str | None = None
    error: str | None = None


class ResumableBatchProcessor:
    def __init__(
        self,
        store: JobStateStore,
        max_seconds: float = DEFAULT_MAX_EXECUTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        marker_factory: Callable[[], str] = epoch_millis_marker,
        unit_label: str = "sheet",
    ) -> None:
        self.store = store
        self.max_seconds = max_seconds
        self.clock = clock
        self.marker_factory = marker_factory
        self.unit_label = unit_label

    def _start(self, units: Sequence[str], result: BatchResult) -> tuple[str, list[str]]:
        session = self.store.get_session()
        if session is None:
            session = self.marker_factory()
            self.store.set_session(session)
            logger.info("Starting new session %s over %d units", session, len(units))
            return session, list(units)
        result.resumed = True
        pending = [unit for unit in units if self.store.get_unit(unit) != session]
        logger.info("Resuming session %s: %d of %d units left", session, len(pending), len(units))
        return session, pending

    def run(self, units: Sequence[str], process: Callable[[str], Any]) -> BatchResult:
        budget = TimeBudget(self.max_seconds, self.clock)
        result = BatchResult(total_units=len(units))

        try:
            session, pending = self._start(units, result)
        except Exception as exc:
            logger.exception("Could not read or start the batch session")
            result.error = str(exc)
            return result

        result.pending_units = len(pending)
        result.skipped = len(units) - len(pending)

        for unit in pending:
            if budget.exhausted():
                logger.info("Time budget reached after %d units; stopping", result.processed)
                result.stopped_early = True
                break
            try:
                result.results[unit] = process(unit)
                self.store.mark_unit(unit, session)
            except Exception as exc:
                logger.exception("Failed to process %s %s", self.unit_label, unit)
                result.errors.append({self.unit_label: unit, "error": str(exc)})
                continue
            result.processed += 1
            result.last_processed = unit

        if result.processed == len(pending):
            try:
                self._clear(units)
            except Exception as exc:
                logger.exception("Could not clear progress for session %s", session)
                result.error = str(exc)
                return result
            result.completed = True
            logger.info("Session %s complete; progress cleared", session)
        return result

    def _clear(self, units: Sequence[str]) -> int:
        self.store.clear_session()
        for unit in units:
            self.store.clear_unit(unit)
        return len(units)

    def reset(self, units: Sequence[str]) -> int:
        """Forget all progress so the next run processes every unit."""
        cleared = self._clear(units)
        logger.info("Cleared progress for %d units", cleared)
        return cleared
