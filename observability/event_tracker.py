"""ReconEventTracker context manager: one event per step per entity type.

All events in a run share one run_id. Events are kept in memory, logged on
completion, and included in the persisted report.

Usage:
    tracker = ReconEventTracker()
    with tracker.track("FETCH_RELATIONAL", "patients") as event:
        entities = store.list_entities(entity_type)
        event.rows_processed = len(entities)
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterator

logger = logging.getLogger(__name__)


@dataclass
class ReconEvent:
    """Mutable event object. Callers set row counts inside the with block."""

    event_type: str
    entity_type: str
    run_id: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: float = 0.0
    status: str = "SUCCESS"
    error_message: str | None = None
    rows_processed: int = 0
    discrepancies: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("started_at", "completed_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


class ReconEventTracker:
    """Collects ReconEvents for one run. Safe to use from the reader's worker threads."""

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex
        self._events: list[ReconEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[ReconEvent]:
        with self._lock:
            return list(self._events)

    @contextmanager
    def track(self, event_type: str, entity_type: str) -> Iterator[ReconEvent]:
        """Context manager that yields a ReconEvent for the caller to populate."""
        event = ReconEvent(event_type=event_type, entity_type=entity_type, run_id=self.run_id)
        event.started_at = datetime.now(timezone.utc)
        try:
            yield event
            if event.status not in ("FAILED", "SKIPPED"):
                event.status = "SUCCESS"
        except Exception as e:
            event.status = "FAILED"
            event.error_message = str(e)[:4000]
            raise
        finally:
            event.completed_at = datetime.now(timezone.utc)
            event.duration_ms = (event.completed_at - event.started_at).total_seconds() * 1000
            self._record(event)

    def _record(self, event: ReconEvent) -> None:
        with self._lock:
            self._events.append(event)
        log = logger.warning if event.status == "FAILED" else logger.info
        log(
            "Event %s %s: status=%s rows=%d discrepancies=%d duration=%.1fms",
            event.event_type, event.entity_type, event.status,
            event.rows_processed, event.discrepancies, event.duration_ms,
        )

    def to_list(self) -> list[dict[str, Any]]:
        return [event.to_dict() for event in self.events]
