"""JsonLinesLogHandler: custom logging.Handler -> one JSON object per line.

Every module uses standard logger = logging.getLogger(__name__) calls.
The handler stamps the run_id, plus thread-local entity_type / tenant_filter
context, onto each structured record.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import traceback
from datetime import datetime, timezone
from pathlib import Path


class JsonLinesLogHandler(logging.Handler):
    """Logging handler that appends structured records to a JSON-lines file.

    Usage:
        handler = JsonLinesLogHandler("recon.log.jsonl")
        handler.set_context(run_id="abc", entity_type="patients", tenant_filter="7")
        logging.getLogger().addHandler(handler)
    """

    def __init__(self, path: str | Path, level: int = logging.INFO, buffer_size: int = 10) -> None:
        super().__init__(level)
        self.path = Path(path)
        self._run_id: str | None = None
        self._context = threading.local()
        self._buffer: list[str] = []
        self._buffer_lock = threading.Lock()
        self._buffer_size = buffer_size

    def set_context(
        self,
        run_id: str | None = None,
        entity_type: str | None = None,
        tenant_filter: str | None = None,
    ) -> None:
        # run_id is shared by every thread in the run; the rest is per thread
        if run_id is not None:
            self._run_id = run_id
        self._context.entity_type = entity_type
        self._context.tenant_filter = tenant_filter

    def _get_context(self) -> tuple[str | None, str | None, str | None]:
        return (
            self._run_id,
            getattr(self._context, "entity_type", None),
            getattr(self._context, "tenant_filter", None),
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            run_id, entity_type, tenant_filter = self._get_context()

            error_type = None
            stack_trace = None
            if record.exc_info and record.exc_info[1]:
                error_type = type(record.exc_info[1]).__name__
                stack_trace = "".join(traceback.format_exception(*record.exc_info))[:4000]

            entry = {
                "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "function": record.funcName,
                "message": record.getMessage()[:4000],
                "run_id": run_id,
                "entity_type": entity_type,
                "tenant_filter": tenant_filter,
                "thread": record.threadName,
                "error_type": error_type,
                "stack_trace": stack_trace,
            }
            line = json.dumps(entry, default=str)

            with self._buffer_lock:
                self._buffer.append(line)
                # WARNING+ is flushed immediately so it survives a crash
                if len(self._buffer) >= self._buffer_size or record.levelno >= logging.WARNING:
                    self._flush_buffer()
        except Exception:
            self.handleError(record)

    def _flush_buffer(self) -> None:
        if not self._buffer:
            return
        lines = self._buffer[:]
        self._buffer.clear()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write("\n".join(lines) + "\n")
        except OSError as flush_err:
            # Surface to stderr; routing through logging would recurse into this handler
            print(
                f"[JsonLinesLogHandler] FLUSH FAILED ({len(lines)} entries lost): {flush_err}",
                file=sys.stderr,
            )

    def flush(self) -> None:
        with self._buffer_lock:
            self._flush_buffer()

    def close(self) -> None:
        self.flush()
        super().close()
