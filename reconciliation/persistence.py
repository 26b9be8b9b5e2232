"""Reconciliation report persistence to local files for operator review.

Reports go to disk only; neither backing store is written.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import polars as pl

import config
from reconciliation.models import ReconciliationReport

logger = logging.getLogger(__name__)

_DISCREPANCY_SCHEMA = {
    "entity_id": pl.Utf8,
    "source_store": pl.Utf8,
    "issue_kind": pl.Utf8,
    "detail": pl.Utf8,
}


def default_report_paths(entity_type: str, run_id: str, output_dir: str | Path | None = None) -> tuple[Path, Path]:
    """Return (json_path, csv_path) under REPORT_OUTPUT_DIR for one run."""
    base = Path(output_dir) if output_dir is not None else config.REPORT_OUTPUT_DIR
    stem = f"{entity_type}_{run_id}"
    return base / f"{stem}.json", base / f"{stem}.csv"


def report_payload(
    report: ReconciliationReport,
    run_id: str | None = None,
    events: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    payload = report.to_dict()
    payload["run_id"] = run_id
    payload["generated_at"] = datetime.now(timezone.utc).isoformat()
    if events is not None:
        payload["events"] = events
    return payload


def write_report_json(
    report: ReconciliationReport,
    path: str | Path,
    run_id: str | None = None,
    events: list[dict[str, Any]] | None = None,
) -> Path:
    """Write the full report (summary, failures, discrepancies, events) as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = report_payload(report, run_id=run_id, events=events)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str), encoding="utf-8")
    logger.info("Reconciliation report written: %s", path)
    return path


def discrepancies_frame(report: ReconciliationReport) -> pl.DataFrame:
    """Discrepancies as a DataFrame, in report order. Empty reports keep the schema."""
    rows = [record.to_dict() for record in report.discrepancies]
    if not rows:
        return pl.DataFrame(schema=_DISCREPANCY_SCHEMA)
    return pl.DataFrame(rows, schema=_DISCREPANCY_SCHEMA)


def write_discrepancies_csv(report: ReconciliationReport, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = discrepancies_frame(report)
    df.write_csv(path)
    logger.info("Discrepancy CSV written: %s (%d rows)", path, len(df))
    return path
