"""CLI common boilerplate: logging setup, argument validation and startup checks.

Import this module BEFORE any other project imports in main_*.py files.
Module-level code puts the project root on sys.path.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path for imports
sys.path.insert(0, str(Path(__file__).parent))

import config
from observability.log_handler import JsonLinesLogHandler

logger = logging.getLogger(__name__)

_CONSOLE_HANDLER_NAME = "recon-console"


def setup_logging(run_id: str | None = None, jsonl_path: str | None = None) -> JsonLinesLogHandler | None:
    """Configure logging: StreamHandler (stderr) + optional JsonLinesLogHandler.

    Console output goes to stderr so stdout stays clean for the JSON report.

    Args:
        run_id: Run identifier stamped onto structured log records.
        jsonl_path: JSON-lines log file. Defaults to config.LOG_JSONL_PATH;
            empty disables the structured sink.

    Returns:
        The JsonLinesLogHandler instance (for flush/context updates), or None.
    """
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # Repeat calls in one process (multiple runs, tests) keep a single console handler
    if not any(h.get_name() == _CONSOLE_HANDLER_NAME for h in root.handlers):
        console = logging.StreamHandler(sys.stderr)
        console.set_name(_CONSOLE_HANDLER_NAME)
        console.setLevel(level)
        console.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        root.addHandler(console)

    path = jsonl_path if jsonl_path is not None else config.LOG_JSONL_PATH
    if not path:
        return None

    jsonl_handler = JsonLinesLogHandler(path, level=level)
    if run_id is not None:
        jsonl_handler.set_context(run_id=run_id)
    root.addHandler(jsonl_handler)
    return jsonl_handler


def validate_cli_filters(entity_type: str | None) -> None:
    """Validate --entity-type against the entity type registry.

    Raises:
        SystemExit: If the value is not a known entity type.
    """
    if entity_type is None:
        return

    from entity_types import known_entity_types

    known = known_entity_types()
    if entity_type.strip().lower() not in known:
        logger.error(
            "--entity-type '%s' is not a known entity type. Known: %s",
            entity_type, known,
        )
        sys.exit(1)


def startup_checks(entity_types: list[str]) -> bool:
    """Check both stores are reachable before reading. Returns False if either is not.

    A failed check is logged, not fatal: reconcile() still runs and reports
    the failing store on the report.
    """
    from connections import check_dynamodb_tables, check_relational_connection
    from entity_types import get_entity_type

    relational_ok = check_relational_connection()
    tables = [get_entity_type(name).key_value.table for name in entity_types]
    key_value_ok = all(check_dynamodb_tables(tables).values())
    return relational_ok and key_value_ok


def log_connection_overhead() -> None:
    """Log cumulative store client setup time at run end."""
    from connections import get_connection_overhead
    total_ms, count = get_connection_overhead()
    if count > 0:
        logger.info(
            "Client setup overhead: %.1f ms total across %d clients (%.1f ms avg)",
            total_ms, count, total_ms / count,
        )


def shutdown_connections() -> None:
    """Drop pooled store clients at shutdown."""
    from connections import close_connection_pool
    close_connection_pool()
