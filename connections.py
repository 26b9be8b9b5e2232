"""Store connections: relational (Postgres via ConnectorX) and key-value (DynamoDB via boto3).

Provides the ConnectorX URI for relational reads, identifier quoting helpers
for safe dynamic SQL construction, and a cached DynamoDB client.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from urllib.parse import quote, quote_plus

import boto3
from botocore.config import Config as BotoConfig

import config

logger = logging.getLogger(__name__)

# Cumulative time spent creating store clients, for logging at run end.
_connection_time_ms: float = 0.0
_connection_count: int = 0

# One DynamoDB client per (region, endpoint, timeout). boto3 clients are thread-safe, so
# both reader threads and concurrent callers can share them.
_client_pool: dict[tuple[str, str | None, float], object] = {}
_client_pool_lock = threading.Lock()

# ---------------------------------------------------------------------------
# SQL identifier escaping: double-quote with "" doubling
# ---------------------------------------------------------------------------

_MAX_IDENTIFIER_LENGTH = 63  # Postgres NAMEDATALEN - 1


def quote_identifier(name: str) -> str:
    """Double-quote a Postgres identifier (column, table, schema name).

    Equivalent to Postgres quote_ident() for the always-quote case: wraps in
    double quotes and doubles any embedded double quote.

    Args:
        name: Raw identifier (e.g. column name).

    Returns:
        Quoted identifier (e.g. ``"clinic_id"``, ``"tricky""name"``).

    Raises:
        ValueError: If name is empty or longer than 63 characters.
    """
    if not name:
        raise ValueError("Identifier cannot be empty")
    if len(name) > _MAX_IDENTIFIER_LENGTH:
        raise ValueError(
            f"Identifier exceeds {_MAX_IDENTIFIER_LENGTH} characters "
            f"(len={len(name)}): {name[:50]}..."
        )
    return '"' + name.replace('"', '""') + '"'


def quote_table(full_table_name: str) -> str:
    """Quote a schema-qualified table name (schema.table).

    Args:
        full_table_name: e.g. ``public.patients``

    Returns:
        e.g. ``"public"."patients"``

    Raises:
        ValueError: If not exactly 2 parts, or any part is invalid.
    """
    parts = full_table_name.split(".")
    if len(parts) != 2:
        raise ValueError(
            f"Expected 2-part table name (schema.table), "
            f"got {len(parts)} parts: {full_table_name}"
        )
    return ".".join(quote_identifier(p) for p in parts)


# --- ConnectorX URI ---

def relational_connectorx_uri(timeout_seconds: float | None = None) -> str:
    """Postgres URI for ConnectorX.

    With ``timeout_seconds`` the server is asked to cancel the statement and
    the client to abandon the connect once that much time has passed.
    """
    usr = quote_plus(config.RELATIONAL_USER)
    pwd = quote_plus(config.RELATIONAL_PASSWORD)
    uri = (
        f"postgresql://{usr}:{pwd}@{config.RELATIONAL_HOST}:{config.RELATIONAL_PORT}"
        f"/{config.RELATIONAL_DB}?sslmode={config.RELATIONAL_SSLMODE}"
    )
    if timeout_seconds:
        connect_timeout = max(1, math.ceil(timeout_seconds))
        statement_ms = max(1, int(timeout_seconds * 1000))
        options = quote(f"-c statement_timeout={statement_ms}", safe="")
        uri += f"&connect_timeout={connect_timeout}&options={options}"
    return uri


# --- DynamoDB client ---

def get_dynamodb_client(timeout_seconds: float | None = None):
    """Return a pooled DynamoDB client for the configured region/endpoint.

    Connect/read timeouts follow ``timeout_seconds`` (default
    STORE_TIMEOUT_SECONDS) so a hung request gives up on its own instead of
    leaving a reader thread behind.
    """
    global _connection_time_ms, _connection_count
    timeout = timeout_seconds or config.STORE_TIMEOUT_SECONDS
    key = (config.AWS_REGION, config.DYNAMODB_ENDPOINT_URL, timeout)
    with _client_pool_lock:
        client = _client_pool.get(key)
        if client is not None:
            return client
        start = time.monotonic()
        client = boto3.client(
            "dynamodb",
            region_name=config.AWS_REGION,
            endpoint_url=config.DYNAMODB_ENDPOINT_URL,
            config=BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )
        _connection_time_ms += (time.monotonic() - start) * 1000
        _connection_count += 1
        _client_pool[key] = client
        return client


def get_connection_overhead() -> tuple[float, int]:
    """Return cumulative client setup overhead (total_ms, client_count)."""
    return _connection_time_ms, _connection_count


def close_connection_pool() -> None:
    """Drop pooled clients. Call at shutdown."""
    with _client_pool_lock:
        count = len(_client_pool)
        _client_pool.clear()
    if count > 0:
        logger.debug("Client pool closed (%d clients)", count)


# --- Startup Validation ---

def check_relational_connection() -> bool:
    """Run ``SELECT 1`` against the relational store. Logs and returns False on failure."""
    from extract import cx_read_sql_safe

    try:
        cx_read_sql_safe(
            conn=relational_connectorx_uri(),
            query="SELECT 1 AS ok",
            context="relational connectivity check",
            max_retries=1,
        )
    except (KeyboardInterrupt, SystemExit):
        raise
    except BaseException:
        logger.warning(
            "Relational store %s:%d/%s is not reachable",
            config.RELATIONAL_HOST, config.RELATIONAL_PORT, config.RELATIONAL_DB,
            exc_info=True,
        )
        return False
    logger.info(
        "Relational store reachable: %s:%d/%s",
        config.RELATIONAL_HOST, config.RELATIONAL_PORT, config.RELATIONAL_DB,
    )
    return True


def check_dynamodb_tables(table_names: list[str]) -> dict[str, bool]:
    """Describe each DynamoDB table; a missing or unreachable table maps to False."""
    client = get_dynamodb_client()
    status: dict[str, bool] = {}
    for table_name in table_names:
        try:
            client.describe_table(TableName=table_name)
            status[table_name] = True
        except Exception:
            logger.warning("DynamoDB table %s is not available", table_name, exc_info=True)
            status[table_name] = False
    found = sum(1 for ok in status.values() if ok)
    logger.info("DynamoDB tables available: %d/%d", found, len(status))
    return status
