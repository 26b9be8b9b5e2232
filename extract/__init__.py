"""Extract package: store adapters that read entity snapshots.

Holds the ConnectorX panic-recovery wrapper shared by relational reads.
"""

from __future__ import annotations

import logging
import time

import connectorx as cx
import polars as pl

import config

logger = logging.getLogger(__name__)


def cx_read_sql_safe(
    *,
    conn: str,
    query: str,
    return_type: str = "polars",
    context: str = "",
    max_retries: int | None = None,
    base_delay: float | None = None,
    deadline: float | None = None,
) -> pl.DataFrame:
    """Wrapper around cx.read_sql with Rust panic recovery and retry.

    ConnectorX errors surface as Rust thread panics (PanicException) that can
    inherit directly from BaseException rather than Exception, so this wrapper
    catches BaseException to handle both.

    Transient failures (connection reset, timeouts) are retried with
    exponential backoff. Permanent errors (syntax, permissions, missing
    relation) fail immediately.

    Args:
        conn: ConnectorX connection URI.
        query: SQL query to execute.
        return_type: ConnectorX return type (default "polars").
        context: Description for log messages (e.g. "relational read patients").
        max_retries: Maximum attempts. Defaults to config.RELATIONAL_MAX_RETRIES.
        base_delay: First backoff delay in seconds, doubled per retry.
        deadline: ``time.monotonic()`` value after which no retry is started.
            The caller has given up by then, so the last error is raised.

    Returns:
        Polars DataFrame with the query result.

    Raises:
        BaseException: After all retries are exhausted, the last error.
    """
    if max_retries is None:
        max_retries = config.RELATIONAL_MAX_RETRIES
    if base_delay is None:
        base_delay = config.RELATIONAL_RETRY_BASE_DELAY
    max_retries = max(1, max_retries)

    last_error: BaseException | None = None

    for attempt in range(1, max_retries + 1):
        try:
            return cx.read_sql(conn=conn, query=query, return_type=return_type)
        except BaseException as e:
            last_error = e
            error_type = type(e).__name__
            non_retryable = _is_non_retryable_error(str(e).lower(), error_type)

            if non_retryable or attempt == max_retries:
                logger.error(
                    "ConnectorX %s failed after %d attempt(s) (%s: %s)%s",
                    context, attempt, error_type, e,
                    " [non-retryable]" if non_retryable else "",
                )
                raise

            delay = base_delay * (2 ** (attempt - 1))
            if deadline is not None and time.monotonic() + delay >= deadline:
                logger.error(
                    "ConnectorX %s failed on attempt %d (%s: %s); deadline reached, not retrying",
                    context, attempt, error_type, e,
                )
                raise

            logger.warning(
                "ConnectorX %s attempt %d/%d failed (%s: %s). Retrying in %.1fs...",
                context, attempt, max_retries, error_type, e, delay,
            )
            time.sleep(delay)

    raise last_error  # type: ignore[misc]


# Permanent Postgres errors: retrying only wastes time and hides the cause.
_NON_RETRYABLE_PATTERNS = (
    "syntax",
    "permission denied",
    "does not exist",
    "password authentication failed",
    "no pg_hba.conf entry",
    "invalid input syntax",
    "undefined column",
    "undefined table",
)

# Checked first: a transient match always wins over a permanent one.
_TRANSIENT_PATTERNS = (
    "connection reset",
    "connection refused",
    "connection closed",
    "timeout",
    "timed out",
    "broken pipe",
    "network",
    "too many connections",
    "the database system is starting up",
)


def _is_non_retryable_error(error_str: str, error_type: str) -> bool:
    """Return True for errors that should not be retried."""
    if error_type in ("KeyboardInterrupt", "SystemExit"):
        return True

    for pattern in _TRANSIENT_PATTERNS:
        if pattern in error_str:
            return False

    for pattern in _NON_RETRYABLE_PATTERNS:
        if pattern in error_str:
            return True

    # Unknown errors are retried
    return False
