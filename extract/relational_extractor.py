"""ConnectorX reader for the relational store (hosted Postgres).

Reads the id / tenant / display / created columns of one entity table into a
polars DataFrame and maps the rows onto Entity snapshots.
"""

from __future__ import annotations

import logging
import time

import polars as pl

import connections
from connections import quote_identifier, quote_table
from entity_types import EntityType
from extract import cx_read_sql_safe
from extract.base import entities_from_rows
from reconciliation.models import Entity, SourceStore, StoreUnavailable

logger = logging.getLogger(__name__)


def build_select_query(entity_type: EntityType) -> str:
    fields = entity_type.relational
    col_list = ", ".join(quote_identifier(c) for c in fields.columns)
    return (
        f"SELECT {col_list} FROM {quote_table(entity_type.relational_full_table_name)} "
        f"ORDER BY {quote_identifier(fields.created_field)}, {quote_identifier(fields.id_field)}"
    )


def read_entity_table(
    entity_type: EntityType,
    uri: str | None = None,
    timeout: float | None = None,
) -> pl.DataFrame:
    """Read one entity table. Raises whatever ConnectorX raised after retries.

    ``timeout`` bounds the whole read: it sets the connect and statement
    timeouts on the default URI, and no retry starts after it has passed.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    uri = uri or connections.relational_connectorx_uri(timeout)
    query = build_select_query(entity_type)
    logger.info("Reading relational table: %s", entity_type.relational_full_table_name)
    df = cx_read_sql_safe(
        conn=uri, query=query, context=f"relational read {entity_type.name}", deadline=deadline,
    )
    logger.info("Read %d rows from %s", len(df), entity_type.relational_full_table_name)
    return df


class RelationalStore:
    """EntityStore over the relational tables."""

    source_store = SourceStore.RELATIONAL

    def __init__(self, uri: str | None = None, timeout: float | None = None) -> None:
        self._uri = uri
        self._timeout = timeout

    def list_entities(self, entity_type: EntityType) -> list[Entity]:
        try:
            df = read_entity_table(entity_type, self._uri, self._timeout)
        except (KeyboardInterrupt, SystemExit):
            raise
        except BaseException as e:
            # ConnectorX panics can derive from BaseException, not Exception
            raise StoreUnavailable(
                self.source_store,
                f"{type(e).__name__}: {e}",
                timed_out="timeout" in str(e).lower() or "timed out" in str(e).lower(),
            ) from e
        return entities_from_rows(df.to_dicts(), entity_type, self.source_store)
