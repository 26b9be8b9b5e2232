"""boto3 reader for the key-value store (DynamoDB).

Full paginated Scan of one entity table, projected to the four fields the
reconciliation needs. Numbers come back as Decimal, strings as str; both are
left as-is for the reporter.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import BotoCoreError, ClientError

import config
import connections
from entity_types import EntityType
from extract.base import entities_from_rows
from reconciliation.models import Entity, SourceStore, StoreUnavailable

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()


def build_scan_kwargs(entity_type: EntityType) -> dict[str, Any]:
    """Scan arguments with a projection. Attribute names go through
    ExpressionAttributeNames because ``name`` is a DynamoDB reserved word."""
    fields = entity_type.key_value
    names = {f"#f{idx}": column for idx, column in enumerate(fields.columns)}
    return {
        "TableName": fields.table,
        "ProjectionExpression": ", ".join(names),
        "ExpressionAttributeNames": names,
        "PaginationConfig": {"PageSize": config.DYNAMODB_SCAN_PAGE_SIZE},
    }


def scan_items(client, entity_type: EntityType) -> Iterator[dict[str, Any]]:
    """Yield deserialized items across all Scan pages (LastEvaluatedKey)."""
    paginator = client.get_paginator("scan")
    pages = 0
    for page in paginator.paginate(**build_scan_kwargs(entity_type)):
        pages += 1
        for item in page.get("Items", []):
            yield {key: _deserializer.deserialize(value) for key, value in item.items()}
    logger.debug("Scanned %d page(s) from %s", pages, entity_type.key_value.table)


class KeyValueStore:
    """EntityStore over the DynamoDB tables."""

    source_store = SourceStore.KEY_VALUE

    def __init__(self, client=None, timeout: float | None = None) -> None:
        self._client = client
        self._timeout = timeout

    @property
    def client(self):
        if self._client is None:
            self._client = connections.get_dynamodb_client(self._timeout)
        return self._client

    def list_entities(self, entity_type: EntityType) -> list[Entity]:
        table = entity_type.key_value.table
        logger.info("Scanning DynamoDB table: %s", table)
        try:
            items = list(scan_items(self.client, entity_type))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "ClientError")
            raise StoreUnavailable(self.source_store, f"{code} on {table}: {e}") from e
        except BotoCoreError as e:
            timed_out = "timeout" in type(e).__name__.lower() or "timed out" in str(e).lower()
            raise StoreUnavailable(
                self.source_store, f"{type(e).__name__} on {table}: {e}", timed_out=timed_out,
            ) from e
        logger.info("Read %d items from %s", len(items), table)
        return entities_from_rows(items, entity_type, self.source_store)
