"""Row-to-Entity mapping shared by the relational and key-value adapters."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from entity_types import EntityType, StoreFields
from reconciliation.models import Entity, SourceStore

logger = logging.getLogger(__name__)


def fields_for(entity_type: EntityType, source_store: SourceStore) -> StoreFields:
    if source_store == SourceStore.RELATIONAL:
        return entity_type.relational
    return entity_type.key_value


def entities_from_rows(
    rows: Iterable[dict[str, Any]],
    entity_type: EntityType,
    source_store: SourceStore,
) -> list[Entity]:
    """Map raw rows/items onto Entity snapshots, keeping store order.

    The tenant key is passed through untouched (string, number or None) so the
    reporter can see the type each store actually holds. Rows without an id
    cannot be matched across stores and are skipped with a warning.
    """
    fields = fields_for(entity_type, source_store)
    entities: list[Entity] = []
    skipped = 0
    for row in rows:
        raw_id = row.get(fields.id_field)
        if raw_id is None or str(raw_id).strip() == "":
            skipped += 1
            continue
        display = row.get(fields.display_field)
        entities.append(
            Entity(
                id=str(raw_id).strip(),
                tenant_key=row.get(fields.tenant_field),
                display_name=None if display is None else str(display),
                created_at=row.get(fields.created_field),
                source_store=source_store,
                entity_type=entity_type.name,
                patient_key=row.get(fields.patient_field) if fields.patient_field else None,
            )
        )
    if skipped:
        logger.warning(
            "%s %s: skipped %d row(s) without %s",
            source_store.value, entity_type.name, skipped, fields.id_field,
        )
    return entities
