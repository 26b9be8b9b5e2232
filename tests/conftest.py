"""Shared fixtures: in-memory stores standing in for Postgres and DynamoDB."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from reconciliation.models import Entity, SourceStore, StoreUnavailable


def make_entity(
    entity_id: str,
    tenant_key,
    store: SourceStore = SourceStore.RELATIONAL,
    entity_type: str = "patients",
    name: str | None = None,
    patient_key=None,
) -> Entity:
    return Entity(
        id=entity_id,
        tenant_key=tenant_key,
        display_name=name or f"{entity_type}-{entity_id}",
        created_at="2024-09-01T00:00:00Z",
        source_store=store,
        entity_type=entity_type,
        patient_key=patient_key,
    )


def clinics(*ids, store: SourceStore = SourceStore.RELATIONAL) -> list[Entity]:
    return [make_entity(str(i), i, store=store, entity_type="clinics") for i in ids]


class FakeStore:
    """EntityStore over a dict of entity type name -> entities.

    ``fail`` makes every read raise; ``block`` makes reads wait on an event
    (released by the test) to simulate a hung store.
    """

    def __init__(
        self,
        source_store: SourceStore,
        data: dict[str, list[Entity]] | None = None,
        *,
        fail: BaseException | None = None,
        fail_types: set[str] | None = None,
        block: threading.Event | None = None,
    ) -> None:
        self.source_store = source_store
        self.data = data or {}
        self.fail = fail
        self.fail_types = fail_types
        self.block = block
        self.calls: list[str] = []

    def list_entities(self, entity_type):
        self.calls.append(entity_type.name)
        if self.block is not None:
            self.block.wait(timeout=10)
        if self.fail is not None and (self.fail_types is None or entity_type.name in self.fail_types):
            raise self.fail
        return list(self.data.get(entity_type.name, []))


@pytest.fixture
def release_event():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def store_down():
    return StoreUnavailable(SourceStore.RELATIONAL, "connection refused")
