"""DualStoreReader: fetch one entity type from both stores concurrently.

Each store is read on its own worker thread and joined under one deadline.
A failure or timeout on one side never aborts the other: the failed side is
returned as an empty list plus a StoreFailure marker, so callers can tell
"store down" apart from "zero records".
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

import config
from entity_types import EntityType, get_entity_type
from reconciliation.keys import normalize
from reconciliation.models import (
    Entity,
    EntityStore,
    RawTenantKey,
    SourceStore,
    StoreFailure,
    StoreSnapshot,
    StoreUnavailable,
)

if TYPE_CHECKING:
    from observability.event_tracker import ReconEventTracker


class DualStoreReader:
    """Read-only access to the relational and key-value stores behind one call.

    Stores default to the real adapters (ConnectorX / boto3); tests and
    operator tooling can inject any EntityStore.
    """

    def __init__(
        self,
        relational_store: EntityStore | None = None,
        key_value_store: EntityStore | None = None,
        *,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
        tracker: ReconEventTracker | None = None,
    ) -> None:
        self.timeout = config.STORE_TIMEOUT_SECONDS if timeout is None else timeout
        # The adapters get the same deadline so an abandoned read also gives up
        if relational_store is None:
            from extract.relational_extractor import RelationalStore
            relational_store = RelationalStore(timeout=self.timeout)
        if key_value_store is None:
            from extract.keyvalue_extractor import KeyValueStore
            key_value_store = KeyValueStore(timeout=self.timeout)
        self.stores: dict[SourceStore, EntityStore] = {
            SourceStore.RELATIONAL: relational_store,
            SourceStore.KEY_VALUE: key_value_store,
        }
        self.logger = logger or logging.getLogger(__name__)
        self.tracker = tracker

    def fetch_entities(
        self,
        entity_type: str | EntityType,
        tenant_filter: RawTenantKey = None,
    ) -> StoreSnapshot:
        """Return both stores' entities for the type, optionally for one tenant.

        The tenant filter is compared by canonical key, so ``"7"`` selects
        rows whose tenant key is ``7``, ``"007"`` or ``"7"``.
        """
        etype = entity_type if isinstance(entity_type, EntityType) else get_entity_type(entity_type)
        snapshot = StoreSnapshot(entity_type=etype.name)

        # Daemon threads: a hung store must not hold up the caller, nor keep
        # the process alive at exit once its deadline has passed.
        outcomes: dict[SourceStore, list[Entity] | BaseException] = {}
        outcomes_lock = threading.Lock()
        threads: dict[SourceStore, threading.Thread] = {}
        for source, store in self.stores.items():
            thread = threading.Thread(
                target=self._read_into,
                args=(source, store, etype, outcomes, outcomes_lock),
                name=f"store-read-{source.value.lower()}",
                daemon=True,
            )
            thread.start()
            threads[source] = thread

        deadline = time.monotonic() + self.timeout
        for thread in threads.values():
            thread.join(max(0.0, deadline - time.monotonic()))

        with outcomes_lock:
            finished = dict(outcomes)

        for source in self.stores:
            entities: list[Entity] = []
            outcome = finished.get(source)
            if source not in finished:
                self._record_failure(
                    snapshot,
                    StoreFailure(
                        source, f"no response within {self.timeout:.1f}s",
                        timed_out=True, entity_type=etype.name,
                    ),
                    etype,
                )
            elif isinstance(outcome, StoreUnavailable):
                self._record_failure(
                    snapshot,
                    StoreFailure(source, outcome.message, timed_out=outcome.timed_out, entity_type=etype.name),
                    etype,
                )
            elif isinstance(outcome, BaseException):
                self._record_failure(
                    snapshot,
                    StoreFailure(source, f"{type(outcome).__name__}: {outcome}", entity_type=etype.name),
                    etype,
                )
            else:
                entities = outcome

            if source == SourceStore.RELATIONAL:
                snapshot.relational = entities
            else:
                snapshot.key_value = entities

        if tenant_filter is not None:
            self._apply_tenant_filter(snapshot, tenant_filter)

        self.logger.info(
            "Fetched %s: relational=%d key_value=%d failures=%d",
            etype.name, len(snapshot.relational), len(snapshot.key_value), len(snapshot.failures),
        )
        return snapshot

    def _read_into(
        self,
        source: SourceStore,
        store: EntityStore,
        etype: EntityType,
        outcomes: dict[SourceStore, list[Entity] | BaseException],
        lock: threading.Lock,
    ) -> None:
        try:
            result: list[Entity] | BaseException = self._read_store(source, store, etype)
        except Exception as e:
            result = e
        with lock:
            outcomes[source] = result

    def _read_store(
self, source: SourceStore, store: EntityStore, etype: EntityType) -> list[Entity]:
        if self.tracker is None:
            return store.list_entities(etype)
        with self.tracker.track(f"FETCH_{source.value}", etype.name) as event:
            entities = store.list_entities(etype)
            event.rows_processed = len(entities)
            return entities

    def _record_failure(self, snapshot: StoreSnapshot, failure: StoreFailure, etype: EntityType) -> None:
        snapshot.failures[failure.source_store] = failure
        self.logger.warning(
            "StoreUnavailable: %s read of %s failed%s: %s",
            failure.source_store.value, etype.name,
            " (timed out)" if failure.timed_out else "", failure.message,
        )

    def _apply_tenant_filter(self, snapshot: StoreSnapshot, tenant_filter: RawTenantKey) -> None:
        wanted = normalize(tenant_filter)
        if wanted is None:
            self.logger.warning("Tenant filter %r is blank; reading all tenants", tenant_filter)
            return
        snapshot.relational = [e for e in snapshot.relational if normalize(e.tenant_key) == wanted]
        snapshot.key_value = [e for e in snapshot.key_value if normalize(e.tenant_key) == wanted]
        if not snapshot.relational and not snapshot.key_value and not snapshot.failures:
            self.logger.info(
                "NotFoundNoop: tenant %s has no %s in either store", wanted, snapshot.entity_type,
            )
