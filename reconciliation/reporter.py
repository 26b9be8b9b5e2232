"""ReconciliationReporter: turn two per-store entity lists into a discrepancy list.

Checks, per entity, relational list first and then key-value list:

  ORPHAN         canonical tenant key matches no tenant in either store,
                 or the tenant key is unassigned,
                 or a report points at a patient neither store holds.
  TYPE_MISMATCH  the same id holds a string key in one store and a number in
                 the other, holds different tenants in the two stores, or the
                 raw key is malformed (boolean, container, NaN).
  DUPLICATE      the id exists in both stores (informational), or repeats
                 inside one store.

Cross-store issues are reported once, against the relational-side entity.
Output order depends only on input order. Nothing here writes to a store.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Sequence

from reconciliation.keys import is_well_formed_key, key_type, normalize
from reconciliation.models import DiscrepancyRecord, Entity, IssueKind, SourceStore


def tenant_key_set(tenants: Iterable[Entity]) -> set[str]:
    """Canonical keys of the tenant (clinic) entities from both stores."""
    keys: set[str] = set()
    for tenant in tenants:
        key = normalize(tenant.id)
        if key is not None:
            keys.add(key)
    return keys


def patient_id_set(patients: Iterable[Entity]) -> set[str]:
    """Ids of the patient entities from both stores."""
    return {patient_id for patient_id in (_patient_id(p.id) for p in patients) if patient_id is not None}


def reconcile_entities(
    relational: Sequence[Entity],
    key_value: Sequence[Entity],
    tenants: Iterable[Entity] | None = None,
    *,
    patients: Iterable[Entity] | None = None,
    logger: logging.Logger | None = None,
) -> list[DiscrepancyRecord]:
    """Compare the two stores' lists and return discrepancies in input order.

    Args:
        relational: Entities read from the relational store.
        key_value: Entities read from the key-value store.
        tenants: Tenant entities from both stores. None skips the ORPHAN
            check (tenant lists unavailable); an empty iterable means no
            tenant exists, so every entity is an orphan.
        patients: Patient entities from both stores, for entities that point
            at a patient (reports). A report whose patient id matches no
            patient is an ORPHAN. None skips the check.
        logger: Optional logger; defaults to this module's logger.

    Returns:
        List of DiscrepancyRecord.
    """
    log = logger or logging.getLogger(__name__)
    known_tenants = None if tenants is None else tenant_key_set(tenants)
    known_patients = None if patients is None else patient_id_set(patients)

    # Canonical tenant key -> entities from both stores that reference it
    by_tenant: dict[str | None, list[Entity]] = defaultdict(list)
    for entity in list(relational) + list(key_value):
        by_tenant[normalize(entity.tenant_key)].append(entity)

    key_value_by_id: dict[str, Entity] = {}
    for entity in key_value:
        key_value_by_id.setdefault(entity.id, entity)

    records: list[DiscrepancyRecord] = []

    seen_relational: set[str] = set()
    for entity in relational:
        repeated = entity.id in seen_relational
        seen_relational.add(entity.id)
        records.extend(_single_entity_issues(entity, known_tenants, by_tenant, known_patients))
        if repeated:
            records.append(_repeat_record(entity))
            continue
        counterpart = key_value_by_id.get(entity.id)
        if counterpart is not None:
            records.extend(_cross_store_issues(entity, counterpart))

    seen_key_value: set[str] = set()
    for entity in key_value:
        repeated = entity.id in seen_key_value
        seen_key_value.add(entity.id)
        records.extend(_single_entity_issues(entity, known_tenants, by_tenant, known_patients))
        if repeated:
            records.append(_repeat_record(entity))

    if records:
        counts: dict[str, int] = defaultdict(int)
        for record in records:
            counts[record.issue_kind.value] += 1
        log.warning(
            "Reconciliation found %d discrepancies (relational=%d, key_value=%d): %s",
            len(records), len(relational), len(key_value), dict(counts),
        )
    else:
        log.info(
            "Reconciliation clean: relational=%d, key_value=%d",
            len(relational), len(key_value),
        )
    return records


def _single_entity_issues(
    entity: Entity,
    known_tenants: set[str] | None,
    by_tenant: dict[str | None, list[Entity]],
    known_patients: set[str] | None = None,
) -> list[DiscrepancyRecord]:
    issues: list[DiscrepancyRecord] = []
    canonical = normalize(entity.tenant_key)

    if known_tenants is not None:
        if canonical is None:
            issues.append(DiscrepancyRecord(
                entity_id=entity.id,
                source_store=entity.source_store,
                issue_kind=IssueKind.ORPHAN,
                detail="tenant key is unassigned",
            ))
        elif canonical not in known_tenants:
            sharing = len(by_tenant.get(canonical, ()))
            issues.append(DiscrepancyRecord(
                entity_id=entity.id,
                source_store=entity.source_store,
                issue_kind=IssueKind.ORPHAN,
                detail=(
                    f"tenant {_describe(canonical)} (raw {_describe(entity.tenant_key)}) not found in either store; "
                    f"{sharing} record(s) reference it"
                ),
            ))

    patient_id = _patient_id(entity.patient_key)
    if known_patients is not None and patient_id is not None and patient_id not in known_patients:
        issues.append(DiscrepancyRecord(
            entity_id=entity.id,
            source_store=entity.source_store,
            issue_kind=IssueKind.ORPHAN,
            detail=f"patient {_describe(patient_id)} not found in either store",
        ))

    if not is_well_formed_key(entity.tenant_key):
        issues.append(DiscrepancyRecord(
            entity_id=entity.id,
            source_store=entity.source_store,
            issue_kind=IssueKind.TYPE_MISMATCH,
            detail=(
                f"malformed tenant key {_describe(entity.tenant_key)} ({key_type(entity.tenant_key)}); "
                f"compared as {_describe(canonical)}"
            ),
        ))
    return issues


def _cross_store_issues(relational: Entity, key_value: Entity) -> list[DiscrepancyRecord]:
    issues: list[DiscrepancyRecord] = []
    rel_key = normalize(relational.tenant_key)
    kv_key = normalize(key_value.tenant_key)
    rel_type = key_type(relational.tenant_key)
    kv_type = key_type(key_value.tenant_key)

    if rel_key != kv_key and not (rel_key is None and kv_key is None):
        issues.append(DiscrepancyRecord(
            entity_id=relational.id,
            source_store=SourceStore.RELATIONAL,
            issue_kind=IssueKind.TYPE_MISMATCH,
            detail=(
                f"tenant conflict: {SourceStore.RELATIONAL.value}={_describe(relational.tenant_key)} "
                f"vs {SourceStore.KEY_VALUE.value}={_describe(key_value.tenant_key)}"
            ),
        ))
    elif rel_key is not None and rel_type != kv_type:
        issues.append(DiscrepancyRecord(
            entity_id=relational.id,
            source_store=SourceStore.RELATIONAL,
            issue_kind=IssueKind.TYPE_MISMATCH,
            detail=(
                f"tenant key {_describe(rel_key)} stored as {rel_type} in {SourceStore.RELATIONAL.value} "
                f"and {kv_type} in {SourceStore.KEY_VALUE.value}"
            ),
        ))

    issues.append(DiscrepancyRecord(
        entity_id=relational.id,
        source_store=SourceStore.RELATIONAL,
        issue_kind=IssueKind.DUPLICATE,
        detail=f"present in both {SourceStore.RELATIONAL.value} and {SourceStore.KEY_VALUE.value}",
    ))
    return issues


def _repeat_record(entity: Entity) -> DiscrepancyRecord:
    return DiscrepancyRecord(
        entity_id=entity.id,
        source_store=entity.source_store,
        issue_kind=IssueKind.DUPLICATE,
        detail=f"id repeated within {entity.source_store.value}",
    )


def _describe(value: object, limit: int = 80) -> str:
    try:
        text = repr(value)
    except ValueError:
        # int too large for the str conversion limit
        return f"<{type(value).__name__} too large to display>"
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _patient_id(raw: object) -> str | None:
    # Patient ids are opaque: trimmed, never case-folded
    if raw is None:
        return None
    try:
        text = str(raw).strip()
    except ValueError:
        # int too large for the str conversion limit; not a usable id
        return None
    return text or None
