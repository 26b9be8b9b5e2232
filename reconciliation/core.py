"""Top-level dual-store reconciliation: fetch, compare, report."""

from __future__ import annotations

import logging

from entity_types import PATIENT_ENTITY_TYPE, TENANT_ENTITY_TYPE, get_entity_type
from observability.event_tracker import ReconEventTracker
from reconciliation.models import DiscrepancyRecord, Entity, RawTenantKey, ReconciliationReport
from reconciliation.reader import DualStoreReader
from reconciliation.reporter import reconcile_entities


def reconcile(
    entity_type: str,
    tenant_filter: RawTenantKey = None,
    *,
    reader: DualStoreReader | None = None,
    logger: logging.Logger | None = None,
    tracker: ReconEventTracker | None = None,
) -> ReconciliationReport:
    """Reconcile one entity type across the relational and key-value stores.

    Store failures never raise: they are listed on the report and the
    surviving side is still reconciled. When the clinic lists could not be
    read from either store the ORPHAN check is skipped and the report says so.
    Reports are also checked against the patients of both stores.

    Returns the full report rather than a bare discrepancy list, so that
    failures and skipped checks travel with the results;
    find_discrepancies() returns the list alone.

    Args:
        entity_type: "clinics", "patients" or "reports".
        tenant_filter: Optional tenant key (any representation) to restrict to.
        reader: DualStoreReader to use. Defaults to one over the real stores.
        logger: Optional logger; defaults to this module's logger.
        tracker: Optional event tracker for per-step timings.

    Returns:
        ReconciliationReport with discrepancies in deterministic order.

    Raises:
        ValueError: If entity_type is not a known entity type.
    """
    log = logger or logging.getLogger(__name__)
    etype = get_entity_type(entity_type)
    if reader is None:
        reader = DualStoreReader(logger=logger, tracker=tracker)

    report = ReconciliationReport(entity_type=etype.name, tenant_filter=tenant_filter)

    snapshot = reader.fetch_entities(etype, tenant_filter)
    report.relational_count = len(snapshot.relational)
    report.key_value_count = len(snapshot.key_value)
    report.failures.extend(snapshot.failures.values())

    if etype.is_tenant:
        tenant_snapshot = snapshot
    else:
        tenant_snapshot = reader.fetch_entities(TENANT_ENTITY_TYPE, tenant_filter)
        report.failures.extend(tenant_snapshot.failures.values())

    tenants: list[Entity] | None = tenant_snapshot.relational + tenant_snapshot.key_value
    if tenant_snapshot.all_failed:
        tenants = None
        report.orphan_check_skipped = True
        log.warning(
            "Tenant lists unavailable from both stores; ORPHAN check skipped for %s",
            etype.name,
        )
    elif not tenant_snapshot.is_complete:
        log.warning(
            "Tenant list read from one store only; ORPHAN results for %s may be overstated",
            etype.name,
        )
    report.tenant_count = len(tenants or [])

    patients: list[Entity] | None = None
    if etype.links_patient:
        patients = _fetch_patients(reader, report, etype.name, log)

    if tracker is not None:
        with tracker.track("RECONCILE", etype.name) as event:
            report.discrepancies = reconcile_entities(
                snapshot.relational, snapshot.key_value, tenants, patients=patients, logger=logger,
            )
            event.rows_processed = report.relational_count + report.key_value_count
            event.discrepancies = len(report.discrepancies)
    else:
        report.discrepancies = reconcile_entities(
            snapshot.relational, snapshot.key_value, tenants, patients=patients, logger=logger,
        )

    if report.failures:
        log.warning(
            "Reconciliation of %s is incomplete: %d store read(s) failed",
            etype.name, len(report.failures),
        )
    return report


def find_discrepancies(
    entity_type: str,
    tenant_filter: RawTenantKey = None,
    *,
    reader: DualStoreReader | None = None,
    logger: logging.Logger | None = None,
) -> list[DiscrepancyRecord]:
    """Discrepancy list only, for callers that do not need the report.

    Store failures are logged by reconcile() but not returned here; use
    reconcile() when an incomplete read must be told apart from a clean one.
    """
    return reconcile(entity_type, tenant_filter, reader=reader, logger=logger).discrepancies


def _fetch_patients(
    reader: DualStoreReader,
    report: ReconciliationReport,
    entity_type: str,
    log: logging.Logger,
) -> list[Entity] | None:
    # Unfiltered: a report may point at a patient filed under another clinic
    snapshot = reader.fetch_entities(PATIENT_ENTITY_TYPE)
    report.failures.extend(snapshot.failures.values())
    if snapshot.all_failed:
        report.patient_check_skipped = True
        log.warning(
            "Patient lists unavailable from both stores; patient link check skipped for %s",
            entity_type,
        )
        return None
    if not snapshot.is_complete:
        log.warning(
            "Patient list read from one store only; patient ORPHAN results for %s may be overstated",
            entity_type,
        )
    return snapshot.relational + snapshot.key_value
