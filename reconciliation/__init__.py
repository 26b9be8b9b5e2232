"""Dual-store identity reconciliation.

Clinics, patients and reports live in both a relational store (Postgres)
and a key-value store (DynamoDB), with the clinic foreign key held as a
string in one and a number in the other. This package reads both stores,
normalizes tenant keys and reports ORPHAN / TYPE_MISMATCH / DUPLICATE
discrepancies. It never writes to either store; fixes are a separate,
manual step.

Usage:
    python3 -c "
    from reconciliation import reconcile
    report = reconcile('patients', tenant_filter='7')
    print(report.to_dict())
    "
"""

# --- Models ---
from reconciliation.models import (
    DiscrepancyRecord,
    Entity,
    EntityStore,
    IssueKind,
    ReconciliationReport,
    SourceStore,
    StoreFailure,
    StoreSnapshot,
    StoreUnavailable,
)

# --- Key normalization ---
from reconciliation.keys import is_well_formed_key, normalize

# --- Reader ---
from reconciliation.reader import DualStoreReader

# --- Reporter ---
from reconciliation.reporter import reconcile_entities

# --- Core ---
from reconciliation.core import find_discrepancies, reconcile

# --- Persistence ---
from reconciliation.persistence import write_discrepancies_csv, write_report_json

__all__ = [
    # Models
    "Entity",
    "DiscrepancyRecord",
    "IssueKind",
    "SourceStore",
    "StoreFailure",
    "StoreSnapshot",
    "StoreUnavailable",
    "EntityStore",
    "ReconciliationReport",
    # Keys
    "normalize",
    "is_well_formed_key",
    # Reader
    "DualStoreReader",
    # Reporter
    "reconcile_entities",
    # Core
    "reconcile",
    "find_discrepancies",
    # Persistence
    "write_report_json",
    "write_discrepancies_csv",
]
