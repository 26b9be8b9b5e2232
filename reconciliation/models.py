"""Reconciliation dataclasses: entities, discrepancies, store failures, reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from entity_types import EntityType

RawTenantKey = Union[str, int, float, Decimal, None]


class SourceStore(Enum):
    RELATIONAL = "RELATIONAL"
    KEY_VALUE = "KEY_VALUE"


class IssueKind(Enum):
    ORPHAN = "ORPHAN"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    DUPLICATE = "DUPLICATE"


@dataclass(frozen=True)
class Entity:
    """Read-only snapshot of one clinic, patient or report row/item."""

    id: str
    tenant_key: Any
    display_name: str | None
    created_at: datetime | str | None
    source_store: SourceStore
    entity_type: str = ""
    # Raw patient id a report points at; None for clinics and patients
    patient_key: Any = None


@dataclass(frozen=True)
class DiscrepancyRecord:
    entity_id: str
    source_store: SourceStore
    issue_kind: IssueKind
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {
            "entity_id": self.entity_id,
            "source_store": self.source_store.value,
            "issue_kind": self.issue_kind.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class StoreFailure:
    """Marker for a store whose read failed or timed out (StoreUnavailable)."""

    source_store: SourceStore
    message: str
    timed_out: bool = False
    kind: str = "StoreUnavailable"
    entity_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_store": self.source_store.value,
            "entity_type": self.entity_type,
            "kind": self.kind,
            "message": self.message,
            "timed_out": self.timed_out,
        }


@dataclass
class StoreSnapshot:
    """Raw per-store entity lists from one fetch. Failed sides are empty lists."""

    entity_type: str
    relational: list[Entity] = field(default_factory=list)
    key_value: list[Entity] = field(default_factory=list)
    failures: dict[SourceStore, StoreFailure] = field(default_factory=dict)

    def failed(self, store: SourceStore) -> bool:
        return store in self.failures

    @property
    def is_complete(self) -> bool:
        return not self.failures

    @property
    def all_failed(self) -> bool:
        return len(self.failures) == len(SourceStore)


@dataclass
class ReconciliationReport:
    """Results from a dual-store reconciliation run."""

    entity_type: str
    tenant_filter: RawTenantKey = None
    relational_count: int = 0
    key_value_count: int = 0
    tenant_count: int = 0
    discrepancies: list[DiscrepancyRecord] = field(default_factory=list)
    failures: list[StoreFailure] = field(default_factory=list)
    orphan_check_skipped: bool = False
    patient_check_skipped: bool = False

    @property
    def is_clean(self) -> bool:
        return not self.discrepancies and not self.failures

    @property
    def is_complete(self) -> bool:
        return not self.failures and not self.orphan_check_skipped and not self.patient_check_skipped

    def count_by_kind(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in IssueKind}
        for record in self.discrepancies:
            counts[record.issue_kind.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "tenant_filter": None if self.tenant_filter is None else str(self.tenant_filter),
            "status": "CLEAN" if self.is_clean else ("INCOMPLETE" if self.failures else "DISCREPANCIES"),
            "summary": {
                "relational_count": self.relational_count,
                "key_value_count": self.key_value_count,
                "tenant_count": self.tenant_count,
                "discrepancy_count": len(self.discrepancies),
                "by_kind": self.count_by_kind(),
                "orphan_check_skipped": self.orphan_check_skipped,
                "patient_check_skipped": self.patient_check_skipped,
            },
            "failures": [failure.to_dict() for failure in self.failures],
            "discrepancies": [record.to_dict() for record in self.discrepancies],
        }


class StoreUnavailable(Exception):
    """Raised by a store adapter when its backing store cannot be read."""

    def __init__(self, source_store: SourceStore, message: str, *, timed_out: bool = False) -> None:
        super().__init__(f"{source_store.value}: {message}")
        self.source_store = source_store
        self.message = message
        self.timed_out = timed_out


@runtime_checkable
class EntityStore(Protocol):
    """Anything that can list entity snapshots for an entity type."""

    source_store: SourceStore

    def list_entities(self, entity_type: EntityType) -> list[Entity]:
        ...
