from decimal import Decimal

from reconciliation.models import IssueKind, SourceStore
from reconciliation.reporter import reconcile_entities, tenant_key_set

from conftest import clinics, make_entity

RDB = SourceStore.RELATIONAL
KV = SourceStore.KEY_VALUE


def _kinds(records, kind):
    return [r for r in records if r.issue_kind == kind]


def test_same_patient_with_string_and_number_key_is_type_mismatch_not_orphan():
    relational = [make_entity("p1", "7", RDB)]
    key_value = [make_entity("p1", 7, KV)]

    records = reconcile_entities(relational, key_value, clinics(7))

    mismatches = _kinds(records, IssueKind.TYPE_MISMATCH)
    assert len(mismatches) == 1
    assert mismatches[0].entity_id == "p1"
    assert mismatches[0].source_store == RDB
    assert _kinds(records, IssueKind.ORPHAN) == []


def test_decimal_from_dynamodb_counts_as_number():
    records = reconcile_entities(
        [make_entity("p1", "7", RDB)], [make_entity("p1", Decimal("7"), KV)], clinics(7),
    )
    assert len(_kinds(records, IssueKind.TYPE_MISMATCH)) == 1


def test_report_without_tenant_is_orphan():
    key_value = [make_entity("r1", "9", KV, entity_type="reports")]

    records = reconcile_entities([], key_value, clinics(7, 8))

    assert len(records) == 1
    assert records[0].issue_kind == IssueKind.ORPHAN
    assert records[0].entity_id == "r1"
    assert records[0].source_store == KV


def test_zero_overlap_reports_only_orphans():
    relational = [
        make_entity("p1", "7", RDB),
        make_entity("p2", "8", RDB),
        make_entity("p3", "99", RDB),
    ]
    key_value = [
        make_entity("p4", 7, KV),
        make_entity("p5", 42, KV),
    ]
    tenants = clinics(7, 8)
    matched = sum(1 for e in relational + key_value if str(e.tenant_key) in {"7", "8"})

    records = reconcile_entities(relational, key_value, tenants)

    assert len(records) == len(relational) + len(key_value) - matched
    assert _kinds(records, IssueKind.DUPLICATE) == []
    assert [r.entity_id for r in records] == ["p3", "p5"]


def test_same_id_in_both_stores_is_duplicate():
    records = reconcile_entities(
        [make_entity("p1", "7", RDB)], [make_entity("p1", "007", KV)], clinics(7),
    )
    assert [r.issue_kind for r in records] == [IssueKind.DUPLICATE]


def test_unassigned_entities_are_never_duplicates_of_each_other():
    relational = [make_entity("p1", None, RDB), make_entity("p2", None, RDB)]
    key_value = [make_entity("p3", None, KV)]

    records = reconcile_entities(relational, key_value, clinics(7))

    assert _kinds(records, IssueKind.DUPLICATE) == []
    assert _kinds(records, IssueKind.TYPE_MISMATCH) == []
    orphans = _kinds(records, IssueKind.ORPHAN)
    assert [r.entity_id for r in orphans] == ["p1", "p2", "p3"]
    assert all("unassigned" in r.detail for r in orphans)


def test_unassigned_on_both_sides_of_same_id_is_only_duplicate():
    records = reconcile_entities(
        [make_entity("p1", None, RDB)], [make_entity("p1", None, KV)], None,
    )
    assert [r.issue_kind for r in records] == [IssueKind.DUPLICATE]


def test_different_tenants_for_same_id_is_reported_as_conflict():
    records = reconcile_entities(
        [make_entity("p1", "7", RDB)], [make_entity("p1", "8", KV)], clinics(7, 8),
    )
    mismatches = _kinds(records, IssueKind.TYPE_MISMATCH)
    assert len(mismatches) == 1
    assert "tenant conflict" in mismatches[0].detail


def test_malformed_key_is_type_mismatch():
    records = reconcile_entities([make_entity("p1", True, RDB)], [], None)
    assert len(records) == 1
    assert records[0].issue_kind == IssueKind.TYPE_MISMATCH
    assert "malformed" in records[0].detail


def test_id_repeated_within_one_store_is_duplicate():
    relational = [make_entity("p1", "7", RDB), make_entity("p1", "7", RDB)]
    records = reconcile_entities(relational, [], clinics(7))
    assert len(records) == 1
    assert records[0].issue_kind == IssueKind.DUPLICATE
    assert "within RELATIONAL" in records[0].detail


def test_no_tenant_list_skips_orphan_check():
    records = reconcile_entities([make_entity("p1", "404", RDB)], [], None)
    assert records == []


def test_empty_tenant_list_makes_everything_orphan():
    records = reconcile_entities([make_entity("p1", "7", RDB)], [make_entity("p2", 7, KV)], [])
    assert [r.issue_kind for r in records] == [IssueKind.ORPHAN, IssueKind.ORPHAN]


def test_order_is_relational_first_then_key_value():
    relational = [make_entity("b", "9", RDB), make_entity("a", "9", RDB)]
    key_value = [make_entity("c", 9, KV), make_entity("b", 9, KV)]

    records = reconcile_entities(relational, key_value, clinics(7))

    assert [(r.entity_id, r.source_store, r.issue_kind) for r in records] == [
        ("b", RDB, IssueKind.ORPHAN),
        ("b", RDB, IssueKind.TYPE_MISMATCH),
        ("b", RDB, IssueKind.DUPLICATE),
        ("a", RDB, IssueKind.ORPHAN),
        ("c", KV, IssueKind.ORPHAN),
        ("b", KV, IssueKind.ORPHAN),
    ]


def test_reconcile_is_idempotent():
    relational = [make_entity("p1", "7", RDB), make_entity("p2", "x", RDB), make_entity("p2", "x", RDB)]
    key_value = [make_entity("p1", 7, KV), make_entity("p3", None, KV)]
    tenants = clinics(7)

    first = reconcile_entities(relational, key_value, tenants)
    second = reconcile_entities(relational, key_value, tenants)

    assert first == second
    assert first


def test_inputs_are_not_mutated():
    relational = [make_entity("p1", "7", RDB)]
    key_value = [make_entity("p1", 7, KV)]
    before = (list(relational), list(key_value))
    reconcile_entities(relational, key_value, clinics(7))
    assert (relational, key_value) == before


def test_tenant_key_set_normalizes_clinic_ids():
    tenants = clinics("007", "ABC") + clinics(7, store=KV)
    assert tenant_key_set(tenants) == {"7", "abc"}


def test_huge_exponent_key_is_an_orphan_not_an_error():
    records = reconcile_entities([make_entity("p1", "1e5000", RDB)], [make_entity("p1", Decimal("1E5000"), KV)], clinics(7))

    assert [(r.entity_id, r.source_store, r.issue_kind) for r in records] == [
        ("p1", RDB, IssueKind.ORPHAN),
        ("p1", RDB, IssueKind.TYPE_MISMATCH),
        ("p1", RDB, IssueKind.DUPLICATE),
        ("p1", KV, IssueKind.ORPHAN),
    ]


def test_huge_integer_key_detail_stays_printable():
    records = reconcile_entities([make_entity("p1", 10**5000, RDB)], [], clinics(7))

    assert [r.issue_kind for r in records] == [IssueKind.ORPHAN]
    assert "too large to display" in records[0].detail
    assert len(records[0].detail) < 300


def _report(entity_id, tenant_key, store, patient_key):
    return make_entity(entity_id, tenant_key, store, entity_type="reports", patient_key=patient_key)


def test_report_pointing_at_missing_patient_is_orphan():
    relational = [_report("r1", "7", RDB, "p-404"), _report("r2", "7", RDB, "p1")]
    key_value = [_report("r3", 7, KV, " p2 "), _report("r4", 7, KV, None)]
    patients = [make_entity("p1", "7", RDB), make_entity("p2", 7, KV)]

    records = reconcile_entities(relational, key_value, clinics(7), patients=patients)

    assert [(r.entity_id, r.issue_kind) for r in records] == [("r1", IssueKind.ORPHAN)]
    assert "patient 'p-404' not found in either store" in records[0].detail


def test_patient_ids_are_not_case_folded():
    records = reconcile_entities(
        [_report("r1", "7", RDB, "ABC-1")], [], clinics(7), patients=[make_entity("abc-1", "7", RDB)],
    )
    assert [r.issue_kind for r in records] == [IssueKind.ORPHAN]


def test_no_patient_list_skips_patient_check():
    records = reconcile_entities([_report("r1", "7", RDB, "p-404")], [], clinics(7))
    assert records == []


def test_patient_ids_set_from_both_stores():
    from reconciliation.reporter import patient_id_set

    patients = [make_entity(" p1 ", "7", RDB), make_entity("p2", 7, KV), make_entity("", 7, KV)]
    assert patient_id_set(patients) == {"p1", "p2"}
