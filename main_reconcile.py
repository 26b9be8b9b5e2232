"""CLI entry point for dual-store reconciliation.

Usage:
    python3 main_reconcile.py --entity-type patients
    python3 main_reconcile.py --entity-type reports --tenant 7 --output-dir recon_reports
    python3 main_reconcile.py --entity-type all --fail-on-discrepancy
    python3 main_reconcile.py --list-entity-types

Exit codes: 0 clean (or discrepancies without --fail-on-discrepancy),
2 discrepancies with --fail-on-discrepancy, 3 a store read failed.
"""

from __future__ import annotations

# cli_common puts the project root on sys.path, so it is imported first.
import cli_common  # noqa: F401

import argparse
import json
import logging
import sys

from entity_types import known_entity_types
from observability.event_tracker import ReconEventTracker
from reconciliation.core import reconcile
from reconciliation.persistence import (
    default_report_paths,
    report_payload,
    write_discrepancies_csv,
    write_report_json,
)
from reconciliation.reader import DualStoreReader

EXIT_DISCREPANCIES = 2
EXIT_STORE_FAILURE = 3


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dual-store clinic/patient/report reconciliation")
    parser.add_argument("--entity-type", type=str, help="clinics, patients, reports, or 'all'")
    parser.add_argument("--tenant", type=str, default=None, help="Restrict to one clinic (any key representation)")
    parser.add_argument("--output-dir", type=str, default=None, help="Write <type>_<run>.json and .csv reports here")
    parser.add_argument("--output-json", type=str, default=None, help="Write the JSON report to this path")
    parser.add_argument("--output-csv", type=str, default=None, help="Write the discrepancy CSV to this path")
    parser.add_argument("--timeout", type=float, default=None, help="Per-fetch deadline in seconds for both stores")
    parser.add_argument("--log-jsonl", type=str, default=None, help="Structured JSON-lines log file")
    parser.add_argument("--fail-on-discrepancy", action="store_true", help="Exit 2 if any discrepancy is found")
    parser.add_argument("--check-connections", action="store_true", help="Verify both stores are reachable first")
    parser.add_argument("--list-entity-types", action="store_true", help="List entity types and store tables, then exit")
    return parser.parse_args(argv)


def _resolve_entity_types(value: str | None) -> list[str]:
    if value is None:
        return []
    if value.strip().lower() == "all":
        return known_entity_types()
    cli_common.validate_cli_filters(value)
    return [value.strip().lower()]


def main(argv: list[str] | None = None, reader: DualStoreReader | None = None) -> int:
    args = parse_args(argv)
    logger = logging.getLogger(__name__)

    if args.list_entity_types:
        from entity_types import get_entity_type
        print(f"\n{'Type':<12} {'Relational':<30} {'Key-value':<40}")
        print("-" * 82)
        for name in known_entity_types():
            etype = get_entity_type(name)
            print(f"{name:<12} {etype.relational_full_table_name:<30} {etype.key_value.table:<40}")
        return 0

    entity_types = _resolve_entity_types(args.entity_type)
    if not entity_types:
        print("No entity type given. Use --entity-type or --list-entity-types.", file=sys.stderr)
        return 1

    tracker = ReconEventTracker()
    jsonl_handler = cli_common.setup_logging(tracker.run_id, args.log_jsonl)

    if args.check_connections and not cli_common.startup_checks(entity_types):
        logger.warning("Startup checks failed; continuing, failing stores will be reported")

    if reader is None:
        reader = DualStoreReader(timeout=args.timeout, tracker=tracker)

    logger.info(
        "Starting reconciliation: run_id=%s, entity_types=%s, tenant=%s",
        tracker.run_id, entity_types, args.tenant,
    )

    payloads = []
    any_discrepancies = False
    any_failures = False
    try:
        for name in entity_types:
            if jsonl_handler is not None:
                jsonl_handler.set_context(entity_type=name, tenant_filter=args.tenant)
            report = reconcile(name, args.tenant, reader=reader, tracker=tracker)
            any_discrepancies = any_discrepancies or bool(report.discrepancies)
            any_failures = any_failures or bool(report.failures)
            payloads.append(report_payload(report, run_id=tracker.run_id))

            json_path = args.output_json
            csv_path = args.output_csv
            if args.output_dir:
                default_json, default_csv = default_report_paths(name, tracker.run_id, args.output_dir)
                json_path = json_path or default_json
                csv_path = csv_path or default_csv
            if len(entity_types) > 1 and (args.output_json or args.output_csv):
                # One explicit path cannot hold several reports
                json_path, csv_path = default_report_paths(name, tracker.run_id, args.output_dir)
            if json_path:
                write_report_json(report, json_path, run_id=tracker.run_id, events=tracker.to_list())
            if csv_path:
                write_discrepancies_csv(report, csv_path)
    finally:
        cli_common.log_connection_overhead()
        cli_common.shutdown_connections()
        if jsonl_handler is not None:
            logging.getLogger().removeHandler(jsonl_handler)
            jsonl_handler.close()

    print(json.dumps(
        {"run_id": tracker.run_id, "reports": payloads, "events": tracker.to_list()},
        indent=2, sort_keys=True, default=str,
    ))

    logger.info(
        "Reconciliation complete: run_id=%s, discrepancies=%s, store_failures=%s",
        tracker.run_id, any_discrepancies, any_failures,
    )
    if any_failures:
        return EXIT_STORE_FAILURE
    if any_discrepancies and args.fail_on_discrepancy:
        return EXIT_DISCREPANCIES
    return 0


if __name__ == "__main__":
    sys.exit(main())
