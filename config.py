"""Environment variables, store endpoints, timeouts, and report output paths."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from RECON_ENV_FILE if given, else the working directory
load_dotenv(os.getenv("RECON_ENV_FILE", ".env"))

# --- Relational store (hosted Postgres) ---
RELATIONAL_HOST = os.getenv("RELATIONAL_HOST", "")
RELATIONAL_PORT = int(os.getenv("RELATIONAL_PORT", "5432"))
RELATIONAL_USER = os.getenv("RELATIONAL_USER", "postgres")
RELATIONAL_PASSWORD = os.getenv("RELATIONAL_PASSWORD", "")
RELATIONAL_DB = os.getenv("RELATIONAL_DB", "postgres")
RELATIONAL_SCHEMA = os.getenv("RELATIONAL_SCHEMA", "public")
# Hosted Postgres requires TLS; "disable" for a local container
RELATIONAL_SSLMODE = os.getenv("RELATIONAL_SSLMODE", "require")

# Retries for transient connectorx failures (connection reset, timeout).
# Permanent errors (syntax, permissions, missing relation) fail immediately.
RELATIONAL_MAX_RETRIES = int(os.getenv("RELATIONAL_MAX_RETRIES", "3"))
RELATIONAL_RETRY_BASE_DELAY = float(os.getenv("RELATIONAL_RETRY_BASE_DELAY", "2.0"))

# --- Key-value store (DynamoDB) ---
AWS_REGION = os.getenv("AWS_REGION", "ap-south-1")
# Optional, for DynamoDB Local / LocalStack
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL") or None
DYNAMODB_TABLE_PREFIX = os.getenv("DYNAMODB_TABLE_PREFIX", "neuro360-dev")
DYNAMODB_SCAN_PAGE_SIZE = int(os.getenv("DYNAMODB_SCAN_PAGE_SIZE", "500"))


def dynamodb_table_name(entity_type: str) -> str:
    """Table for an entity type: DYNAMODB_TABLE_<TYPE> override, else <prefix>-<type>."""
    override = os.getenv(f"DYNAMODB_TABLE_{entity_type.upper()}")
    if override:
        return override
    return f"{DYNAMODB_TABLE_PREFIX}-{entity_type}"


# --- Dual-store reads ---
# Upper bound on how long fetch_entities() waits for both stores. A store that
# has not answered by then is reported as failed; the other side still returns.
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "30"))

# --- Report output ---
REPORT_OUTPUT_DIR = Path(os.getenv("REPORT_OUTPUT_DIR", "recon_reports"))

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Structured JSON-lines log sink; empty disables it
LOG_JSONL_PATH = os.getenv("LOG_JSONL_PATH", "")
