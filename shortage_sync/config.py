"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(PROJECT_ROOT / "output")))

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'shortage_sync.sqlite'}")

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = Path(os.getenv("LOG_FILE", str(LOG_DIR / "app.jsonl")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

# Tracing (OTLP over HTTP)
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv(
    "OTEL_EXPORTER_OTLP_ENDPOINT",
    "http://localhost:4318/v1/traces",
)
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "shortage-sync")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")

# Registry source files (BDPM open data, tab separated, latin-1)
BDPM_BASE_URL = os.getenv(
    "BDPM_BASE_URL",
    "https://base-donnees-publique.medicaments.gouv.fr/download/file",
).rstrip("/")
BDPM_SOURCE_DIR = os.getenv("BDPM_SOURCE_DIR", "").strip()
BDPM_CATALOG_FILE = os.getenv("BDPM_CATALOG_FILE", "CIS_bdpm.txt")
BDPM_COMPOSITION_FILE = os.getenv("BDPM_COMPOSITION_FILE", "CIS_COMPO_bdpm.txt")
BDPM_SHORTAGE_FILE = os.getenv("BDPM_SHORTAGE_FILE", "CIS_CIP_Dispo_Spec.txt")
BDPM_FETCH_TIMEOUT_SECONDS = float(os.getenv("BDPM_FETCH_TIMEOUT_SECONDS", "60"))

# Raw snapshots of the last fetch, and dated backups of the one before
SNAPSHOT_DIR = Path(os.getenv("SNAPSHOT_DIR", str(DATA_DIR / "bdpm")))
BACKUP_DIR = Path(os.getenv("BACKUP_DIR", str(SNAPSHOT_DIR / "backups")))

# Unrecognised shortage text is not documented by the regulator; TENSION unless overridden.
SHORTAGE_FALLBACK_STATUS = os.getenv("SHORTAGE_FALLBACK_STATUS", "TENSION").upper()

# Sync pass
CHANGE_DETECTION_STRATEGY = os.getenv("CHANGE_DETECTION_STRATEGY", "auto").lower()
SYNC_UPSERT_WORKERS = int(os.getenv("SYNC_UPSERT_WORKERS", "4"))
SYNC_STALE_RUN_SECONDS = int(os.getenv("SYNC_STALE_RUN_SECONDS", "7200"))
STATUS_HISTORY_SOURCE = os.getenv("STATUS_HISTORY_SOURCE", "BDPM")

# Notification fan-out
NOTIFY_WORKER_COUNT = int(os.getenv("NOTIFY_WORKER_COUNT", "4"))
NOTIFY_EMAIL_COOLDOWN_SECONDS = int(os.getenv("NOTIFY_EMAIL_COOLDOWN_SECONDS", "3600"))

# Push delivery: "mock" writes a JSON outbox, "http" posts to a push gateway
PUSH_PROVIDER = os.getenv("PUSH_PROVIDER", "mock").lower()
PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL", "").rstrip("/")
PUSH_GATEWAY_TOKEN = os.getenv("PUSH_GATEWAY_TOKEN", "")
PUSH_OUTBOX_PATH = OUTPUT_DIR / "push_outbox.json"

# Email delivery: "mock" writes a JSON outbox, "smtp" sends through SMTP_HOST, "none" disables email
EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "mock").lower()
EMAIL_OUTBOX_PATH = OUTPUT_DIR / "email_outbox.json"
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "") or SMTP_USER
SMTP_STARTTLS = os.getenv("SMTP_STARTTLS", "true").lower() == "true"
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3001").rstrip("/")

# HTTP trigger
SERVER_PORT = int(os.getenv("SERVER_PORT", "8000"))
CRON_SECRET = os.getenv("CRON_SECRET", "")
