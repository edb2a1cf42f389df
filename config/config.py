"""Settings shared by every environment module.

Values come from environment variables (a .env file is loaded by create_app).
"""

import os


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# Record store: "memory" or "mysql"
STORE = os.getenv("STORE", "memory")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "shiftwatch_db"),
}

# Monitoring
CAPTURE_TARGET_COUNT = int(os.getenv("CAPTURE_TARGET_COUNT", "10"))

# Payments
APPROVAL_WINDOW_MINUTES = int(os.getenv("APPROVAL_WINDOW_MINUTES", "60"))
AUTO_APPROVE_THRESHOLD = int(os.getenv("AUTO_APPROVE_THRESHOLD", "70"))
AUTO_APPROVE_MODE = os.getenv("AUTO_APPROVE_MODE", "on_deadline")
PAY_CALCULATOR = os.getenv("PAY_CALCULATOR", "standard")
CURRENCY = os.getenv("CURRENCY", "NGN")
RECONCILIATION_POLICY = os.getenv("RECONCILIATION_POLICY", "manual")

# Orchestrator (HH:MM, local time)
DAY_START_AT = os.getenv("DAY_START_AT", "00:00")
END_OF_DAY_AT = os.getenv("END_OF_DAY_AT", "18:00")
SWEEP_INTERVAL_MINUTES = int(os.getenv("SWEEP_INTERVAL_MINUTES", "15"))
RETENTION_DAYS = int(os.getenv("RETENTION_DAYS", "90"))
RUN_SCHEDULER = _flag("RUN_SCHEDULER", "0")

LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# If enabled (STORE=mysql), app applies database/schema.sql on startup (idempotent)
AUTO_INIT_DB = _flag("AUTO_INIT_DB", "0")
# Optional: also seed demo payer/workers on startup
AUTO_SEED_DB = _flag("AUTO_SEED_DB", "0")
