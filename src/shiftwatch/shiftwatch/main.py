from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.datetime_utils import parse_hhmm
from .common.http import register_error_handlers
from .container import Container, EngineSettings, build_container
from .core.enums import AutoApproveMode, ReconciliationPolicy
from .database.bootstrap import apply_schema, apply_seed_sql, list_tables

from .attendance.controller import register as register_attendance
from .efficiency.controller import register as register_efficiency
from .payments.controller import register as register_payments
from .triggers.controller import register as register_triggers
from .workers.controller import register as register_workers

logger = logging.getLogger(__name__)

_DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def engine_settings(settings) -> EngineSettings:
    defaults = EngineSettings()
    return EngineSettings(
        store=str(getattr(settings, "STORE", defaults.store)).lower(),
        capture_target_count=int(getattr(settings, "CAPTURE_TARGET_COUNT", defaults.capture_target_count)),
        approval_window_minutes=int(getattr(settings, "APPROVAL_WINDOW_MINUTES", defaults.approval_window_minutes)),
        auto_approve_threshold=int(getattr(settings, "AUTO_APPROVE_THRESHOLD", defaults.auto_approve_threshold)),
        auto_approve_mode=AutoApproveMode(getattr(settings, "AUTO_APPROVE_MODE", defaults.auto_approve_mode.value)),
        pay_calculator=str(getattr(settings, "PAY_CALCULATOR", defaults.pay_calculator)),
        currency=str(getattr(settings, "CURRENCY", defaults.currency)),
        day_start_minute=parse_hhmm(getattr(settings, "DAY_START_AT", "00:00")),
        end_of_day_minute=parse_hhmm(getattr(settings, "END_OF_DAY_AT", "18:00")),
        sweep_interval_minutes=int(getattr(settings, "SWEEP_INTERVAL_MINUTES", defaults.sweep_interval_minutes)),
        retention_days=int(getattr(settings, "RETENTION_DAYS", defaults.retention_days)),
        reconciliation=ReconciliationPolicy(getattr(settings, "RECONCILIATION_POLICY", defaults.reconciliation.value)),
        lock_timeout_seconds=float(getattr(settings, "LOCK_TIMEOUT_SECONDS", defaults.lock_timeout_seconds)),
    )


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if container is None:
        engine = engine_settings(settings)
        db_config = getattr(settings, "DB_CONFIG", None)
        logger.info("settings=%s store=%s", settings_module, engine.store)

        if engine.store == "mysql":
            if getattr(settings, "AUTO_INIT_DB", False):
                apply_schema(db_config, schema_path=_DATABASE_DIR / "schema.sql")
                logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
            if getattr(settings, "AUTO_SEED_DB", False):
                apply_seed_sql(db_config, seed_path=_DATABASE_DIR / "seed.sql")
                logger.info("Demo seed ready")

        container = build_container(settings=engine, db_config=db_config)
        if getattr(settings, "RUN_SCHEDULER", False):
            container.orchestrator.start()

    app.extensions["shiftwatch"] = container
    register_error_handlers(app)

    register_triggers(app, container)
    register_efficiency(app, container)
    register_payments(app, container)
    register_attendance(app, container)
    register_workers(app, container)

    return app
