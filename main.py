"""
CityReport Core Entry Point.

Bootstraps the entire dependency graph via constructor injection,
initialises the local SQLite schema, seeds first-run data, and keeps the
background machinery (sync worker, pollers) running until interrupted.
Every subsystem is wired here; there are no module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import signal
import sys
import threading
from pathlib import Path
from types import FrameType
from typing import Optional

from cityreport.config import get_config
from cityreport.database import DatabaseManager
from cityreport.errors import ConfigError
from cityreport.logger import StructuredLogger, get_logger
from cityreport.schema import initialize_schema
from cityreport.services import ServiceContainer, create_services


def _register_pollers(services: ServiceContainer, logger: StructuredLogger) -> None:
    """Start the default refresh loops with the configured intervals."""
    config = get_config()
    reports = services["report_repository"]
    alerts = services["alert_repository"]
    sessions = services["session_manager"]
    pollers = services["pollers"]

    pollers.register(
        "report-list",
        config.REPORT_REFRESH_INTERVAL_S,
        lambda: logger.debug(
            "Report refresh", extra={"total": reports.get_statistics().total},
        ),
    )
    pollers.register(
        "map",
        config.MAP_REFRESH_INTERVAL_S,
        lambda: logger.debug(
            "Map refresh", extra={"located": len(reports.get_located())},
        ),
    )
    pollers.register(
        "history",
        config.HISTORY_REFRESH_INTERVAL_S,
        lambda: logger.debug(
            "History refresh", extra={"resolved": reports.get_statistics().resolved},
        ),
    )
    pollers.register(
        "alert-check",
        config.ALERT_CHECK_INTERVAL_S,
        lambda: logger.debug(
            "Alert check",
            extra={
                "active_alerts": len(alerts.get_active()),
                "session_strength": sessions.session_strength(),
            },
        ),
    )


def main() -> None:
    """Application entry point: wire dependencies and run until stopped."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting CityReport core...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()
    try:
        config.validate_remote_config()
    except ConfigError as exc:
        logger.warning("Remote mirror disabled: %s", exc)

    # ------------------------------------------------------------------
    # 2. Database Manager (local-first: Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL if config.remote_enabled else "",
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
        timeout_s=config.SYNC_TIMEOUT_S,
    )
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. SQLite Schema Initialization (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Service Container (repositories + services, single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)

    services["report_repository"].seed_sample_data()
    services["alert_repository"].seed_sample_data()
    services["contact_repository"].seed_sample_data()

    # ------------------------------------------------------------------
    # 5. Background machinery
    # ------------------------------------------------------------------
    sync_worker = services.get("sync_worker")
    if sync_worker is not None:
        sync_worker.start()
    _register_pollers(services, logger)

    # ------------------------------------------------------------------
    # 6. Run until SIGINT / SIGTERM
    # ------------------------------------------------------------------
    stop_event = threading.Event()

    def _request_stop(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("Received signal %d, shutting down.", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    logger.info("CityReport core running.")
    try:
        while not stop_event.wait(timeout=1.0):
            pass
    finally:
        services["pollers"].stop_all()
        if sync_worker is not None:
            sync_worker.stop()
        services["dispatcher"].shutdown(timeout=config.SYNC_TIMEOUT_S)
        db.close()
        logger.info("CityReport core shut down.")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n")
        sys.exit(1)
