"""
PresenceGate Entry Point.

Bootstraps the entire dependency graph via constructor injection,
initialises the local SQLite schema, starts the session reconciler and
the connectivity probe, then runs until interrupted.  Every subsystem
is wired here; there are no module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from presencegate.auth import SessionManager
from presencegate.config import get_config
from presencegate.database import DatabaseManager
from presencegate.logger import StructuredLogger, get_logger
from presencegate.models.events import DomainEvent
from presencegate.realtime_store import LocalRealtimeStore
from presencegate.remote_auth import SupabaseAuthService
from presencegate.schema import initialize_schema
from presencegate.services import create_services


def main() -> None:
    """Application entry point: wire dependencies and run until Ctrl+C."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting PresenceGate...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_STORE_PATH),
        logger=StructuredLogger(name="database"),
    )

    # DatabaseManager.close() is idempotent.
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. SQLite Schema Initialization (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Realtime store, remote auth, session
    # ------------------------------------------------------------------
    store = LocalRealtimeStore(
        db=db,
        logger=get_logger("store"),
        connected_path=config.CONNECTED_PATH,
    )
    remote_auth = SupabaseAuthService(
        client_factory=lambda: db.supabase,
        redirect_url=config.OAUTH_REDIRECT_URL,
        logger=get_logger("remote_auth"),
    )
    session = SessionManager()
    executor = ThreadPoolExecutor(
        max_workers=config.ACTION_WORKERS,
        thread_name_prefix="AuthAction",
    )

    # ------------------------------------------------------------------
    # 5. Service Container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(
        store=store,
        remote_auth=remote_auth,
        config=config,
        session=session,
        executor=executor,
    )

    events_logger = get_logger("events")

    def log_event(event: DomainEvent) -> None:
        events_logger.info("Event %s", event.name, extra={"event": event.name})

    services["event_bus"].subscribe(log_event)

    # ------------------------------------------------------------------
    # 6. Start listeners and the probe (blocks until interrupted)
    # ------------------------------------------------------------------
    started = services["session_reconciler"].start()
    probe = services["connectivity_probe"]
    if db.has_remote:
        probe.start()
    else:
        logger.warning("No Supabase client; running with the store offline.")

    stop = threading.Event()
    try:
        logger.info("PresenceGate running. Press Ctrl+C to exit.")
        while not stop.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Shutdown requested.")
    finally:
        started.dispose()
        probe.stop()
        executor.shutdown(wait=True)
        store.close()
        db.close()
        logger.info("PresenceGate shut down.")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n")
        sys.exit(1)
