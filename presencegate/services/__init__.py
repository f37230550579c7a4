"""
Auth & Presence Services Package.

The ``create_services()`` factory wires every service together,
returning a typed dict that the application layer can consume without
knowing the internal dependency graph.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Optional, TypedDict

from presencegate.auth import SessionManager
from presencegate.config import AppConfig
from presencegate.logger import get_logger
from presencegate.models.auth_models import MessageCatalog
from presencegate.protocols import NativeLoginManager, RemoteAuthService
from presencegate.realtime_store import LocalRealtimeStore
from presencegate.services.auth_actions import AuthActions
from presencegate.services.auth_gateway import AuthGateway
from presencegate.services.connectivity_probe import ConnectivityProbe
from presencegate.services.error_translator import ErrorTranslator
from presencegate.services.event_bus import EventBus
from presencegate.services.presence_monitor import PresenceMonitor
from presencegate.services.session_reconciler import SessionReconciler
from presencegate.services.user_persistence import UserPersistence


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    event_bus: EventBus
    auth_gateway: AuthGateway
    auth_actions: AuthActions
    user_persistence: UserPersistence
    presence_monitor: PresenceMonitor
    session_reconciler: SessionReconciler
    connectivity_probe: ConnectivityProbe


def create_services(
    store: LocalRealtimeStore,
    remote_auth: RemoteAuthService,
    config: AppConfig,
    session: SessionManager,
    executor: Executor,
    native_login: Optional[NativeLoginManager] = None,
) -> ServiceContainer:
    """
    Wire all services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup.

    Args:
        store: Initialised realtime store (schema already applied).
        remote_auth: Remote identity service adapter.
        config: Application configuration.
        session: Holder of the current identity.
        executor: Runs background actions and profile saves.
        native_login: Optional native credential SDK.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    # ------------------------------------------------------------------
    # 1. Leaf services
    # ------------------------------------------------------------------
    event_bus = EventBus(logger=logger)
    user_persistence = UserPersistence(store=store, config=config, logger=logger)
    presence_monitor = PresenceMonitor(store=store, config=config, logger=logger)
    connectivity_probe = ConnectivityProbe(store=store, config=config, logger=logger)

    auth_gateway = AuthGateway(
        remote_auth=remote_auth,
        translator=ErrorTranslator(),
        catalog=MessageCatalog(),
        config=config,
        logger=logger,
        native_login=native_login,
    )

    # ------------------------------------------------------------------
    # 2. Orchestration services
    # ------------------------------------------------------------------
    auth_actions = AuthActions(
        gateway=auth_gateway,
        bus=event_bus,
        executor=executor,
        logger=logger,
    )
    session_reconciler = SessionReconciler(
        remote_auth=remote_auth,
        store=store,
        presence=presence_monitor,
        persistence=user_persistence,
        session=session,
        bus=event_bus,
        executor=executor,
        config=config,
        logger=logger,
    )

    return ServiceContainer(
        event_bus=event_bus,
        auth_gateway=auth_gateway,
        auth_actions=auth_actions,
        user_persistence=user_persistence,
        presence_monitor=presence_monitor,
        session_reconciler=session_reconciler,
        connectivity_probe=connectivity_probe,
    )
