"""
Session Reconciler.

Bootstraps the auth/presence session and keeps local state in step with
the remote identity service and the store's connectivity signal.

:meth:`SessionReconciler.start` installs three listeners:

1. *Redirect completion*: checks once, in the background, whether a
   federated redirect sign-in finished while the client was away.
2. *Identity change*: attaches presence for the new identity, updates
   the ``SessionManager``, saves non-null identities in the background
   and announces the change.
3. *Connectivity*: announces online/offline transitions, ignoring
   repeated values.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from typing import Callable, NamedTuple, Optional

from presencegate.auth import SessionManager
from presencegate.config import AppConfig
from presencegate.logger import StructuredLogger
from presencegate.models.enums import EventPhase, EventType
from presencegate.models.events import DomainEvent
from presencegate.models.identity import AuthPayload, map_remote_user_to_identity
from presencegate.protocols import RealtimeStore, RemoteAuthService, Unsubscribe
from presencegate.services.auth_actions import submit_tracked
from presencegate.services.base_service import BaseService
from presencegate.services.event_bus import EventBus
from presencegate.services.presence_monitor import PresenceMonitor
from presencegate.services.user_persistence import UserPersistence


class StartedSession(NamedTuple):
    """Result of :meth:`SessionReconciler.start`."""

    event: DomainEvent
    dispose: Callable[[], None]


class SessionReconciler(BaseService):
    """Wires remote identity and connectivity changes into local state.

    Parameters
    ----------
    remote_auth:
        Source of identity changes and redirect results.
    store:
        Source of the connectivity signal.
    presence:
        Presence monitor owned by this reconciler.
    persistence:
        Saves identities after sign-in.
    session:
        Holds the current identity for the rest of the application.
    bus:
        Receives every domain event.
    executor:
        Runs the redirect check and profile saves.
    config:
        Provides ``CONNECTED_PATH``.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        remote_auth: RemoteAuthService,
        store: RealtimeStore,
        presence: PresenceMonitor,
        persistence: UserPersistence,
        session: SessionManager,
        bus: EventBus,
        executor: Executor,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._remote: RemoteAuthService = remote_auth
        self._store: RealtimeStore = store
        self._presence: PresenceMonitor = presence
        self._persistence: UserPersistence = persistence
        self._session: SessionManager = session
        self._bus: EventBus = bus
        self._executor: Executor = executor
        self._connected_path: str = config.CONNECTED_PATH

        self._online_lock: threading.Lock = threading.Lock()
        self._online: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> StartedSession:
        """Emit ``AUTH_START`` and install the listeners.

        Returns
        -------
        StartedSession
            The start event and an idempotent disposer that removes all
            listeners and detaches presence.
        """
        started = self._bus.dispatch(DomainEvent(type=EventType.AUTH_START))
        self._logger.info("Session reconciler starting.", extra={"event": "AUTH_START"})

        disposed = threading.Event()
        unsubscribers: list[Unsubscribe] = []
        dispose_lock = threading.Lock()

        def dispose() -> None:
            with dispose_lock:
                if disposed.is_set():
                    return
                disposed.set()
                pending = list(reversed(unsubscribers))
                unsubscribers.clear()
            for unsubscribe in pending:
                unsubscribe()
            self._presence.detach()
            self._logger.info("Session reconciler disposed.")

        self._executor.submit(self._check_redirect_result, disposed)
        unsubscribers.append(self._remote.on_identity_changed(self._on_identity_changed))
        unsubscribers.append(
            self._store.subscribe_to_value(self._connected_path, self._on_connectivity)
        )
        return StartedSession(event=started, dispose=dispose)

    @property
    def online(self) -> bool:
        """Last connectivity value announced."""
        with self._online_lock:
            return self._online

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _check_redirect_result(self, disposed: threading.Event) -> None:
        try:
            result: AuthPayload = self._remote.get_redirect_result()
        except Exception as exc:
            if disposed.is_set():
                return
            self._logger.warning(
                "Redirect sign-in failed: %s", exc,
                extra={"event": "AUTH_SIGN_IN_ERROR"},
            )
            self._bus.dispatch(DomainEvent(
                type=EventType.AUTH_SIGN_IN,
                phase=EventPhase.ERROR,
                payload={"error": exc},
            ))
            return

        if disposed.is_set() or result.credential is None:
            return
        self._bus.dispatch(DomainEvent(
            type=EventType.AUTH_SIGN_IN,
            phase=EventPhase.SUCCESS,
            payload={"result": result},
        ))

    def _on_identity_changed(self, raw_user: Optional[object]) -> None:
        identity = map_remote_user_to_identity(raw_user)
        self._presence.attach(identity)
        self._session.set_current_identity(identity)

        if identity is not None:
            # Fire-and-forget; failures surface as AUTH_SAVE_USER/ERROR.
            submit_tracked(
                self._bus,
                self._executor,
                EventType.AUTH_SAVE_USER,
                lambda: self._persistence.save_user(identity),
                self._logger,
                {"identity_id": identity.id},
            )

        self._logger.info(
            "Identity changed: %s", identity.id if identity else "signed out",
            extra={"event": "AUTH_ON_IDENTITY_CHANGED"},
        )
        self._bus.dispatch(DomainEvent(
            type=EventType.AUTH_ON_IDENTITY_CHANGED,
            payload={"identity": identity},
        ))

    def _on_connectivity(self, value: object) -> None:
        online = bool(value)
        with self._online_lock:
            if online == self._online:
                return
            self._online = online

        event_type = (
            EventType.CONNECTIVITY_ONLINE if online else EventType.CONNECTIVITY_OFFLINE
        )
        self._logger.info("Connectivity: %s", event_type.value, extra={"event": event_type.value})
        self._bus.dispatch(DomainEvent(type=event_type))
