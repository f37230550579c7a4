"""
Presence Monitor.

Keeps at most one live subscription to the store's connectivity signal.
While an identity is attached, every transition to "connected" appends a
fresh presence record under ``users-presence/<id>`` and asks the store
to remove that record when the connection drops.  A client with several
live connections therefore has several records, one per connection.

Thread Safety
-------------
The handle slot is guarded by an ``RLock``.  The prior subscription is
always released inside the lock before a new one is taken, and the store
may deliver the first value synchronously from within
``subscribe_to_value``, which re-enters the same thread.

Every attach or detach bumps a generation counter.  A delivery that was
already in flight when its subscription was released still reaches the
callback, so the callback publishes only while its generation is current
and holds the lock across the push.
"""

from __future__ import annotations

import threading
from typing import Optional

from presencegate.config import AppConfig
from presencegate.logger import StructuredLogger
from presencegate.models.identity import Identity, PresenceRecord
from presencegate.protocols import SERVER_TIMESTAMP, RealtimeStore, Unsubscribe
from presencegate.services.base_service import BaseService


class PresenceMonitor(BaseService):
    """Publishes presence records for the attached identity.

    Parameters
    ----------
    store:
        Realtime store providing the connectivity signal.
    config:
        Provides ``USERS_PRESENCE_PATH`` and ``CONNECTED_PATH``.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        store: RealtimeStore,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._store: RealtimeStore = store
        self._presence_path: str = config.USERS_PRESENCE_PATH
        self._connected_path: str = config.CONNECTED_PATH
        self._lock: threading.RLock = threading.RLock()
        self._handle: Optional[Unsubscribe] = None
        self._generation: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def attach(self, identity: Optional[Identity]) -> None:
        """Track presence for *identity*, replacing any prior subscription.

        ``None`` (signed out) only releases the active subscription.
        Errors raised by the store while subscribing propagate.
        """
        with self._lock:
            self._release_locked()
            if identity is None:
                return
            generation = self._generation

            def on_connected(value: object) -> None:
                if not value:
                    return
                with self._lock:
                    if generation != self._generation:
                        return
                    self._publish(identity)

            self._handle = self._store.subscribe_to_value(
                self._connected_path, on_connected,
            )
            self._logger.debug(
                "Presence monitor attached for %s.", identity.id,
                extra={"event": "PRESENCE_ATTACHED"},
            )

    def detach(self) -> None:
        """Release the active subscription, if any."""
        with self._lock:
            self._release_locked()

    @property
    def is_attached(self) -> bool:
        with self._lock:
            return self._handle is not None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _release_locked(self) -> None:
        handle, self._handle = self._handle, None
        self._generation += 1
        if handle is not None:
            handle()
            self._logger.debug(
                "Presence monitor detached.",
                extra={"event": "PRESENCE_DETACHED"},
            )

    def _publish(self, identity: Identity) -> None:
        record = PresenceRecord(
            authenticated_at=dict(SERVER_TIMESTAMP),
            user=identity.public_profile(),
        )
        entry_path = self._store.push(
            f"{self._presence_path}/{identity.id}",
            record.to_store_value(),
        )
        self._store.register_on_disconnect_cleanup(entry_path)
        self._logger.info(
            "Presence published for %s at %s.", identity.id, entry_path,
            extra={"event": "PRESENCE_PUBLISHED"},
        )
