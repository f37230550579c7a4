"""
Session State.

Provides an injectable ``SessionManager`` that holds the identity the
remote auth service currently reports as signed in.  Updated by
``SessionReconciler`` on every identity change.

Usage::

    from presencegate.auth import SessionManager

    session = SessionManager()
    session.set_current_identity(identity)
    identity = session.current_identity
"""

from __future__ import annotations

import threading
from typing import Optional

from presencegate.models.identity import Identity


class SessionManager:
    """Injectable holder for the current identity.

    Each instance keeps its own state, so tests and embedders can run
    several independent sessions side by side.
    """

    def __init__(self) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._current_identity: Optional[Identity] = None

    def set_current_identity(self, identity: Optional[Identity]) -> None:
        """Record *identity* (``None`` when signed out)."""
        with self._lock:
            self._current_identity = identity

    @property
    def current_identity(self) -> Optional[Identity]:
        with self._lock:
            return self._current_identity
