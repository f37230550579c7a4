"""
User Persistence Service.

Stores a signed-in identity in the realtime store on every sign-in:
the public profile under ``users/<id>`` and the private email under
``users-emails/<id>``, in a single atomic multi-location write.  The
public location never receives the email.
"""

from __future__ import annotations

from presencegate.config import AppConfig
from presencegate.logger import StructuredLogger
from presencegate.models.identity import Identity
from presencegate.protocols import RealtimeStore
from presencegate.services.base_service import BaseService
from presencegate.utils.audit import log_audit_event


class UserPersistence(BaseService):
    """Writes identity profiles to the realtime store.

    Parameters
    ----------
    store:
        Realtime store receiving the profile writes.
    config:
        Provides the ``users`` / ``users-emails`` location names.
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
        self._users_path: str = config.USERS_PATH
        self._emails_path: str = config.USERS_EMAILS_PATH

    def save_user(self, identity: Identity) -> Identity:
        """Persist *identity*; both locations update or neither does.

        Returns
        -------
        Identity
            The identity that was saved.

        Raises
        ------
        Exception
            Whatever the store raises; nothing is written in that case.
        """
        email, profile = identity.split_email()
        self._store.atomic_multi_write({
            f"{self._users_path}/{identity.id}": profile,
            f"{self._emails_path}/{identity.id}": {"email": email},
        })
        log_audit_event(
            self._logger,
            "SAVE_USER",
            identity.id,
            {"provider": identity.provider},
        )
        return identity
