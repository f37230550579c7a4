"""
Collaborator Interfaces.

Structural protocols for the remote auth service, the realtime store and
the native credential SDK.  Services depend on these protocols only;
concrete adapters live in ``remote_auth`` and ``realtime_store``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from presencegate.models.identity import AuthCredential, AuthPayload

__all__ = [
    "SERVER_TIMESTAMP",
    "IdentityCallback",
    "NativeLoginManager",
    "NativeLoginResult",
    "RealtimeStore",
    "RemoteAuthService",
    "Unsubscribe",
    "ValueCallback",
]

# Placeholder resolved by the store to the server's clock at write time.
SERVER_TIMESTAMP: dict[str, str] = {".sv": "timestamp"}

Unsubscribe = Callable[[], None]
IdentityCallback = Callable[[Optional[object]], None]
ValueCallback = Callable[[object], None]


@runtime_checkable
class RemoteAuthService(Protocol):
    """Remote identity service.

    Every operation either returns its payload or raises
    ``RemoteAuthError`` carrying a ``code`` and ``message``.
    """

    def sign_in_with_password(self, email: str, password: str) -> AuthPayload: ...

    def create_account_with_password(self, email: str, password: str) -> AuthPayload: ...

    def send_password_reset_email(self, email: str) -> None: ...

    def sign_in_with_popup(self, provider: str, scopes: Sequence[str]) -> AuthPayload: ...

    def sign_in_with_redirect(self, provider: str, scopes: Sequence[str]) -> AuthPayload: ...

    def get_redirect_result(self) -> AuthPayload: ...

    def sign_in_with_credential(self, credential: AuthCredential) -> AuthPayload: ...

    def on_identity_changed(self, callback: IdentityCallback) -> Unsubscribe: ...

    def sign_out(self) -> None: ...


@runtime_checkable
class RealtimeStore(Protocol):
    """Realtime, multi-client synchronised data store."""

    def read_path(self, path: str) -> object: ...

    def subscribe_to_value(self, path: str, callback: ValueCallback) -> Unsubscribe: ...

    def atomic_multi_write(self, values: Mapping[str, object]) -> None: ...

    def push(self, path: str, value: object) -> str: ...

    def register_on_disconnect_cleanup(self, path: str) -> None: ...


class NativeLoginResult(BaseModel):
    """Outcome of a native SDK login prompt."""

    is_cancelled: bool = False


@runtime_checkable
class NativeLoginManager(Protocol):
    """Native (mobile) credential exchange SDK."""

    def log_in_with_read_permissions(self, scopes: Sequence[str]) -> NativeLoginResult: ...

    def get_current_access_token(self) -> Optional[str]: ...
