"""
Identity Models.

Pydantic models for the signed-in user, the payloads returned by the
remote auth service, and the presence records published to the store.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AuthCredential",
    "AuthPayload",
    "Identity",
    "PresenceRecord",
    "map_remote_user_to_identity",
]


class Identity(BaseModel):
    """Decoded representation of a signed-in user.

    ``email`` is private: it is stored only under the secured
    ``users-emails`` location and is stripped from every public write
    via :meth:`public_profile`.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    provider: Optional[str] = None

    def public_profile(self) -> dict[str, Optional[str]]:
        """Return the identity as a JSON-safe dict without ``email``."""
        return self.model_dump(exclude={"email"})

    def split_email(self) -> tuple[Optional[str], dict[str, Optional[str]]]:
        """Return ``(email, public_profile)``."""
        return self.email, self.public_profile()


class AuthCredential(BaseModel):
    """Provider credential, e.g. a federated access token."""

    provider: str
    access_token: Optional[str] = None


class AuthPayload(BaseModel):
    """Result of a remote auth operation.

    ``redirect_pending`` is ``True`` when a federated redirect flow was
    started and the outcome will only be known on the next
    ``get_redirect_result()`` check.
    """

    identity: Optional[Identity] = None
    credential: Optional[AuthCredential] = None
    redirect_pending: bool = False


class PresenceRecord(BaseModel):
    """A timestamped marker of one live connection for an identity.

    Serialised with the store's field names (``authenticatedAt``).
    """

    model_config = ConfigDict(populate_by_name=True)

    # Epoch milliseconds, or the store's server-timestamp placeholder.
    authenticated_at: Union[int, dict[str, str]] = Field(alias="authenticatedAt")
    user: dict[str, Optional[str]]

    def to_store_value(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


def _read(raw: object, key: str) -> object:
    if isinstance(raw, Mapping):
        return raw.get(key)
    return getattr(raw, key, None)


def map_remote_user_to_identity(raw: object) -> Optional[Identity]:
    """Decode a raw remote-auth user into an :class:`Identity`.

    Accepts a Supabase ``User`` object, an equivalent mapping, an
    already-decoded ``Identity`` or ``None`` (signed out).  Display name
    and avatar come from ``user_metadata``; the provider from
    ``app_metadata``.
    """
    if raw is None:
        return None
    if isinstance(raw, Identity):
        return raw

    user_id = _read(raw, "id")
    if not user_id:
        return None

    metadata = _read(raw, "user_metadata") or {}
    app_metadata = _read(raw, "app_metadata") or {}

    display_name = (
        _read(raw, "display_name")
        or _read(metadata, "full_name")
        or _read(metadata, "name")
    )
    photo_url = (
        _read(raw, "photo_url")
        or _read(metadata, "avatar_url")
        or _read(metadata, "picture")
    )
    provider = _read(raw, "provider") or _read(app_metadata, "provider")

    return Identity(
        id=str(user_id),
        email=_read(raw, "email") or None,
        display_name=display_name or None,
        photo_url=photo_url or None,
        provider=provider or None,
    )
