"""
Shared Enumerations for PresenceGate Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so ``provider == "password"`` keeps working.
"""

from __future__ import annotations
from enum import StrEnum


class ProviderKind(StrEnum):
    """Sign-in provider kinds.

    ``PASSWORD`` is the email/password flow; every other member is a
    federated (social) provider.  Kinds without a federated
    implementation raise ``NotSupportedError`` at dispatch time.
    """

    PASSWORD = "password"
    FACEBOOK = "facebook"
    GOOGLE = "google"
    GITHUB = "github"

    @property
    def is_federated(self) -> bool:
        return self is not ProviderKind.PASSWORD


class EventType(StrEnum):
    """Domain events emitted to the surrounding application."""

    AUTH_START = "AUTH_START"
    AUTH_SIGN_IN = "AUTH_SIGN_IN"
    AUTH_SIGN_UP = "AUTH_SIGN_UP"
    AUTH_SIGN_OUT = "AUTH_SIGN_OUT"
    AUTH_RESET_PASSWORD = "AUTH_RESET_PASSWORD"
    AUTH_SAVE_USER = "AUTH_SAVE_USER"
    AUTH_ON_IDENTITY_CHANGED = "AUTH_ON_IDENTITY_CHANGED"
    AUTH_ON_PERMISSION_DENIED = "AUTH_ON_PERMISSION_DENIED"
    CONNECTIVITY_ONLINE = "CONNECTIVITY_ONLINE"
    CONNECTIVITY_OFFLINE = "CONNECTIVITY_OFFLINE"


class EventPhase(StrEnum):
    """Lifecycle phase of an action-triggered event."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class AuthFailureCode(StrEnum):
    """Failure codes surfaced by the remote-auth adapter.

    Supabase error codes are normalised to these values at the adapter
    boundary so the rest of the pipeline never depends on backend
    vocabulary.
    """

    EMAIL_ALREADY_IN_USE = "auth/email-already-in-use"
    INVALID_EMAIL = "auth/invalid-email"
    USER_NOT_FOUND = "auth/user-not-found"
    WRONG_PASSWORD = "auth/wrong-password"
    WEAK_PASSWORD = "auth/weak-password"
    USER_DISABLED = "auth/user-disabled"
    TOO_MANY_REQUESTS = "auth/too-many-requests"
    POPUP_BLOCKED = "auth/popup-blocked"
