from __future__ import annotations

"""
Data Models Package.

Re-exports all models for short imports:
    from presencegate.models import Identity, DomainEvent, EventType
    from presencegate.models import FieldValidationError, RemoteAuthError
"""

from presencegate.models.enums import AuthFailureCode, EventPhase, EventType, ProviderKind
from presencegate.models.identity import (
    AuthCredential,
    AuthPayload,
    Identity,
    PresenceRecord,
    map_remote_user_to_identity,
)
from presencegate.models.events import DomainEvent
from presencegate.models.auth_models import (
    FieldValidationError,
    MessageCatalog,
    NotSupportedError,
    PresenceGateError,
    RemoteAuthError,
    SignInCancelledError,
)

__all__ = [
    "AuthFailureCode",
    "EventPhase",
    "EventType",
    "ProviderKind",
    "AuthCredential",
    "AuthPayload",
    "Identity",
    "PresenceRecord",
    "map_remote_user_to_identity",
    "DomainEvent",
    "FieldValidationError",
    "MessageCatalog",
    "NotSupportedError",
    "PresenceGateError",
    "RemoteAuthError",
    "SignInCancelledError",
]
