"""
Authentication Pipeline Models.

Exception hierarchy and the failure-message catalog shared by the
validator, the remote-auth adapter and ``AuthGateway``.

Two kinds of failure are given semantic shape: field validation errors
(raised before any remote call) and catalogued remote failures
translated by ``ErrorTranslator``.  Everything else propagates as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from presencegate.models.enums import AuthFailureCode

__all__ = [
    "DEFAULT_FAILURE_MESSAGES",
    "FieldValidationError",
    "MessageCatalog",
    "NotSupportedError",
    "PresenceGateError",
    "RemoteAuthError",
    "SignInCancelledError",
]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class PresenceGateError(Exception):
    """Base class for every domain error raised by this package."""


class FieldValidationError(PresenceGateError):
    """Validation failure, optionally attributed to one input field.

    Attributes
    ----------
    code:
        Rule or failure code, e.g. ``"required"`` or
        ``"auth/wrong-password"``.
    prop:
        Name of the offending field (``"email"``, ``"password"``), or
        ``None`` when the failure is not attributable to a field.
    """

    def __init__(self, code: str, prop: Optional[str] = None) -> None:
        self.code: str = code
        self.prop: Optional[str] = prop
        super().__init__(f"{code} ({prop})" if prop else code)


class RemoteAuthError(PresenceGateError):
    """A failure reported by the remote auth service.

    ``code`` is normalised to :class:`AuthFailureCode` values where the
    adapter recognises the backend error; otherwise it carries the raw
    backend code.
    """

    def __init__(
        self,
        code: str,
        message: str = "",
        original_error: Optional[Exception] = None,
    ) -> None:
        self.code: str = code
        self.message: str = message or code
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


class SignInCancelledError(PresenceGateError):
    """The user cancelled a federated sign-in flow."""

    def __init__(self, message: str = "Login cancelled") -> None:
        super().__init__(message)


class NotSupportedError(PresenceGateError):
    """A provider kind has no implementation for the requested flow."""

    def __init__(self, provider: str, operation: str) -> None:
        self.provider: str = provider
        self.operation: str = operation
        super().__init__(f"{provider} provider is not supported in {operation}.")


# ---------------------------------------------------------------------------
# Failure-message catalog
# ---------------------------------------------------------------------------

DEFAULT_FAILURE_MESSAGES: dict[str, str] = {
    AuthFailureCode.EMAIL_ALREADY_IN_USE: (
        "An account with this email already exists. Try signing in."
    ),
    AuthFailureCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthFailureCode.USER_NOT_FOUND: "No account matches this email address.",
    AuthFailureCode.WRONG_PASSWORD: "The password is incorrect.",
    AuthFailureCode.WEAK_PASSWORD: "The password is too weak.",
    AuthFailureCode.USER_DISABLED: (
        "Your account has been deactivated. Contact your administrator."
    ),
    AuthFailureCode.TOO_MANY_REQUESTS: (
        "Too many attempts. Please wait a moment and try again."
    ),
}


class MessageCatalog:
    """Human-readable messages for known failure codes.

    Membership decides whether a remote failure is translated into a
    ``FieldValidationError`` or passed through unchanged.
    """

    def __init__(self, messages: Optional[Mapping[str, str]] = None) -> None:
        source = DEFAULT_FAILURE_MESSAGES if messages is None else messages
        self._messages: dict[str, str] = {str(k): v for k, v in source.items()}

    def has_message_for(self, code: Optional[str]) -> bool:
        return code is not None and code in self._messages

    def message_for(self, code: str) -> Optional[str]:
        return self._messages.get(code)
