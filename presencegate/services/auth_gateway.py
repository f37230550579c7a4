"""
Authentication Gateway.

Single entry point for every remote auth operation: password sign-in,
federated sign-in (popup with redirect fallback), native federated
sign-in, sign-up, password reset and sign-out.

Every operation validates its input before any remote call, and every
remote failure goes through the same policy: codes present in the
``MessageCatalog`` are translated into ``FieldValidationError`` by
``ErrorTranslator``; anything else is re-raised unchanged.

Methods block until the remote service answers.  ``AuthActions`` runs
them off the caller's thread.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Optional, TypeVar

from presencegate.config import AppConfig
from presencegate.logger import StructuredLogger
from presencegate.models.auth_models import (
    MessageCatalog,
    NotSupportedError,
    RemoteAuthError,
    SignInCancelledError,
)
from presencegate.models.enums import AuthFailureCode, ProviderKind
from presencegate.models.identity import AuthCredential, AuthPayload
from presencegate.protocols import NativeLoginManager, RemoteAuthService
from presencegate.services.base_service import BaseService
from presencegate.services.error_translator import ErrorTranslator
from presencegate.utils.audit import log_audit_event
from presencegate.validation import FieldValidator, validate

T = TypeVar("T")

ValidatorFactory = Callable[..., FieldValidator]

# Federated providers with a working implementation.
SUPPORTED_FEDERATED_PROVIDERS: frozenset[ProviderKind] = frozenset({
    ProviderKind.FACEBOOK,
})


def _clean_email(value: object) -> object:
    """Strip surrounding whitespace from an email field."""
    return value.strip() if isinstance(value, str) else value


class AuthGateway(BaseService):
    """Remote auth operations with uniform validation and error translation.

    Parameters
    ----------
    remote_auth:
        Remote identity service adapter.
    translator:
        Maps catalogued failure codes to field-attributed errors.
    catalog:
        Decides which failure codes are translated.
    config:
        Application configuration (federated scopes, password policy).
    logger:
        Structured JSON logger.
    native_login:
        Native credential SDK; required only for
        :meth:`native_federated_sign_in`.
    validator_factory:
        Builds the fluent field validator; defaults to :func:`validate`.
    """

    def __init__(
        self,
        remote_auth: RemoteAuthService,
        translator: ErrorTranslator,
        catalog: MessageCatalog,
        config: AppConfig,
        logger: StructuredLogger,
        native_login: Optional[NativeLoginManager] = None,
        validator_factory: ValidatorFactory = validate,
    ) -> None:
        super().__init__(logger)
        self._remote: RemoteAuthService = remote_auth
        self._translator: ErrorTranslator = translator
        self._catalog: MessageCatalog = catalog
        self._config: AppConfig = config
        self._native_login: Optional[NativeLoginManager] = native_login
        self._validate: ValidatorFactory = validator_factory

    # ==================================================================
    # Validation helpers
    # ==================================================================

    def _validate_email_and_password(self, email: object, password: object) -> None:
        self._validate(
            {"email": email, "password": password},
            min_password_length=self._config.MIN_PASSWORD_LENGTH,
        ) \
            .prop("email").required().email() \
            .prop("password").required().simple_password() \
            .check()

    def _validate_email(self, email: object) -> None:
        self._validate(
            {"email": email},
            min_password_length=self._config.MIN_PASSWORD_LENGTH,
        ) \
            .prop("email").required().email() \
            .check()

    def _scopes_for(self, provider: ProviderKind, operation: str) -> tuple[str, ...]:
        if provider not in SUPPORTED_FEDERATED_PROVIDERS:
            raise NotSupportedError(provider.value, operation)
        return self._config.federated_scopes[provider.value]

    # ==================================================================
    # Failure translation
    # ==================================================================

    def _call_remote(self, operation: str, fn: Callable[[], T]) -> T:
        """Run *fn*, translating catalogued remote failures.

        Raises
        ------
        FieldValidationError
            When the failure code is in the catalog.
        Exception
            The original error, unchanged, for everything else.
        """
        try:
            return fn()
        except RemoteAuthError as exc:
            if self._catalog.has_message_for(exc.code):
                translated = self._translator.translate(exc.code)
                self._logger.info(
                    "%s failed with %s (field: %s).",
                    operation, exc.code, translated.prop or "-",
                    extra={"event": f"{operation.upper()}_FAILED", "error_code": exc.code},
                )
                raise translated from exc
            raise

    # ==================================================================
    # Sign in
    # ==================================================================

    def sign_in(
        self,
        provider: ProviderKind,
        fields: Optional[Mapping[str, object]] = None,
    ) -> AuthPayload:
        """Sign in with a password or delegate to a federated provider.

        Parameters
        ----------
        provider:
            ``ProviderKind.PASSWORD`` or a federated kind.
        fields:
            ``{"email": ..., "password": ...}`` for the password kind;
            ignored otherwise.
        """
        provider = ProviderKind(provider)
        if provider.is_federated:
            return self.federated_sign_in(provider)

        fields = fields or {}
        email = _clean_email(fields.get("email"))
        password = fields.get("password")
        self._validate_email_and_password(email, password)

        payload = self._call_remote(
            "sign_in",
            lambda: self._remote.sign_in_with_password(str(email), str(password)),
        )
        self._audit("SIGN_IN", payload, provider)
        return payload

    def federated_sign_in(self, provider: ProviderKind) -> AuthPayload:
        """Popup sign-in, falling back to a redirect when the popup is blocked.

        Raises
        ------
        NotSupportedError
            For provider kinds without a federated implementation.
        """
        provider = ProviderKind(provider)
        scopes = self._scopes_for(provider, "federated_sign_in")

        try:
            payload = self._remote.sign_in_with_popup(provider.value, scopes)
        except RemoteAuthError as exc:
            if exc.code != AuthFailureCode.POPUP_BLOCKED:
                raise
            self._logger.info(
                "Popup blocked for %s; falling back to redirect sign-in.",
                provider.value,
                extra={"event": "POPUP_BLOCKED", "provider": provider.value},
            )
            payload = self._remote.sign_in_with_redirect(provider.value, scopes)

        if not payload.redirect_pending:
            self._audit("SIGN_IN", payload, provider)
        return payload

    def native_federated_sign_in(self, provider: ProviderKind) -> AuthPayload:
        """Sign in through the native SDK and exchange its access token.

        Raises
        ------
        SignInCancelledError
            When the user dismisses the native prompt.
        NotSupportedError
            For unsupported kinds, or when no native SDK is configured.
        """
        provider = ProviderKind(provider)
        scopes = self._scopes_for(provider, "native_federated_sign_in")
        if self._native_login is None:
            raise NotSupportedError(provider.value, "native_federated_sign_in")

        result = self._native_login.log_in_with_read_permissions(scopes)
        if result.is_cancelled:
            self._logger.info(
                "Native %s sign-in cancelled by user.", provider.value,
                extra={"event": "NATIVE_SIGN_IN_CANCELLED"},
            )
            raise SignInCancelledError()

        access_token = self._native_login.get_current_access_token()
        credential = AuthCredential(provider=provider.value, access_token=access_token)
        payload = self._remote.sign_in_with_credential(credential)
        self._audit("SIGN_IN", payload, provider)
        return payload

    # ==================================================================
    # Sign up / reset / sign out
    # ==================================================================

    def sign_up(
        self,
        fields: Mapping[str, object],
        provider: ProviderKind = ProviderKind.PASSWORD,
    ) -> AuthPayload:
        """Create a password account.

        Raises
        ------
        NotSupportedError
            For any provider other than ``PASSWORD``.
        """
        provider = ProviderKind(provider)
        if provider is not ProviderKind.PASSWORD:
            raise NotSupportedError(provider.value, "sign_up")

        email = _clean_email(fields.get("email"))
        password = fields.get("password")
        self._validate_email_and_password(email, password)

        payload = self._call_remote(
            "sign_up",
            lambda: self._remote.create_account_with_password(str(email), str(password)),
        )
        self._audit("SIGN_UP", payload, provider)
        return payload

    def reset_password(self, email: Optional[str]) -> None:
        """Send a password-reset email; only ``email`` is validated."""
        email = _clean_email(email)
        self._validate_email(email)
        self._call_remote(
            "reset_password",
            lambda: self._remote.send_password_reset_email(str(email)),
        )
        self._logger.info(
            "Password reset requested.",
            extra={"event": "PASSWORD_RESET_REQUESTED"},
        )

    def sign_out(self) -> None:
        """Revoke the remote session.

        The identity-change listener observes the resulting ``None``
        identity and cleans up presence.
        """
        self._remote.sign_out()
        log_audit_event(self._logger, "SIGN_OUT", None)

    # ==================================================================
    # Internal
    # ==================================================================

    def _audit(self, action: str, payload: AuthPayload, provider: ProviderKind) -> None:
        identity_id = payload.identity.id if payload.identity else None
        log_audit_event(
            self._logger,
            action,
            identity_id,
            {"provider": provider.value},
        )
