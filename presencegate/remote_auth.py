"""
Supabase Remote Auth Adapter.

Implements the ``RemoteAuthService`` protocol on top of
``supabase.Client.auth``.  Supabase errors are caught at this boundary
and re-raised as ``RemoteAuthError`` with a normalised ``code`` so the
rest of the pipeline never inspects backend exceptions.

Federated flows on a desktop client
-----------------------------------
- *Popup*: the provider's authorization URL is opened in a new browser
  window and the call blocks until the OAuth callback handler hands the
  authorization code to :meth:`deliver_auth_code`.  When no browser can
  be opened the call fails with ``auth/popup-blocked``.
- *Redirect*: the URL is opened in the current browser window and the
  call returns immediately with ``redirect_pending=True``.  The code
  delivered later is exchanged by :meth:`get_redirect_result` on the
  next start.
"""

from __future__ import annotations

import queue
import threading
import webbrowser
from collections.abc import Callable, Sequence
from typing import Optional

from supabase import Client as SupabaseClient

from presencegate.logger import StructuredLogger
from presencegate.models.auth_models import RemoteAuthError
from presencegate.models.enums import AuthFailureCode
from presencegate.models.identity import (
    AuthCredential,
    AuthPayload,
    map_remote_user_to_identity,
)
from presencegate.protocols import IdentityCallback, Unsubscribe

__all__ = ["SUPABASE_ERROR_MAP", "SupabaseAuthService"]


# ---------------------------------------------------------------------------
# Supabase error-code mapping
# ---------------------------------------------------------------------------

SUPABASE_ERROR_MAP: dict[str, AuthFailureCode] = {
    "email_exists": AuthFailureCode.EMAIL_ALREADY_IN_USE,
    "user_already_exists": AuthFailureCode.EMAIL_ALREADY_IN_USE,
    "email_address_invalid": AuthFailureCode.INVALID_EMAIL,
    "user_not_found": AuthFailureCode.USER_NOT_FOUND,
    "invalid_credentials": AuthFailureCode.WRONG_PASSWORD,
    "weak_password": AuthFailureCode.WEAK_PASSWORD,
    "user_banned": AuthFailureCode.USER_DISABLED,
    "over_request_rate_limit": AuthFailureCode.TOO_MANY_REQUESTS,
    "over_email_send_rate_limit": AuthFailureCode.TOO_MANY_REQUESTS,
}

# Auth state events that change who is signed in.
_IDENTITY_EVENTS: frozenset[str] = frozenset({
    "SIGNED_IN",
    "SIGNED_OUT",
    "USER_UPDATED",
})


class SupabaseAuthService:
    """Remote auth service backed by Supabase Auth.

    Parameters
    ----------
    client_factory:
        Zero-argument callable returning the Supabase client, usually
        ``lambda: db.supabase``.  Resolved per call so a missing client
        surfaces as ``RuntimeError`` at the point of use.
    redirect_url:
        OAuth callback URL registered with the provider.
    logger:
        Structured logger.
    open_url:
        ``webbrowser.open``-compatible callable ``(url, new) -> bool``.
    """

    def __init__(
        self,
        client_factory: Callable[[], SupabaseClient],
        redirect_url: str,
        logger: StructuredLogger,
        open_url: Callable[..., bool] = webbrowser.open,
    ) -> None:
        self._client_factory = client_factory
        self._redirect_url: str = redirect_url
        self._logger: StructuredLogger = logger
        self._open_url = open_url

        self._popup_codes: queue.Queue[str] = queue.Queue()
        self._redirect_lock: threading.Lock = threading.Lock()
        self._redirect_provider: Optional[str] = None
        self._redirect_code: Optional[str] = None
        self._awaiting_popup: bool = False

    @property
    def _auth(self):
        return self._client_factory().auth

    # ------------------------------------------------------------------
    # Password flows
    # ------------------------------------------------------------------

    def sign_in_with_password(self, email: str, password: str) -> AuthPayload:
        response = self._call(
            "sign_in_with_password",
            lambda: self._auth.sign_in_with_password({
                "email": email,
                "password": password,
            }),
        )
        return self._to_payload(response)

    def create_account_with_password(self, email: str, password: str) -> AuthPayload:
        response = self._call(
            "sign_up",
            lambda: self._auth.sign_up({"email": email, "password": password}),
        )
        return self._to_payload(response)

    def send_password_reset_email(self, email: str) -> None:
        self._call(
            "reset_password_for_email",
            lambda: self._auth.reset_password_for_email(
                email, {"redirect_to": self._redirect_url},
            ),
        )

    # ------------------------------------------------------------------
    # Federated flows
    # ------------------------------------------------------------------

    def sign_in_with_popup(self, provider: str, scopes: Sequence[str]) -> AuthPayload:
        url = self._authorization_url(provider, scopes)
        # Drop codes left over from an abandoned popup.
        while not self._popup_codes.empty():
            self._popup_codes.get_nowait()

        self._awaiting_popup = True
        if not self._open_url(url, new=1):
            self._awaiting_popup = False
            raise RemoteAuthError(
                AuthFailureCode.POPUP_BLOCKED,
                "No browser window could be opened for the sign-in popup.",
            )

        self._logger.info(
            "Waiting for %s popup sign-in to complete.", provider,
            extra={"event": "POPUP_SIGN_IN", "provider": provider},
        )
        try:
            code = self._popup_codes.get()
        finally:
            self._awaiting_popup = False
        return self._exchange(code, provider)

    def sign_in_with_redirect(self, provider: str, scopes: Sequence[str]) -> AuthPayload:
        url = self._authorization_url(provider, scopes)
        with self._redirect_lock:
            self._redirect_provider = provider
            self._redirect_code = None
        self._open_url(url, new=0)
        self._logger.info(
            "Started %s redirect sign-in.", provider,
            extra={"event": "REDIRECT_SIGN_IN", "provider": provider},
        )
        return AuthPayload(redirect_pending=True)

    def deliver_auth_code(self, code: str) -> None:
        """Hand an OAuth authorization code back from the callback handler.

        Completes a waiting popup flow, otherwise records the code for
        :meth:`get_redirect_result`.
        """
        if self._awaiting_popup:
            self._popup_codes.put(code)
            return
        with self._redirect_lock:
            self._redirect_code = code

    def get_redirect_result(self) -> AuthPayload:
        """Exchange a delivered redirect code, if any.

        Returns an empty ``AuthPayload`` (no credential) when no redirect
        sign-in completed.
        """
        with self._redirect_lock:
            code = self._redirect_code
            provider = self._redirect_provider or "oauth"
            self._redirect_code = None
            self._redirect_provider = None
        if code is None:
            return AuthPayload()
        return self._exchange(code, provider)

    def sign_in_with_credential(self, credential: AuthCredential) -> AuthPayload:
        response = self._call(
            "sign_in_with_id_token",
            lambda: self._auth.sign_in_with_id_token({
                "provider": credential.provider,
                "token": credential.access_token,
            }),
        )
        payload = self._to_payload(response)
        return payload.model_copy(update={"credential": credential})

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def on_identity_changed(self, callback: IdentityCallback) -> Unsubscribe:
        """Call *callback* with the current user now and on every change.

        The raw Supabase user (or ``None``) is forwarded; decoding is the
        caller's concern.
        """
        auth = self._auth

        def handler(event: object, session: object) -> None:
            event_name = str(getattr(event, "value", event))
            if event_name not in _IDENTITY_EVENTS:
                return
            callback(getattr(session, "user", None) if session else None)

        subscription = auth.on_auth_state_change(handler)

        session = auth.get_session()
        callback(getattr(session, "user", None) if session else None)

        def unsubscribe() -> None:
            subscription.unsubscribe()

        return unsubscribe

    def sign_out(self) -> None:
        self._call("sign_out", lambda: self._auth.sign_out())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _authorization_url(self, provider: str, scopes: Sequence[str]) -> str:
        response = self._call(
            "sign_in_with_oauth",
            lambda: self._auth.sign_in_with_oauth({
                "provider": provider,
                "options": {
                    "redirect_to": self._redirect_url,
                    "scopes": " ".join(scopes),
                },
            }),
        )
        return response.url

    def _exchange(self, code: str, provider: str) -> AuthPayload:
        response = self._call(
            "exchange_code_for_session",
            lambda: self._auth.exchange_code_for_session({"auth_code": code}),
        )
        payload = self._to_payload(response)
        session = getattr(response, "session", None)
        return payload.model_copy(update={
            "credential": AuthCredential(
                provider=provider,
                access_token=getattr(session, "provider_token", None),
            ),
        })

    @staticmethod
    def _to_payload(response: object) -> AuthPayload:
        return AuthPayload(
            identity=map_remote_user_to_identity(getattr(response, "user", None)),
        )

    def _call(self, operation: str, fn: Callable[[], object]):
        """Run a Supabase call, normalising its failures.

        ``RuntimeError`` (no client configured) and network errors pass
        through unchanged; Supabase auth errors become ``RemoteAuthError``.
        """
        try:
            return fn()
        except (RuntimeError, ConnectionError, TimeoutError):
            raise
        except Exception as exc:
            raise self._classify(exc, operation) from exc

    def _classify(self, exc: Exception, operation: str) -> RemoteAuthError:
        raw_code = getattr(exc, "code", None)
        message = str(getattr(exc, "message", None) or exc)

        code: Optional[str] = None
        if raw_code:
            code = SUPABASE_ERROR_MAP.get(str(raw_code), str(raw_code))
        else:
            # Older clients only carry the code in the message text.
            lowered = message.lower()
            for key, mapped in SUPABASE_ERROR_MAP.items():
                if key in lowered:
                    code = mapped
                    break

        resolved = str(code or "auth/unknown")
        self._logger.warning(
            "Supabase %s failed (%s): %s", operation, resolved, message,
            extra={"event": "REMOTE_AUTH_FAILED", "error_code": resolved},
        )
        return RemoteAuthError(resolved, message, original_error=exc)
