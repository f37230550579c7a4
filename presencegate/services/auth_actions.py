"""
Auth Actions.

User-triggered auth operations as tracked background actions.  Each
action dispatches ``PENDING`` on the caller's thread, runs the
``AuthGateway`` call on an executor, then dispatches ``SUCCESS`` with
the result or ``ERROR`` with the exception, and returns the
``concurrent.futures.Future`` of the call.  The terminal event is
dispatched before the future completes.

Action events carry ``meta`` describing the request: the provider and
the submitted fields, never the password.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from typing import Optional, TypeVar

from presencegate.logger import StructuredLogger
from presencegate.models.enums import EventPhase, EventType, ProviderKind
from presencegate.models.events import DomainEvent
from presencegate.services.auth_gateway import AuthGateway
from presencegate.services.base_service import BaseService
from presencegate.services.event_bus import EventBus

T = TypeVar("T")

# Field names never copied into event metadata.
_SECRET_FIELDS: frozenset[str] = frozenset({"password"})


def public_fields(fields: Optional[Mapping[str, object]]) -> dict[str, object]:
    """Return *fields* without secret entries."""
    return {k: v for k, v in (fields or {}).items() if k not in _SECRET_FIELDS}


def submit_tracked(
    bus: EventBus,
    executor: Executor,
    event_type: EventType,
    fn: Callable[[], T],
    logger: StructuredLogger,
    meta: Optional[dict[str, object]] = None,
) -> "Future[T]":
    """Run *fn* on *executor*, bracketing it with phase events.

    Returns
    -------
    Future
        Resolves to the result of *fn* or raises its exception.
    """
    meta = dict(meta or {})
    bus.dispatch(DomainEvent(type=event_type, phase=EventPhase.PENDING, meta=meta))

    def run() -> T:
        try:
            result = fn()
        except Exception as exc:
            logger.warning(
                "%s failed: %s", event_type.value, exc,
                extra={"event": f"{event_type.value}_ERROR"},
            )
            bus.dispatch(DomainEvent(
                type=event_type,
                phase=EventPhase.ERROR,
                payload={"error": exc},
                meta=meta,
            ))
            raise
        bus.dispatch(DomainEvent(
            type=event_type,
            phase=EventPhase.SUCCESS,
            payload={"result": result},
            meta=meta,
        ))
        return result

    return executor.submit(run)


class AuthActions(BaseService):
    """Tracked, non-blocking front-end to :class:`AuthGateway`.

    Parameters
    ----------
    gateway:
        Performs the blocking auth operations.
    bus:
        Receives the phase events.
    executor:
        Runs the gateway calls.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        bus: EventBus,
        executor: Executor,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._gateway: AuthGateway = gateway
        self._bus: EventBus = bus
        self._executor: Executor = executor

    def _submit(
        self,
        event_type: EventType,
        fn: Callable[[], T],
        meta: Optional[dict[str, object]] = None,
    ) -> "Future[T]":
        return submit_tracked(
            self._bus, self._executor, event_type, fn, self._logger, meta,
        )

    def sign_in(
        self,
        provider: ProviderKind,
        fields: Optional[Mapping[str, object]] = None,
    ) -> Future:
        provider = ProviderKind(provider)
        return self._submit(
            EventType.AUTH_SIGN_IN,
            lambda: self._gateway.sign_in(provider, fields),
            {"provider": provider.value, "fields": public_fields(fields)},
        )

    def native_sign_in(self, provider: ProviderKind) -> Future:
        provider = ProviderKind(provider)
        return self._submit(
            EventType.AUTH_SIGN_IN,
            lambda: self._gateway.native_federated_sign_in(provider),
            {"provider": provider.value, "native": True},
        )

    def sign_up(
        self,
        provider: ProviderKind,
        fields: Mapping[str, object],
    ) -> Future:
        provider = ProviderKind(provider)
        return self._submit(
            EventType.AUTH_SIGN_UP,
            lambda: self._gateway.sign_up(fields, provider),
            {"provider": provider.value, "fields": public_fields(fields)},
        )

    def reset_password(self, email: Optional[str]) -> Future:
        return self._submit(
            EventType.AUTH_RESET_PASSWORD,
            lambda: self._gateway.reset_password(email),
            {"fields": {"email": email}},
        )

    def sign_out(self) -> Future:
        return self._submit(EventType.AUTH_SIGN_OUT, self._gateway.sign_out)

    def on_permission_denied(self, message: str) -> DomainEvent:
        """Report a store permission failure to subscribers."""
        self._logger.warning(
            "Permission denied: %s", message,
            extra={"event": "PERMISSION_DENIED"},
        )
        return self._bus.dispatch(DomainEvent(
            type=EventType.AUTH_ON_PERMISSION_DENIED,
            payload={"message": message},
        ))
