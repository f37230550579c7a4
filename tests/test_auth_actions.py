"""Tests for AuthActions."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from presencegate.models.auth_models import FieldValidationError
from presencegate.models.enums import EventPhase, EventType, ProviderKind
from presencegate.models.identity import AuthPayload
from presencegate.services.auth_actions import AuthActions, public_fields
from presencegate.services.auth_gateway import AuthGateway
from presencegate.services.event_bus import EventBus
from tests.conftest import TEST_IDENTITY, ImmediateExecutor, Recorder, make_logger

FIELDS = {"email": "ada@example.com", "password": "secure_password_123"}


class TestAuthActions:
    """Tests for phase events around gateway calls."""

    def setup_method(self):
        self.gateway = MagicMock(spec=AuthGateway)
        self.logger = make_logger()
        self.bus = EventBus(logger=self.logger)
        self.recorder = Recorder()
        self.bus.subscribe(self.recorder)
        self.actions = AuthActions(
            gateway=self.gateway,
            bus=self.bus,
            executor=ImmediateExecutor(),
            logger=self.logger,
        )

    def test_sign_in_success(self):
        payload = AuthPayload(identity=TEST_IDENTITY)
        self.gateway.sign_in.return_value = payload

        future = self.actions.sign_in(ProviderKind.PASSWORD, FIELDS)

        assert future.result() is payload
        assert self.recorder.names == ["AUTH_SIGN_IN_PENDING", "AUTH_SIGN_IN_SUCCESS"]
        assert self.recorder.events[1].payload["result"] is payload
        self.gateway.sign_in.assert_called_once_with(ProviderKind.PASSWORD, FIELDS)

    def test_meta_never_contains_password(self):
        self.actions.sign_in(ProviderKind.PASSWORD, FIELDS)

        for event in self.recorder.events:
            assert event.meta["provider"] == "password"
            assert event.meta["fields"] == {"email": "ada@example.com"}

    def test_sign_in_failure_emits_error_and_fails_future(self):
        error = FieldValidationError("required", prop="email")
        self.gateway.sign_in.side_effect = error

        future = self.actions.sign_in(ProviderKind.PASSWORD, {"email": ""})

        with pytest.raises(FieldValidationError):
            future.result()
        assert self.recorder.names == ["AUTH_SIGN_IN_PENDING", "AUTH_SIGN_IN_ERROR"]
        assert self.recorder.events[1].payload["error"] is error

    def test_native_sign_in_uses_sign_in_event(self):
        self.actions.native_sign_in(ProviderKind.FACEBOOK)

        self.gateway.native_federated_sign_in.assert_called_once_with(ProviderKind.FACEBOOK)
        assert self.recorder.names == ["AUTH_SIGN_IN_PENDING", "AUTH_SIGN_IN_SUCCESS"]

    def test_sign_up(self):
        self.actions.sign_up(ProviderKind.PASSWORD, FIELDS)

        self.gateway.sign_up.assert_called_once_with(FIELDS, ProviderKind.PASSWORD)
        assert self.recorder.names == ["AUTH_SIGN_UP_PENDING", "AUTH_SIGN_UP_SUCCESS"]

    def test_reset_password(self):
        self.actions.reset_password("ada@example.com")

        self.gateway.reset_password.assert_called_once_with("ada@example.com")
        assert self.recorder.names == [
            "AUTH_RESET_PASSWORD_PENDING",
            "AUTH_RESET_PASSWORD_SUCCESS",
        ]

    def test_sign_out(self):
        self.actions.sign_out()

        self.gateway.sign_out.assert_called_once_with()
        assert self.recorder.names == ["AUTH_SIGN_OUT_PENDING", "AUTH_SIGN_OUT_SUCCESS"]

    def test_on_permission_denied(self):
        event = self.actions.on_permission_denied("users/x: permission_denied")

        assert event.type is EventType.AUTH_ON_PERMISSION_DENIED
        assert event.payload == {"message": "users/x: permission_denied"}
        assert self.recorder.events == [event]


class TestAuthActionsOnThreadPool:
    """Pending is dispatched on the caller's thread; the rest in the pool."""

    def test_terminal_event_precedes_future_completion(self):
        gateway = MagicMock(spec=AuthGateway)
        bus = EventBus(logger=make_logger())
        recorder = Recorder()
        bus.subscribe(recorder)

        with ThreadPoolExecutor(max_workers=1) as pool:
            actions = AuthActions(gateway=gateway, bus=bus, executor=pool, logger=make_logger())
            future = actions.sign_out()
            assert recorder.events[0].phase is EventPhase.PENDING
            future.result(timeout=5)

        assert recorder.names == ["AUTH_SIGN_OUT_PENDING", "AUTH_SIGN_OUT_SUCCESS"]


def test_public_fields_strips_password():
    assert public_fields(FIELDS) == {"email": "ada@example.com"}
    assert public_fields(None) == {}
