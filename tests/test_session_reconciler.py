"""Tests for SessionReconciler."""

from unittest.mock import MagicMock

from presencegate.auth import SessionManager
from presencegate.models.auth_models import RemoteAuthError
from presencegate.models.enums import EventPhase, EventType
from presencegate.models.identity import AuthCredential, AuthPayload
from presencegate.protocols import RealtimeStore, RemoteAuthService
from presencegate.services.event_bus import EventBus
from presencegate.services.presence_monitor import PresenceMonitor
from presencegate.services.session_reconciler import SessionReconciler
from presencegate.services.user_persistence import UserPersistence
from tests.conftest import (
    TEST_IDENTITY,
    ImmediateExecutor,
    Recorder,
    make_config,
    make_logger,
)

RAW_USER = {
    "id": "user-1",
    "email": "ada@example.com",
    "user_metadata": {"full_name": "Ada Lovelace"},
    "app_metadata": {"provider": "email"},
}


class _ReconcilerTestBase:
    def setup_method(self):
        self.remote = MagicMock(spec=RemoteAuthService)
        self.remote.get_redirect_result.return_value = AuthPayload()
        self.identity_unsubscribe = MagicMock(name="identity_unsubscribe")
        self.remote.on_identity_changed.return_value = self.identity_unsubscribe

        self.store = MagicMock(spec=RealtimeStore)
        self.connectivity_unsubscribe = MagicMock(name="connectivity_unsubscribe")
        self.store.subscribe_to_value.return_value = self.connectivity_unsubscribe

        self.presence = MagicMock(spec=PresenceMonitor)
        self.persistence = MagicMock(spec=UserPersistence)
        self.session = SessionManager()
        self.logger = make_logger()
        self.bus = EventBus(logger=self.logger)
        self.recorder = Recorder()
        self.bus.subscribe(self.recorder)
        self.executor = ImmediateExecutor()

        self.reconciler = SessionReconciler(
            remote_auth=self.remote,
            store=self.store,
            presence=self.presence,
            persistence=self.persistence,
            session=self.session,
            bus=self.bus,
            executor=self.executor,
            config=make_config(),
            logger=self.logger,
        )

    def identity_listener(self):
        return self.remote.on_identity_changed.call_args.args[0]

    def connectivity_listener(self):
        path, listener = self.store.subscribe_to_value.call_args.args
        assert path == ".info/connected"
        return listener


class TestStart(_ReconcilerTestBase):
    """Tests for start() and dispose()."""

    def test_start_emits_auth_start_first(self):
        started = self.reconciler.start()

        assert started.event.type is EventType.AUTH_START
        assert self.recorder.names[0] == "AUTH_START"

    def test_start_installs_listeners(self):
        self.reconciler.start()

        self.remote.get_redirect_result.assert_called_once_with()
        self.remote.on_identity_changed.assert_called_once()
        self.store.subscribe_to_value.assert_called_once()

    def test_dispose_removes_listeners_once(self):
        started = self.reconciler.start()

        started.dispose()
        started.dispose()

        self.identity_unsubscribe.assert_called_once_with()
        self.connectivity_unsubscribe.assert_called_once_with()
        self.presence.detach.assert_called_once_with()


class TestRedirectResult(_ReconcilerTestBase):
    """Tests for the one-shot redirect completion check."""

    def test_no_credential_emits_nothing(self):
        self.reconciler.start()

        assert "AUTH_SIGN_IN_SUCCESS" not in self.recorder.names
        assert "AUTH_SIGN_IN_ERROR" not in self.recorder.names

    def test_credential_emits_sign_in_success(self):
        result = AuthPayload(
            identity=TEST_IDENTITY,
            credential=AuthCredential(provider="facebook", access_token="t"),
        )
        self.remote.get_redirect_result.return_value = result

        self.reconciler.start()

        (event,) = [e for e in self.recorder.events if e.name == "AUTH_SIGN_IN_SUCCESS"]
        assert event.payload["result"] is result

    def test_failure_emits_sign_in_error(self):
        error = RemoteAuthError("auth/credential-already-in-use")
        self.remote.get_redirect_result.side_effect = error

        self.reconciler.start()

        (event,) = [e for e in self.recorder.events if e.name == "AUTH_SIGN_IN_ERROR"]
        assert event.payload["error"] is error

    def test_result_after_dispose_is_suppressed(self):
        pending = []
        self.executor.submit = lambda fn, *args: pending.append((fn, args))
        self.remote.get_redirect_result.return_value = AuthPayload(
            credential=AuthCredential(provider="facebook"),
        )

        started = self.reconciler.start()
        started.dispose()
        fn, args = pending[0]
        fn(*args)

        assert "AUTH_SIGN_IN_SUCCESS" not in self.recorder.names


class TestIdentityListener(_ReconcilerTestBase):
    """Tests for identity-change handling."""

    def test_signed_in_identity_flows_through(self):
        self.reconciler.start()

        self.identity_listener()(RAW_USER)

        identity = self.presence.attach.call_args.args[0]
        assert identity.id == "user-1"
        assert identity.display_name == "Ada Lovelace"
        assert self.session.current_identity == identity
        self.persistence.save_user.assert_called_once_with(identity)

        names = self.recorder.names
        assert names.index("AUTH_SAVE_USER_PENDING") < names.index("AUTH_ON_IDENTITY_CHANGED")
        assert "AUTH_SAVE_USER_SUCCESS" in names
        changed = self.recorder.events[names.index("AUTH_ON_IDENTITY_CHANGED")]
        assert changed.payload["identity"] == identity

    def test_signed_out_attaches_none_and_skips_save(self):
        self.session.set_current_identity(TEST_IDENTITY)
        self.reconciler.start()

        self.identity_listener()(None)

        self.presence.attach.assert_called_once_with(None)
        assert self.session.current_identity is None
        self.persistence.save_user.assert_not_called()
        assert "AUTH_SAVE_USER_PENDING" not in self.recorder.names
        changed = [e for e in self.recorder.events if e.type is EventType.AUTH_ON_IDENTITY_CHANGED]
        assert changed[-1].payload["identity"] is None

    def test_save_failure_is_reported_without_blocking(self):
        self.persistence.save_user.side_effect = PermissionError("denied")
        self.reconciler.start()

        self.identity_listener()(RAW_USER)

        errors = [
            e for e in self.recorder.events
            if e.type is EventType.AUTH_SAVE_USER and e.phase is EventPhase.ERROR
        ]
        assert len(errors) == 1
        assert isinstance(errors[0].payload["error"], PermissionError)
        assert "AUTH_ON_IDENTITY_CHANGED" in self.recorder.names


class TestConnectivityListener(_ReconcilerTestBase):
    """Tests for online/offline transition detection."""

    def test_only_transitions_are_emitted(self):
        self.reconciler.start()
        listener = self.connectivity_listener()

        for value in [True, True, False, False, True]:
            listener(value)

        connectivity = [
            e.name for e in self.recorder.events
            if e.type in (EventType.CONNECTIVITY_ONLINE, EventType.CONNECTIVITY_OFFLINE)
        ]
        assert connectivity == [
            "CONNECTIVITY_ONLINE",
            "CONNECTIVITY_OFFLINE",
            "CONNECTIVITY_ONLINE",
        ]
        assert self.reconciler.online is True

    def test_initial_offline_value_is_not_a_transition(self):
        self.reconciler.start()

        self.connectivity_listener()(False)

        assert "CONNECTIVITY_OFFLINE" not in self.recorder.names

    def test_state_is_per_instance(self):
        self.reconciler.start()
        self.connectivity_listener()(True)

        other = SessionReconciler(
            remote_auth=self.remote,
            store=self.store,
            presence=self.presence,
            persistence=self.persistence,
            session=SessionManager(),
            bus=self.bus,
            executor=self.executor,
            config=make_config(),
            logger=self.logger,
        )

        assert other.online is False
