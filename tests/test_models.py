"""Tests for identity models, domain events and session state."""

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from presencegate.auth import SessionManager
from presencegate.models.enums import EventPhase, EventType, ProviderKind
from presencegate.models.events import DomainEvent
from presencegate.models.identity import Identity, PresenceRecord, map_remote_user_to_identity
from presencegate.protocols import SERVER_TIMESTAMP
from tests.conftest import TEST_IDENTITY


class TestIdentityMapping:
    """Tests for decoding remote users."""

    def test_none_means_signed_out(self):
        assert map_remote_user_to_identity(None) is None

    def test_maps_supabase_user_object(self):
        raw = SimpleNamespace(
            id="u1",
            email="ada@example.com",
            user_metadata={"name": "Ada", "picture": "https://example.com/p.png"},
            app_metadata={"provider": "facebook"},
        )

        identity = map_remote_user_to_identity(raw)

        assert identity == Identity(
            id="u1",
            email="ada@example.com",
            display_name="Ada",
            photo_url="https://example.com/p.png",
            provider="facebook",
        )

    def test_full_name_preferred_over_name(self):
        identity = map_remote_user_to_identity({
            "id": "u1",
            "user_metadata": {"full_name": "Ada Lovelace", "name": "ada"},
        })

        assert identity.display_name == "Ada Lovelace"
        assert identity.email is None

    def test_identity_passes_through(self):
        assert map_remote_user_to_identity(TEST_IDENTITY) is TEST_IDENTITY

    def test_user_without_id_is_ignored(self):
        assert map_remote_user_to_identity({"email": "x@example.com"}) is None


class TestIdentity:
    """Tests for the public/private split."""

    def test_public_profile_excludes_email(self):
        profile = TEST_IDENTITY.public_profile()

        assert "email" not in profile
        assert profile["id"] == "user-1"

    def test_split_email(self):
        email, profile = TEST_IDENTITY.split_email()

        assert email == "ada@example.com"
        assert profile == TEST_IDENTITY.public_profile()

    def test_identity_is_immutable(self):
        with pytest.raises(ValidationError):
            TEST_IDENTITY.email = "other@example.com"


class TestPresenceRecord:
    """Tests for the store representation of presence records."""

    def test_store_value_uses_store_field_names(self):
        record = PresenceRecord(
            authenticated_at=dict(SERVER_TIMESTAMP),
            user=TEST_IDENTITY.public_profile(),
        )

        value = record.to_store_value()

        assert value["authenticatedAt"] == SERVER_TIMESTAMP
        assert "email" not in value["user"]


class TestDomainEvent:
    """Tests for event naming."""

    def test_name_includes_phase(self):
        event = DomainEvent(type=EventType.AUTH_SIGN_IN, phase=EventPhase.ERROR)

        assert event.name == "AUTH_SIGN_IN_ERROR"
        assert event.is_error

    def test_listener_event_has_plain_name(self):
        assert DomainEvent(type=EventType.CONNECTIVITY_ONLINE).name == "CONNECTIVITY_ONLINE"


class TestProviderKind:
    """Tests for provider classification."""

    def test_password_is_not_federated(self):
        assert not ProviderKind.PASSWORD.is_federated
        assert ProviderKind.FACEBOOK.is_federated
        assert ProviderKind("facebook") == "facebook"


class TestSessionManager:
    """Tests for the current-identity holder."""

    def test_starts_signed_out(self):
        assert SessionManager().current_identity is None

    def test_tracks_identity_changes(self):
        session = SessionManager()

        session.set_current_identity(TEST_IDENTITY)

        assert session.current_identity == TEST_IDENTITY

        session.set_current_identity(None)

        assert session.current_identity is None
