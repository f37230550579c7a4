"""Unit tests for the fluent field validator."""

import pytest

from presencegate.models.auth_models import FieldValidationError
from presencegate.validation import validate


class TestRequired:
    """Tests for the required() rule."""

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_value_fails_with_prop(self, value):
        with pytest.raises(FieldValidationError) as exc_info:
            validate({"email": value}).prop("email").required().check()

        assert exc_info.value.code == "required"
        assert exc_info.value.prop == "email"

    def test_absent_key_fails(self):
        with pytest.raises(FieldValidationError) as exc_info:
            validate({}).prop("password").required().check()

        assert exc_info.value.prop == "password"

    def test_present_value_passes(self):
        validate({"email": "a@b.co"}).prop("email").required().check()


class TestEmail:
    """Tests for the email() rule."""

    @pytest.mark.parametrize("value", ["plainaddress", "a@b", "@example.com", "a b@c.com"])
    def test_malformed_email_fails(self, value):
        with pytest.raises(FieldValidationError) as exc_info:
            validate({"email": value}).prop("email").required().email().check()

        assert exc_info.value.code == "email"
        assert exc_info.value.prop == "email"

    def test_well_formed_email_passes(self):
        validate({"email": "ada.lovelace+test@example.co.uk"}).prop("email").email().check()

    def test_email_rule_skips_empty_value(self):
        # required() reports emptiness; email() alone stays silent
        validate({"email": ""}).prop("email").email().check()


class TestSimplePassword:
    """Tests for the simple_password() rule."""

    def test_short_password_fails(self):
        with pytest.raises(FieldValidationError) as exc_info:
            validate({"password": "12345"}).prop("password").simple_password().check()

        assert exc_info.value.code == "simplePassword"
        assert exc_info.value.prop == "password"

    def test_minimum_length_is_configurable(self):
        validator = validate({"password": "123456"}, min_password_length=8) \
            .prop("password").simple_password()

        with pytest.raises(FieldValidationError):
            validator.check()

    def test_long_enough_password_passes(self):
        validate({"password": "123456"}).prop("password").simple_password().check()


class TestChain:
    """Tests for rule ordering across props."""

    def test_first_failure_wins(self):
        with pytest.raises(FieldValidationError) as exc_info:
            validate({"email": "", "password": ""}) \
                .prop("email").required().email() \
                .prop("password").required().simple_password() \
                .check()

        assert exc_info.value.prop == "email"
        assert exc_info.value.code == "required"

    def test_rule_without_prop_raises(self):
        with pytest.raises(RuntimeError):
            validate({"email": "x"}).required()
