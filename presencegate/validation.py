"""
Fluent Field Validator.

Validates credential input shape before any remote call is issued::

    validate({"email": email, "password": password}) \\
        .prop("email").required().email() \\
        .prop("password").required().simple_password() \\
        .check()

Rules run in declaration order and stop at the first failure, which is
raised as ``FieldValidationError(code, prop)``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Optional

from presencegate.models.auth_models import FieldValidationError

__all__ = ["FieldValidator", "validate"]

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_DEFAULT_MIN_PASSWORD_LENGTH: int = 6


class FieldValidator:
    """Chainable validator bound to one mapping of input fields.

    Parameters
    ----------
    fields:
        Raw field values keyed by name.
    min_password_length:
        Minimum length enforced by :meth:`simple_password`.
    """

    def __init__(
        self,
        fields: Mapping[str, object],
        min_password_length: int = _DEFAULT_MIN_PASSWORD_LENGTH,
    ) -> None:
        self._fields: Mapping[str, object] = fields
        self._min_password_length: int = min_password_length
        self._prop: Optional[str] = None
        self._error: Optional[FieldValidationError] = None

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    def prop(self, name: str) -> "FieldValidator":
        """Select the field subsequent rules apply to."""
        self._prop = name
        return self

    def required(self) -> "FieldValidator":
        value = self._value()
        if value is None or (isinstance(value, str) and not value.strip()):
            self._fail("required")
        return self

    def email(self) -> "FieldValidator":
        value = self._value()
        if self._is_present(value) and not _EMAIL_RE.match(str(value).strip()):
            self._fail("email")
        return self

    def simple_password(self) -> "FieldValidator":
        value = self._value()
        if self._is_present(value) and len(str(value)) < self._min_password_length:
            self._fail("simplePassword")
        return self

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def check(self) -> None:
        """Raise the first recorded failure, if any.

        Raises
        ------
        FieldValidationError
            With ``prop`` set to the failing field.
        """
        if self._error is not None:
            raise self._error

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _value(self) -> object:
        if self._prop is None:
            raise RuntimeError("prop() must be called before adding rules.")
        return self._fields.get(self._prop)

    @staticmethod
    def _is_present(value: object) -> bool:
        return value is not None and str(value) != ""

    def _fail(self, code: str) -> None:
        if self._error is None:
            self._error = FieldValidationError(code, prop=self._prop)


def validate(
    fields: Mapping[str, object],
    min_password_length: int = _DEFAULT_MIN_PASSWORD_LENGTH,
) -> FieldValidator:
    """Start a validation chain over *fields*."""
    return FieldValidator(fields, min_password_length=min_password_length)
