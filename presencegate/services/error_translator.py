"""
Error Translator.

Maps remote failure codes to ``FieldValidationError`` with field
attribution.  Callers filter through ``MessageCatalog`` first, so every
code reaching :meth:`ErrorTranslator.translate` resolves; codes with no
field entry simply carry ``prop=None``.
"""

from __future__ import annotations

from typing import Optional

from presencegate.models.auth_models import FieldValidationError
from presencegate.models.enums import AuthFailureCode

FIELD_BY_FAILURE_CODE: dict[str, str] = {
    AuthFailureCode.EMAIL_ALREADY_IN_USE: "email",
    AuthFailureCode.INVALID_EMAIL: "email",
    AuthFailureCode.USER_NOT_FOUND: "email",
    AuthFailureCode.WRONG_PASSWORD: "password",
}


class ErrorTranslator:
    """Stateless code → ``FieldValidationError`` mapper."""

    def __init__(self, field_by_code: Optional[dict[str, str]] = None) -> None:
        source = FIELD_BY_FAILURE_CODE if field_by_code is None else field_by_code
        self._field_by_code: dict[str, str] = {str(k): v for k, v in source.items()}

    def field_for(self, code: str) -> Optional[str]:
        return self._field_by_code.get(code)

    def translate(self, code: str) -> FieldValidationError:
        return FieldValidationError(code, prop=self.field_for(code))
