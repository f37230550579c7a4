"""
Structured Audit Logging Utility.

Every identity-related state change (sign-in, sign-up, sign-out,
profile save) is logged as one validated JSON object prefixed with
``AUDIT:`` so the trail can be grepped out of the regular log stream.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from presencegate.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event"]

# Flat scalars only; nested structures do not belong in the audit trail.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    identity_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    identity_id: Optional[str],
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event and return it.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"SIGN_IN"``, ``"SAVE_USER"``).
        identity_id: ID of the identity concerned, ``None`` if unknown.
        details: Optional flat context.  Never pass passwords here.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        identity_id=identity_id or "unknown",
        details=details or {},
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
    return event
