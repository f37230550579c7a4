"""
Domain Event Model.

Structured notifications emitted for the surrounding application's
event/state layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from presencegate.models.enums import EventPhase, EventType


class DomainEvent(BaseModel):
    """A single domain event.

    Attributes
    ----------
    type:
        What happened.
    phase:
        ``PENDING`` / ``SUCCESS`` / ``ERROR`` for action-triggered
        events; ``None`` for listener-driven notifications.
    payload:
        Identity, auth result, error or empty.
    meta:
        Description of the originating request for action events.
    """

    type: EventType
    phase: Optional[EventPhase] = None
    payload: dict[str, object] = Field(default_factory=dict)
    meta: dict[str, object] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.phase is EventPhase.ERROR

    @property
    def name(self) -> str:
        """``TYPE`` or ``TYPE_PHASE``, e.g. ``AUTH_SIGN_IN_SUCCESS``."""
        if self.phase is None:
            return self.type.value
        return f"{self.type.value}_{self.phase.value}"
