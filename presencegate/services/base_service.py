"""
Base Service Class.

Every PresenceGate service receives its ``StructuredLogger`` through the
constructor; this base class stores it as ``self._logger`` so auth,
presence and connectivity services log through one injected channel.
"""

from __future__ import annotations

from presencegate.logger import StructuredLogger


class BaseService:
    """Holds the injected logger shared by all services."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
