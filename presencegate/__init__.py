"""PresenceGate: authentication and live presence tracking."""

__version__ = "0.1.0"
