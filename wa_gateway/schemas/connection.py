from enum import Enum
from typing import Optional


class ConnectionPhase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class DisconnectReason(str, Enum):
    BAD_SESSION = "bad_session"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_LOST = "connection_lost"
    CONNECTION_REPLACED = "connection_replaced"
    LOGGED_OUT = "logged_out"
    RESTART_REQUIRED = "restart_required"
    TIMED_OUT = "timed_out"
    UNKNOWN = "unknown"

    @property
    def requires_session_reset(self) -> bool:
        return self in _RESET_REASONS

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_status_code(cls, code: Optional[int]) -> "DisconnectReason":
        """Map a transport close status code. 408 is reported as lost, not timed out."""
        return _STATUS_CODES.get(code, cls.UNKNOWN)


_RESET_REASONS = frozenset(
    {
        DisconnectReason.BAD_SESSION,
        DisconnectReason.CONNECTION_REPLACED,
        DisconnectReason.LOGGED_OUT,
    }
)

_LABELS = {
    DisconnectReason.BAD_SESSION: "Bad Session File",
    DisconnectReason.CONNECTION_CLOSED: "Connection Closed",
    DisconnectReason.CONNECTION_LOST: "Connection Lost",
    DisconnectReason.CONNECTION_REPLACED: "Connection Replaced",
    DisconnectReason.LOGGED_OUT: "Logged Out",
    DisconnectReason.RESTART_REQUIRED: "Restart Required",
    DisconnectReason.TIMED_OUT: "Connection Timed Out",
    DisconnectReason.UNKNOWN: "Unknown",
}

_STATUS_CODES = {
    500: DisconnectReason.BAD_SESSION,
    428: DisconnectReason.CONNECTION_CLOSED,
    408: DisconnectReason.CONNECTION_LOST,
    440: DisconnectReason.CONNECTION_REPLACED,
    401: DisconnectReason.LOGGED_OUT,
    515: DisconnectReason.RESTART_REQUIRED,
}
