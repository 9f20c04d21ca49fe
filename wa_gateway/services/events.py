"""Tagged events carried on the gateway's single event channel.

Transport-raised events come first; the rest are emitted by the gateway itself.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from wa_gateway.schemas.connection import ConnectionPhase, DisconnectReason
from wa_gateway.schemas.message import RawMessage


@dataclass(frozen=True)
class ConnectionUpdate:
    phase: Optional[ConnectionPhase] = None
    reason: Optional[DisconnectReason] = None
    qr: Optional[str] = None
    is_new_login: bool = False


@dataclass(frozen=True)
class MessagesUpsert:
    messages: list[RawMessage]
    type: str = "notify"


@dataclass(frozen=True)
class CredentialsUpdate:
    delta: dict[str, Any]


@dataclass(frozen=True)
class ReceiptUpdate:
    receipts: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class CallEvent:
    data: Any = None


@dataclass(frozen=True)
class IqError:
    data: Any = None


@dataclass(frozen=True)
class StreamError:
    error: Any = None


@dataclass(frozen=True)
class ReconnectRequested:
    source: str = "backoff"


@dataclass(frozen=True)
class SessionResetRequested:
    reason: str


@dataclass(frozen=True)
class ConnectionStatusChanged:
    phase: ConnectionPhase
    reason: Optional[DisconnectReason] = None
    reconnect_attempts: int = 0


TransportEvent = Union[ConnectionUpdate, MessagesUpsert, CredentialsUpdate, ReceiptUpdate, CallEvent, IqError, StreamError]
GatewayEvent = Union[TransportEvent, ReconnectRequested, SessionResetRequested, ConnectionStatusChanged]
