from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from wa_gateway.schemas.group import GroupMetadata
from wa_gateway.schemas.message import MessageKey, RawMessage
from wa_gateway.services.events import GatewayEvent

Publish = Callable[[GatewayEvent], None]


class Presence(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    COMPOSING = "composing"
    PAUSED = "paused"


@dataclass
class SentMessage:
    key: MessageKey


class TransportError(Exception):
    def __init__(self, message: str, *, pre_key: bool = False):
        self.message = message
        self.pre_key = pre_key
        super().__init__(message)


class Transport(ABC):
    """Live chat socket. Implemented outside this package."""

    @property
    @abstractmethod
    def user_jid(self) -> Optional[str]:
        """JID of the logged-in account, once known."""

    @abstractmethod
    async def send_text(self, jid: str, text: str, quoted: Optional[RawMessage] = None) -> SentMessage:
        """Send a text message, quoting ``quoted`` when given."""

    @abstractmethod
    async def send_reaction(self, key: MessageKey, emoji: str) -> SentMessage:
        """React to the message identified by ``key``."""

    @abstractmethod
    async def read_messages(self, keys: list[MessageKey]) -> None:
        """Mark messages as read."""

    @abstractmethod
    async def send_presence_update(self, presence: Presence, jid: Optional[str] = None) -> None:
        """Update own presence, optionally scoped to one chat."""

    @abstractmethod
    async def download_media(self, message: RawMessage) -> bytes:
        """Fetch and decrypt the media attached to ``message``."""

    @abstractmethod
    async def fetch_groups(self) -> list[GroupMetadata]:
        """List the groups the account participates in."""

    @abstractmethod
    async def close(self) -> None:
        """Close the socket."""


class TransportFactory(ABC):
    """Creates sockets. Events must be handed to ``publish`` in delivery order."""

    @abstractmethod
    async def connect(self, auth_material: dict[str, Any], publish: Publish) -> Transport:
        """Open a socket authenticated with ``auth_material``."""
