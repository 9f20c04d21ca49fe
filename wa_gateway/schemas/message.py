from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from wa_gateway.schemas.content import MessageContent

GROUP_JID_SUFFIX = "@g.us"
USER_JID_SUFFIX = "@s.whatsapp.net"


class ContentType(str, Enum):
    TEXT = "text"
    EXTENDED_TEXT = "extended_text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"
    LOCATION = "location"
    CONTACT = "contact"
    MEDIA = "media"
    UNKNOWN = "unknown"


class MessageKey(BaseModel):
    remote_jid: str = Field(validation_alias=AliasChoices("remote_jid", "remoteJid"))
    id: str
    from_me: bool = Field(default=False, validation_alias=AliasChoices("from_me", "fromMe"))
    participant: Optional[str] = None
    participant_pn: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("participant_pn", "participantPn")
    )

    @property
    def is_group(self) -> bool:
        return GROUP_JID_SUFFIX in self.remote_jid


class RawMessage(BaseModel):
    """Inbound event as raised by the transport."""

    key: MessageKey
    message_timestamp: int = Field(validation_alias=AliasChoices("message_timestamp", "messageTimestamp"))
    content: Optional[MessageContent] = None
    push_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("push_name", "pushName"))
    verified_biz_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("verified_biz_name", "verifiedBizName")
    )
    participant: Optional[str] = None


class CanonicalMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sender_jid: str
    sender_phone: str
    sender_name: str
    is_group: bool
    chat_jid: str
    content_text: str
    content_type: ContentType
    has_caption: bool = False
    timestamp: int
    received_at: datetime


class SenderInfo(BaseModel):
    phone_number: str
    name: str
    jid: str
    message_type: ContentType = ContentType.TEXT


class DeliveryRecord(BaseModel):
    success: bool
    message_id: Optional[str] = None
    to: str
    message: Optional[str] = None
    reaction: Optional[str] = None
    target_message: Optional[str] = None
    is_reply: bool = False
    timestamp: datetime


class MessageStats(BaseModel):
    total_messages: int = 0
    message_types: dict[str, int] = Field(default_factory=dict)
    group_messages: int = 0
    direct_messages: int = 0
    last_message_time: Optional[int] = None


def to_user_jid(value: str) -> str:
    return value if "@" in value else f"{value}{USER_JID_SUFFIX}"


def to_group_jid(value: str) -> str:
    return value if GROUP_JID_SUFFIX in value else f"{value}{GROUP_JID_SUFFIX}"


def jid_user(jid: str) -> str:
    return jid.split("@")[0]
