from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field

from wa_gateway.schemas.message import MessageKey


class SendMessageRequest(BaseModel):
    to: Optional[str] = None
    message: Optional[str] = None


class ReactionRequest(BaseModel):
    message_key: Optional[MessageKey] = Field(
        default=None, validation_alias=AliasChoices("message_key", "messageKey")
    )
    emoji: Optional[str] = None


class TriggerStatusRequest(BaseModel):
    enabled: Any = None


class ConnectionStatus(BaseModel):
    is_connected: bool
    has_pending_pairing: bool
    pairing_payload: Optional[str] = None


class ApiResponse(BaseModel):
    success: bool
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Optional[Any] = None


class GroupMessageRequest(BaseModel):
    group_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("group_id", "groupId"))
    message: Optional[str] = None
