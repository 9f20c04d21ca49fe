from wa_gateway.schemas.message import CanonicalMessage, ContentType, MessageKey, RawMessage
from wa_gateway.schemas.trigger import HandlerId, TriggerDefinition, TriggerKind, TriggerMatchResult
from wa_gateway.schemas.webhook import WebhookPayload

__all__ = [
    "CanonicalMessage",
    "ContentType",
    "MessageKey",
    "RawMessage",
    "HandlerId",
    "TriggerDefinition",
    "TriggerKind",
    "TriggerMatchResult",
    "WebhookPayload",
]
