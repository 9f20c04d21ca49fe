import asyncio
import inspect
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.message import CanonicalMessage, ContentType, DeliveryRecord, RawMessage, SenderInfo
from wa_gateway.schemas.trigger import HandlerId, TriggerDefinition, TriggerKind, TriggerMatchResult
from wa_gateway.services.human_behavior import send_human_like_message
from wa_gateway.services.transport import Transport
from wa_gateway.services.trigger_handlers import HANDLERS, HandlerContext, HandlerServices, TriggerHandler
from wa_gateway.services.trigger_table import TriggerTable

logger = get_logger("trigger_engine")

HANDLER_NOT_FOUND = "Handler function not found"

TEXT_TYPES = frozenset({ContentType.TEXT, ContentType.EXTENDED_TEXT})
CAPTION_TYPES = frozenset({ContentType.IMAGE, ContentType.VIDEO, ContentType.DOCUMENT})


def is_dispatchable(message: CanonicalMessage) -> bool:
    """Plain text, or caption-bearing media whose caption is real text."""
    if message.content_type in TEXT_TYPES:
        return True
    return message.content_type in CAPTION_TYPES and message.has_caption


def sender_info(message: CanonicalMessage) -> SenderInfo:
    return SenderInfo(
        phone_number=message.sender_phone,
        name=message.sender_name,
        jid=message.sender_jid,
        message_type=message.content_type,
    )


class TriggerEngine:
    def __init__(
        self,
        table: TriggerTable,
        services: HandlerServices,
        *,
        handlers: Optional[dict[HandlerId, TriggerHandler]] = None,
        sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.table = table
        self.services = services
        self.handlers = HANDLERS if handlers is None else handlers
        self.sleep_func = sleep_func

    async def dispatch(self, message: CanonicalMessage, raw: RawMessage, transport: Transport) -> TriggerMatchResult:
        """Match ``message`` and run its trigger. Errors become a non-match."""
        if not self.table.is_enabled():
            logger.debug("Triggers are globally disabled")
            return TriggerMatchResult.no_match()
        if not is_dispatchable(message):
            return TriggerMatchResult.no_match()

        try:
            trigger = self.table.match(message.content_text)
            if trigger is None:
                return TriggerMatchResult.no_match()

            logger.info(
                f"Trigger matched: {trigger.prefix}",
                extra={"context": {"message_id": message.id, "kind": trigger.kind.value, "sender": message.sender_phone}},
            )
            response_text = await self._respond(trigger, message, raw, transport)

            delivery = None
            if not trigger.reply_enabled:
                logger.info(f"Reply disabled for {trigger.prefix}, processed silently")
            elif response_text:
                delivery = await self._reply(message, raw, transport, response_text)

            return TriggerMatchResult(matched=True, trigger=trigger, response_text=response_text, delivery=delivery)
        except Exception as e:
            logger.error(f"Error processing triggers for {message.id}: {e}", exc_info=True)
            return TriggerMatchResult.no_match()

    async def _respond(
        self, trigger: TriggerDefinition, message: CanonicalMessage, raw: RawMessage, transport: Transport
    ) -> str:
        if trigger.kind == TriggerKind.STATIC_RESPONSE:
            return trigger.response or ""

        handler = self.handlers.get(trigger.handler) if trigger.handler != HandlerId.UNKNOWN else None
        if handler is None:
            logger.warning(f"No handler registered for trigger {trigger.prefix}")
            return HANDLER_NOT_FOUND

        ctx = HandlerContext(
            message_text=message.content_text,
            sender=sender_info(message),
            trigger=trigger,
            message=message,
            raw=raw,
            transport=transport,
            services=self.services,
        )
        result = handler(ctx)
        if inspect.isawaitable(result):
            result = await result
        return "" if result is None else str(result)

    async def _reply(
        self, message: CanonicalMessage, raw: RawMessage, transport: Transport, text: str
    ) -> DeliveryRecord:
        try:
            sent = await send_human_like_message(
                transport, message.chat_jid, text, quoted=raw, sleep_func=self.sleep_func
            )
        except Exception as e:
            logger.error(f"Failed to send trigger reply to {message.chat_jid}: {e}")
            return DeliveryRecord(
                success=False,
                to=message.chat_jid,
                message=text,
                is_reply=True,
                timestamp=datetime.now(timezone.utc),
            )

        logger.info(f"Trigger reply sent to {message.chat_jid}")
        return DeliveryRecord(
            success=True,
            message_id=sent.key.id,
            to=message.chat_jid,
            message=text,
            is_reply=True,
            timestamp=datetime.now(timezone.utc),
        )
