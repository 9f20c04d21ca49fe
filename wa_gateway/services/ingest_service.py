"""Inbound message pipeline: normalize, filter stale, buffer, acknowledge, dispatch."""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from wa_gateway.config import Settings
from wa_gateway.logging_config import LoggerAdapter, get_logger
from wa_gateway.schemas.content import (
    AudioContent,
    ContactContent,
    DocumentContent,
    ExtendedTextContent,
    GenericMediaContent,
    ImageContent,
    LocationContent,
    MessageContent,
    StickerContent,
    TextContent,
    VideoContent,
)
from wa_gateway.schemas.message import CanonicalMessage, ContentType, MessageStats, RawMessage, jid_user
from wa_gateway.services.events import MessagesUpsert
from wa_gateway.services.human_behavior import send_online_presence, simulate_read_message
from wa_gateway.services.transport import Transport, TransportError
from wa_gateway.services.trigger_engine import TriggerEngine

logger = get_logger("ingest_service")

UNKNOWN_SENDER_NAME = "Unknown User"
UNKNOWN_MEDIA_TEXT = "[Unknown Media]"


class SenderSource(str, Enum):
    DIRECT = "direct"
    PARTICIPANT_PN = "participant_pn"
    KEY_PARTICIPANT = "key_participant"
    MESSAGE_PARTICIPANT = "message_participant"
    CONTEXT_PARTICIPANT = "context_participant"
    GROUP_FALLBACK = "group_fallback"


@dataclass(frozen=True)
class SenderIdentity:
    jid: str
    phone: str
    name: str
    is_group: bool
    source: SenderSource


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    content_type: ContentType
    has_caption: bool = False


def _context_participant(raw: RawMessage) -> Optional[str]:
    content = raw.content
    if isinstance(content, ExtendedTextContent) and content.context_info:
        return content.context_info.participant
    return None


def extract_sender(raw: RawMessage) -> SenderIdentity:
    """Resolve who sent ``raw``.

    Group messages check the participant fields in a fixed order and fall back
    to the group JID itself, which is logged as a degraded result.
    """
    chat_jid = raw.key.remote_jid
    name = raw.push_name or raw.verified_biz_name or UNKNOWN_SENDER_NAME

    if not raw.key.is_group:
        return SenderIdentity(chat_jid, jid_user(chat_jid), name, False, SenderSource.DIRECT)

    candidates = (
        (raw.key.participant_pn, SenderSource.PARTICIPANT_PN),
        (raw.key.participant, SenderSource.KEY_PARTICIPANT),
        (raw.participant, SenderSource.MESSAGE_PARTICIPANT),
        (_context_participant(raw), SenderSource.CONTEXT_PARTICIPANT),
    )
    for jid, source in candidates:
        if jid:
            logger.debug(f"Group sender resolved via {source.value}: {jid}")
            return SenderIdentity(jid, jid_user(jid), name, True, source)

    logger.warning(
        "Group message has no participant, using group id as sender",
        extra={"context": {"remote_jid": chat_jid, "message_id": raw.key.id}},
    )
    return SenderIdentity(chat_jid, jid_user(chat_jid), name, True, SenderSource.GROUP_FALLBACK)


def extract_content(content: Optional[MessageContent]) -> ExtractedContent:
    if isinstance(content, TextContent):
        return ExtractedContent(content.text, ContentType.TEXT)
    if isinstance(content, ExtendedTextContent):
        return ExtractedContent(content.text, ContentType.EXTENDED_TEXT)
    if isinstance(content, ImageContent):
        return _captioned(content.caption, "[Image]", ContentType.IMAGE)
    if isinstance(content, VideoContent):
        return _captioned(content.caption, "[Video]", ContentType.VIDEO)
    if isinstance(content, AudioContent):
        return ExtractedContent("[Audio]", ContentType.AUDIO)
    if isinstance(content, DocumentContent):
        return _captioned(content.caption, f"[Document: {content.file_name or 'Unknown'}]", ContentType.DOCUMENT)
    if isinstance(content, StickerContent):
        return ExtractedContent("[Sticker]", ContentType.STICKER)
    if isinstance(content, LocationContent):
        return ExtractedContent("[Location]", ContentType.LOCATION)
    if isinstance(content, ContactContent):
        return ExtractedContent(f"[Contact: {content.display_name or 'Unknown'}]", ContentType.CONTACT)
    if isinstance(content, GenericMediaContent):
        return ExtractedContent(UNKNOWN_MEDIA_TEXT, ContentType.MEDIA)
    return ExtractedContent(UNKNOWN_MEDIA_TEXT, ContentType.UNKNOWN)


def _captioned(caption: Optional[str], placeholder: str, content_type: ContentType) -> ExtractedContent:
    if caption and caption.strip():
        return ExtractedContent(caption, content_type, has_caption=True)
    return ExtractedContent(placeholder, content_type)


class MessageBuffer:
    """Volatile store of the most recent messages, oldest evicted first."""

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError("buffer capacity must be at least 1")
        self.capacity = capacity
        self._messages: list[CanonicalMessage] = []

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: CanonicalMessage) -> None:
        self._messages.append(message)
        if len(self._messages) > self.capacity:
            self._messages = self._messages[-self.capacity:]

    def recent(self, limit: Optional[int] = None) -> list[CanonicalMessage]:
        """Newest first."""
        newest_first = list(reversed(self._messages))
        return newest_first if limit is None else newest_first[: max(limit, 0)]

    def clear(self) -> int:
        count = len(self._messages)
        self._messages = []
        return count

    def stats(self) -> MessageStats:
        stats = MessageStats(total_messages=len(self._messages))
        for message in self._messages:
            key = message.content_type.value
            stats.message_types[key] = stats.message_types.get(key, 0) + 1
            if message.is_group:
                stats.group_messages += 1
            else:
                stats.direct_messages += 1
            if stats.last_message_time is None or message.timestamp > stats.last_message_time:
                stats.last_message_time = message.timestamp
        return stats

    def search(
        self,
        query: Optional[str] = None,
        *,
        limit: int = 50,
        message_type: Optional[ContentType] = None,
        is_group: Optional[bool] = None,
        from_sender: Optional[str] = None,
        date_from: Optional[int] = None,
        date_to: Optional[int] = None,
    ) -> list[CanonicalMessage]:
        """Filter the buffer; results are newest first, at most ``limit``."""
        needle = query.lower() if query else None
        matches = []
        for message in self._messages:
            if needle and needle not in message.content_text.lower():
                continue
            if message_type and message.content_type != message_type:
                continue
            if is_group is not None and message.is_group != is_group:
                continue
            if from_sender and from_sender not in message.sender_phone:
                continue
            if date_from is not None and message.timestamp < date_from:
                continue
            if date_to is not None and message.timestamp > date_to:
                continue
            matches.append(message)
        return list(reversed(matches))[: max(limit, 0)]


class IngestPipeline:
    def __init__(
        self,
        settings: Settings,
        buffer: MessageBuffer,
        engine: Optional[TriggerEngine] = None,
        *,
        clock: Callable[[], float] = time.time,
        sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.buffer = buffer
        self.engine = engine
        self.clock = clock
        self.sleep_func = sleep_func

    def message_age_ms(self, raw: RawMessage) -> float:
        return self.clock() * 1000 - raw.message_timestamp * 1000

    async def process(self, raw: RawMessage, transport: Transport) -> Optional[CanonicalMessage]:
        """Return the accepted message, or None for self-sent, empty or stale input."""
        if raw.key.from_me or raw.content is None:
            return None

        log = LoggerAdapter(logger, {"message_id": raw.key.id})
        age_ms = self.message_age_ms(raw)
        threshold_ms = self.settings.message_age_threshold * 1000
        if age_ms > threshold_ms:
            log.info(
                f"Old message ({round(age_ms / 1000)}s), marking as read without processing",
                context={"threshold_s": self.settings.message_age_threshold, "sender": jid_user(raw.key.remote_jid)},
            )
            await simulate_read_message(transport, raw.key, sleep_func=self.sleep_func)
            return None

        sender = extract_sender(raw)
        content = extract_content(raw.content)
        message = CanonicalMessage(
            id=raw.key.id,
            sender_jid=sender.jid,
            sender_phone=sender.phone,
            sender_name=sender.name,
            is_group=sender.is_group,
            chat_jid=raw.key.remote_jid,
            content_text=content.text,
            content_type=content.content_type,
            has_caption=content.has_caption,
            timestamp=raw.message_timestamp,
            received_at=datetime.fromtimestamp(self.clock(), tz=timezone.utc),
        )
        self.buffer.append(message)

        preview = content.text if len(content.text) <= 50 else content.text[:50] + "..."
        log.info(
            f"Message received from {sender.phone}",
            context={
                "type": content.content_type.value,
                "group": sender.is_group,
                "sender_source": sender.source.value,
                "age_s": round(age_ms / 1000),
                "preview": preview,
            },
        )

        await simulate_read_message(transport, raw.key, sleep_func=self.sleep_func)

        if self.engine is not None:
            try:
                result = await self.engine.dispatch(message, raw, transport)
            except Exception as e:
                log.error(f"Error processing triggers: {e}")
            else:
                if result.matched:
                    log.info(f"Trigger executed: {result.trigger.prefix}")

        return message

    async def handle_batch(self, event: MessagesUpsert, transport: Transport) -> list[CanonicalMessage]:
        total = len(event.messages)
        logger.info(f"Processing batch of {total} message(s), type {event.type}")

        processed = []
        for index, raw in enumerate(event.messages, start=1):
            try:
                message = await self.process(raw, transport)
            except TransportError as e:
                if e.pre_key:
                    logger.warning(f"Pre-key error for message {raw.key.id}, refreshing presence")
                    await send_online_presence(transport)
                else:
                    logger.error(f"Transport error in batch message {index}: {e.message}")
                continue
            except Exception as e:
                logger.error(f"Error in batch message {index}: {e}", exc_info=True)
                continue

            if message is None:
                logger.info(f"Batch message {index} skipped", extra={"context": {"message_id": raw.key.id}})
            else:
                processed.append(message)

        logger.info(f"Batch complete: {len(processed)}/{total} messages processed")
        return processed
