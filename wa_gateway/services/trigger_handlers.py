"""Handlers bound to ``handler_ref`` triggers, keyed by ``HandlerId``.

A handler receives a ``HandlerContext`` and returns the reply text, either
directly or as an awaitable. Collaborator failures stay inside the handler.
"""

import mimetypes
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Union

from wa_gateway.config import Settings
from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.content import CAPTIONED_CONTENT, DocumentContent
from wa_gateway.schemas.message import CanonicalMessage, ContentType, RawMessage, SenderInfo
from wa_gateway.schemas.trigger import HandlerId, TriggerDefinition
from wa_gateway.schemas.webhook import ReportTask, WaUser, WebhookPayload
from wa_gateway.services.ai_service import AIService, AIServiceError
from wa_gateway.services.transport import Transport
from wa_gateway.services.upload_service import UploadError, UploadService
from wa_gateway.services.webhook_service import WebhookDispatcher

logger = get_logger("trigger_handlers")

WIB = timezone(timedelta(hours=7), "WIB")
REPORT_TITLE_MAX = 80
REACTION_DELIVERED = "✅"
REACTION_FAILED = "⚠️"
A1_USAGE = "Format: .a1 <pesan laporan>\nContoh: .a1 laporan ada kerusakan plafond"

MEDIA_TYPE_LABELS = {
    ContentType.TEXT: "Teks",
    ContentType.EXTENDED_TEXT: "Teks",
    ContentType.IMAGE: "Gambar",
    ContentType.VIDEO: "Video",
    ContentType.AUDIO: "Audio",
    ContentType.DOCUMENT: "Dokumen",
    ContentType.STICKER: "Stiker",
    ContentType.LOCATION: "Lokasi",
    ContentType.CONTACT: "Kontak",
}

_UPLOAD_CATEGORIES = {
    ContentType.IMAGE: "image",
    ContentType.VIDEO: "video",
    ContentType.DOCUMENT: "document",
}


@dataclass
class HandlerServices:
    settings: Settings
    webhook: WebhookDispatcher
    uploader: Optional[UploadService] = None
    ai: Optional[AIService] = None


@dataclass
class HandlerContext:
    message_text: str
    sender: SenderInfo
    trigger: TriggerDefinition
    message: CanonicalMessage
    raw: RawMessage
    transport: Transport
    services: HandlerServices


TriggerHandler = Callable[[HandlerContext], Union[str, Awaitable[str]]]


def format_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(WIB).strftime("%d/%m/%Y %H.%M.%S")


def format_media_type(content_type: ContentType) -> str:
    return MEDIA_TYPE_LABELS.get(content_type, "Media")


def strip_prefix(text: str, prefix: str) -> str:
    text = text.strip()
    if text.lower().startswith(prefix.lower()):
        text = text[len(prefix):]
    return text.strip()


def _media_filename(ctx: HandlerContext, mimetype: str) -> str:
    content = ctx.raw.content
    if isinstance(content, DocumentContent) and content.file_name:
        return content.file_name
    extension = mimetypes.guess_extension(mimetype.split(";")[0].strip()) or ""
    return f"{ctx.message.id}{extension}"


async def _upload_evidence(ctx: HandlerContext) -> Optional[str]:
    uploader = ctx.services.uploader
    content = ctx.raw.content
    category = _UPLOAD_CATEGORIES.get(ctx.message.content_type)
    if uploader is None or category is None or not isinstance(content, CAPTIONED_CONTENT):
        return None

    mimetype = content.mimetype or "application/octet-stream"
    try:
        data = await ctx.transport.download_media(ctx.raw)
        uploaded = await uploader.upload(
            data, filename=_media_filename(ctx, mimetype), mimetype=mimetype, category=category
        )
    except UploadError as e:
        logger.warning(f"Evidence upload failed for {ctx.message.id}: {e.message}")
        return None
    except Exception as e:
        logger.warning(f"Evidence download failed for {ctx.message.id}: {e}")
        return None
    return uploaded.url


async def _classify_report(ctx: HandlerContext, report: str) -> tuple[str, str]:
    title = report[:REPORT_TITLE_MAX]
    category = ctx.services.settings.report_default_category
    ai = ctx.services.ai
    if ai is None or not ai.configured:
        return title, category

    try:
        structured = await ai.generate_structured_report(report)
    except AIServiceError as e:
        logger.warning(f"Report classification failed, using defaults: {e.message}")
        return title, category

    ai_title = str(structured.get("title") or "").strip()
    ai_category = str(structured.get("category") or "").strip()
    return (ai_title or title)[:REPORT_TITLE_MAX], ai_category or category


async def _react(ctx: HandlerContext, emoji: str) -> None:
    try:
        await ctx.transport.send_reaction(ctx.raw.key, emoji)
    except Exception as e:
        logger.warning(f"Could not react to {ctx.message.id}: {e}")


async def handle_a1_report(ctx: HandlerContext) -> str:
    report = strip_prefix(ctx.message_text, ctx.trigger.prefix)
    if not report:
        return A1_USAGE

    logger.debug(
        "Processing A1 report",
        extra={"context": {"phone": ctx.sender.phone_number, "type": ctx.sender.message_type.value}},
    )

    evidence = await _upload_evidence(ctx)
    title, category = await _classify_report(ctx, report)
    payload = WebhookPayload(
        waUser=WaUser(name=ctx.sender.name, phone=ctx.sender.phone_number),
        task=ReportTask(title=title, category=category, evidence=evidence),
        waMessageId=ctx.message.id,
    )

    outcome = await ctx.services.webhook.deliver_with_retry(payload.to_json())
    if outcome.success:
        logger.info(f"A1 report {ctx.message.id} delivered")
    else:
        logger.error(
            f"A1 report {ctx.message.id} not delivered",
            extra={"context": {"reason": outcome.reason, "error": outcome.error, "status": outcome.http_status}},
        )
    await _react(ctx, REACTION_DELIVERED if outcome.success else REACTION_FAILED)

    return f"""📋 LAPORAN DITERIMA

Pelapor: {ctx.sender.name or "Unknown"}
Nomor HP: {ctx.sender.phone_number}
Waktu: {format_timestamp()}
Tipe: {format_media_type(ctx.sender.message_type)}
Pesan: {report}

Status: ✅ Laporan telah diterima dan akan diproses"""


HANDLERS: dict[HandlerId, TriggerHandler] = {
    HandlerId.A1_REPORT: handle_a1_report,
}
