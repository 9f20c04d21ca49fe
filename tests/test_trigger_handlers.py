import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

from wa_gateway.schemas.message import CanonicalMessage, ContentType, SenderInfo
from wa_gateway.schemas.trigger import HandlerId, TriggerDefinition, TriggerKind
from wa_gateway.services.ai_service import AIServiceError
from wa_gateway.services.trigger_handlers import (
    A1_USAGE,
    HANDLERS,
    HandlerContext,
    HandlerServices,
    format_media_type,
    format_timestamp,
    handle_a1_report,
    strip_prefix,
)
from wa_gateway.services.upload_service import UploadedMedia, UploadError
from wa_gateway.services.webhook_service import DeliveryOutcome

REPORT_TRIGGER = TriggerDefinition(
    prefix=".a1", kind=TriggerKind.HANDLER_REF, handler=HandlerId.A1_REPORT, reply_enabled=False
)


def _services(settings, outcome=None, ai=None, uploader=None):
    webhook = Mock()
    webhook.deliver_with_retry = AsyncMock(return_value=outcome or DeliveryOutcome.delivered(200))
    return HandlerServices(settings=settings, webhook=webhook, uploader=uploader, ai=ai)


def _context(raw, transport, services, content_type=ContentType.TEXT, has_caption=False):
    text = raw.content.caption if has_caption else raw.content.text
    message = CanonicalMessage(
        id=raw.key.id,
        sender_jid=raw.key.remote_jid,
        sender_phone="628111",
        sender_name="Budi",
        is_group=False,
        chat_jid=raw.key.remote_jid,
        content_text=text,
        content_type=content_type,
        has_caption=has_caption,
        timestamp=raw.message_timestamp,
        received_at=datetime.now(timezone.utc),
    )
    sender = SenderInfo(phone_number="628111", name="Budi", jid=raw.key.remote_jid, message_type=content_type)
    return HandlerContext(
        message_text=text,
        sender=sender,
        trigger=REPORT_TRIGGER,
        message=message,
        raw=raw,
        transport=transport,
        services=services,
    )


class TestHelpers:
    def test_strip_prefix_is_case_insensitive(self):
        assert strip_prefix("  .A1  plafond bocor ", ".a1") == "plafond bocor"

    def test_format_timestamp_uses_jakarta_time(self):
        assert format_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc)) == "01/01/2024 07.00.00"

    def test_media_labels(self):
        assert format_media_type(ContentType.IMAGE) == "Gambar"
        assert format_media_type(ContentType.EXTENDED_TEXT) == "Teks"
        assert format_media_type(ContentType.UNKNOWN) == "Media"

    def test_report_handler_is_registered(self):
        assert HANDLERS[HandlerId.A1_REPORT] is handle_a1_report
        assert HandlerId.UNKNOWN not in HANDLERS


class TestA1Report:
    def test_empty_report_returns_usage(self, settings, make_raw, transport):
        services = _services(settings)

        reply = asyncio.run(handle_a1_report(_context(make_raw(".a1   "), transport, services)))

        assert reply == A1_USAGE
        services.webhook.deliver_with_retry.assert_not_called()
        transport.send_reaction.assert_not_called()

    def test_text_report_without_ai_uses_fallbacks(self, settings, make_raw, transport):
        services = _services(settings)
        raw = make_raw(".a1 " + "x" * 100)

        reply = asyncio.run(handle_a1_report(_context(raw, transport, services)))

        payload = services.webhook.deliver_with_retry.await_args.args[0]
        assert payload["waUser"] == {"name": "Budi", "phone": "628111"}
        assert payload["task"]["title"] == "x" * 80
        assert payload["task"]["category"] == "CM"
        assert "evidence" not in payload["task"]
        assert payload["waMessageId"] == "MSG1"
        transport.send_reaction.assert_awaited_once_with(raw.key, "✅")
        assert "LAPORAN DITERIMA" in reply
        assert "Tipe: Teks" in reply

    def test_failed_delivery_reacts_with_warning(self, settings, make_raw, transport):
        services = _services(settings, outcome=DeliveryOutcome.failed("HTTP 500", http_status=500))
        raw = make_raw(".a1 plafond bocor")

        reply = asyncio.run(handle_a1_report(_context(raw, transport, services)))

        transport.send_reaction.assert_awaited_once_with(raw.key, "⚠️")
        assert "plafond bocor" in reply

    def test_ai_classification_is_used(self, settings, make_raw, transport):
        ai = Mock(configured=True)
        ai.generate_structured_report = AsyncMock(return_value={"title": "Plafond bocor", "category": "Bangunan"})
        services = _services(settings, ai=ai)

        asyncio.run(handle_a1_report(_context(make_raw(".a1 plafond di lobi bocor"), transport, services)))

        ai.generate_structured_report.assert_awaited_once_with("plafond di lobi bocor")
        task = services.webhook.deliver_with_retry.await_args.args[0]["task"]
        assert task == {"title": "Plafond bocor", "category": "Bangunan"}

    def test_ai_failure_falls_back(self, settings, make_raw, transport):
        ai = Mock(configured=True)
        ai.generate_structured_report = AsyncMock(side_effect=AIServiceError("provider down"))
        services = _services(settings, ai=ai)

        asyncio.run(handle_a1_report(_context(make_raw(".a1 lampu mati"), transport, services)))

        task = services.webhook.deliver_with_retry.await_args.args[0]["task"]
        assert task == {"title": "lampu mati", "category": "CM"}

    def test_captioned_image_is_uploaded_as_evidence(self, settings, make_raw, transport):
        uploader = Mock()
        uploader.upload = AsyncMock(return_value=UploadedMedia(url="https://cdn.test/evidence.jpg"))
        services = _services(settings, uploader=uploader)
        raw = make_raw(content={"kind": "image", "caption": ".a1 retak di dinding", "mimetype": "image/jpeg"})

        reply = asyncio.run(
            handle_a1_report(_context(raw, transport, services, content_type=ContentType.IMAGE, has_caption=True))
        )

        transport.download_media.assert_awaited_once_with(raw)
        _, kwargs = uploader.upload.call_args
        assert kwargs["category"] == "image"
        assert kwargs["mimetype"] == "image/jpeg"
        task = services.webhook.deliver_with_retry.await_args.args[0]["task"]
        assert task["evidence"] == "https://cdn.test/evidence.jpg"
        assert "Tipe: Gambar" in reply

    def test_upload_failure_still_delivers(self, settings, make_raw, transport):
        uploader = Mock()
        uploader.upload = AsyncMock(side_effect=UploadError("Media too large"))
        services = _services(settings, uploader=uploader)
        raw = make_raw(content={"kind": "image", "caption": ".a1 retak", "mimetype": "image/jpeg"})

        asyncio.run(handle_a1_report(_context(raw, transport, services, content_type=ContentType.IMAGE, has_caption=True)))

        task = services.webhook.deliver_with_retry.await_args.args[0]["task"]
        assert "evidence" not in task
        transport.send_reaction.assert_awaited_once_with(raw.key, "✅")

    def test_reaction_failure_is_contained(self, settings, make_raw, transport):
        transport.send_reaction.side_effect = RuntimeError("socket closed")
        services = _services(settings)

        reply = asyncio.run(handle_a1_report(_context(make_raw(".a1 pintu rusak"), transport, services)))

        assert "LAPORAN DITERIMA" in reply
