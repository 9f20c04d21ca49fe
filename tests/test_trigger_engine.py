import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

from wa_gateway.schemas.message import CanonicalMessage, ContentType
from wa_gateway.schemas.trigger import HandlerId, TriggerDefinition, TriggerKind
from wa_gateway.services.trigger_engine import HANDLER_NOT_FOUND, TriggerEngine, is_dispatchable
from wa_gateway.services.trigger_table import TriggerTable


def _message(text, content_type=ContentType.TEXT, has_caption=False):
    return CanonicalMessage(
        id="MSG1",
        sender_jid="628111@s.whatsapp.net",
        sender_phone="628111",
        sender_name="Budi",
        is_group=False,
        chat_jid="628111@s.whatsapp.net",
        content_text=text,
        content_type=content_type,
        has_caption=has_caption,
        timestamp=1_700_000_000,
        received_at=datetime.now(timezone.utc),
    )


def _static(prefix, response, reply=True):
    return TriggerDefinition(prefix=prefix, kind=TriggerKind.STATIC_RESPONSE, response=response, reply_enabled=reply)


def _handler_trigger(prefix=".a1", handler=HandlerId.A1_REPORT, reply=False):
    return TriggerDefinition(prefix=prefix, kind=TriggerKind.HANDLER_REF, handler=handler, reply_enabled=reply)


def _engine(triggers, sleep, handlers=None, enabled=True):
    return TriggerEngine(TriggerTable(triggers, enabled=enabled), Mock(), handlers=handlers or {}, sleep_func=sleep)


class TestDispatchable:
    def test_text_types(self):
        assert is_dispatchable(_message(".ping"))
        assert is_dispatchable(_message(".ping", ContentType.EXTENDED_TEXT))

    def test_media_needs_real_caption(self):
        assert is_dispatchable(_message(".a1 rusak", ContentType.IMAGE, has_caption=True))
        assert not is_dispatchable(_message("[Image]", ContentType.IMAGE))

    def test_other_types_rejected(self):
        assert not is_dispatchable(_message("[Audio]", ContentType.AUDIO))
        assert not is_dispatchable(_message("[Sticker]", ContentType.STICKER))


class TestDispatch:
    def test_globally_disabled_never_matches(self, make_raw, transport, sleep):
        handler = Mock(return_value="done")
        engine = _engine([_static(".ping", "Pong")], sleep, {HandlerId.A1_REPORT: handler}, enabled=False)

        result = asyncio.run(engine.dispatch(_message(".ping"), make_raw(".ping"), transport))

        assert result.matched is False
        transport.send_text.assert_not_called()

    def test_static_reply_is_quoted(self, make_raw, transport, sleep):
        raw = make_raw(".PING")
        engine = _engine([_static(".ping", "Pong! 🏓")], sleep)

        result = asyncio.run(engine.dispatch(_message(".PING"), raw, transport))

        assert result.matched
        assert result.response_text == "Pong! 🏓"
        transport.send_text.assert_awaited_once_with("628111@s.whatsapp.net", "Pong! 🏓", quoted=raw)
        assert result.delivery.success
        assert result.delivery.is_reply
        assert result.delivery.message_id == "sent-1"

    def test_table_order_wins(self, make_raw, transport, sleep):
        engine = _engine([_static(".a", "first", reply=False), _static(".a1", "second", reply=False)], sleep)

        result = asyncio.run(engine.dispatch(_message(".a1 hello"), make_raw(".a1 hello"), transport))

        assert result.trigger.prefix == ".a"
        assert result.response_text == "first"

    def test_reply_disabled_runs_handler_without_reply(self, make_raw, transport, sleep):
        handler = AsyncMock(return_value="report accepted")
        engine = _engine([_handler_trigger(reply=False)], sleep, {HandlerId.A1_REPORT: handler})

        result = asyncio.run(engine.dispatch(_message(".a1 rusak"), make_raw(".a1 rusak"), transport))

        handler.assert_awaited_once()
        assert result.matched
        assert result.response_text == "report accepted"
        assert result.delivery is None
        transport.send_text.assert_not_called()

    def test_sync_handler_receives_context(self, make_raw, transport, sleep):
        handler = Mock(return_value="sync reply")
        raw = make_raw(".a1 rusak")
        engine = _engine([_handler_trigger(reply=True)], sleep, {HandlerId.A1_REPORT: handler})

        result = asyncio.run(engine.dispatch(_message(".a1 rusak"), raw, transport))

        ctx = handler.call_args.args[0]
        assert ctx.message_text == ".a1 rusak"
        assert ctx.sender.phone_number == "628111"
        assert ctx.sender.message_type == ContentType.TEXT
        assert ctx.raw is raw
        assert ctx.transport is transport
        assert result.response_text == "sync reply"
        transport.send_text.assert_awaited_once()

    def test_unknown_handler_answers_not_found(self, make_raw, transport, sleep):
        engine = _engine([_handler_trigger(handler=HandlerId.UNKNOWN, reply=True)], sleep)

        result = asyncio.run(engine.dispatch(_message(".a1 x"), make_raw(".a1 x"), transport))

        assert result.response_text == HANDLER_NOT_FOUND

    def test_handler_error_becomes_no_match(self, make_raw, transport, sleep):
        handler = AsyncMock(side_effect=RuntimeError("handler exploded"))
        engine = _engine([_handler_trigger(reply=True)], sleep, {HandlerId.A1_REPORT: handler})

        result = asyncio.run(engine.dispatch(_message(".a1 x"), make_raw(".a1 x"), transport))

        assert result.matched is False
        transport.send_text.assert_not_called()

    def test_failed_reply_is_recorded(self, make_raw, transport, sleep):
        transport.send_text.side_effect = RuntimeError("socket closed")
        engine = _engine([_static(".ping", "Pong")], sleep)

        result = asyncio.run(engine.dispatch(_message(".ping"), make_raw(".ping"), transport))

        assert result.matched
        assert result.delivery.success is False
        transport.send_text.assert_awaited_once()

    def test_captioned_media_is_matched(self, make_raw, transport, sleep):
        engine = _engine([_static(".ping", "Pong", reply=False)], sleep)
        message = _message(".ping", ContentType.IMAGE, has_caption=True)

        result = asyncio.run(engine.dispatch(message, make_raw(".ping"), transport))

        assert result.matched

    def test_unsupported_type_is_not_matched(self, make_raw, transport, sleep):
        engine = _engine([_static("[", "bracket", reply=False)], sleep)

        result = asyncio.run(engine.dispatch(_message("[Audio]", ContentType.AUDIO), make_raw("x"), transport))

        assert result.matched is False
