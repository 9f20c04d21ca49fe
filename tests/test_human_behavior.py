import asyncio

import pytest

from wa_gateway.schemas.message import MessageKey
from wa_gateway.services.human_behavior import send_human_like_message, simulate_read_message
from wa_gateway.services.transport import SentMessage


class TestSendHumanLikeMessage:
    def test_signals_in_order_then_sends(self, transport, sleep):
        log = []
        transport.send_presence_update.side_effect = lambda presence, jid=None: log.append(presence.value)
        transport.read_messages.side_effect = lambda keys: log.append("read")

        def _send(jid, text, quoted=None):
            log.append("send")
            return SentMessage(key=MessageKey(remote_jid=jid, id="sent-9"))

        transport.send_text.side_effect = _send

        sent = asyncio.run(send_human_like_message(transport, "628111@s.whatsapp.net", "halo", sleep_func=sleep))

        assert log == ["available", "read", "composing", "paused", "send", "available"]
        assert sent.key.id == "sent-9"

    def test_presence_failures_are_swallowed(self, transport, sleep):
        transport.send_presence_update.side_effect = RuntimeError("presence failed")
        transport.read_messages.side_effect = RuntimeError("read failed")

        sent = asyncio.run(send_human_like_message(transport, "628111@s.whatsapp.net", "halo", sleep_func=sleep))

        assert sent.key.id == "sent-1"

    def test_send_failure_propagates(self, transport, sleep):
        transport.send_text.side_effect = RuntimeError("socket closed")

        with pytest.raises(RuntimeError):
            asyncio.run(send_human_like_message(transport, "628111@s.whatsapp.net", "halo", sleep_func=sleep))

    def test_reply_quotes_original(self, transport, sleep, make_raw):
        raw = make_raw(".help")

        asyncio.run(send_human_like_message(transport, raw.key.remote_jid, "help text", quoted=raw, sleep_func=sleep))

        transport.send_text.assert_awaited_once_with(raw.key.remote_jid, "help text", quoted=raw)


class TestSimulateReadMessage:
    def test_marks_read_after_delay(self, transport, sleep):
        key = MessageKey(remote_jid="628111@s.whatsapp.net", id="MSG1")

        assert asyncio.run(simulate_read_message(transport, key, sleep_func=sleep)) is True

        transport.read_messages.assert_awaited_once_with([key])
        delay = sleep.await_args.args[0]
        assert 1.0 <= delay <= 3.0

    def test_failure_returns_false(self, transport, sleep):
        transport.read_messages.side_effect = RuntimeError("offline")
        key = MessageKey(remote_jid="628111@s.whatsapp.net", id="MSG1")

        assert asyncio.run(simulate_read_message(transport, key, sleep_func=sleep)) is False
