from unittest.mock import AsyncMock, Mock

import pytest

from wa_gateway.config import Settings
from wa_gateway.schemas.message import MessageKey, RawMessage
from wa_gateway.services.transport import SentMessage, Transport

NOW = 1_700_000_000.0


class FakeScheduler:
    """Stands in for ``loop.call_later``; callbacks fire only when told to."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        handle = Mock()
        self.calls.append((delay, callback, handle))
        return handle

    @property
    def delays(self):
        return [delay for delay, _, _ in self.calls]

    def fire_last(self):
        _, callback, _ = self.calls[-1]
        callback()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        session_path=str(tmp_path / "auth_info"),
        webhook_endpoint="http://hooks.test/api/webhook/whatsapp",
        webhook_retries=3,
        webhook_enabled=True,
        upload_endpoint="http://upload.test/api/media/upload",
        upload_api_key="upload-key",
        openrouter_api_key="",
        message_age_threshold=60,
        message_buffer_size=10,
    )


@pytest.fixture
def transport():
    mock = AsyncMock(spec=Transport)
    mock.send_text.return_value = SentMessage(key=MessageKey(remote_jid="628111@s.whatsapp.net", id="sent-1"))
    mock.send_reaction.return_value = SentMessage(key=MessageKey(remote_jid="628111@s.whatsapp.net", id="react-1"))
    mock.download_media.return_value = b"\xff\xd8\xff media bytes"
    return mock


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def make_raw():
    def _make(
        text="hello",
        *,
        message_id="MSG1",
        remote_jid="628111@s.whatsapp.net",
        timestamp=None,
        from_me=False,
        push_name="Budi",
        content=None,
        **key_fields,
    ):
        return RawMessage.model_validate(
            {
                "key": {"remoteJid": remote_jid, "id": message_id, "fromMe": from_me, **key_fields},
                "messageTimestamp": int(NOW) if timestamp is None else timestamp,
                "pushName": push_name,
                "content": content if content is not None else {"kind": "text", "text": text},
            }
        )

    return _make
