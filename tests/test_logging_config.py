import json
import logging

from wa_gateway.logging_config import JSONFormatter, LoggerAdapter, get_logger


class TestLoggerAdapter:
    def test_bound_and_call_context_are_merged(self, caplog):
        log = LoggerAdapter(get_logger("ingest_service"), {"message_id": "MSG1"})

        with caplog.at_level(logging.INFO, logger="wa_gateway"):
            log.info("Dispatched", context={"matched": True})

        record = caplog.records[-1]
        assert record.name == "wa_gateway.ingest_service"
        assert record.context == {"message_id": "MSG1", "matched": True}

    def test_call_context_overrides_bound_keys(self, caplog):
        log = LoggerAdapter(get_logger("ingest_service"), {"message_id": "MSG1"})

        with caplog.at_level(logging.INFO, logger="wa_gateway"):
            log.info("Re-keyed", context={"message_id": "MSG2"})

        assert caplog.records[-1].context == {"message_id": "MSG2"}


class TestJSONFormatter:
    def test_renders_context_as_json_line(self):
        record = logging.LogRecord("wa_gateway.test", logging.WARNING, __file__, 1, "Stale message", None, None)
        record.context = {"age_ms": 61000}

        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["message"] == "Stale message"
        assert payload["context"] == {"age_ms": 61000}
        assert "exception" not in payload
