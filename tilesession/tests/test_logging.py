"""
Unit Tests: Structured logging
"""

import io
import json
import logging

import pytest

from tilesession.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    redact,
    setup_logging,
)


@pytest.fixture
def captured():
    stream = io.StringIO()
    setup_logging(LogLevel.DEBUG, json_output=True, stream=stream)
    yield stream
    logging.getLogger().handlers.clear()


def lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestStructuredLogger:

    def test_json_record(self, captured):
        StructuredLogger("tilesession.test").info("Layer attached", layer_id="ab12")

        record = lines(captured)[-1]
        assert record["message"] == "Layer attached"
        assert record["level"] == "INFO"
        assert record["logger"] == "tilesession.test"
        assert record["layer_id"] == "ab12"

    def test_context_fields_reach_plain_loggers(self, captured):
        with StructuredLogger.context(layer_id="ab12", tile="3/4/2"):
            logging.getLogger("tilesession.layer.tiles").warning("Tile failed")
        logging.getLogger("tilesession.layer.tiles").warning("Outside")

        inside, outside = lines(captured)[-2:]
        assert inside["layer_id"] == "ab12"
        assert inside["tile"] == "3/4/2"
        assert "layer_id" not in outside

    def test_with_extra(self, captured):
        logger = StructuredLogger("tilesession.test").with_extra(component="scheduler")
        logger.debug("Armed")
        assert lines(captured)[-1]["component"] == "scheduler"

    def test_exception_rendered(self, captured):
        try:
            raise ValueError("bad")
        except ValueError:
            logging.getLogger("tilesession.test").exception("Failed")

        assert "ValueError: bad" in lines(captured)[-1]["exception"]


class TestLogLevel:

    def test_parse(self):
        assert LogLevel.parse("warning") is LogLevel.WARNING

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            LogLevel.parse("loud")

    def test_formatter_is_logging_formatter(self):
        assert isinstance(JsonFormatter(), logging.Formatter)


class TestRedaction:

    def test_redact_query_secrets(self):
        url = "https://tiles.test/tiles/1/2/3?session=abcdef&orientation=0&key=AIza123"
        assert redact(url) == "https://tiles.test/tiles/1/2/3?session=***&orientation=0&key=***"

    def test_json_message_redacted(self, captured):
        logging.getLogger("tilesession.test").warning(
            "GET %s failed", "https://tiles.test/viewport?session=abcdef&key=AIza123",
        )
        message = lines(captured)[-1]["message"]
        assert "abcdef" not in message
        assert "AIza123" not in message

    def test_text_output_redacted(self):
        stream = io.StringIO()
        setup_logging(LogLevel.INFO, json_output=False, stream=stream)
        try:
            logging.getLogger("tilesession.test").info("POST /createSession?key=AIza123")
        finally:
            logging.getLogger().handlers.clear()
        assert "AIza123" not in stream.getvalue()
        assert "key=***" in stream.getvalue()
