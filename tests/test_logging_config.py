"""Tests for log routing."""

import json
import logging

import pytest
import structlog

from streamsource.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_structlog_and_stdlib_share_one_file(tmp_path, restore_logging):
    setup_logging(str(tmp_path), "INFO")
    structlog.get_logger("streamsource.test").info("stream_open", source="http://h/s")
    logging.getLogger("httpx").warning("plain stdlib record")
    structlog.get_logger("streamsource.test").debug("below_level")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = (tmp_path / "streamsource.jsonl").read_text().splitlines()
    records = [json.loads(line) for line in lines]
    assert [r["event"] for r in records] == ["stream_open", "plain stdlib record"]
    assert records[0]["source"] == "http://h/s"
    assert records[0]["level"] == "info"
    assert records[1]["level"] == "warning"
    assert all("timestamp" in r for r in records)
