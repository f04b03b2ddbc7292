"""Tests for command-line argument handling."""

import argparse
import json

import pytest

from streamsource.__main__ import _parse_header, _print_event, build_parser, list_stored
from streamsource.store.db import SqliteStore


class TestParseHeader:
    def test_name_and_value(self):
        assert _parse_header("X-Token: abc") == ("X-Token", "abc")

    def test_value_may_contain_colons(self):
        assert _parse_header("Referer: http://h:1/") == ("Referer", "http://h:1/")

    def test_missing_colon_rejected(self):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_header("no-colon")

    def test_empty_name_rejected(self):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_header(": value")


class TestBuildParser:
    def test_defaults(self):
        args = build_parser().parse_args(["http://h/events"])
        assert args.url == "http://h/events"
        assert args.header == []
        assert args.event == []
        assert args.user is None
        assert not args.memory
        assert not args.list

    def test_repeatable_options(self):
        args = build_parser().parse_args([
            "http://h/events",
            "-H", "A: 1",
            "--header", "B: 2",
            "-e", "update",
            "--event", "delete",
            "--memory",
            "--retry-ms", "500",
        ])
        assert args.header == [("A", "1"), ("B", "2")]
        assert args.event == ["update", "delete"]
        assert args.memory
        assert args.retry_ms == 500


def test_print_event_writes_json_line(capsys):
    _print_event("3", "update", "a\nb")
    out = capsys.readouterr().out
    assert out.endswith("\n")
    assert json.loads(out) == {"id": "3", "event": "update", "data": "a\nb"}


class TestListStored:
    def test_url_optional_with_list(self):
        args = build_parser().parse_args(["--list", "--store", "ids.sqlite"])
        assert args.url is None
        assert args.list

    @pytest.mark.asyncio
    async def test_prints_stored_ids(self, tmp_path, capsys):
        path = str(tmp_path / "ids.sqlite")
        store = SqliteStore(path)
        await store.connect()
        await store.set("ns.http.h..//a", "7")
        await store.close()

        await list_stored(path)
        # unconfigured structlog also prints to stdout
        lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["key"] == "ns.http.h..//a"
        assert entry["last_event_id"] == "7"
        assert entry["updated_at"] > 0
