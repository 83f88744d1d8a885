import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from sms_ledger.errors import MessageSourceError
from sms_ledger.messages import (
    COCOA_EPOCH,
    default_chat_db_path,
    fetch_chat_db,
    filter_time_range,
    from_cocoa_ns,
    load_messages_jsonl,
    to_cocoa_ns,
)
from sms_ledger.models import Message
from tests.helpers.chat_db import build_chat_db

T0 = datetime(2023, 1, 5, 12, 0, tzinfo=UTC)


def test_cocoa_epoch_conversion():
    assert to_cocoa_ns(COCOA_EPOCH) == 0
    assert to_cocoa_ns(datetime(2001, 1, 1, 0, 0, 1, tzinfo=UTC)) == 1_000_000_000
    assert from_cocoa_ns(to_cocoa_ns(T0)) == T0


def test_fetch_chat_db_filters_contacts_and_window(tmp_path: Path):
    db = build_chat_db(
        tmp_path / "chat.db",
        handles={1: "8012", 2: "9355", 3: "+15551234"},
        messages=[
            (10, "second", 1, T0 + timedelta(hours=2)),
            (11, "first", 2, T0),
            (12, "other sender", 3, T0 + timedelta(hours=1)),
            (13, None, 1, T0 + timedelta(hours=3)),
            (14, "too late", 1, T0 + timedelta(days=30)),
        ],
    )
    msgs = fetch_chat_db(db, ["8012", "9355"], T0 - timedelta(days=1), T0 + timedelta(days=1))
    assert msgs == [
        Message(id=11, text="first", time=T0),
        Message(id=10, text="second", time=T0 + timedelta(hours=2)),
    ]


def test_fetch_chat_db_without_contacts_is_empty(tmp_path: Path):
    db = build_chat_db(tmp_path / "chat.db", handles={1: "8012"}, messages=[(1, "hi", 1, T0)])
    assert fetch_chat_db(db, [], T0 - timedelta(days=1), T0) == []


def test_fetch_chat_db_missing_file(tmp_path: Path):
    with pytest.raises(MessageSourceError, match="not found"):
        fetch_chat_db(tmp_path / "nope.db", ["8012"], T0, T0)


def test_fetch_chat_db_wrong_schema(tmp_path: Path):
    bogus = tmp_path / "bogus.db"
    bogus.write_bytes(b"")
    with pytest.raises(MessageSourceError, match="failed to query"):
        fetch_chat_db(bogus, ["8012"], T0, T0)


def test_default_chat_db_path_honours_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    assert default_chat_db_path().parts[-3:] == ("Library", "Messages", "chat.db")
    monkeypatch.setenv("SMS_LEDGER_CHAT_DB", str(tmp_path / "x.db"))
    assert default_chat_db_path() == tmp_path / "x.db"


def test_load_messages_jsonl(tmp_path: Path):
    path = tmp_path / "msgs.jsonl"
    lines = [
        json.dumps({"id": 1, "text": "hello", "time": "2023-01-05T12:00:00+00:00"}),
        "",
        json.dumps({"id": "b", "text": "naive", "time": "2023-01-05T13:00:00"}),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    assert load_messages_jsonl(path) == [
        Message(id=1, text="hello", time=T0),
        Message(id="b", text="naive", time=T0 + timedelta(hours=1)),
    ]


def test_load_messages_jsonl_reports_line(tmp_path: Path):
    path = tmp_path / "msgs.jsonl"
    path.write_text('{"id": 1, "text": "ok", "time": "2023-01-05T12:00:00Z"}\n{"id": 2}\n', encoding="utf-8")
    with pytest.raises(MessageSourceError, match=r"msgs\.jsonl:2"):
        load_messages_jsonl(path)


def test_filter_time_range_is_inclusive():
    msgs = [Message(id=i, text=str(i), time=T0 + timedelta(hours=i)) for i in range(5)]
    kept = filter_time_range(msgs, T0 + timedelta(hours=1), T0 + timedelta(hours=3))
    assert [m.id for m in kept] == [1, 2, 3]
