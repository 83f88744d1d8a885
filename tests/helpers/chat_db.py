"""Test helpers: build a minimal macOS Messages ``chat.db`` in SQLite."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine, insert

from sms_ledger.messages import to_cocoa_ns

_meta = MetaData()

handle = Table(
    "handle",
    _meta,
    Column("ROWID", Integer, primary_key=True),
    Column("id", Text, nullable=False),
)

message = Table(
    "message",
    _meta,
    Column("ROWID", Integer, primary_key=True),
    Column("text", Text, nullable=True),
    Column("handle_id", Integer, nullable=False),
    Column("date", Integer, nullable=False),
)


def build_chat_db(
    db_file: Path,
    *,
    handles: dict[int, str],
    messages: Iterable[tuple[int, str | None, int, datetime]],
) -> Path:
    """Create ``db_file`` with the given handles and ``(rowid, text, handle_rowid, time)`` rows.

    Only the columns the message source reads are created.
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_file}")
    try:
        _meta.create_all(engine)
        with engine.begin() as conn:
            conn.execute(insert(handle), [{"ROWID": k, "id": v} for k, v in handles.items()])
            rows = [
                {"ROWID": rowid, "text": text, "handle_id": hid, "date": to_cocoa_ns(when)}
                for rowid, text, hid, when in messages
            ]
            if rows:
                conn.execute(insert(message), rows)
    finally:
        engine.dispose()
    return db_file
