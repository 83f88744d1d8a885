"""Message sources: the macOS Messages store and JSON-lines exports.

``chat.db`` stores ``message.date`` as nanoseconds since 2001-01-01T00:00:00Z
(the Cocoa reference date). Messages are joined to their sender through the
``handle`` table, whose ``id`` column holds the phone number or short code
that banks send alerts from.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Iterator, Sequence
from datetime import UTC, datetime, timedelta
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from .errors import MessageSourceError
from .logging_setup import get_logger
from .models import Message

_logger = get_logger("sms_ledger.messages")

CHAT_DB_ENV = "SMS_LEDGER_CHAT_DB"
COCOA_EPOCH = datetime(2001, 1, 1, tzinfo=UTC)

_CHAT_DB_QUERY = text(
    """
    SELECT m.ROWID AS id, m.text AS text, m.date AS cocoa_ns
    FROM handle h
    JOIN message m ON h.ROWID = m.handle_id
    WHERE h.id IN :contacts
      AND m.date BETWEEN :start AND :end
    ORDER BY m.date
    """
).bindparams(bindparam("contacts", expanding=True))


def default_chat_db_path() -> Path:
    """``$SMS_LEDGER_CHAT_DB`` or ``~/Library/Messages/chat.db``."""

    override = os.getenv(CHAT_DB_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / "Library" / "Messages" / "chat.db"


def _as_utc(dt: datetime) -> datetime:
    # Naive datetimes are taken to be UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_cocoa_ns(dt: datetime) -> int:
    return (_as_utc(dt) - COCOA_EPOCH) // timedelta(microseconds=1) * 1000


def from_cocoa_ns(ns: int) -> datetime:
    return COCOA_EPOCH + timedelta(microseconds=ns // 1000)


def fetch_chat_db(
    db_path: str | PathLike[str],
    contacts: Sequence[str],
    start: datetime,
    end: datetime,
) -> list[Message]:
    """Read messages from ``contacts`` received within ``[start, end]``.

    Rows without text (attachments, reactions) are skipped. Any database
    failure is raised as :class:`MessageSourceError`.
    """

    path = Path(db_path).expanduser()
    if not path.is_file():
        raise MessageSourceError(f"message database not found: {path}")
    if not contacts:
        return []

    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.connect() as conn:
            rows = conn.execute(
                _CHAT_DB_QUERY,
                {"contacts": list(contacts), "start": to_cocoa_ns(start), "end": to_cocoa_ns(end)},
            ).all()
    except SQLAlchemyError as exc:
        raise MessageSourceError(f"failed to query {path}: {exc}") from exc
    finally:
        engine.dispose()

    msgs = [
        Message(id=row.id, text=row.text, time=from_cocoa_ns(int(row.cocoa_ns)))
        for row in rows
        if row.text is not None
    ]
    _logger.info("fetched %d messages from %s (%d rows)", len(msgs), path, len(rows))
    return msgs


class _MessageLine(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    text: str
    time: datetime


def _iter_jsonl(path: Path) -> Iterator[tuple[int, str]]:
    with path.open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if line.strip():
                yield lineno, line


def load_messages_jsonl(path: str | PathLike[str]) -> list[Message]:
    """Load messages from a JSON-lines file of ``{"id", "text", "time"}`` objects.

    ``time`` is ISO-8601; values without an offset are taken as UTC. Blank
    lines are ignored.
    """

    p = Path(path)
    msgs: list[Message] = []
    try:
        for lineno, line in _iter_jsonl(p):
            try:
                row = _MessageLine.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise MessageSourceError(f"{p}:{lineno}: invalid message record: {exc}") from exc
            msgs.append(Message(id=row.id, text=row.text, time=_as_utc(row.time)))
    except OSError as exc:
        raise MessageSourceError(f"cannot read messages file {p}: {exc}") from exc
    _logger.debug("loaded %d messages from %s", len(msgs), p)
    return msgs


def filter_time_range(messages: Iterable[Message], start: datetime, end: datetime) -> list[Message]:
    """Keep messages with ``start <= time <= end``, preserving order."""

    lo, hi = _as_utc(start), _as_utc(end)
    return [m for m in messages if lo <= m.time <= hi]


__all__ = [
    "COCOA_EPOCH",
    "default_chat_db_path",
    "fetch_chat_db",
    "filter_time_range",
    "from_cocoa_ns",
    "load_messages_jsonl",
    "to_cocoa_ns",
]
