"""Data models and type aliases for ``sms_ledger``.

Everything here is immutable. A :class:`Record` is created only by a
successful extraction of one :class:`Message` through one matcher and is never
mutated afterwards; downstream steps (normalization, grouping, subscription
detection) produce new values.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .money import Money

# ---------------------------------------------------------------------------
# Inbound messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Message:
    """A raw notification as delivered by a message source.

    ``time`` is the arrival timestamp (UTC-aware). ``id`` is opaque; sources
    use whatever identifier their store provides (``ROWID`` for ``chat.db``).
    """

    id: int | str
    text: str
    time: datetime


# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------


class Nature(Enum):
    """Direction of a transaction: money in (credit) or out (debit)."""

    CREDIT = "Credit"
    DEBIT = "Debit"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Record:
    """A typed transaction extracted from a single message.

    ``amount`` is stored exactly as extracted (unsigned). The sign implied by
    ``nature`` is applied by :func:`sms_ledger.normalize.canonical_amount` and
    nowhere else.
    """

    message_id: int | str
    matcher_id: str
    nature: Nature
    account: str
    amount: Money
    source: str
    time: datetime


@dataclass(frozen=True, slots=True)
class Subscription:
    """A recurring same-amount charge detected for one source.

    ``amount`` is signed: debits are negative, credits positive.
    """

    source: str
    amount: Money
    charge_day_of_month: int


type Records = Sequence[Record]
"""An ordered, already-materialized collection of records."""

type Messages = Iterable[Message]
"""Any iterable of inbound messages."""


__all__ = [
    "Message",
    "Nature",
    "Record",
    "Subscription",
    "Records",
    "Messages",
]
