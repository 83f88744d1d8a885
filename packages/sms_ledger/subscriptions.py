"""Recurring-charge ("subscription") detection.

A source is reported as a subscription when all of its records, ordered by
time, form a chain in which every consecutive pair

- falls on different calendar dates,
- shares the same day-of-month, and
- carries an identical signed amount (nature applied, same currency, before
  any currency conversion).

This approximates "same charge, roughly monthly". It ignores the month gap
and misses charges that slide across short months (the 31st followed by the
28th never qualifies). A single pair that breaks the rule disqualifies the
whole source.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, tzinfo

from .aggregate import group_by_source
from .logging_setup import get_logger
from .models import Record, Subscription
from .normalize import canonical_amount
from .pmap import p_map, p_map_skip

_logger = get_logger("sms_ledger.subscriptions")


def _local_date(r: Record, tz: tzinfo) -> date:
    return r.time.astimezone(tz).date()


def _same_charge(prev: Record, cur: Record) -> bool:
    a, b = canonical_amount(prev), canonical_amount(cur)
    return a.currency == b.currency and a == b


def _is_recurring_pair(prev: Record, cur: Record, tz: tzinfo) -> bool:
    d0, d1 = _local_date(prev, tz), _local_date(cur, tz)
    return d0 != d1 and d0.day == d1.day and _same_charge(prev, cur)


def detect_group(source: str, records: Sequence[Record], *, tz: tzinfo = UTC) -> Subscription | None:
    """Return the subscription for one source's records, or ``None``."""

    if len(records) < 2:
        return None
    ordered = sorted(records, key=lambda r: r.time)
    for prev, cur in zip(ordered, ordered[1:], strict=False):
        if not _is_recurring_pair(prev, cur, tz):
            return None
    first = ordered[0]
    return Subscription(
        source=source,
        amount=canonical_amount(first),
        charge_day_of_month=_local_date(first, tz).day,
    )


def detect(
    records: Iterable[Record],
    *,
    tz: tzinfo = UTC,
    concurrency: int = 1,
) -> list[Subscription]:
    """Detect subscriptions per source; output follows first-seen source order."""

    groups = list(group_by_source(records).items())

    def _mapper(item: tuple[str, list[Record]]) -> Subscription | object:
        sub = detect_group(item[0], item[1], tz=tz)
        return p_map_skip if sub is None else sub

    subs = p_map(groups, _mapper, concurrency=concurrency)
    _logger.debug("detected %d subscriptions across %d sources", len(subs), len(groups))
    return subs


__all__ = ["detect", "detect_group"]
