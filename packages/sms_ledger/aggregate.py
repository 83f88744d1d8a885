"""Source filters, grouping and totals over collections of records.

Filters and grouping are order-preserving. Totals always go through
:func:`sms_ledger.normalize.normalize_record`, so each record contributes its
signed amount in the reporting currency exactly once.

The total of an empty collection is zero in the target currency.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import Record
from .money import Money, sum_money
from .normalize import ExchangeRates, normalize_record


def filter_include(records: Iterable[Record], sources: Iterable[str]) -> list[Record]:
    """Keep records whose source equals (case-sensitively) one of ``sources``."""

    wanted = set(sources)
    return [r for r in records if r.source in wanted]


def filter_exclude(records: Iterable[Record], sources: Iterable[str]) -> list[Record]:
    """Drop records whose source equals (case-sensitively) one of ``sources``."""

    unwanted = set(sources)
    return [r for r in records if r.source not in unwanted]


def filter_fuzzy_include(records: Iterable[Record], needles: Iterable[str]) -> list[Record]:
    """Keep records whose source contains any needle, ignoring case."""

    folded = [n.casefold() for n in needles]
    return [r for r in records if any(n in r.source.casefold() for n in folded)]


def group_by_source(records: Iterable[Record]) -> dict[str, list[Record]]:
    groups: dict[str, list[Record]] = {}
    for r in records:
        groups.setdefault(r.source, []).append(r)
    return groups


def total(records: Iterable[Record], target_currency: str, rates: ExchangeRates) -> Money:
    return sum_money((normalize_record(r, target_currency, rates) for r in records), target_currency)


def group_totals(
    records: Iterable[Record], target_currency: str, rates: ExchangeRates
) -> dict[str, Money]:
    """Per-source signed totals in ``target_currency``, in first-seen order."""

    return {
        source: total(group, target_currency, rates)
        for source, group in group_by_source(records).items()
    }


__all__ = [
    "filter_include",
    "filter_exclude",
    "filter_fuzzy_include",
    "group_by_source",
    "group_totals",
    "total",
]
