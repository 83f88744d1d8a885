"""Typed value extractors for matcher field plans.

A field value is either baked into configuration (:class:`Fixed`) or pulled
from a named capture group and run through one of a closed set of parsers
(:class:`FromMatch`). Both the extractor and the parser are plain tagged
variants; :func:`extract` and :func:`parse_value` dispatch over them with
``match`` so the set stays closed and every case is visible in one place.

Parser kinds
------------
- ``StringParser``: strips surrounding whitespace. Never fails.
- ``CurrencyParser``: ISO-4217 code (CLDR list via Babel) or an unambiguous
  English currency symbol such as ``"€"``. Fails if unrecognized.
- ``DateTimeParser``: ``strptime`` in a configured IANA time zone, converted
  to UTC. An optional ``suffix`` is appended to the captured text first, for
  alert formats that omit a field the format needs (year, seconds).
- ``NatureParser``: exact ``"Credit"`` / ``"Debit"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from babel.numbers import get_currency_symbol, list_currencies

from .errors import ConfigurationError, ParseFailure
from .models import Nature

# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StringParser:
    pass


@dataclass(frozen=True, slots=True)
class CurrencyParser:
    pass


@dataclass(frozen=True, slots=True)
class NatureParser:
    pass


@dataclass(frozen=True, slots=True)
class DateTimeParser:
    """Parse local wall-clock text into a UTC timestamp.

    ``timezone`` is an IANA zone name (``"Asia/Karachi"``). Local times that
    fall in a DST overlap resolve to the earlier occurrence; times inside a
    DST gap do not exist and are rejected.
    """

    format: str
    timezone: str = "UTC"
    suffix: str = ""

    def __post_init__(self) -> None:
        try:
            _zone(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"unknown time zone: {self.timezone!r}") from exc


type ValueParser = StringParser | CurrencyParser | DateTimeParser | NatureParser


@cache
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


@cache
def _iso_codes() -> frozenset[str]:
    return frozenset(list_currencies())


@cache
def _symbol_codes() -> dict[str, str]:
    # Only symbols that identify exactly one currency are usable for lookup.
    by_symbol: dict[str, set[str]] = {}
    for code in _iso_codes():
        symbol = get_currency_symbol(code, locale="en")
        if symbol and symbol != code:
            by_symbol.setdefault(symbol, set()).add(code)
    return {sym: next(iter(codes)) for sym, codes in by_symbol.items() if len(codes) == 1}


def lookup_currency(text: str) -> str | None:
    """Return the ISO-4217 code for ``text`` (a code or symbol), if known."""

    s = text.strip()
    if s in _iso_codes():
        return s
    return _symbol_codes().get(s)


def _parse_datetime(parser: DateTimeParser, raw: str) -> datetime:
    text = raw + parser.suffix
    try:
        parsed = datetime.strptime(text, parser.format)
    except ValueError as exc:
        raise ParseFailure("DateTime", raw, f"does not match {parser.format!r}: {exc}") from exc

    if parsed.tzinfo is not None:
        return parsed.astimezone(UTC)

    tz = _zone(parser.timezone)
    # fold=0 picks the earlier of two ambiguous wall times.
    local = parsed.replace(tzinfo=tz, fold=0)
    utc = local.astimezone(UTC)
    if utc.astimezone(tz).replace(tzinfo=None) != parsed:
        raise ParseFailure(
            "DateTime", raw, f"local time {parsed.isoformat()} does not exist in {parser.timezone}"
        )
    return utc


def parse_value(parser: ValueParser, raw: str) -> str | datetime | Nature:
    """Run ``raw`` through ``parser``; raise :class:`ParseFailure` on bad input."""

    match parser:
        case StringParser():
            return raw.strip()
        case CurrencyParser():
            code = lookup_currency(raw)
            if code is None:
                raise ParseFailure("Currency", raw, "currency not recognized")
            return code
        case DateTimeParser():
            return _parse_datetime(parser, raw)
        case NatureParser():
            for nature in Nature:
                if raw == nature.value:
                    return nature
            raise ParseFailure("Nature", raw, "expected 'Credit' or 'Debit'")
        case _:
            raise ConfigurationError(f"unsupported parser: {parser!r}")


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fixed[T]:
    """A constant value baked into configuration."""

    value: T


@dataclass(frozen=True, slots=True)
class FromMatch:
    """Parse the text captured by ``group`` with ``parser``."""

    group: str
    parser: ValueParser


type ValueExtractor[T] = Fixed[T] | FromMatch


def extract(extractor: ValueExtractor, m: re.Match[str]):
    """Produce a field value from a successful pattern match.

    A group that exists in the pattern but did not participate in this match
    means the field plan relies on an optional group, which is a configuration
    error rather than bad data.
    """

    match extractor:
        case Fixed(value=value):
            return value
        case FromMatch(group=group, parser=parser):
            try:
                raw = m.group(group)
            except IndexError as exc:
                raise ConfigurationError(
                    f"capture group {group!r} is not defined by pattern {m.re.pattern!r}"
                ) from exc
            if raw is None:
                raise ConfigurationError(
                    f"capture group {group!r} did not participate in the match for pattern "
                    f"{m.re.pattern!r}; field plans must not rely on optional groups"
                )
            return parse_value(parser, raw)
        case _:
            raise ConfigurationError(f"unsupported extractor: {extractor!r}")


def parser_kind(parser: ValueParser) -> str:
    match parser:
        case StringParser():
            return "String"
        case CurrencyParser():
            return "Currency"
        case DateTimeParser():
            return "DateTime"
        case NatureParser():
            return "Nature"
        case _:
            raise ConfigurationError(f"unsupported parser: {parser!r}")


__all__ = [
    "StringParser",
    "CurrencyParser",
    "DateTimeParser",
    "NatureParser",
    "ValueParser",
    "Fixed",
    "FromMatch",
    "ValueExtractor",
    "extract",
    "lookup_currency",
    "parse_value",
    "parser_kind",
]
