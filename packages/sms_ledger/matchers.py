"""Matcher registry: pattern selection and record construction.

Public surface:

- ``FieldPlan``: one extractor per :class:`~sms_ledger.models.Record` field.
- ``Matcher``: an id, a compiled pattern with named groups, and a field plan.
  Construction validates the plan against the pattern, so a matcher that
  exists is internally consistent.
- ``MatcherRegistry``: ordered, immutable collection of matchers with
  first-match-wins :meth:`~MatcherRegistry.resolve`.
- ``parse_all``: resolve a batch of messages, optionally on a thread pool,
  preserving input order.

Resolution outcomes
-------------------
- No pattern matches: the message is skipped silently.
- A pattern matches but a field fails to parse: the message is skipped, a
  warning is logged and an :class:`~sms_ledger.errors.ExtractionFailure` is
  appended to the caller's ``diagnostics`` list when one is given.
- The field plan is broken (e.g. it reads an optional group that did not
  participate): :class:`~sms_ledger.errors.ConfigurationError` propagates.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from dataclasses import fields as dc_fields
from datetime import datetime

from .errors import ConfigurationError, ExtractionFailure, ParseFailure
from .extractors import Fixed, FromMatch, ValueExtractor, extract, lookup_currency, parser_kind
from .logging_setup import get_logger
from .models import Message, Nature, Record
from .money import Money
from .pmap import p_map, p_map_skip

_logger = get_logger("sms_ledger.matchers")


@dataclass(frozen=True, slots=True)
class FieldPlan:
    nature: ValueExtractor[Nature]
    account: ValueExtractor[str]
    amount: ValueExtractor[str]
    currency: ValueExtractor[str]
    source: ValueExtractor[str]
    time: ValueExtractor[datetime]


# Parser kind and Fixed value type each field accepts.
_FIELD_KINDS: dict[str, tuple[str, type]] = {
    "nature": ("Nature", Nature),
    "account": ("String", str),
    "amount": ("String", str),
    "currency": ("Currency", str),
    "source": ("String", str),
    "time": ("DateTime", datetime),
}


def _check_field(matcher_id: str, pattern: re.Pattern[str], name: str, ex: object) -> None:
    kind, value_type = _FIELD_KINDS[name]
    where = f"matcher {matcher_id!r}, field {name!r}"
    match ex:
        case FromMatch(group=group, parser=parser):
            if group not in pattern.groupindex:
                raise ConfigurationError(
                    f"{where}: capture group {group!r} is not defined by the pattern "
                    f"(groups: {sorted(pattern.groupindex)})"
                )
            if parser_kind(parser) != kind:
                raise ConfigurationError(
                    f"{where}: expected a {kind} parser, got {parser_kind(parser)}"
                )
        case Fixed(value=value):
            if not isinstance(value, value_type):
                raise ConfigurationError(
                    f"{where}: fixed value must be {value_type.__name__}, got {value!r}"
                )
            if name == "currency" and lookup_currency(value) != value:
                raise ConfigurationError(f"{where}: unknown currency code {value!r}")
            if name == "time" and value.tzinfo is None:
                raise ConfigurationError(f"{where}: fixed timestamps must be timezone-aware")
            if name == "amount":
                try:
                    Money.parse(value, "XXX")
                except ParseFailure as exc:
                    raise ConfigurationError(f"{where}: {exc}") from exc
        case _:
            raise ConfigurationError(f"{where}: unsupported extractor {ex!r}")


@dataclass(frozen=True, slots=True)
class Matcher:
    """A named pattern plus the plan for turning its captures into a record."""

    id: str
    pattern: re.Pattern[str]
    fields: FieldPlan

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ConfigurationError("matcher id must be a non-empty string")
        for f in dc_fields(self.fields):
            _check_field(self.id, self.pattern, f.name, getattr(self.fields, f.name))

    def build_record(self, message: Message, m: re.Match[str]) -> Record:
        """Extract every field from ``m``; raises ``ParseFailure`` on bad data."""

        plan = self.fields
        currency = extract(plan.currency, m)
        return Record(
            message_id=message.id,
            matcher_id=self.id,
            nature=extract(plan.nature, m),
            account=extract(plan.account, m),
            amount=Money.parse(extract(plan.amount, m), currency),
            source=extract(plan.source, m),
            time=extract(plan.time, m),
        )


class MatcherRegistry:
    """Ordered, read-only matcher collection.

    Order is significant: :meth:`resolve` uses the first matcher whose pattern
    is found in the text, so more specific patterns must be registered before
    more general ones.
    """

    __slots__ = ("_matchers",)

    def __init__(self, matchers: Iterable[Matcher]) -> None:
        items = tuple(matchers)
        seen: set[str] = set()
        for m in items:
            if m.id in seen:
                raise ConfigurationError(f"duplicate matcher id: {m.id!r}")
            seen.add(m.id)
        self._matchers: tuple[Matcher, ...] = items

    def __iter__(self) -> Iterator[Matcher]:
        return iter(self._matchers)

    def __len__(self) -> int:
        return len(self._matchers)

    def __repr__(self) -> str:
        return f"MatcherRegistry({[m.id for m in self._matchers]!r})"

    def get(self, matcher_id: str) -> Matcher | None:
        for m in self._matchers:
            if m.id == matcher_id:
                return m
        return None

    def find(self, text: str) -> tuple[Matcher, re.Match[str]] | None:
        """Return the first matcher whose pattern occurs in ``text``."""

        for matcher in self._matchers:
            m = matcher.pattern.search(text)
            if m is not None:
                return matcher, m
        return None

    def resolve_outcome(self, message: Message) -> Record | ExtractionFailure | None:
        """Like :meth:`resolve` but returns the failure instead of recording it."""

        found = self.find(message.text)
        if found is None:
            return None
        matcher, m = found
        try:
            return matcher.build_record(message, m)
        except ParseFailure as exc:
            failure = ExtractionFailure(
                message_id=message.id,
                message_text=message.text,
                matcher_id=matcher.id,
                reason=str(exc),
            )
            _logger.warning(
                "extraction failed: message=%s matcher=%s reason=%s text=%r",
                message.id,
                matcher.id,
                exc,
                message.text,
            )
            return failure

    def resolve(
        self,
        message: Message,
        *,
        diagnostics: list[ExtractionFailure] | None = None,
    ) -> Record | None:
        """Build a record for ``message`` or return ``None``.

        ``None`` covers both "no matcher applies" and "matched but a field
        failed to parse"; the latter is also appended to ``diagnostics``.
        """

        outcome = self.resolve_outcome(message)
        if isinstance(outcome, ExtractionFailure):
            if diagnostics is not None:
                diagnostics.append(outcome)
            return None
        return outcome


def parse_all(
    registry: MatcherRegistry,
    messages: Iterable[Message],
    *,
    concurrency: int = 1,
    diagnostics: list[ExtractionFailure] | None = None,
) -> list[Record]:
    """Resolve every message independently and keep the successes in order.

    Resolution is a pure function of one message and the registry, so work is
    fanned out over ``concurrency`` threads when asked; the output order is
    the input order either way. Diagnostics are appended in input order too.
    """

    msgs: Sequence[Message] = list(messages)

    def _mapper(msg: Message) -> Record | ExtractionFailure | object:
        outcome = registry.resolve_outcome(msg)
        return p_map_skip if outcome is None else outcome

    outcomes = p_map(msgs, _mapper, concurrency=concurrency)

    records: list[Record] = []
    failures = 0
    for outcome in outcomes:
        if isinstance(outcome, ExtractionFailure):
            failures += 1
            if diagnostics is not None:
                diagnostics.append(outcome)
        else:
            records.append(outcome)

    _logger.info(
        "parsed %d records from %d messages (%d unmatched, %d failed)",
        len(records),
        len(msgs),
        len(msgs) - len(records) - failures,
        failures,
    )
    return records


__all__ = ["FieldPlan", "Matcher", "MatcherRegistry", "parse_all"]
