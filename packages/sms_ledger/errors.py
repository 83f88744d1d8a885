"""Exception hierarchy and per-message diagnostics for ``sms_ledger``.

Two families matter to callers:

- Data errors (``ParseFailure``) are raised by individual value parsers. The
  matcher registry catches them, drops the offending message and reports an
  :class:`ExtractionFailure` diagnostic; they never abort a batch.
- Configuration errors (``ConfigurationError`` and ``MissingExchangeRate``)
  mean the run cannot produce a trustworthy result at all and always
  propagate.
"""

from __future__ import annotations

from dataclasses import dataclass


class SmsLedgerError(Exception):
    """Base class for all errors raised by this package."""


class ParseFailure(SmsLedgerError, ValueError):
    """A captured value could not be parsed by its configured parser."""

    def __init__(self, kind: str, raw_text: str, reason: str) -> None:
        self.kind = kind
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(f"{kind} parser rejected {raw_text!r}: {reason}")


class ConfigurationError(SmsLedgerError):
    """Matcher or application configuration is internally inconsistent."""


class MissingExchangeRate(ConfigurationError, LookupError):
    """The exchange-rate table has no entry for the requested currency pair."""

    def __init__(self, from_currency: str, to_currency: str) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"no exchange rate configured for {from_currency} -> {to_currency}")


class CurrencyMismatchError(SmsLedgerError, TypeError):
    """Arithmetic or ordering attempted between different currencies."""


class MessageSourceError(SmsLedgerError):
    """A message store could not be opened, queried or decoded."""


@dataclass(frozen=True, slots=True)
class ExtractionFailure:
    """Non-fatal diagnostic for a message that matched but failed extraction."""

    message_id: int | str
    message_text: str
    matcher_id: str
    reason: str

    def __str__(self) -> str:
        return (
            f"message {self.message_id} matched {self.matcher_id!r} but could not be "
            f"parsed: {self.reason}"
        )


__all__ = [
    "SmsLedgerError",
    "ParseFailure",
    "ConfigurationError",
    "MissingExchangeRate",
    "CurrencyMismatchError",
    "MessageSourceError",
    "ExtractionFailure",
]
