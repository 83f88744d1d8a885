"""Currency normalization and sign canonicalization.

Two separate, explicit steps:

1. :func:`canonical_amount` applies the record's nature to its amount
   (credit ``+``, debit ``-``). Records keep the unsigned extracted amount, so
   this is the only place a sign is introduced.
2. :func:`normalize` converts a ``Money`` into the reporting currency using a
   static :class:`ExchangeRates` table. No rounding happens here.

Aggregation code goes through :func:`normalize_record`, which composes the two
exactly once per record.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from decimal import Decimal

from .errors import ConfigurationError, MissingExchangeRate
from .models import Nature, Record
from .money import Money


class ExchangeRates(Mapping[tuple[str, str], Decimal]):
    """Read-only ``(from_currency, to_currency) -> multiplier`` table.

    Built once per process and passed explicitly to whoever needs it.
    Only the pairs that are configured exist; inverse rates are not derived.
    """

    __slots__ = ("_rates",)

    def __init__(self, rates: Mapping[tuple[str, str], Decimal | int | str] | None = None) -> None:
        table: dict[tuple[str, str], Decimal] = {}
        for (src, dst), raw in (rates or {}).items():
            rate = raw if isinstance(raw, Decimal) else Decimal(str(raw))
            if not rate.is_finite() or rate <= 0:
                raise ConfigurationError(f"exchange rate {src} -> {dst} must be positive: {raw!r}")
            table[(src, dst)] = rate
        self._rates = table

    def __getitem__(self, key: tuple[str, str]) -> Decimal:
        return self._rates[key]

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{s}->{d}={r}" for (s, d), r in self._rates.items())
        return f"ExchangeRates({pairs})"

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        try:
            return self._rates[(from_currency, to_currency)]
        except KeyError:
            raise MissingExchangeRate(from_currency, to_currency) from None


# Reporting currency and rates used when a configuration declares none.
DEFAULT_REPORTING_CURRENCY = "PKR"
DEFAULT_EXCHANGE_RATES = ExchangeRates(
    {
        ("USD", "PKR"): Decimal("237"),
    }
)


def normalize(money: Money, target_currency: str, rates: ExchangeRates) -> Money:
    """Convert ``money`` into ``target_currency``.

    Same currency is returned unchanged. A pair missing from ``rates`` raises
    :class:`MissingExchangeRate`; unconvertible amounts are never dropped or
    treated as zero.
    """

    if money.currency == target_currency:
        return money
    return Money(money.amount * rates.rate(money.currency, target_currency), target_currency)


def canonical_amount(record: Record) -> Money:
    match record.nature:
        case Nature.CREDIT:
            return record.amount
        case Nature.DEBIT:
            return -record.amount
        case _:
            raise ValueError(f"unknown nature: {record.nature!r}")


def normalize_record(record: Record, target_currency: str, rates: ExchangeRates) -> Money:
    """Signed amount of ``record`` in ``target_currency``."""

    return normalize(canonical_amount(record), target_currency, rates)


__all__ = [
    "ExchangeRates",
    "DEFAULT_EXCHANGE_RATES",
    "DEFAULT_REPORTING_CURRENCY",
    "normalize",
    "canonical_amount",
    "normalize_record",
]
