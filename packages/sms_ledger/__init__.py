"""Public interface for the ``sms_ledger`` package.

Re-exports the models, the extraction pipeline and the aggregation helpers as
the stable import surface. The CLI lives in :mod:`sms_ledger.cli`.
"""

from .aggregate import (
    filter_exclude,
    filter_fuzzy_include,
    filter_include,
    group_by_source,
    group_totals,
    total,
)
from .config import AppConfig, load_config, parse_config
from .errors import (
    ConfigurationError,
    CurrencyMismatchError,
    ExtractionFailure,
    MessageSourceError,
    MissingExchangeRate,
    ParseFailure,
    SmsLedgerError,
)
from .extractors import (
    CurrencyParser,
    DateTimeParser,
    Fixed,
    FromMatch,
    NatureParser,
    StringParser,
)
from .matchers import FieldPlan, Matcher, MatcherRegistry, parse_all
from .models import Message, Nature, Record, Subscription
from .money import Money
from .normalize import ExchangeRates, canonical_amount, normalize, normalize_record
from .subscriptions import detect as detect_subscriptions

__all__ = [
    # Models
    "Message",
    "Money",
    "Nature",
    "Record",
    "Subscription",
    # Extraction
    "CurrencyParser",
    "DateTimeParser",
    "FieldPlan",
    "Fixed",
    "FromMatch",
    "Matcher",
    "MatcherRegistry",
    "NatureParser",
    "StringParser",
    "parse_all",
    # Normalization and aggregation
    "ExchangeRates",
    "canonical_amount",
    "detect_subscriptions",
    "filter_exclude",
    "filter_fuzzy_include",
    "filter_include",
    "group_by_source",
    "group_totals",
    "normalize",
    "normalize_record",
    "total",
    # Configuration
    "AppConfig",
    "load_config",
    "parse_config",
    # Errors
    "ConfigurationError",
    "CurrencyMismatchError",
    "ExtractionFailure",
    "MessageSourceError",
    "MissingExchangeRate",
    "ParseFailure",
    "SmsLedgerError",
]
