"""YAML configuration loading for matchers, exchange rates and CLI defaults.

The file is read with ``yaml.safe_load`` and validated with pydantic models
that mirror its layout. Extractors use a tagged ``{type, config}`` shape::

    matchers:
      - id: js-cash-withdrawal
        pattern: 'Acct\\. (?P<account>\\S+) debited by (?P<currency>[A-Z]{3}) ...'
        values:
          nature:   {type: Fixed, config: Debit}
          account:  {type: FromMatch, config: {group: account, parser: String}}
          amount:   {type: FromMatch, config: {group: amount, parser: String}}
          currency: {type: FromMatch, config: {group: currency, parser: Currency}}
          source:   {type: FromMatch, config: {group: reason, parser: String}}
          time:
            type: FromMatch
            config:
              group: datetime
              parser: {type: FormattedDateTime, config: "%H:%M hrs on %d-%m-%Y"}

Date/time parsers are ``FormattedDateTime: <format>`` or
``FormattedDateTimeWithAppend: {format, suffix}`` with an optional
``timezone`` (defaults to the file-level ``timezone``).

Every failure (unreadable file, YAML syntax, schema violations, bad regexes,
inconsistent field plans) surfaces as :class:`ConfigurationError`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .extractors import (
    CurrencyParser,
    DateTimeParser,
    Fixed,
    FromMatch,
    NatureParser,
    StringParser,
    ValueExtractor,
    ValueParser,
    lookup_currency,
)
from .logging_setup import get_logger
from .matchers import FieldPlan, Matcher, MatcherRegistry
from .models import Nature
from .normalize import DEFAULT_EXCHANGE_RATES, DEFAULT_REPORTING_CURRENCY, ExchangeRates

_logger = get_logger("sms_ledger.config")

CONFIG_ENV = "SMS_LEDGER_CONFIG"
DEFAULT_CONFIG_PATH = "config.yml"

# Used when the file names no contacts or exclusions.
DEFAULT_CONTACTS = ("8012", "9355")
DEFAULT_EXCLUDE_SOURCES = ("JS Credit Card Bill Pay From IB",)

# ---------------------------------------------------------------------------
# File schema
# ---------------------------------------------------------------------------


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class AppendConfig(_Model):
    format: str
    suffix: str


class FormattedDateTimeSpec(_Model):
    type: Literal["FormattedDateTime"]
    config: str
    timezone: str | None = None


class FormattedDateTimeWithAppendSpec(_Model):
    type: Literal["FormattedDateTimeWithAppend"]
    config: AppendConfig
    timezone: str | None = None


DateTimeParserSpec = Annotated[
    FormattedDateTimeSpec | FormattedDateTimeWithAppendSpec, Field(discriminator="type")
]


class FromMatchConfig(_Model):
    group: str
    parser: Literal["String", "Currency", "Nature"] | DateTimeParserSpec


class FixedSpec(_Model):
    type: Literal["Fixed"]
    config: str | int | float


class FromMatchSpec(_Model):
    type: Literal["FromMatch"]
    config: FromMatchConfig


ExtractorSpec = Annotated[FixedSpec | FromMatchSpec, Field(discriminator="type")]


class ValuesSpec(_Model):
    nature: ExtractorSpec
    account: ExtractorSpec
    amount: ExtractorSpec
    currency: ExtractorSpec
    source: ExtractorSpec
    time: ExtractorSpec


class MatcherSpec(_Model):
    id: str
    pattern: str
    values: ValuesSpec

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("matcher id must be non-empty")
        return v.strip()


class ExchangeRateSpec(_Model):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")
    rate: Decimal

    @field_validator("from_currency", "to_currency")
    @classmethod
    def _known_currency(cls, v: str) -> str:
        code = lookup_currency(v)
        if code is None:
            raise ValueError(f"unknown currency: {v!r}")
        return code


class ConfigFile(_Model):
    """Top-level schema of the YAML configuration file."""

    reporting_currency: str = DEFAULT_REPORTING_CURRENCY
    timezone: str = "UTC"
    contacts: list[str] = Field(default_factory=lambda: list(DEFAULT_CONTACTS))
    exclude_sources: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_SOURCES))
    exchange_rates: list[ExchangeRateSpec] | None = None
    matchers: list[MatcherSpec]

    @field_validator("reporting_currency")
    @classmethod
    def _known_reporting_currency(cls, v: str) -> str:
        code = lookup_currency(v)
        if code is None:
            raise ValueError(f"unknown currency: {v!r}")
        return code

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone: {v!r}") from exc
        return v


# ---------------------------------------------------------------------------
# Runtime configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Everything a run needs, built once at startup and passed explicitly."""

    registry: MatcherRegistry
    rates: ExchangeRates
    reporting_currency: str
    timezone: str
    contacts: tuple[str, ...]
    exclude_sources: tuple[str, ...]

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _build_parser(spec: Any, default_tz: str) -> ValueParser:
    match spec:
        case "String":
            return StringParser()
        case "Currency":
            return CurrencyParser()
        case "Nature":
            return NatureParser()
        case FormattedDateTimeSpec(config=fmt, timezone=tz):
            return DateTimeParser(format=fmt, timezone=tz or default_tz)
        case FormattedDateTimeWithAppendSpec(config=cfg, timezone=tz):
            return DateTimeParser(format=cfg.format, timezone=tz or default_tz, suffix=cfg.suffix)
        case _:
            raise ConfigurationError(f"unsupported parser spec: {spec!r}")


def _fixed_value(field_name: str, raw: str | int | float) -> Any:
    text = str(raw)
    match field_name:
        case "nature":
            try:
                return Nature(text)
            except ValueError as exc:
                raise ConfigurationError(f"fixed nature must be Credit or Debit: {text!r}") from exc
        case "time":
            try:
                return datetime.fromisoformat(text)
            except ValueError as exc:
                raise ConfigurationError(f"fixed time is not ISO-8601: {text!r}") from exc
        case _:
            return text


def _build_extractor(field_name: str, spec: FixedSpec | FromMatchSpec, default_tz: str) -> ValueExtractor:
    match spec:
        case FixedSpec(config=raw):
            return Fixed(_fixed_value(field_name, raw))
        case FromMatchSpec(config=cfg):
            return FromMatch(group=cfg.group, parser=_build_parser(cfg.parser, default_tz))
        case _:
            raise ConfigurationError(f"unsupported extractor spec: {spec!r}")


def build_matcher(spec: MatcherSpec, *, default_tz: str = "UTC") -> Matcher:
    try:
        pattern = re.compile(spec.pattern)
    except re.error as exc:
        raise ConfigurationError(f"matcher {spec.id!r}: invalid pattern: {exc}") from exc

    v = spec.values
    plan = FieldPlan(
        nature=_build_extractor("nature", v.nature, default_tz),
        account=_build_extractor("account", v.account, default_tz),
        amount=_build_extractor("amount", v.amount, default_tz),
        currency=_build_extractor("currency", v.currency, default_tz),
        source=_build_extractor("source", v.source, default_tz),
        time=_build_extractor("time", v.time, default_tz),
    )
    return Matcher(id=spec.id, pattern=pattern, fields=plan)


def build_app_config(spec: ConfigFile) -> AppConfig:
    registry = MatcherRegistry(build_matcher(m, default_tz=spec.timezone) for m in spec.matchers)
    if spec.exchange_rates is None:
        rates = DEFAULT_EXCHANGE_RATES
    else:
        rates = ExchangeRates({(r.from_currency, r.to_currency): r.rate for r in spec.exchange_rates})
    return AppConfig(
        registry=registry,
        rates=rates,
        reporting_currency=spec.reporting_currency,
        timezone=spec.timezone,
        contacts=tuple(spec.contacts),
        exclude_sources=tuple(spec.exclude_sources),
    )


def parse_config(data: Mapping[str, Any], *, source: str = "<config>") -> AppConfig:
    """Validate an already-deserialized mapping and build the runtime config."""

    try:
        spec = ConfigFile.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"{source}: invalid configuration:\n{exc}") from exc
    try:
        cfg = build_app_config(spec)
    except ConfigurationError as exc:
        raise ConfigurationError(f"{source}: {exc}") from exc
    _logger.debug("loaded %d matchers from %s", len(cfg.registry), source)
    return cfg


def load_config(path: str | PathLike[str]) -> AppConfig:
    """Read and validate the YAML configuration at ``path``."""

    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"cannot read configuration file {p}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{p}: invalid YAML: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{p}: expected a mapping at the top level")
    return parse_config(data, source=str(p))


__all__ = [
    "AppConfig",
    "CONFIG_ENV",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONTACTS",
    "DEFAULT_EXCLUDE_SOURCES",
    "ConfigFile",
    "MatcherSpec",
    "build_app_config",
    "build_matcher",
    "load_config",
    "parse_config",
]
