import shutil
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from sms_ledger.config import DEFAULT_CONTACTS, load_config, parse_config
from sms_ledger.errors import ConfigurationError
from sms_ledger.extractors import DateTimeParser, Fixed, FromMatch
from sms_ledger.models import Message, Nature
from sms_ledger.normalize import DEFAULT_EXCHANGE_RATES

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config.example.yml"


def _mk_data(**overrides) -> dict:
    data = {
        "timezone": "Asia/Karachi",
        "matchers": [
            {
                "id": "card",
                "pattern": r"used for (?P<cur>[A-Z]{3}) (?P<amt>\S+) at (?P<where>.+) on (?P<dt>\S+)$",
                "values": {
                    "nature": {"type": "Fixed", "config": "Debit"},
                    "account": {"type": "Fixed", "config": 4242},
                    "amount": {"type": "FromMatch", "config": {"group": "amt", "parser": "String"}},
                    "currency": {
                        "type": "FromMatch",
                        "config": {"group": "cur", "parser": "Currency"},
                    },
                    "source": {"type": "FromMatch", "config": {"group": "where", "parser": "String"}},
                    "time": {
                        "type": "FromMatch",
                        "config": {
                            "group": "dt",
                            "parser": {"type": "FormattedDateTime", "config": "%d/%m/%y"},
                        },
                    },
                },
            }
        ],
    }
    data.update(overrides)
    return data


def test_parse_config_builds_registry_with_defaults():
    cfg = parse_config(_mk_data())
    assert cfg.reporting_currency == "PKR"
    assert cfg.rates is DEFAULT_EXCHANGE_RATES
    assert cfg.contacts == DEFAULT_CONTACTS
    assert len(cfg.registry) == 1

    matcher = cfg.registry.get("card")
    assert matcher is not None
    assert matcher.fields.nature == Fixed(Nature.DEBIT)
    assert matcher.fields.account == Fixed("4242")
    time_ex = matcher.fields.time
    assert isinstance(time_ex, FromMatch)
    assert time_ex.parser == DateTimeParser(format="%d/%m/%y", timezone="Asia/Karachi")


def test_parsed_config_extracts_records():
    cfg = parse_config(_mk_data())
    msg = Message(id=1, text="used for USD 12.50 at Steam on 05/01/23", time=datetime.now(UTC))
    rec = cfg.registry.resolve(msg)
    assert rec is not None
    assert rec.amount.amount == Decimal("12.50")
    assert rec.amount.currency == "USD"
    assert rec.time == datetime(2023, 1, 4, 19, 0, tzinfo=UTC)


def test_explicit_rates_replace_defaults():
    cfg = parse_config(
        _mk_data(
            reporting_currency="USD",
            exchange_rates=[{"from": "PKR", "to": "USD", "rate": "0.0042"}],
        )
    )
    assert cfg.reporting_currency == "USD"
    assert dict(cfg.rates) == {("PKR", "USD"): Decimal("0.0042")}


def test_datetime_with_append_and_zone_override():
    data = _mk_data()
    data["matchers"][0]["values"]["time"]["config"]["parser"] = {
        "type": "FormattedDateTimeWithAppend",
        "config": {"format": "%d/%m/%y %H:%M", "suffix": " 00:00"},
        "timezone": "UTC",
    }
    cfg = parse_config(data)
    parser = cfg.registry.get("card").fields.time.parser
    assert parser == DateTimeParser(format="%d/%m/%y %H:%M", timezone="UTC", suffix=" 00:00")


@pytest.mark.parametrize(
    "mutate, needle",
    [
        (lambda d: d["matchers"][0].update(pattern="(?P<unclosed"), "invalid pattern"),
        (lambda d: d["matchers"][0]["values"].pop("source"), "source"),
        (lambda d: d["matchers"][0].update(extra_key=1), "extra_key"),
        (
            lambda d: d["matchers"][0]["values"]["account"].update(
                type="FromMatch", config={"group": "nope", "parser": "String"}
            ),
            "nope",
        ),
        (lambda d: d.update(reporting_currency="ZZZ"), "ZZZ"),
        (lambda d: d.update(timezone="Nowhere/City"), "Nowhere/City"),
        (lambda d: d.update(exchange_rates=[{"from": "USD", "to": "PKR", "rate": "0"}]), "positive"),
        (lambda d: d["matchers"].append(dict(d["matchers"][0])), "duplicate"),
        (lambda d: d["matchers"][0]["values"]["nature"].update(config="Refund"), "Refund"),
    ],
)
def test_invalid_configs_raise_configuration_error(mutate, needle):
    data = _mk_data()
    mutate(data)
    with pytest.raises(ConfigurationError) as ei:
        parse_config(data, source="test.yml")
    assert needle in str(ei.value)
    assert str(ei.value).startswith("test.yml")


def test_load_config_reads_yaml(tmp_path: Path):
    path = tmp_path / "config.yml"
    shutil.copy(EXAMPLE_CONFIG, path)
    cfg = load_config(path)
    assert [m.id for m in cfg.registry] == [
        "habib-metro-cash-withdraw",
        "js-credit-card-used",
        "js-credit-card-online-used",
        "js-cash-withdrawal",
    ]
    assert cfg.exclude_sources == ("JS Credit Card Bill Pay From IB",)
    assert cfg.rates.rate("USD", "PKR") == Decimal("237")


def test_example_config_matches_sample_alerts():
    cfg = load_config(EXAMPLE_CONFIG)
    now = datetime.now(UTC)
    online = Message(
        id=2,
        text=(
            "Dear Customer, your JS Bank credit card ending with 1234 has been used for "
            "USD 9.99 at NETFLIX.COM on 05/02/23 at 14."
        ),
        time=now,
    )
    rec = cfg.registry.resolve(online)
    assert rec is not None
    assert rec.matcher_id == "js-credit-card-online-used"
    assert rec.source == "NETFLIX.COM"
    assert rec.time == datetime(2023, 2, 5, 9, 0, tzinfo=UTC)

    withdrawal = Message(
        id=3,
        text=(
            "Acct. 00123 debited by PKR 12,000.00 due to ATM Cash Withdrawal at "
            "18:45 hrs on 07-03-2023.Current Balance: PKR 50,000.00"
        ),
        time=now - timedelta(days=1),
    )
    rec = cfg.registry.resolve(withdrawal)
    assert rec is not None
    assert rec.matcher_id == "js-cash-withdrawal"
    assert rec.amount.amount == Decimal("12000.00")
    assert rec.source == "ATM Cash Withdrawal"


def test_load_config_errors(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="cannot read"):
        load_config(tmp_path / "missing.yml")

    bad_yaml = tmp_path / "bad.yml"
    bad_yaml.write_text("matchers: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="invalid YAML"):
        load_config(bad_yaml)

    not_mapping = tmp_path / "list.yml"
    not_mapping.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(not_mapping)
