"""Rich tables for the CLI views.

Amounts are normalized to the reporting currency before display and rounded
to two decimals only when formatted. Every table ends with a bold ``TOTAL``
row; positive amounts render green and negative ones red.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, tzinfo

from rich import box
from rich.table import Table
from rich.text import Text

from .aggregate import group_totals
from .models import Message, Record, Subscription
from .money import Money, sum_money
from .normalize import ExchangeRates, normalize, normalize_record

TIME_FORMAT = "%a, %d/%m/%y %I:%M %p"


def _base_table(*headers: str, title: str | None = None) -> Table:
    table = Table(box=box.ROUNDED, show_lines=True, title=title)
    for h in headers[:-1]:
        table.add_column(h)
    table.add_column(headers[-1], justify="right")
    return table


def _amount_cell(money: Money) -> Text:
    return Text(str(money), style="red" if money.is_negative() else "green")


def _add_total_row(table: Table, total: Money) -> None:
    padding = [""] * (len(table.columns) - 2)
    table.add_row(*padding, Text("TOTAL", style="bold", justify="right"), _amount_cell(total))


def transactions_table(
    records: Sequence[Record],
    *,
    reporting_currency: str,
    rates: ExchangeRates,
    tz: tzinfo = UTC,
    show_matcher: bool = False,
) -> Table:
    headers = ["ID", "Time", "Source", "Amount"]
    if show_matcher:
        headers.insert(2, "Pattern")
    table = _base_table(*headers, title="Transactions")
    amounts: list[Money] = []
    for r in records:
        amount = normalize_record(r, reporting_currency, rates)
        amounts.append(amount)
        row = [str(r.message_id), r.time.astimezone(tz).strftime(TIME_FORMAT)]
        if show_matcher:
            row.append(r.matcher_id)
        table.add_row(*row, r.source, _amount_cell(amount))
    _add_total_row(table, sum_money(amounts, reporting_currency))
    return table


def totals_table(
    records: Iterable[Record], *, reporting_currency: str, rates: ExchangeRates
) -> Table:
    """Per-source totals, most negative first."""

    totals = sorted(
        group_totals(records, reporting_currency, rates).items(), key=lambda kv: kv[1].amount
    )
    table = _base_table("Source", "Total", title="Totals")
    for source, amount in totals:
        table.add_row(source, _amount_cell(amount))
    _add_total_row(table, sum_money((v for _, v in totals), reporting_currency))
    return table


def subscriptions_table(
    subscriptions: Iterable[Subscription], *, reporting_currency: str, rates: ExchangeRates
) -> Table:
    """Detected subscriptions with their signed amount in the reporting currency."""

    rows = sorted(
        ((s, normalize(s.amount, reporting_currency, rates)) for s in subscriptions),
        key=lambda pair: pair[1].amount,
    )
    table = _base_table("Source", "Day", "Amount", title="Subscriptions")
    for sub, amount in rows:
        table.add_row(sub.source, str(sub.charge_day_of_month), _amount_cell(amount))
    _add_total_row(table, sum_money((a for _, a in rows), reporting_currency))
    return table


def messages_table(messages: Iterable[Message], *, tz: tzinfo = UTC) -> Table:
    table = Table(box=box.ROUNDED, show_lines=True, title="Messages")
    table.add_column("ID")
    table.add_column("Time")
    table.add_column("Text", overflow="fold")
    for m in messages:
        table.add_row(str(m.id), m.time.astimezone(tz).strftime(TIME_FORMAT), m.text)
    return table


__all__ = [
    "TIME_FORMAT",
    "messages_table",
    "subscriptions_table",
    "totals_table",
    "transactions_table",
]
