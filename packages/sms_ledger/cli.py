"""CLI for the ``sms_ledger`` package.

Reads bank alert messages (from the macOS Messages store or a JSON-lines
export), turns them into records with the configured matchers and renders
one of the views as a table. ``.env`` in the working directory is loaded with
``python-dotenv`` before anything else, so ``SMS_LEDGER_CONFIG``,
``SMS_LEDGER_CHAT_DB`` and ``SMS_LEDGER_LOG_LEVEL`` can live there.
"""

from __future__ import annotations

import calendar
import os
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .aggregate import filter_exclude, filter_fuzzy_include, filter_include
from .config import CONFIG_ENV, DEFAULT_CONFIG_PATH, AppConfig, load_config
from .errors import ExtractionFailure, SmsLedgerError
from .logging_setup import configure_logging, get_logger
from .matchers import parse_all
from .messages import default_chat_db_path, fetch_chat_db, filter_time_range, load_messages_jsonl
from .models import Message, Record
from .subscriptions import detect
from .tables import messages_table, subscriptions_table, totals_table, transactions_table

_logger = get_logger("sms_ledger.cli")

console = Console()
err_console = Console(stderr=True)


# ---- Small module-level helpers used by CLI commands -------------------------


def _shift_months(dt: datetime, months: int) -> datetime:
    """Move ``dt`` by whole months, clamping the day to the target month's length."""

    idx = dt.year * 12 + dt.month - 1 + months
    year, month0 = divmod(idx, 12)
    day = min(dt.day, calendar.monthrange(year, month0 + 1)[1])
    return dt.replace(year=year, month=month0 + 1, day=day)


def _localize(dt: datetime, tz: tzinfo) -> datetime:
    # Naive bounds from the command line are wall-clock times in the configured zone.
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    raise typer.Exit(1)


@dataclass(frozen=True)
class _Options:
    """Global options collected by the root callback."""

    config_path: Path
    contacts: list[str] | None
    start: datetime | None
    end: datetime | None
    exclude_sources: list[str] | None
    chat_db: Path | None
    messages_file: Path | None
    concurrency: int


@dataclass(frozen=True)
class _Run:
    config: AppConfig
    messages: list[Message]
    records: list[Record]
    failures: list[ExtractionFailure]


def _load(opts: _Options, *, apply_exclusions: bool = True) -> _Run:
    """Load config and messages, then extract records. Raises ``SmsLedgerError``."""

    cfg = load_config(opts.config_path)
    tz = cfg.tz
    end = _localize(opts.end, tz) if opts.end else datetime.now(UTC)
    start = _localize(opts.start, tz) if opts.start else _shift_months(end, -3)
    if start > end:
        raise SmsLedgerError(f"start {start.isoformat()} is after end {end.isoformat()}")

    if opts.messages_file is not None:
        msgs = filter_time_range(load_messages_jsonl(opts.messages_file), start, end)
    else:
        contacts = opts.contacts or list(cfg.contacts)
        msgs = fetch_chat_db(opts.chat_db or default_chat_db_path(), contacts, start, end)

    failures: list[ExtractionFailure] = []
    records = parse_all(cfg.registry, msgs, concurrency=opts.concurrency, diagnostics=failures)
    if apply_exclusions:
        excluded = cfg.exclude_sources if opts.exclude_sources is None else opts.exclude_sources
        records = filter_exclude(records, excluded)
    if failures:
        err_console.print(
            f"[yellow]Warning:[/yellow] {len(failures)} matched message(s) could not be parsed",
            soft_wrap=True,
        )
    return _Run(config=cfg, messages=msgs, records=records, failures=failures)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Track spending from bank SMS alerts. Loads a local .env before running; "
        "matchers and exchange rates come from a YAML config file."
    ),
)


@app.command("transactions")
def transactions_cmd(
    ctx: typer.Context,
    show_matcher: Annotated[
        bool, typer.Option("--show-matcher", "-p", help="Show the matcher id for each row.")
    ] = False,
) -> None:
    """Show a table of transactions."""

    try:
        run = _load(ctx.obj)
        table = transactions_table(
            run.records,
            reporting_currency=run.config.reporting_currency,
            rates=run.config.rates,
            tz=run.config.tz,
            show_matcher=show_matcher,
        )
    except SmsLedgerError as e:
        _fail(str(e))
    console.print(table)


@app.command("totals")
def totals_cmd(ctx: typer.Context) -> None:
    """Show aggregated totals for each source."""

    try:
        run = _load(ctx.obj)
        table = totals_table(
            run.records, reporting_currency=run.config.reporting_currency, rates=run.config.rates
        )
    except SmsLedgerError as e:
        _fail(str(e))
    console.print(table)


@app.command("subscriptions")
def subscriptions_cmd(ctx: typer.Context) -> None:
    """Show recurring charges detected in the data."""

    opts: _Options = ctx.obj
    try:
        run = _load(opts)
        subs = detect(run.records, tz=run.config.tz, concurrency=opts.concurrency)
        table = subscriptions_table(
            subs, reporting_currency=run.config.reporting_currency, rates=run.config.rates
        )
    except SmsLedgerError as e:
        _fail(str(e))
    console.print(table)


@app.command("lookup")
def lookup_cmd(
    ctx: typer.Context,
    source: Annotated[
        list[str] | None, typer.Option("--source", help="Exact source to include (repeatable).")
    ] = None,
    source_fuzzy: Annotated[
        list[str] | None,
        typer.Option("--source-fuzzy", help="Case-insensitive source substring (repeatable)."),
    ] = None,
) -> None:
    """Print the raw messages behind the matching records."""

    try:
        run = _load(ctx.obj, apply_exclusions=False)
    except SmsLedgerError as e:
        _fail(str(e))

    records = run.records
    if source:
        records = filter_include(records, source)
    if source_fuzzy:
        records = filter_fuzzy_include(records, source_fuzzy)

    by_id = {m.id: m for m in run.messages}
    console.print(messages_table((by_id[r.message_id] for r in records), tz=run.config.tz))


@app.callback()
def _root(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            dir_okay=False,
            help=f"Matchers config (falls back to ${CONFIG_ENV}, then ./{DEFAULT_CONFIG_PATH}).",
        ),
    ] = None,
    contacts: Annotated[
        list[str] | None,
        typer.Option("--contacts", help="Sender id to read messages from (repeatable)."),
    ] = None,
    start: Annotated[
        datetime | None,
        typer.Option("--start", "-s", help="Start of the analysis window (default: end - 3 months)."),
    ] = None,
    end: Annotated[
        datetime | None, typer.Option("--end", "-e", help="End of the analysis window (default: now).")
    ] = None,
    exclude_source: Annotated[
        list[str] | None,
        typer.Option("--exclude-source", help="Source to leave out of the views (repeatable)."),
    ] = None,
    chat_db: Annotated[
        Path | None,
        typer.Option("--chat-db", dir_okay=False, help="Path to the Messages chat.db."),
    ] = None,
    messages_file: Annotated[
        Path | None,
        typer.Option("--messages-file", dir_okay=False, help="Read messages from a JSON-lines file."),
    ] = None,
    concurrency: Annotated[
        int, typer.Option("--concurrency", min=1, help="Worker threads for extraction.")
    ] = 1,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override SMS_LEDGER_LOG_LEVEL.")
    ] = None,
) -> None:
    """Root command: load ``.env``, configure logging and collect global options."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    try:
        configure_logging(log_level)
    except ValueError as e:
        _fail(str(e))

    if chat_db is not None and messages_file is not None:
        _fail("--chat-db and --messages-file are mutually exclusive")

    ctx.obj = _Options(
        config_path=config or Path(os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH),
        contacts=contacts,
        start=start,
        end=end,
        exclude_sources=exclude_source,
        chat_db=chat_db,
        messages_file=messages_file,
        concurrency=concurrency,
    )
    _logger.debug("options: %s", ctx.obj)


if __name__ == "__main__":  # pragma: no cover
    app()
