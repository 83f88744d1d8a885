"""Logging for ``sms_ledger``.

Library modules call ``get_logger("sms_ledger.<module>")`` and never attach
handlers. The CLI calls :func:`configure_logging` once at startup, which
installs one stderr handler on the ``sms_ledger`` logger. Until then the
package logger carries a ``NullHandler`` so importing the library is silent.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

LEVEL_ENV = "SMS_LEDGER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_ROOT = "sms_ledger"
_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn a level name, number or ``None`` into a numeric level.

    ``None`` defers to ``$SMS_LEDGER_LOG_LEVEL``, then ``INFO``. Names are
    case-insensitive. An unrecognized name raises ``ValueError`` listing the
    accepted ones.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    known = logging.getLevelNamesMapping()
    if name not in known:
        choices = ", ".join(sorted(n for n in known if n != "NOTSET"))
        raise ValueError(f"unknown log level: {level!r} (expected one of {choices})")
    return known[name]


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str = DEFAULT_FORMAT,
    stream: IO[str] | None = None,
) -> None:
    """Send ``sms_ledger`` records at ``level`` and above to ``stream`` (stderr).

    Calling it again only adjusts the level; the handler is installed once.
    """

    global _handler
    resolved = resolve_level(level)
    logger = logging.getLogger(_ROOT)
    if _handler is None:
        for h in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
            logger.removeHandler(h)
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(_handler)
        logger.propagate = False
    logger.setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if _handler is None and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["DEFAULT_FORMAT", "LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
