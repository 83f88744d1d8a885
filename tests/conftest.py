"""Pytest configuration for test isolation.

The CLI reads ``.env`` from the working directory and several
``SMS_LEDGER_*`` variables from the environment, and ``configure_logging``
attaches a handler to the package logger exactly once per process. Any of
those leaking between tests makes results depend on test order, so each test
runs from its own temporary directory with a clean environment and a reset
logger.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `sms_ledger` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

import sms_ledger.logging_setup as logging_setup  # noqa: E402

_ENV_VARS = ("SMS_LEDGER_CONFIG", "SMS_LEDGER_CHAT_DB", "SMS_LEDGER_LOG_LEVEL")


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from a per-test cwd with no ``SMS_LEDGER_*`` overrides set."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo ``configure_logging`` so each test starts unconfigured."""

    yield
    logger = logging.getLogger("sms_ledger")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    logging_setup._handler = None
