"""Crediário: a workbook-backed client ledger with installment plans."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.getenv("CREDIARIO_LOG_DIR", PROJECT_ROOT / ".logs"))
LOG_FILE = LOG_DIR / "crediario.log"
LOG_LEVEL = os.getenv("CREDIARIO_LOG_LEVEL", "INFO").upper()


def _configure_logging() -> logging.Logger:
    """Attach the rotating ledger log and a stderr handler to the package logger.

    The sweep runs on its own thread, so records carry the thread name.
    ``CREDIARIO_LOG_DIR`` and ``CREDIARIO_LOG_LEVEL`` override the defaults.
    """

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(threadName)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        ledger_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        ledger_handler.setLevel(level)
        ledger_handler.setFormatter(formatter)
        logger.addHandler(ledger_handler)
    except OSError as exc:
        print(
            f"Warning: ledger log disabled, cannot write '{LOG_FILE}': {exc}",
            file=sys.stderr,
        )

    # Reports go to stdout; only problems reach the terminal.
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)

    return logger


log = _configure_logging()
log.debug("Ledger logging ready (level %s, file %s)", LOG_LEVEL, LOG_FILE)
