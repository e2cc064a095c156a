"""Logging setup: readable console lines plus JSON files for the log shipper.

Extraction code logs through ``get_logger(__name__, product_id=..., url=...)``
so every line about one scrape carries the same context, both in the JSON
records and as a ``[product_id=... url=...]`` suffix on the console.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from detail_scraper.config import settings

# Context keys echoed on console lines, in this order
CONTEXT_KEYS = ("product_id", "url", "attempt")

# Chatty libraries kept at WARNING unless debugging
QUIET_LOGGERS = ("sqlalchemy.engine", "asyncio", "aiosqlite")


class ScrapeJsonFormatter(jsonlogger.JsonFormatter):
    """JSON records tagged with the scraped source and the call site."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["scraper"] = settings.source_name
        log_record["location"] = f"{record.filename}:{record.lineno} {record.funcName}"


class ContextConsoleFormatter(logging.Formatter):
    """Plain console format with the record's scrape context appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) is not None
        )
        return f"{line} [{context}]" if context else line


def setup_logging(base_dir: str | Path | None = None, level: Optional[str] = None) -> logging.Logger:
    """Install console, ``logs/app.log`` and ``logs/error.log`` handlers on the root logger.

    ``base_dir`` defaults to ``settings.log_dir``, then the working directory;
    ``level`` defaults to ``settings.log_level``.
    """
    logs_dir = Path(base_dir or settings.log_dir or Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ContextConsoleFormatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    root.addHandler(console)

    json_formatter = ScrapeJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    for filename, handler_level in (("app.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename, encoding="utf-8")
        handler.setLevel(handler_level)
        handler.setFormatter(json_formatter)
        root.addHandler(handler)

    if not settings.debug:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return root


class ScrapeLogAdapter(logging.LoggerAdapter):
    """Adds bound scrape context to each record; per-call ``extra`` wins."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ScrapeLogAdapter":
        """Adapter on the same logger with ``context`` added."""
        return ScrapeLogAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context: Any) -> ScrapeLogAdapter:
    """Logger for ``name`` carrying ``context`` (e.g. ``product_id``, ``url``)."""
    return ScrapeLogAdapter(logging.getLogger(name), context)
