"""Logging configuration for Feed Archiver."""

import json
import logging
import sys

from feed_archiver.config import Settings

# Record attributes set through ``extra=`` by the fetcher, store and runner
CONTEXT_FIELDS = ("feed", "outcome", "items", "path")


def feed_context(url: str, **fields) -> dict:
    """``extra`` mapping tagging a log record with the feed it concerns."""
    return {"feed": url, **fields}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with per-feed context when present.

    A CI log of a run can then be filtered by feed URL or outcome.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(settings: Settings, verbose: bool = False) -> None:
    """Route all records to stdout: plain lines in ``dev``, JSON in ``prod``.

    ``verbose`` lowers the level to DEBUG. httpx request lines stay at
    WARNING either way; the fetcher logs its own per-feed results.
    """
    handler = logging.StreamHandler(sys.stdout)
    if settings.env == "prod":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
