"""Log setup for the CLI and the REST app.

Records go to stderr; stdout carries tool payloads. Two formats:

- ``json``: one object per line. ``operation`` and ``duration_ms`` (set by the
  metrics recorder) are lifted to the top level so slow or failing tools can be
  filtered without digging into ``extra``.
- ``text``: a compact human-readable line for interactive use.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

LOG_FORMATS = ("json", "text")

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_PROMOTED = ("operation", "duration_ms")

_NOISY_LOGGERS = ("github", "urllib3")


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = record_extras(record)
        for key in _PROMOTED:
            if key in extra:
                payload[key] = extra.pop(key)
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``LEVEL logger: message key=value ...``"""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        line = f"{record.levelname:<7} {record.name}: {record.getMessage()}"
        pairs = " ".join(f"{k}={v}" for k, v in record_extras(record).items())
        if pairs:
            line = f"{line} {pairs}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str, *, fmt: str = "json", stream: TextIO | None = None) -> None:
    """Install a single stderr handler on the root logger.

    Re-configuring replaces the previous handler rather than stacking another.
    """

    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {fmt!r}. Valid formats: {', '.join(LOG_FORMATS)}")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # PyGithub and urllib3 log every request at DEBUG.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
