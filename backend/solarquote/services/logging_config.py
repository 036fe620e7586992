"""
Structured logging for the Solar Quote service.

JSON lines on stdout in production (LOG_FORMAT=json, the default); a plain
one-line format for local runs (LOG_FORMAT=text). Derivation, aggregation and
access-log records carry quotation / project context as ``extra`` fields.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Record attributes lifted onto the JSON line when a log call supplies them.
CONTEXT_FIELDS = (
    "quotation_id",
    "project_type",
    "edits",
    "duration_ms",
    "request_id",
    "http_method",
    "http_path",
    "http_status",
)

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unset context fields are left out."""

    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update({
            name: getattr(record, name)
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Handler:
    """Install a single stdout handler on the root logger and return it."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
