"""
Logging setup for the Sitebook API.

Two line formats share one set of context fields (request id, timing,
project key, HTTP method/path/status) passed through ``extra=``:
  - JSON, one object per line, for log shippers (LOG_FORMAT=json, default)
  - human-readable text with the context appended as key=value pairs
"""
import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id", "duration_ms", "project_key",
    "http_method", "http_path", "http_status",
)

NOISY_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "multipart", "sqlalchemy.engine")


def _context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        log_entry.update(_context(record))
        return json.dumps(log_entry, default=str)


class ContextTextFormatter(logging.Formatter):

    def __init__(self):
        super().__init__("%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    def format(self, record):
        line = super().format(record)
        ctx = _context(record)
        if ctx:
            line += " | " + " ".join(f"{k}={v}" for k, v in ctx.items())
        return line


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Handler:
    """Install a single stdout handler on the root logger and return it."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ContextTextFormatter())
    root.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
