"""Logging configuration.

Call ``setup_logging()`` once at application startup. Modules log through
``logging.getLogger(__name__)``.
"""

import json
import logging
from datetime import datetime, timezone

from .config import get_settings

EXTRA_FIELDS = (
    "organization_id",
    "user_id",
    "record_id",
    "object_type",
    "event",
    "webhook_id",
    "workflow_id",
    "execution_id",
    "status",
    "duration_ms",
    "tables",
    "attempt",
    "error",
    "step_key",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Readable console format."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        line = f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0]:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure root logging for the application.

    Args:
        level: Override log level (default: ``LOG_LEVEL`` setting)
        json_logs: Force JSON output (default: ``JSON_LOGS`` setting)
    """
    settings = get_settings()
    if level is None:
        level = settings.log_level
    if json_logs is None:
        json_logs = settings.json_logs

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    for name in ("urllib3", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("doula_crm").info("Logging initialized", extra={"status": level.upper()})
