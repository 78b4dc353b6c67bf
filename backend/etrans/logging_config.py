"""
Logging configuration with an AUDIT channel.

Provides JSON-formatted logs for production log aggregation and
human-readable console output for development.

Levels: DEBUG, INFO, AUDIT (25), WARNING, ERROR.
The AUDIT level is the compliance trail: every state-changing operation
(registration, login, logout, expense paid, shipment created/updated, ...)
writes one record through ``audit()``.

Config keys:
- LOG_FORMAT: "json" or "console"
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR
"""
import json
import logging
import logging.config
from datetime import datetime, timezone

AUDIT = 25
logging.addLevelName(AUDIT, "AUDIT")

audit_logger = logging.getLogger("etrans.audit")

# Attributes every LogRecord carries; anything else came from `extra`.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extra fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line output with extra fields appended as JSON."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-5s %(name)s %(message)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED and not k.startswith("_")
        }
        if extra:
            line = f"{line} {json.dumps(extra, default=str)}"
        return line


def configure_logging(app) -> None:
    level = app.config.get("LOG_LEVEL", "INFO")
    formatter = "json" if app.config.get("LOG_FORMAT") == "json" else "console"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "etrans.logging_config.JsonFormatter"},
            "console": {"()": "etrans.logging_config.ConsoleFormatter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "etrans": {"handlers": ["console"], "level": level, "propagate": True},
        },
    })
    app.logger.setLevel(level)


def audit(action: str, **data) -> None:
    """Append one record to the audit trail."""
    audit_logger.log(AUDIT, action, extra={"audit": data})
