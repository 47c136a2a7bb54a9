"""JSON logging for the CLI plus the per-document ingest audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

AUDIT_LOGGER_NAME = "planingest.ingest.audit"
AUDIT_LOG_FILENAME = "ingest_audit.log"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class MinimalJSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Telemetry events are logged as dicts and are merged into the top level;
    plain %-style messages land under ``"message"``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            message = record.getMessage()
            if message:
                payload["message"] = message

        if record.exc_info and "exc" not in payload:
            payload["exc_info"] = self.formatException(record.exc_info)

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", log_dir: str | Path = "logs") -> Path:
    """Send JSON logs to stderr and ingest completions to ``<log_dir>/ingest_audit.log``.

    Returns the path of the audit file.
    """

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    audit_file = log_path / AUDIT_LOG_FILENAME

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "stream": "ext://sys.stderr",
                },
                "ingest_audit": {
                    "class": "logging.FileHandler",
                    "filename": str(audit_file),
                    "mode": "a",
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {
                "level": level.upper(),
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["ingest_audit"],
                    "propagate": False,
                },
                # Chroma and the HTTP client are chatty at INFO.
                "chromadb": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )
    return audit_file


def get_ingest_audit_logger() -> logging.Logger:
    """Return the logger that records one line per ingested document."""

    return logging.getLogger(AUDIT_LOGGER_NAME)


__all__ = [
    "AUDIT_LOGGER_NAME",
    "AUDIT_LOG_FILENAME",
    "MinimalJSONFormatter",
    "configure_logging",
    "get_ingest_audit_logger",
]
