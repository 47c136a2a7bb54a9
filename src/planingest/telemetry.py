"""Structured lifecycle events for the ingestion pipeline.

Every event is a dict logged at the module's logger; the JSON formatter in
:mod:`planingest.logging_config` flattens it into one line.
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("planingest.telemetry")


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    document_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log ``step`` as a structured event on ``logger`` (or the telemetry logger)."""

    target = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": target.name}
    if document_id:
        event["document_id"] = document_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if isinstance(exc, BaseException):
        event["exc"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        exc_info = (type(exc), exc, exc.__traceback__)
    elif exc:
        event["exc"] = exc

    getattr(target, level.lower(), target.info)(event, exc_info=exc_info)


def emit_ingest_event(
    step: str,
    *,
    document_id: str,
    source: str | None = None,
    status: str | None = None,
    pages: int | None = None,
    chunks: int | None = None,
    stats: dict[str, float] | None = None,
    error: str | None = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Record a document-level milestone; failed documents are logged at ERROR."""

    details = _compact(
        {"source": source, "status": status, "pages": pages, "chunks": chunks, "stats": stats, "error": error}
    )
    level = "error" if status == "failed" else "info"
    log_event(logger, step, level=level, document_id=document_id, details=details)


def emit_download_event(
    *,
    document_id: str,
    url: str,
    attempts: int,
    file_size: int | None = None,
    error_type: str | None = None,
    http_status: int | None = None,
    error: str | None = None,
) -> None:
    """Record the outcome of a PDF download after all retries are spent."""

    details = _compact(
        {
            "url": url,
            "attempts": attempts,
            "file_size": file_size,
            "error_type": error_type,
            "http_status": http_status,
        }
    )
    step = "download.failed" if error_type else "download.complete"
    log_event(
        LOGGER,
        step,
        level="warning" if error_type else "info",
        document_id=document_id,
        details=details,
        exc=error,
    )


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details: dict[str, Any] = {"model": model, "count": count}
    if count:
        details["per_item_ms"] = round(duration_ms / count, 3)
    if errors:
        details["errors"] = errors
    log_event(
        LOGGER,
        "embeddings.compute",
        level="error" if errors else "info",
        duration_ms=duration_ms,
        details=details,
    )


def emit_vectorstore_event(
    step: str,
    *,
    collection: str,
    count: int,
    error: BaseException | None = None,
) -> None:
    log_event(
        LOGGER,
        step,
        level="error" if error else "info",
        details={"collection": collection, "count": count},
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    """Log ``<step>.start`` and ``<step>.complete`` around a block, plus ``<step>.error`` on failure."""

    start = time.perf_counter()
    outcome = "ok"
    log_event(logger, f"{step}.start", level="debug", details=fields)
    try:
        yield
    except Exception as error:
        outcome = "error"
        log_event(logger, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        log_event(
            logger,
            f"{step}.complete",
            level="debug",
            duration_ms=(time.perf_counter() - start) * 1000.0,
            details=fields,
            outcome=outcome,
        )


__all__ = [
    "emit_download_event",
    "emit_embeddings_event",
    "emit_ingest_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]
