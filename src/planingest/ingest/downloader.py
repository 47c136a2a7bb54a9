"""Download government-plan PDFs over HTTP with retries."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx

from ..telemetry import emit_download_event
from .extractors import PDF_MAGIC

LOGGER = logging.getLogger(__name__)


class DownloadErrorType(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    FILESYSTEM = "filesystem"
    UNKNOWN = "unknown"


class InvalidPDFError(ValueError):
    """Raised when a downloaded payload does not start with the PDF magic bytes."""


@dataclass(slots=True)
class DownloadResult:
    document_id: str
    url: str
    success: bool
    file_path: Optional[Path] = None
    file_size: int = 0
    downloaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0
    error: Optional[str] = None
    error_type: Optional[DownloadErrorType] = None
    http_status: Optional[int] = None


def classify_error(error: BaseException) -> tuple[DownloadErrorType, Optional[int]]:
    if isinstance(error, httpx.TimeoutException):
        return DownloadErrorType.TIMEOUT, None
    if isinstance(error, httpx.HTTPStatusError):
        return DownloadErrorType.NETWORK, error.response.status_code
    if isinstance(error, httpx.HTTPError):
        return DownloadErrorType.NETWORK, None
    if isinstance(error, InvalidPDFError):
        return DownloadErrorType.VALIDATION, None
    if isinstance(error, OSError):
        return DownloadErrorType.FILESYSTEM, None
    return DownloadErrorType.UNKNOWN, None


class PDFDownloader:
    """Fetch a PDF into ``output_dir`` as ``<document_id>.pdf``.

    Failed attempts are retried with a linearly growing delay. The result is
    always returned; callers decide whether a failed download is fatal.
    """

    def __init__(
        self,
        output_dir: str | Path = "downloads",
        *,
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._transport = transport
        self._sleep = sleep

    async def download(self, url: str, document_id: str) -> DownloadResult:
        file_path = self.output_dir / f"{document_id}.pdf"
        last_error: Optional[BaseException] = None

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for attempt in range(1, self.retry_attempts + 1):
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    payload = response.content
                    if not payload.startswith(PDF_MAGIC):
                        raise InvalidPDFError("Downloaded file is not a valid PDF")
                    self.output_dir.mkdir(parents=True, exist_ok=True)
                    file_path.write_bytes(payload)
                    LOGGER.info(
                        "Downloaded %s (%s bytes) to %s on attempt %s",
                        url,
                        len(payload),
                        file_path,
                        attempt,
                    )
                    emit_download_event(
                        document_id=document_id, url=url, attempts=attempt, file_size=len(payload)
                    )
                    return DownloadResult(
                        document_id=document_id,
                        url=url,
                        success=True,
                        file_path=file_path,
                        file_size=len(payload),
                        attempts=attempt,
                    )
                except (httpx.HTTPError, InvalidPDFError, OSError) as error:
                    last_error = error
                    error_type, status = classify_error(error)
                    LOGGER.warning(
                        "Failed to download PDF %s (attempt %s/%s, %s, status %s): %s",
                        document_id,
                        attempt,
                        self.retry_attempts,
                        error_type.value,
                        status,
                        error,
                    )
                    if attempt < self.retry_attempts:
                        await self._sleep(self.retry_delay_seconds * attempt)

        assert last_error is not None
        error_type, status = classify_error(last_error)
        emit_download_event(
            document_id=document_id,
            url=url,
            attempts=self.retry_attempts,
            error_type=error_type.value,
            http_status=status,
            error=str(last_error),
        )
        return DownloadResult(
            document_id=document_id,
            url=url,
            success=False,
            attempts=self.retry_attempts,
            error=str(last_error),
            error_type=error_type,
            http_status=status,
        )


__all__ = ["DownloadErrorType", "DownloadResult", "InvalidPDFError", "PDFDownloader", "classify_error"]
