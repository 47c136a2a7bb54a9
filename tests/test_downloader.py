import asyncio
from pathlib import Path
from typing import List

import httpx
import pytest

from planingest.ingest.downloader import DownloadErrorType, PDFDownloader

PDF_BYTES = b"%PDF-1.4\n% plan de gobierno\n"


def _downloader(tmp_path: Path, handler, delays: List[float], attempts: int = 3) -> PDFDownloader:
    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    return PDFDownloader(
        tmp_path,
        retry_attempts=attempts,
        retry_delay_seconds=1.0,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
    )


def test_download_writes_pdf(tmp_path: Path) -> None:
    delays: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=PDF_BYTES)

    result = asyncio.run(_downloader(tmp_path, handler, delays).download("https://tse.example/pln.pdf", "pln-2026"))

    assert result.success
    assert result.attempts == 1
    assert result.file_path == tmp_path / "pln-2026.pdf"
    assert result.file_path.read_bytes() == PDF_BYTES
    assert result.file_size == len(PDF_BYTES)
    assert delays == []


def test_download_retries_with_linear_backoff(tmp_path: Path) -> None:
    delays: List[float] = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=PDF_BYTES)

    result = asyncio.run(_downloader(tmp_path, handler, delays).download("https://tse.example/pac.pdf", "pac-2026"))

    assert result.success
    assert result.attempts == 3
    assert delays == [1.0, 2.0]


def test_non_pdf_payload_is_a_validation_error(tmp_path: Path) -> None:
    delays: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not found</html>")

    result = asyncio.run(_downloader(tmp_path, handler, delays).download("https://tse.example/x.pdf", "x-2026"))

    assert not result.success
    assert result.error_type is DownloadErrorType.VALIDATION
    assert result.attempts == 3
    assert not (tmp_path / "x-2026.pdf").exists()


def test_http_status_is_reported(tmp_path: Path) -> None:
    delays: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    result = asyncio.run(_downloader(tmp_path, handler, delays, attempts=2).download("https://tse.example/y.pdf", "y"))

    assert not result.success
    assert result.error_type is DownloadErrorType.NETWORK
    assert result.http_status == 404
    assert delays == [1.0]


def test_timeouts_are_classified(tmp_path: Path) -> None:
    delays: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    result = asyncio.run(_downloader(tmp_path, handler, delays, attempts=1).download("https://tse.example/z.pdf", "z"))

    assert not result.success
    assert result.error_type is DownloadErrorType.TIMEOUT
    assert result.http_status is None


def test_failed_download_emits_telemetry(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    delays: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with caplog.at_level("INFO", logger="planingest.telemetry"):
        asyncio.run(_downloader(tmp_path, handler, delays, attempts=2).download("https://tse.example/w.pdf", "w"))

    events = [record.msg for record in caplog.records if isinstance(record.msg, dict)]
    assert [event["step"] for event in events] == ["download.failed"]
    assert events[0]["document_id"] == "w"
    assert events[0]["details"]["attempts"] == 2
    assert events[0]["details"]["http_status"] == 500
    assert events[0]["details"]["error_type"] == "network"
