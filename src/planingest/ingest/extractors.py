"""PDF text extraction with an OCR fallback."""
from __future__ import annotations

import io
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..errors import SourceUnavailableError
from ..providers.base import PDFSource
from .models import RawDocument

LOGGER = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


def page_marker(page_number: int, total_pages: int) -> str:
    return f"-- {page_number} of {total_pages} --"


class PDFExtractor(PDFSource):
    """Extract text from PDF documents with optional OCR fallback.

    Each page's text is preceded by a ``-- <page> of <total> --`` marker so the
    normalizer can recover page provenance.
    """

    def __init__(self, ocr_language: str = "spa", min_chars_per_page: int = 50) -> None:
        self.ocr_language = ocr_language
        self.min_chars_per_page = min_chars_per_page

    def validate(self, path: str | Path) -> bool:
        file_path = Path(path)
        if not file_path.is_file():
            return False
        with file_path.open("rb") as handle:
            return handle.read(len(PDF_MAGIC)) == PDF_MAGIC

    def extract(self, path: str | Path, document_id: Optional[str] = None) -> RawDocument:
        """Extract text, running OCR when native text is insufficient."""

        file_path = Path(path)
        if not self.validate(file_path):
            raise SourceUnavailableError(f"{file_path} is missing or is not a PDF file")
        document_id = document_id or file_path.stem
        data = file_path.read_bytes()

        pages, metadata = self._read(data, file_path)
        if self._needs_ocr(pages):
            LOGGER.info("%s looks scanned, running OCR", file_path)
            try:
                pages, metadata = self._read(self._perform_ocr(data), file_path)
                metadata["ocr_performed"] = True
            except RuntimeError as error:
                LOGGER.warning("OCR of %s failed, keeping native text: %s", file_path, error)

        total = len(pages)
        text = "\n\n".join(
            f"{page_marker(index, total)}\n{page_text}" for index, page_text in enumerate(pages, start=1)
        )
        metadata.setdefault("ocr_performed", False)
        metadata["file_size"] = len(data)
        metadata["file_path"] = str(file_path)
        LOGGER.info("Extracted %s characters from %s pages of %s", len(text), total, file_path)
        return RawDocument(document_id=document_id, text=text, page_count=total, metadata=metadata)

    def _needs_ocr(self, pages: List[str]) -> bool:
        if not pages:
            return True
        return sum(len(text.strip()) for text in pages) / len(pages) < self.min_chars_per_page

    def _read(self, data: bytes, file_path: Path) -> tuple[List[str], Dict[str, Any]]:
        try:
            reader = PdfReader(io.BytesIO(data))
        except (PdfReadError, ValueError, OSError) as error:
            raise SourceUnavailableError(f"Unable to read PDF {file_path}", cause=error) from error

        pages: List[str] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on PDF content
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            pages.append(text)

        metadata: Dict[str, Any] = {}
        info = reader.metadata
        if info is not None:
            if info.title:
                metadata["title"] = str(info.title).strip()
            if info.author:
                metadata["author"] = str(info.author).strip()
        return pages, metadata

    def _perform_ocr(self, data: bytes) -> bytes:
        """Run ``ocrmypdf`` on ``data`` and return the searchable PDF it writes."""

        with tempfile.TemporaryDirectory(prefix="planingest-ocr-") as workdir:
            scanned = Path(workdir) / "scanned.pdf"
            searchable = Path(workdir) / "searchable.pdf"
            scanned.write_bytes(data)
            command = ["ocrmypdf", "--force-ocr", "--language", self.ocr_language, str(scanned), str(searchable)]
            LOGGER.debug("Running %s", " ".join(command))
            try:
                subprocess.run(command, check=True, capture_output=True)
            except FileNotFoundError as exc:  # pragma: no cover - depends on environment
                raise RuntimeError("ocrmypdf is not installed") from exc
            except subprocess.CalledProcessError as exc:  # pragma: no cover - depends on data
                detail = exc.stderr.decode(errors="ignore").strip()
                raise RuntimeError(f"ocrmypdf exited with {exc.returncode}: {detail}") from exc
            return searchable.read_bytes()


__all__ = ["PDFExtractor", "PDF_MAGIC", "page_marker"]
