"""Exception hierarchy shared by the ingestion pipeline and its collaborators."""
from __future__ import annotations


class IngestError(RuntimeError):
    """Base class for document-level ingestion failures."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class SourceUnavailableError(IngestError):
    """Raised when the source PDF is missing, unreachable or corrupt."""


class OversizedSegmentError(IngestError):
    """Raised when a segment cannot be split below the token budget."""


class DownstreamUnavailableError(IngestError):
    """Raised when the embedding provider or the document store fails."""

    def __init__(
        self,
        message: str,
        *,
        collaborator: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.collaborator = collaborator


__all__ = [
    "DownstreamUnavailableError",
    "IngestError",
    "OversizedSegmentError",
    "SourceUnavailableError",
]
