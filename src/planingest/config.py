"""Runtime configuration sourced from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(slots=True)
class Settings:
    # Chunking
    chunk_size: int = 400
    max_chunk_size: int = 600
    chunk_overlap: int = 50
    chunk_split_on: str = "paragraph"
    embedding_max_tokens: int = 8192
    tokenizer_encoding: str = "cl100k_base"

    # Collaborators
    embedding_provider: str = "sentence-transformers"
    embedding_model_path: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
    embedding_device: str | None = None
    vector_store: str = "memory"
    chroma_persist_dir: Path = Path("chroma_db")
    download_dir: Path = Path("downloads")
    ocr_language: str = "spa"

    # Timeouts and retries
    download_timeout_seconds: float = 30.0
    download_retry_attempts: int = 3
    download_retry_delay_seconds: float = 1.0
    extraction_timeout_seconds: float = 120.0
    embedding_timeout_seconds: float = 30.0
    storage_timeout_seconds: float = 60.0

    # Batch pacing
    batch_pacing: str = "fixed"
    batch_delay_seconds: float = 1.0
    batch_rate_per_second: float = 1.0
    batch_burst: int = 1

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, falling back to defaults."""

        defaults = cls()
        device = os.getenv("EMBEDDING_DEVICE")
        return cls(
            chunk_size=_env_int("CHUNK_SIZE", defaults.chunk_size),
            max_chunk_size=_env_int("MAX_CHUNK_SIZE", defaults.max_chunk_size),
            chunk_overlap=_env_int("CHUNK_OVERLAP", defaults.chunk_overlap),
            chunk_split_on=_env_str("CHUNK_SPLIT_ON", defaults.chunk_split_on).lower(),
            embedding_max_tokens=_env_int("EMBEDDING_MAX_TOKENS", defaults.embedding_max_tokens),
            tokenizer_encoding=_env_str("TOKENIZER_ENCODING", defaults.tokenizer_encoding),
            embedding_provider=_env_str("EMBEDDING_PROVIDER", defaults.embedding_provider).lower(),
            embedding_model_path=_env_str("EMBEDDING_MODEL_PATH", defaults.embedding_model_path),
            embedding_device=device.strip() if device and device.strip() else None,
            vector_store=_env_str("VECTOR_STORE", defaults.vector_store).lower(),
            chroma_persist_dir=Path(_env_str("CHROMA_PERSIST_DIR", str(defaults.chroma_persist_dir))),
            download_dir=Path(_env_str("DOWNLOAD_DIR", str(defaults.download_dir))),
            ocr_language=_env_str("OCR_LANG", defaults.ocr_language),
            download_timeout_seconds=_env_float(
                "DOWNLOAD_TIMEOUT_SECONDS", defaults.download_timeout_seconds
            ),
            download_retry_attempts=_env_int("DOWNLOAD_RETRY_ATTEMPTS", defaults.download_retry_attempts),
            download_retry_delay_seconds=_env_float(
                "DOWNLOAD_RETRY_DELAY_SECONDS", defaults.download_retry_delay_seconds
            ),
            extraction_timeout_seconds=_env_float(
                "EXTRACTION_TIMEOUT_SECONDS", defaults.extraction_timeout_seconds
            ),
            embedding_timeout_seconds=_env_float(
                "EMBEDDING_TIMEOUT_SECONDS", defaults.embedding_timeout_seconds
            ),
            storage_timeout_seconds=_env_float("STORAGE_TIMEOUT_SECONDS", defaults.storage_timeout_seconds),
            batch_pacing=_env_str("BATCH_PACING", defaults.batch_pacing).lower(),
            batch_delay_seconds=_env_float("BATCH_DELAY_SECONDS", defaults.batch_delay_seconds),
            batch_rate_per_second=_env_float("BATCH_RATE_PER_SECOND", defaults.batch_rate_per_second),
            batch_burst=_env_int("BATCH_BURST", defaults.batch_burst),
            log_level=_env_str("LOG_LEVEL", defaults.log_level).upper(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings for the current process."""

    return Settings.from_env()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
