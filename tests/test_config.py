from pathlib import Path

import pytest

from planingest.config import Settings, get_settings, reset_settings_cache


def test_defaults_match_chunking_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CHUNK_SIZE", "MAX_CHUNK_SIZE", "CHUNK_OVERLAP", "VECTOR_STORE"):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert (settings.chunk_size, settings.max_chunk_size, settings.chunk_overlap) == (400, 600, 50)
    assert settings.vector_store == "memory"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHUNK_SIZE", "123")
    monkeypatch.setenv("CHUNK_SPLIT_ON", "Sentence")
    monkeypatch.setenv("CHROMA_PERSIST_DIR", "/tmp/chroma")
    monkeypatch.setenv("BATCH_DELAY_SECONDS", "0.25")
    monkeypatch.setenv("EMBEDDING_DEVICE", "  ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.chunk_size == 123
    assert settings.chunk_split_on == "sentence"
    assert settings.chroma_persist_dir == Path("/tmp/chroma")
    assert settings.batch_delay_seconds == 0.25
    assert settings.embedding_device is None
    assert settings.log_level == "DEBUG"


def test_settings_are_cached_until_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHUNK_OVERLAP", "10")
    first = get_settings()
    monkeypatch.setenv("CHUNK_OVERLAP", "20")

    assert get_settings() is first
    reset_settings_cache()
    assert get_settings().chunk_overlap == 20


def test_invalid_numbers_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CHUNK_SIZE", "lots")
    with pytest.raises(ValueError, match="MAX_CHUNK_SIZE"):
        Settings.from_env()
