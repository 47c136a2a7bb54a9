"""Tests for the command line entry point."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest
from pydantic import ValidationError

from planingest import cli
from planingest.ingest.models import IngestResult, IngestStats, IngestStatus


class _FakePipeline:
    calls: List[tuple] = []

    def __init__(self, *args, **kwargs) -> None:
        pass

    async def __aenter__(self) -> "_FakePipeline":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def ingest(self, source, document_id, options=None) -> IngestResult:
        self.calls.append((source, document_id, options))
        status = IngestStatus.FAILED if "broken" in str(source) else IngestStatus.SUCCESS
        return IngestResult(
            document_id=document_id,
            success=status is not IngestStatus.FAILED,
            status=status,
            stats=IngestStats(),
            chunks=[],
        )

    async def ingest_batch(self, documents, options=None) -> List[IngestResult]:
        return [await self.ingest(document.source, document.document_id, options) for document in documents]


@pytest.fixture()
def fake_pipeline(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, restore_logging: None):
    _FakePipeline.calls = []
    monkeypatch.setattr(cli, "IngestPipeline", _FakePipeline)
    monkeypatch.chdir(tmp_path)
    return _FakePipeline


def test_load_manifest_accepts_list_and_object(tmp_path: Path) -> None:
    listed = tmp_path / "list.json"
    listed.write_text(json.dumps([{"source": "a.pdf", "document_id": "pln-2026"}]), encoding="utf-8")
    described = tmp_path / "object.json"
    described.write_text(
        json.dumps({"documents": [{"source": "b.pdf", "document_id": "pac-2026"}], "store": True}),
        encoding="utf-8",
    )

    assert cli.load_manifest(listed).documents[0].document_id == "pln-2026"
    manifest = cli.load_manifest(described)
    assert manifest.store is True
    assert manifest.generate_embeddings is False


def test_load_manifest_rejects_empty_documents(tmp_path: Path) -> None:
    manifest = tmp_path / "empty.json"
    manifest.write_text(json.dumps({"documents": []}), encoding="utf-8")

    with pytest.raises(ValidationError):
        cli.load_manifest(manifest)


def test_ingest_command_prints_results(fake_pipeline, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--log-dir", str(tmp_path / "logs"), "ingest", "plan.pdf", "--document-id", "pln-2026", "--store"])

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output[0]["document_id"] == "pln-2026"
    assert output[0]["status"] == "success"
    options = fake_pipeline.calls[0][2]
    assert options.store and options.generate_embeddings


def test_batch_command_reports_failures(fake_pipeline, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    manifest = tmp_path / "batch.json"
    manifest.write_text(
        json.dumps(
            [
                {"source": "pln.pdf", "document_id": "pln-2026"},
                {"source": "broken.pdf", "document_id": "pusc-2026"},
            ]
        ),
        encoding="utf-8",
    )

    code = cli.main(["--log-dir", str(tmp_path / "logs"), "batch", str(manifest)])

    assert code == 1
    statuses = [item["status"] for item in json.loads(capsys.readouterr().out)]
    assert statuses == ["success", "failed"]


def test_invalid_manifest_exits_with_usage_error(fake_pipeline, tmp_path: Path) -> None:
    manifest = tmp_path / "bad.json"
    manifest.write_text("{not json", encoding="utf-8")

    assert cli.main(["--log-dir", str(tmp_path / "logs"), "batch", str(manifest)]) == 2
    assert fake_pipeline.calls == []
