"""Command line entry point for ingesting government-plan PDFs."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .config import get_settings
from .ingest.models import IngestResult, IngestStatus
from .ingest.pipeline import BatchDocument, IngestOptions, IngestPipeline
from .logging_config import configure_logging

LOGGER = logging.getLogger(__name__)


class ManifestDocument(BaseModel):
    source: str = Field(..., min_length=1, description="Local PDF path or http(s) URL.")
    document_id: str = Field(..., min_length=1, description="Identifier such as 'pln-2026'.")


class BatchManifest(BaseModel):
    documents: List[ManifestDocument] = Field(..., min_length=1)
    generate_embeddings: bool = False
    store: bool = False


def load_manifest(path: Path) -> BatchManifest:
    """Read and validate a batch manifest (a JSON object or a bare list of documents)."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, list):
        payload = {"documents": payload}
    return BatchManifest.model_validate(payload)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="planingest", description=__doc__)
    parser.add_argument("--log-dir", default="logs", help="Directory for the ingest audit log.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a single PDF.")
    ingest.add_argument("source", help="Local PDF path or http(s) URL.")
    ingest.add_argument("--document-id", required=True)
    ingest.add_argument("--embed", action="store_true", help="Generate embeddings for every chunk.")
    ingest.add_argument("--store", action="store_true", help="Write the document and chunks to the store.")

    batch = subparsers.add_parser("batch", help="Ingest every document listed in a JSON manifest.")
    batch.add_argument("manifest", type=Path)
    return parser


async def _run_single(source: str, document_id: str, options: IngestOptions) -> List[IngestResult]:
    async with IngestPipeline() as pipeline:
        return [await pipeline.ingest(source, document_id, options)]


async def _run_batch(manifest: BatchManifest) -> List[IngestResult]:
    options = IngestOptions(generate_embeddings=manifest.generate_embeddings, store=manifest.store)
    documents = [BatchDocument(source=item.source, document_id=item.document_id) for item in manifest.documents]
    async with IngestPipeline() as pipeline:
        return await pipeline.ingest_batch(documents, options)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)
    configure_logging(get_settings().log_level, args.log_dir)

    if args.command == "ingest":
        options = IngestOptions(generate_embeddings=args.embed or args.store, store=args.store)
        results = asyncio.run(_run_single(args.source, args.document_id, options))
    else:
        try:
            manifest = load_manifest(args.manifest)
        except (OSError, json.JSONDecodeError, ValidationError) as error:
            LOGGER.error("Invalid manifest %s: %s", args.manifest, error)
            return 2
        results = asyncio.run(_run_batch(manifest))

    json.dump([result.to_dict() for result in results], sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 1 if any(result.status is IngestStatus.FAILED for result in results) else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
