#!/usr/bin/env python3
"""
Guide-Aligned Retrieval Script

Parses a discussion guide and selects transcript evidence for every
question. Chunk files are JSON produced by the chunker: either a
TranscriptFile object ({"fileId", "label", "chunks": [...]}) or a bare list
of chunks, in which case the file name becomes the file id and label.

Usage:
    python scripts/run_retrieval.py --guide guide.txt --chunks p01.json p02.json
    python scripts/run_retrieval.py --guide guide.txt --chunks p01.json --json
    python scripts/run_retrieval.py --guide guide.txt --dry-run
"""

import sys
import json
import asyncio
import logging
import os
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def configure_logging(level: str = None) -> None:
    logging.basicConfig(
        level=(level or os.getenv("GROUNDWORK_LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def load_transcript_file(path: Path):
    from groundwork.common.schemas import TranscriptFile

    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = {"fileId": path.stem, "label": path.stem, "chunks": data}
    return TranscriptFile.model_validate(data)


def print_summary(report) -> None:
    for i, q in enumerate(report.questions, start=1):
        fallback = " (keyword fallback)" if q.used_keyword_fallback else ""
        print(f"\n{i:>3}. [{q.theme}] {q.question}{fallback}")
        if not q.evidence:
            print("     (no evidence)")
        for e in q.evidence:
            preview = " ".join(e.content.split())[:100]
            print(f"     #{e.rank} {e.source_label} ({e.similarity:.3f}): {preview}")

    m = report.metrics
    print(
        f"\n[Retrieval] {m.evidence_count} passages for {m.questions_count} questions "
        f"from {m.files_count} files, coverage {m.coverage_rate:.0%}, "
        f"{m.embedding_calls} embedding calls, {m.latency_ms:.0f} ms"
    )
    for failure in report.failures:
        print(f"[Retrieval] WARNING: {failure.describe()}")


def main():
    parser = argparse.ArgumentParser(description="Select transcript evidence for each guide question")
    parser.add_argument("--guide", type=str, required=True, help="Discussion guide text file")
    parser.add_argument("--chunks", type=str, nargs="*", default=[], help="Chunked transcript JSON files")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument("--dry-run", action="store_true", help="Only parse the guide and print its questions")
    parser.add_argument("--timeout", type=float, default=None, help="Request deadline in seconds")
    parser.add_argument("--min-questions", type=int, default=1, help="Reject guides with fewer questions")
    args = parser.parse_args()

    configure_logging()

    from pydantic import ValidationError

    from groundwork.common.config import load_config
    from groundwork.common.embedding_service import EmbeddingGateway
    from groundwork.common.embedding_providers import create_embedding_provider
    from groundwork.common.errors import GroundworkError
    from groundwork.common.validation import validate_min_questions
    from groundwork.guide import parse_guide_file
    from groundwork.retriever import RetrievalOrchestrator

    config = load_config()
    if args.timeout is not None:
        config.retriever.request_timeout = args.timeout

    try:
        questions = validate_min_questions(parse_guide_file(args.guide), args.min_questions)
    except (FileNotFoundError, GroundworkError) as e:
        print(f"[Retrieval] ERROR: {e}")
        sys.exit(1)

    print(f"[Retrieval] Parsed {len(questions)} questions")
    if args.dry_run:
        for i, q in enumerate(questions, start=1):
            print(f"  {i:>3}. [{q.theme}] {q.question}")
        return

    if not args.chunks:
        print("[Retrieval] ERROR: --chunks is required unless --dry-run is given")
        sys.exit(1)

    try:
        files = [load_transcript_file(Path(p)) for p in args.chunks]
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"[Retrieval] ERROR: Could not load chunk file: {e}")
        sys.exit(1)

    print(f"[Retrieval] Initializing embedding provider (mode={config.embedding.mode})...")
    try:
        provider = create_embedding_provider(config.embedding)
    except (ValueError, GroundworkError) as e:
        print(f"[Retrieval] ERROR: {e}")
        sys.exit(1)

    gateway = EmbeddingGateway(provider.embed, model=provider.model)
    orchestrator = RetrievalOrchestrator(gateway, config.retriever, config.validation)

    try:
        report = asyncio.run(orchestrator.retrieve(questions, files))
    except GroundworkError as e:
        print(f"[Retrieval] ERROR: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_summary(report)


if __name__ == "__main__":
    main()
