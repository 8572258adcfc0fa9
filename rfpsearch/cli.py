"""Command-line interface for rfpsearch.

Usage::

    rfpsearch serve
    rfpsearch ingest proposal.pdf --client "Acme Corp"
    rfpsearch search "security compliance" --top-k 5 --alpha 0.6 --type hybrid
    rfpsearch reprocess [--include-failed] [--batch-size 50]
    rfpsearch stats

Every command except ``serve`` builds the same components as the web app,
runs in-process against the configured SQLite database, and waits for any
jobs it started to finish before exiting.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from rfpsearch.models.document import UploadedFile
from rfpsearch.models.job import JobState
from rfpsearch.services.reconciliation import (
    REPROCESS_BATCH_SIZE,
    REPROCESS_PRIORITY,
    enqueue_pending_chunks,
)
from rfpsearch.services.search_service import resolve_search_type
from rfpsearch.utils.errors import RFPSearchError
from rfpsearch.utils.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rfpsearch",
        description="Ingest RFP documents and search them by keyword and meaning.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the HTTP API server")

    ingest = subparsers.add_parser("ingest", help="Ingest one file and embed its chunks")
    ingest.add_argument("file", help="Path to a .pdf, .docx or .xlsx file")
    ingest.add_argument("--client", required=True, help="Client the document belongs to")

    search = subparsers.add_parser("search", help="Search ingested chunks")
    search.add_argument("query")
    search.add_argument("--top-k", type=int, default=None)
    search.add_argument("--alpha", type=float, default=None, help="Vector weight, 0-1")
    search.add_argument(
        "--type",
        default="hybrid",
        help="hybrid (default), keyword/fts, or semantic/vector",
    )
    search.add_argument("--json", action="store_true", help="Print the raw result as JSON")

    reprocess = subparsers.add_parser("reprocess", help="Embed chunks still pending")
    reprocess.add_argument("--batch-size", type=int, default=REPROCESS_BATCH_SIZE)
    reprocess.add_argument(
        "--include-failed",
        action="store_true",
        help="Also retry chunks whose embedding failed",
    )

    subparsers.add_parser("stats", help="Show embedding progress and search analytics")
    return parser


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    documents = await components["document_service"].save_documents(
        args.client,
        [UploadedFile(filename=path.name, content_type="", data=path.read_bytes())],
    )
    await components["queue"].drain()

    store = components["store"]
    for document in documents:
        stored = await store.get_document(document.id)
        chunks = await store.get_chunks_for_document(document.id)
        completed = sum(1 for c in chunks if c.embedding_status.value == "completed")
        print(f"Document {document.id}: {path.name}")
        print(f"  Status:   {stored.status.value if stored else 'unknown'}")
        print(f"  Chunks:   {len(chunks)}")
        print(f"  Embedded: {completed}")
    return 0 if _no_failed_jobs(components) else 1


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    search_service = components["search_service"]
    outcome = await search_service.search(
        args.query,
        top_k=args.top_k,
        alpha=args.alpha,
        search_type=resolve_search_type(args.type),
    )
    await search_service.flush_logs()

    if args.json:
        print(outcome.model_dump_json(indent=2))
        return 0

    print(f"{outcome.results_count} result(s) [{outcome.search_type.value}, {outcome.response_time_ms} ms]")
    for error in outcome.errors:
        print(f"  degraded: {error.type}: {error.message}")
    for rank, result in enumerate(outcome.results, start=1):
        score = result.hybrid_score
        if score is None:
            score = result.fts_score if result.fts_score is not None else result.vector_score
        snippet = " ".join(result.text.split())[:160]
        print(f"\n{rank:>2}. {score:.4f}  {result.client_name} / {result.filename} #{result.chunk_index}")
        if result.section_title:
            print(f"    {result.section_title}")
        print(f"    {snippet}")
    return 0


async def _handle_reprocess(args: argparse.Namespace, components: dict[str, Any]) -> int:
    options = components["job_options"].model_copy(update={"priority": REPROCESS_PRIORITY})
    summary = await enqueue_pending_chunks(
        components["store"],
        components["queue"],
        batch_size=args.batch_size,
        options=options,
        include_failed=args.include_failed,
    )
    await components["queue"].drain()

    stats = await components["store"].get_chunk_stats()
    print(f"Reset failed chunks: {summary['reset']}")
    print(f"Pending chunks:      {summary['pending']}")
    print(f"Jobs enqueued:       {summary['jobs']}")
    print(f"Now completed:       {stats.completed}/{stats.total} ({stats.failed} failed)")
    return 0 if _no_failed_jobs(components) else 1


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    stats = await components["search_service"].get_stats()
    print(
        json.dumps(
            {
                "chunks": stats["chunks"].model_dump(),
                "search_types": [a.model_dump(mode="json") for a in stats["search_types"]],
                "popular_queries": [p.model_dump(mode="json") for p in stats["popular_queries"]],
            },
            indent=2,
        )
    )
    return 0


def _no_failed_jobs(components: dict[str, Any]) -> bool:
    return components["queue"].get_counts()[JobState.FAILED.value] == 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "reprocess": _handle_reprocess,
    "stats": _handle_stats,
}


async def _run(args: argparse.Namespace) -> int:
    from rfpsearch.main import build_components, start_components, stop_components

    components = build_components()
    await start_components(components)
    try:
        return await _HANDLERS[args.command](args, components)
    except RFPSearchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await stop_components(components)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        from rfpsearch.main import main as serve

        serve()
        return 0

    # Importing the app configures logging to stdout; point it at stderr
    # afterwards so stdout carries only command output.
    from rfpsearch import main as app_module

    configure_logging(
        log_level=app_module.settings.log_level,
        json_output=(app_module.settings.app_env == "production"),
        stream=sys.stderr,
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
