"""Command line interface for the workspace index.

Usage:
    python -m memox [--root DIR ...] index [--incremental]
    python -m memox search QUERY [-k N]
    python -m memox context QUERY [--max-tokens N]
    python -m memox stats
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from memox.application.indexing.coordinator import IndexCoordinator, create_coordinator
from memox.domain.entities.indexing_events import IndexProgress
from memox.domain.errors import MemoxError
from memox.infrastructure.config import load_config
from memox.infrastructure.embeddings import create_embeddings
from memox.shared.logging import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memox", description="Index a workspace and retrieve code context")
    parser.add_argument(
        "--root",
        action="append",
        default=None,
        help="Workspace root (repeatable; default: rag.workspace_roots from config)",
    )
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding default.toml")
    parser.add_argument("--log-level", default=None, help="Override logging level")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    index_parser = subparsers.add_parser("index", help="Scan the workspace into the index")
    index_parser.add_argument(
        "--incremental",
        action="store_true",
        help="Only re-chunk new or changed files and prune deleted ones",
    )

    search_parser = subparsers.add_parser("search", help="Show the top-k chunks for a query")
    search_parser.add_argument("query")
    search_parser.add_argument("-k", type=int, default=None, help="Number of results")

    context_parser = subparsers.add_parser("context", help="Print prompt context for a query")
    context_parser.add_argument("query")
    context_parser.add_argument("--max-tokens", type=int, default=None, help="Word budget")

    subparsers.add_parser("stats", help="Show index statistics")
    return parser


async def _print_progress(event: IndexProgress) -> None:
    print(f"[{event.percentage:3d}%] {event.message}", file=sys.stderr)


async def _run(args: argparse.Namespace, coordinator: IndexCoordinator) -> int:
    if args.command == "index":
        report = await coordinator.index_workspace(on_progress=_print_progress, incremental=args.incremental)
        print(f"Files indexed: {report.files_indexed}")
        print(f"Files skipped: {report.files_skipped}")
        print(f"Files failed: {report.files_failed}")
        if report.incremental:
            print(f"Files unchanged: {report.files_unchanged}")
            print(f"Files deleted: {report.files_deleted}")
        print(f"Total chunks: {report.total_chunks}")
        return 0

    if args.command == "search":
        hits = await coordinator.search(args.query, args.k)
        if not hits:
            print("No results (is the workspace indexed?)")
        for rank, hit in enumerate(hits, 1):
            print(f"{rank}. {hit.chunk.header()}  score={hit.score:.4f}")
        return 0

    if args.command == "context":
        print(await coordinator.get_relevant_context(args.query, args.max_tokens))
        return 0

    if args.command == "stats":
        await coordinator.initialize()
        print(json.dumps(coordinator.stats(), indent=2))
        return 0

    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the memox CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    config = load_config(args.config_dir)
    setup_logging(level=args.log_level or config.log_level, file_path=config.log_file, json_output=False)
    roots = [Path(r) for r in args.root] if args.root else None
    coordinator = create_coordinator(config.rag, create_embeddings(config), roots=roots)

    try:
        return asyncio.run(_run(args, coordinator))
    except KeyboardInterrupt:
        print("\nStopped", file=sys.stderr)
        return 130
    except MemoxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
