#!/usr/bin/env python
"""Index, search and manage a user's local semantic index.

Usage:
    python -m scripts.index_documents --user farmer-1 index data/records.json
    python -m scripts.index_documents --user farmer-1 search "corn nitrogen" --type soil_analysis
    python -m scripts.index_documents --user farmer-1 stats

The backend is initialized before indexing or searching, which may download
the on-device embedding model on first use.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from agrisearch.backends.models import BackendConfig, BackendKind
from agrisearch.config import get_settings
from agrisearch.documents.loader import JSONDocumentLoader
from agrisearch.documents.models import DocumentType
from agrisearch.exceptions import AgriSearchError
from agrisearch.logging_config import get_logger, setup_logging
from agrisearch.search.models import SearchOptions
from agrisearch.service import SemanticIndex

logger = get_logger(__name__)


async def index_command(index: SemanticIndex, args: argparse.Namespace) -> int:
    """Load documents from a file and index them."""
    documents = JSONDocumentLoader().load(args.source)
    logger.info(f"Loaded {len(documents)} documents from {args.source}")

    await index.initialize_backend()
    report = await index.index_documents(documents)

    print(f"Indexed: {len(report.succeeded)}")
    print(f"Failed:  {len(report.failed)}")
    for failure in report.failed:
        print(f"  {failure.id}: [{failure.code}] {failure.reason}")

    return 0 if report.is_complete else 1


async def search_command(index: SemanticIndex, args: argparse.Namespace) -> int:
    """Run a similarity search and print the ranked results."""
    options = SearchOptions(
        limit=args.limit,
        threshold=args.threshold,
        document_types=args.type or [],
        county_fips=args.county,
        crop_type=args.crop,
    )

    await index.initialize_backend()
    results = await index.search_similar(args.query, options)

    if not results:
        print("No matching documents")
        return 0

    for rank, result in enumerate(results, start=1):
        record = result.document
        title = record.metadata.title or record.id
        print(f"{rank:>2}. {result.similarity:.2%}  [{record.metadata.type.value}] {title}")
        print(f"    {record.text[:120]}")
    return 0


async def stats_command(index: SemanticIndex, _args: argparse.Namespace) -> int:
    """Print storage statistics."""
    stats = await index.get_storage_info()
    print(f"Documents:    {stats.total_documents}")
    print(f"Size (bytes): {stats.total_size}")
    print(f"Last updated: {stats.last_updated.isoformat() if stats.last_updated else '-'}")
    print(f"Versions:     {', '.join(stats.index_versions)}")
    return 0


async def clear_command(index: SemanticIndex, _args: argparse.Namespace) -> int:
    """Delete every record of the user."""
    removed = await index.clear_index()
    print(f"Removed {removed} documents")
    return 0


async def export_command(index: SemanticIndex, args: argparse.Namespace) -> int:
    """Write the user's records to a JSON file."""
    args.destination.write_text(await index.export_index(), encoding="utf-8")
    print(f"Exported to {args.destination}")
    return 0


async def import_command(index: SemanticIndex, args: argparse.Namespace) -> int:
    """Load records from an export file."""
    imported = await index.import_index(args.source.read_text(encoding="utf-8"))
    print(f"Imported {imported} documents")
    return 0


COMMANDS = {
    "index": index_command,
    "search": search_command,
    "stats": stats_command,
    "clear": clear_command,
    "export": export_command,
    "import": import_command,
}


async def run(args: argparse.Namespace) -> int:
    """Open the user's session, run one command and close it."""
    setup_logging(level=args.log_level)

    settings = get_settings()
    config = BackendConfig.from_settings(settings, kind=BackendKind(args.backend))

    index = SemanticIndex(args.user, settings=settings)
    await index.selector.switch_config(config)

    try:
        await index.start()
        return await COMMANDS[args.command](index, args)
    except AgriSearchError as e:
        logger.error(f"{args.command} failed: {e.message}", extra={"code": e.code.value})
        return 1
    finally:
        await index.close()


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Manage a local semantic document index",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--user", required=True, help="Owner of the index")
    parser.add_argument(
        "--backend",
        choices=[kind.value for kind in BackendKind],
        default=BackendKind.LOCAL.value,
        help="Inference backend",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Index documents from a JSON file")
    index_parser.add_argument("source", type=Path, help="JSON, or JSON lines, document file")

    search_parser = subparsers.add_parser("search", help="Search the index")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    search_parser.add_argument("--threshold", type=float, default=0.5, help="Minimum similarity")
    search_parser.add_argument(
        "--type",
        action="append",
        choices=[t.value for t in DocumentType],
        help="Restrict to a document type (repeatable)",
    )
    search_parser.add_argument("--county", default=None, help="County FIPS code")
    search_parser.add_argument("--crop", default=None, help="Crop type")

    subparsers.add_parser("stats", help="Show storage statistics")
    subparsers.add_parser("clear", help="Delete all documents")

    export_parser = subparsers.add_parser("export", help="Export the index to JSON")
    export_parser.add_argument("destination", type=Path, help="Output file")

    import_parser = subparsers.add_parser("import", help="Import an exported index")
    import_parser.add_argument("source", type=Path, help="Export file")

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
