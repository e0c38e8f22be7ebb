"""memory-engine entry point - index maintenance and ad-hoc queries."""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from memory_engine.logging_config import configure_logging

load_dotenv(os.getenv("ENV_FILE", ".env"))

logger = logging.getLogger(__name__)


def _service(strategy: str | None = None):
    from memory_engine.config.settings import settings
    from memory_engine.memory.service import MemoryService

    if strategy and strategy != settings.strategy:
        return MemoryService(settings.model_copy(update={"strategy": strategy}))
    return MemoryService(settings)


def _print_report(report) -> None:
    print(
        f"scanned={report.scanned} dirty={len(report.dirty)} indexed={len(report.indexed)} "
        f"removed={len(report.removed)} chunks={report.chunks_written} "
        f"failed_batches={report.failed_batches} dropped={report.dropped_chunks}"
    )


async def run_sync(rebuild: bool = False) -> int:
    """Incremental sync (or full rebuild) of the semantic index."""
    service = _service("semantic")
    try:
        report = await (service.rebuild() if rebuild else service.sync())
    except Exception as e:
        logger.error("%s failed: %s", "Rebuild" if rebuild else "Sync", e)
        return 1
    finally:
        await service.close()
    _print_report(report)
    return 0


async def run_query(text: str, strategy: str | None = None) -> int:
    """Print the memories that would be injected for text."""
    service = _service(strategy)
    try:
        memories = await service.get_memories([{"role": "user", "content": text}])
    finally:
        await service.close()
    if not memories:
        print("No relevant memories found.")
        return 0
    print("\n\n".join(memories))
    return 0


async def run_watch(interval_minutes: int | None = None) -> int:
    """Resync on an interval until interrupted."""
    from memory_engine.scheduler.runner import start_scheduler

    service = _service("semantic")
    scheduler = start_scheduler(service, interval_minutes)
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await service.close()
        logger.info("Scheduler stopped.")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="memory-engine: index long-term notes and chat history for LLM context"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("sync", help="Re-index memory sources changed since the last sync")
    subparsers.add_parser("rebuild", help="Drop the vector index and re-embed every source")

    query_parser = subparsers.add_parser("query", help="Show memories retrieved for a query")
    query_parser.add_argument("text", help="User message to retrieve memories for")
    query_parser.add_argument(
        "--strategy",
        choices=["lexical", "semantic"],
        default=None,
        help="Override MEMORY_STRATEGY",
    )

    watch_parser = subparsers.add_parser("watch", help="Resync the semantic index periodically")
    watch_parser.add_argument("--interval", type=int, default=None, help="Minutes between syncs")

    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "sync":
        code = asyncio.run(run_sync())
    elif args.command == "rebuild":
        code = asyncio.run(run_sync(rebuild=True))
    elif args.command == "query":
        code = asyncio.run(run_query(args.text, args.strategy))
    elif args.command == "watch":
        try:
            code = asyncio.run(run_watch(args.interval))
        except KeyboardInterrupt:
            code = 0
    else:
        logger.debug("No command specified, showing help")
        parser.print_help()
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
