"""
CLI entry point for running the follow-graph crawler.

This module provides a command-line interface for running a traversal from
a root handle and for creating the DynamoDB tables it writes to.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config.settings import load_settings
from .fetcher import ProfilePageFetcher, StaticGraphFetcher
from .storage import create_persistence_sink, create_tables_if_not_exist, initialize_models
from .traversal import TraversalEngine
from .utils.logging import setup_crawler_logger


async def run_traversal(
    environment: Optional[str] = None,
    graph_file: Optional[Path] = None,
    log_level: Optional[str] = None,
    config_overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Run one traversal with the specified configuration.

    Args:
        environment: Environment name (dev/devlocal/staging/prod)
        graph_file: Optional YAML/JSON graph to crawl instead of the live platform
        log_level: Logging level override
        config_overrides: Configuration overrides

    Returns:
        Summary of the run
    """
    settings = load_settings(environment=environment, log_level=log_level, **(config_overrides or {}))

    setup_crawler_logger("follow_crawler", level=settings.log_level, json_logs=settings.json_logs)
    logger = logging.getLogger(__name__)

    logger.info(f"Starting traversal with environment: {settings.environment}")
    logger.info(
        f"Traversal configuration: root={settings.root_handle}, max_depth={settings.max_depth}, "
        f"workers={settings.num_workers}, storage={settings.storage_backend}"
    )

    sink = create_persistence_sink(settings)
    if graph_file is not None:
        fetcher = StaticGraphFetcher.from_file(graph_file)
        page_fetcher = None
    else:
        fetcher = page_fetcher = ProfilePageFetcher(settings)

    engine = TraversalEngine(
        fetcher,
        sink,
        frontier_capacity=settings.frontier_capacity,
        result_capacity=settings.result_capacity,
        call_timeout=settings.call_timeout_seconds,
    )

    try:
        stats = await engine.traverse(settings.max_depth, settings.root_handle, settings.num_workers)
    finally:
        sink.close()
        if page_fetcher is not None:
            await page_fetcher.close()

    return stats.get_summary()


def create_tables(environment: Optional[str] = None) -> None:
    """
    Create the people, follows and sequence tables if missing.

    Args:
        environment: Environment name
    """
    settings = load_settings(environment=environment)
    setup_crawler_logger("follow_crawler", level=settings.log_level, json_logs=settings.json_logs)

    initialize_models(settings)
    create_tables_if_not_exist()

    print("Tables ready:")
    for table in (settings.people_table, settings.follows_table, settings.sequence_table):
        print(f"  {table}")


def print_summary(summary: Dict[str, Any]) -> None:
    print("\nTraversal Summary:")
    print(f"  Run ID: {summary['run_id']}")
    print(f"  Status: {summary['status']}")
    print(f"  Duration: {summary['duration_seconds']:.1f}s")
    print(f"  Items Processed: {summary['items_processed']}")
    print(f"  People Persisted: {summary['identities_persisted']}")
    print(f"  People Explored: {summary['identities_explored']}")
    print(f"  Edges Discovered: {summary['edges_discovered']}")
    print(f"  Duplicate Targets: {summary['duplicate_targets']}")
    print(f"  Max Depth Reached: {summary['max_depth_reached']}")

    if summary["errors_by_type"]:
        print("\nErrors by Type:")
        for error_type, count in summary["errors_by_type"].items():
            print(f"  {error_type}: {count}")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Follow-graph crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m app.follow_crawler run --handle dxmfromcvs --depth 2 --workers 10
  python -m app.follow_crawler run --graph-file graph.yaml --depth 3 --storage local
  python -m app.follow_crawler run --environment devlocal --log-level DEBUG
  python -m app.follow_crawler create-tables --environment devlocal
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a traversal")
    run_parser.add_argument("--environment", "-e", help="Environment (dev/devlocal/staging/prod)")
    run_parser.add_argument("--handle", help="Override root handle")
    run_parser.add_argument("--depth", type=int, help="Override maximum depth")
    run_parser.add_argument("--workers", type=int, help="Override number of workers")
    run_parser.add_argument("--graph-file", type=Path, help="Crawl a YAML/JSON graph file instead of the platform")
    run_parser.add_argument("--storage", choices=["local", "dynamodb"], help="Override storage backend")
    run_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    # Create tables command
    tables_parser = subparsers.add_parser("create-tables", help="Create DynamoDB tables")
    tables_parser.add_argument("--environment", "-e", help="Environment")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "run":
            config_overrides: Dict[str, Any] = {
                "root_handle": args.handle,
                "max_depth": args.depth,
                "num_workers": args.workers,
                "storage_backend": args.storage,
            }
            summary = asyncio.run(
                run_traversal(
                    environment=args.environment,
                    graph_file=args.graph_file,
                    log_level=args.log_level,
                    config_overrides=config_overrides,
                )
            )
            print_summary(summary)
        elif args.command == "create-tables":
            create_tables(environment=args.environment)
        else:
            print(f"Unknown command: {args.command}")
            sys.exit(1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(0)
    except Exception as e:
        logging.getLogger(__name__).error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
