#!/usr/bin/env python3
"""Main entry point for mcphub

Usage:
    python -m mcphub serve --host 0.0.0.0 --port 3000
    python -m mcphub rebuild-embeddings [--server NAME]
    python -m mcphub migrate [--force]
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger("mcphub")


def setup_logging(debug: bool = False) -> None:
    """Configure logging"""
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Suppress verbose logs from third-party libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="mcphub",
        description="MCP server hub with semantic tool search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m mcphub serve --port 3001          # Start the API
    python -m mcphub rebuild-embeddings         # Re-embed after changing EMBEDDING_MODEL
    python -m mcphub migrate --force            # Copy file data into the database again
        """,
    )
    parser.add_argument(
        "--storage-root", default=None, help="Storage root (default: ~/.mcphub)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Start the HTTP API")
    serve.add_argument(
        "--host", default="127.0.0.1", help="Server host address (default: 127.0.0.1)"
    )
    serve.add_argument(
        "--port", type=int, default=3000, help="Server port (default: 3000)"
    )
    serve.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Log level (default: info)",
    )

    rebuild = subparsers.add_parser(
        "rebuild-embeddings",
        help="Re-embed stored tool embeddings with the configured model",
    )
    rebuild.add_argument("--server", default=None, help="Only this server's tools")

    migrate = subparsers.add_parser(
        "migrate", help="Copy file-backed data into the database"
    )
    migrate.add_argument(
        "--force",
        action="store_true",
        help="Run even if the migration already completed",
    )

    return parser.parse_args(argv)


def _serve(args: argparse.Namespace) -> int:
    from .web import build_context, create_app

    app = create_app(build_context(args.storage_root))
    logger.info(f"Service URL: http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


def _rebuild_embeddings(args: argparse.Namespace) -> int:
    from .web import build_context

    context = build_context(args.storage_root)
    report = context.search_service.reembed_stored(args.server)
    logger.info(
        f"Embedding rebuild completed: {report.succeeded} re-embedded, {report.failed} failed"
    )
    for error in report.errors:
        logger.error(error)
    return 0 if report.failed == 0 else 1


def _migrate(args: argparse.Namespace) -> int:
    from .core.repository import FileToDatabaseMigrator, RepositoryRegistry
    from .core.storage import init_db, initialize_storage_manager

    storage = initialize_storage_manager(args.storage_root)
    init_db()
    registry = RepositoryRegistry.from_storage(storage)
    result = FileToDatabaseMigrator(registry.settings, registry).migrate(force=args.force)
    print(json.dumps(result, indent=2))
    return 0 if not result.get("errors") else 1


COMMANDS = {
    "serve": _serve,
    "rebuild-embeddings": _rebuild_embeddings,
    "migrate": _migrate,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.info("Stopped")
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
