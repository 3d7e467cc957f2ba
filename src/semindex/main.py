"""Main entry point for the semindex MCP server."""

import argparse
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastmcp import FastMCP

from semindex.config import Config
from semindex.indexer import Indexer
from semindex.tools import register_tools

logger = logging.getLogger(__name__)


def create_server(config: Config, indexer: Indexer | None = None) -> FastMCP:
    """Create and configure the MCP server with all components.

    The indexer starts when the server starts and is closed when it stops.

    Args:
        config: Configuration instance with all settings.
        indexer: Optional indexer (created from config if omitted).
    """
    if indexer is None:
        indexer = Indexer(config)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        indexer.start()
        try:
            yield
        finally:
            await indexer.close()

    mcp = FastMCP(
        name="semindex",
        instructions=(
            "semindex provides semantic search over the files of one project. "
            "Use semantic_search to find code and configuration by meaning, "
            "and index_status to check whether the index is ready."
        ),
        lifespan=lifespan,
    )

    logger.info("Registering tools...")
    register_tools(mcp, indexer)

    logger.info("Server configured successfully")
    return mcp


def main() -> None:
    """Main function - starts the MCP server."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="semindex - semantic search MCP server")
    parser.add_argument("--root", type=Path, help="Project root (default: SEMINDEX_ROOT or cwd)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: SEMINDEX_PORT)")
    args = parser.parse_args()

    try:
        config = Config.from_env(root=args.root)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(2)
    if args.port is not None:
        config.port = args.port

    # Print startup banner
    logger.info("=" * 50)
    logger.info("semindex starting...")
    logger.info("  ROOT:       %s", config.root)
    logger.info("  COLLECTION: %s", config.collection_name)
    logger.info("  QDRANT:     %s", config.qdrant_url)
    logger.info("  EMBEDDING:  %s (%s)", config.embedding_url, config.embedding_model)
    logger.info("  INDEXING:   %s", "enabled" if config.indexing_enabled else "disabled")
    logger.info("  PORT:       %s", config.port)
    logger.info("=" * 50)

    try:
        mcp = create_server(config)
        logger.info("Starting MCP server on port %s...", config.port)
        mcp.run(transport="sse", host="0.0.0.0", port=config.port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except Exception:
        logger.exception("Server error")
        sys.exit(1)


if __name__ == "__main__":
    main()
