"""MCP tools for the semindex server.

This module defines the tools exposed by the MCP server:
- semantic_search: Similarity search over the project's indexed files
- index_status: Current indexer status (disabled / indexing / complete)
"""

import logging

from fastmcp import FastMCP

from semindex.errors import SemindexError
from semindex.indexer import Indexer
from semindex.indexer.indexer import DEFAULT_TOP_K

logger = logging.getLogger(__name__)

# Upper bound on results per query
MAX_TOP_K = 50


async def run_semantic_search(indexer: Indexer, query: str, top_k: int = DEFAULT_TOP_K) -> dict:
    """Run a search and shape the result for a tool response."""
    top_k = max(1, min(top_k, MAX_TOP_K))
    try:
        results = await indexer.search(query, top_k=top_k)
    except SemindexError as e:
        logger.warning("Semantic search failed: %s", e)
        return {"results": [], "error": str(e)}
    return {"results": results}


def get_index_status(indexer: Indexer) -> dict:
    return indexer.status.to_dict()


def register_tools(mcp: FastMCP, indexer: Indexer) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        indexer: Indexer backing the tools
    """

    @mcp.tool()
    async def semantic_search(query: str, top_k: int = DEFAULT_TOP_K) -> dict:
        """Search the project's files by meaning.

        Results are empty until the initial index has completed. Files that
        are git-ignored appear with the path "[gitignored]" and redacted
        content.

        Args:
            query: Natural-language or code query (1-1000 characters)
            top_k: Maximum number of snippets to return (default: 5)

        Returns:
            Dict with:
            - results: List of snippets formatted as "// {file}:{line}\\n{text}"
            - error: Error message if the query was invalid or a service failed
        """
        return await run_semantic_search(indexer, query, top_k)

    @mcp.tool()
    def index_status() -> dict:
        """Get the indexer status.

        Returns:
            Dict with:
            - type: "disabled", "indexing" or "complete"
            - progress, total: Files processed so far and files to index
              (only while indexing)
        """
        return get_index_status(indexer)
