"""
semindex - semantic search index for a project's files.

Scans, chunks and embeds project files into a Qdrant-compatible vector
store and answers similarity queries against it. Git-ignored files are
redacted before they are indexed so secrets never reach the index verbatim.

Stack:
- Python + asyncio + httpx (embedding service and vector store clients)
- watchfiles (incremental updates)
- FastMCP (tool surface for agents)
"""

__version__ = "0.1.0"
