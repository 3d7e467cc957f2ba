"""
Indexer module for semindex.

This module keeps a vector index of a project's files in sync with the
filesystem: scan, redact git-ignored content, chunk, embed and upsert.
"""

from semindex.indexer.chunker import chunk_file, to_uuid
from semindex.indexer.embedding import EmbeddingClient
from semindex.indexer.ignore import IndexIgnore, build_ignore_checker, is_git_ignored
from semindex.indexer.indexer import Indexer, IndexerState, map_parallel
from semindex.indexer.models import GITIGNORED_MARKER, Chunk, IndexStatus, Point
from semindex.indexer.vector_store import VectorStoreClient
from semindex.indexer.walker import walk_project

__all__ = [
    "GITIGNORED_MARKER",
    "Chunk",
    "EmbeddingClient",
    "IndexIgnore",
    "IndexStatus",
    "Indexer",
    "IndexerState",
    "Point",
    "VectorStoreClient",
    "build_ignore_checker",
    "chunk_file",
    "is_git_ignored",
    "map_parallel",
    "to_uuid",
    "walk_project",
]
