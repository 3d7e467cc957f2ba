"""Chunking logic for splitting files into overlapping line windows."""

import hashlib

from semindex.indexer.models import Chunk

# Lines per chunk
CHUNK_SIZE = 50

# Lines shared between consecutive chunks
CHUNK_OVERLAP = 10


def to_uuid(text: str) -> str:
    """Format the MD5 digest of ``text`` as a canonical UUID string."""
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()
    return f"{digest[:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"


def chunk_file(content: str, file_path: str) -> list[Chunk]:
    """
    Split file content into overlapping line windows.

    Rules:
    1. Empty or whitespace-only content yields no chunks
    2. Each chunk holds CHUNK_SIZE lines; the next starts CHUNK_SIZE - CHUNK_OVERLAP later
    3. Line numbers are 1-based
    4. Stop once a chunk reaches the last line

    Chunk ids are derived from (file_path, start_line), so re-indexing the
    same file overwrites the same points.
    """
    if not content.strip():
        return []

    lines = content.split("\n")
    stride = CHUNK_SIZE - CHUNK_OVERLAP
    chunks: list[Chunk] = []

    for i in range(0, len(lines), stride):
        start_line = i + 1
        chunks.append(
            Chunk(
                id=to_uuid(f"{file_path}:{start_line}"),
                text="\n".join(lines[i : i + CHUNK_SIZE]),
                start_line=start_line,
            )
        )
        if i + CHUNK_SIZE >= len(lines):
            break

    return chunks
