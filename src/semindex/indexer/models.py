"""Data models for the indexer."""

from dataclasses import dataclass, field
from typing import Any, Literal

# Payload marker used instead of the real path for git-ignored files
GITIGNORED_MARKER = "[gitignored]"

StatusType = Literal["disabled", "indexing", "complete"]


@dataclass
class Chunk:
    """A fixed-size, overlapping line window of a file."""

    id: str
    text: str
    start_line: int  # 1-based


@dataclass
class Point:
    """The unit stored in the vector database for one chunk."""

    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "vector": self.vector, "payload": self.payload}


@dataclass(frozen=True)
class IndexStatus:
    """Indexer status: disabled, indexing (with progress) or complete."""

    type: StatusType
    progress: int = 0
    total: int = 0

    @classmethod
    def disabled(cls) -> "IndexStatus":
        return cls("disabled")

    @classmethod
    def indexing(cls, progress: int, total: int) -> "IndexStatus":
        return cls("indexing", progress, total)

    @classmethod
    def complete(cls) -> "IndexStatus":
        return cls("complete")

    def to_dict(self) -> dict[str, Any]:
        if self.type == "indexing":
            return {"type": self.type, "progress": self.progress, "total": self.total}
        return {"type": self.type}
