"""Exception types raised by semindex."""


class SemindexError(Exception):
    """Base class for all semindex errors."""


class ServiceUnavailableError(SemindexError):
    """The embedding service or vector store failed its health check."""


class EmbeddingError(SemindexError):
    """An embedding request failed or returned an unusable body."""


class VectorStoreError(SemindexError):
    """A vector store request failed."""


class InvalidQueryError(SemindexError, ValueError):
    """A search query is empty or exceeds the maximum length."""

    def __init__(self, message: str = "Invalid query length"):
        super().__init__(message)
