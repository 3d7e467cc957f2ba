"""HTTP client for the embedding service (Ollama-compatible API)."""

import logging

import httpx

from semindex.errors import EmbeddingError, ServiceUnavailableError

logger = logging.getLogger(__name__)

# Timeout for a single embedding request
EMBED_TIMEOUT = 30.0  # seconds

# Timeout for health probes
HEALTH_TIMEOUT = 5.0  # seconds


class EmbeddingClient:
    """Thin async wrapper around ``POST /api/embeddings``.

    Every request carries an explicit timeout. Requests are awaited, so
    cancelling the calling task aborts them immediately.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = EMBED_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.model = model
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` and return the vector.

        Raises:
            EmbeddingError: On transport errors, non-2xx replies or malformed bodies.
        """
        try:
            response = await self._client.post(
                "/api/embeddings", json={"model": self.model, "prompt": text}
            )
        except httpx.TimeoutException as e:
            raise EmbeddingError("Embedding request timed out") from e
        except httpx.RequestError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not response.is_success:
            raise EmbeddingError(
                f"Embedding request failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            embedding = response.json().get("embedding")
        except (ValueError, AttributeError) as e:
            raise EmbeddingError("Embedding response is not a JSON object") from e

        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("Embedding response has no embedding")
        return embedding

    async def health(self) -> None:
        """Probe ``GET /api/tags``.

        Raises:
            ServiceUnavailableError: If the service is unreachable or unhealthy.
        """
        try:
            response = await self._client.get("/api/tags", timeout=HEALTH_TIMEOUT)
        except httpx.RequestError as e:
            raise ServiceUnavailableError(f"Embedding service unreachable: {e}") from e
        if not response.is_success:
            raise ServiceUnavailableError(f"Embedding service unhealthy: {response.status_code}")
