"""HTTP client for the vector database (Qdrant-compatible API)."""

import logging
from typing import Any

import httpx

from semindex.errors import ServiceUnavailableError, VectorStoreError
from semindex.indexer.models import Point

logger = logging.getLogger(__name__)

# Timeout for point and collection requests
REQUEST_TIMEOUT = 30.0  # seconds

# Timeout for one page of the bulk mtime scroll
SCROLL_TIMEOUT = 60.0  # seconds

# Timeout for health probes
HEALTH_TIMEOUT = 5.0  # seconds

# Points per scroll page
SCROLL_PAGE_SIZE = 1000


def _source_filter(source_id: str) -> dict[str, Any]:
    return {"must": [{"key": "source_id", "match": {"value": source_id}}]}


class VectorStoreClient:
    """Collection lifecycle and point operations for one collection.

    Point writes use ``wait=true`` so a delete is applied before the upsert
    that follows it.
    """

    def __init__(
        self,
        base_url: str,
        collection: str,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.collection = collection
        headers = {"api-key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
        action: str,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {"json": json, "params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise VectorStoreError(f"Failed to {action}: request timed out") from e
        except httpx.RequestError as e:
            raise VectorStoreError(f"Failed to {action}: {e}") from e
        if not response.is_success:
            raise VectorStoreError(
                f"Failed to {action}: {response.status_code} {response.reason_phrase}"
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise VectorStoreError(f"Failed to {action}: response is not JSON") from e
        if not isinstance(data, dict):
            raise VectorStoreError(f"Failed to {action}: unexpected response")
        return data

    @property
    def _points(self) -> str:
        return f"/collections/{self.collection}/points"

    async def collection_exists(self) -> bool:
        try:
            response = await self._client.get(f"/collections/{self.collection}")
        except httpx.RequestError as e:
            raise VectorStoreError(f"Failed to check collection: {e}") from e
        return response.is_success

    async def create_collection(self, size: int) -> None:
        """Create the collection with cosine distance. No-op if it already exists."""
        try:
            response = await self._client.put(
                f"/collections/{self.collection}",
                json={"vectors": {"size": size, "distance": "Cosine"}},
            )
        except httpx.RequestError as e:
            raise VectorStoreError(f"Failed to ensure collection: {e}") from e

        if response.is_success:
            logger.info("Created collection %s (dimension %d)", self.collection, size)
            return

        try:
            error = str(response.json().get("status", {}).get("error", ""))
        except (ValueError, AttributeError):
            error = ""
        if "already exists" not in error:
            raise VectorStoreError(
                f"Failed to ensure collection: {response.status_code} {response.reason_phrase}"
            )

    async def upsert(self, points: list[Point]) -> None:
        await self._request(
            "PUT",
            self._points,
            json={"points": [p.to_dict() for p in points]},
            params={"wait": "true"},
            action="upsert points",
        )

    async def delete_by_source(self, source_id: str) -> None:
        """Delete every point whose payload ``source_id`` matches."""
        await self._request(
            "POST",
            f"{self._points}/delete",
            json={"filter": _source_filter(source_id)},
            params={"wait": "true"},
            action="delete points",
        )

    async def indexed_mtime(self, source_id: str) -> float | None:
        """Return the indexed mtime of one source file, or None if not indexed."""
        response = await self._request(
            "POST",
            f"{self._points}/scroll",
            json={
                "filter": _source_filter(source_id),
                "limit": 1,
                "with_payload": ["mtime"],
                "with_vector": False,
            },
            action="get indexed mtime",
        )
        points = self._json(response, "get indexed mtime").get("result", {}).get("points", [])
        if not points:
            return None
        return points[0].get("payload", {}).get("mtime")

    async def all_indexed_mtimes(self) -> dict[str, float]:
        """Snapshot ``{source_id: mtime}`` for every indexed file.

        Follows the scroll cursor until it is exhausted. All chunks of a file
        share the same mtime, so the first one seen wins.
        """
        mtimes: dict[str, float] = {}
        offset: Any = None

        while True:
            body: dict[str, Any] = {
                "limit": SCROLL_PAGE_SIZE,
                "with_payload": ["source_id", "mtime"],
                "with_vector": False,
            }
            if offset is not None:
                body["offset"] = offset

            response = await self._request(
                "POST",
                f"{self._points}/scroll",
                json=body,
                timeout=SCROLL_TIMEOUT,
                action="fetch indexed mtimes",
            )
            result = self._json(response, "fetch indexed mtimes").get("result", {})
            for point in result.get("points", []):
                payload = point.get("payload") or {}
                source_id = payload.get("source_id")
                mtime = payload.get("mtime")
                if source_id and mtime is not None and source_id not in mtimes:
                    mtimes[source_id] = mtime

            offset = result.get("next_page_offset")
            if offset is None:
                return mtimes

    async def search(self, vector: list[float], limit: int) -> list[dict[str, Any]]:
        """Similarity search. Returns hit payloads in the store's rank order."""
        response = await self._request(
            "POST",
            f"{self._points}/search",
            json={"vector": vector, "limit": limit, "with_payload": True},
            action="search",
        )
        return [hit.get("payload") or {} for hit in self._json(response, "search").get("result", [])]

    async def health(self) -> None:
        """Probe ``GET /healthz``.

        Raises:
            ServiceUnavailableError: If the store is unreachable or unhealthy.
        """
        try:
            response = await self._client.get("/healthz", timeout=HEALTH_TIMEOUT)
        except httpx.RequestError as e:
            raise ServiceUnavailableError(f"Vector store unreachable: {e}") from e
        if not response.is_success:
            raise ServiceUnavailableError(f"Vector store unhealthy: {response.status_code}")
