"""Tests for the embedding service and vector store clients."""

import httpx
import pytest

from semindex.errors import EmbeddingError, ServiceUnavailableError, VectorStoreError
from semindex.indexer import EmbeddingClient, Point, VectorStoreClient
from semindex.indexer import vector_store
from fakes import FakeOllama, FakeQdrant, vector_for


def embedding_client(handler) -> EmbeddingClient:
    return EmbeddingClient("http://ollama.test", "test-model", transport=httpx.MockTransport(handler))


def store_client(qdrant: FakeQdrant, api_key: str | None = None) -> VectorStoreClient:
    return VectorStoreClient(
        "http://qdrant.test", "semindex_demo", api_key=api_key, transport=httpx.MockTransport(qdrant.handler)
    )


def point(n: int, source_id: str = "src-1", mtime: float = 100.0) -> Point:
    return Point(
        id=f"00000000-0000-0000-0000-{n:012d}",
        vector=vector_for(str(n)),
        payload={"file_path": f"/p/{source_id}", "source_id": source_id, "text": str(n), "start_line": 1, "mtime": mtime},
    )


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_embed(self, ollama: FakeOllama):
        client = embedding_client(ollama.handler)
        assert await client.embed("hello") == vector_for("hello")
        assert ollama.prompts == ["hello"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_sends_model(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            return httpx.Response(200, json={"embedding": [0.1, 0.2]})

        client = embedding_client(handler)
        await client.embed("x")
        assert b'"model":' in seen["body"] and b"test-model" in seen["body"]

    @pytest.mark.asyncio
    async def test_error_status(self, ollama: FakeOllama):
        ollama.fail_when = lambda prompt: True
        client = embedding_client(ollama.handler)
        with pytest.raises(EmbeddingError, match="500"):
            await client.embed("hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"embedding": []}),
            httpx.Response(200, json={"other": 1}),
            httpx.Response(200, json=[1, 2]),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_malformed_body(self, response: httpx.Response):
        client = embedding_client(lambda request: response)
        with pytest.raises(EmbeddingError):
            await client.embed("hello")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = embedding_client(handler)
        with pytest.raises(EmbeddingError, match="connection refused"):
            await client.embed("hello")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = embedding_client(handler)
        with pytest.raises(EmbeddingError, match="timed out"):
            await client.embed("hello")

    @pytest.mark.asyncio
    async def test_health(self, ollama: FakeOllama):
        client = embedding_client(ollama.handler)
        await client.health()
        ollama.healthy = False
        with pytest.raises(ServiceUnavailableError):
            await client.health()


class TestVectorStoreClient:
    @pytest.mark.asyncio
    async def test_create_collection(self, qdrant: FakeQdrant):
        client = store_client(qdrant)
        assert not await client.collection_exists()
        await client.create_collection(8)
        assert await client.collection_exists()
        assert qdrant.collections["semindex_demo"] == {"vectors": {"size": 8, "distance": "Cosine"}}

    @pytest.mark.asyncio
    async def test_create_existing_collection_is_noop(self, qdrant: FakeQdrant):
        client = store_client(qdrant)
        await client.create_collection(8)
        # Second create gets a 409 "already exists" and must not raise
        await client.create_collection(8)

    @pytest.mark.asyncio
    async def test_create_collection_other_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"status": {"error": "Bad vector size"}})

        client = VectorStoreClient("http://qdrant.test", "c", transport=httpx.MockTransport(handler))
        with pytest.raises(VectorStoreError, match="ensure collection"):
            await client.create_collection(0)

    @pytest.mark.asyncio
    async def test_api_key_header(self, qdrant: FakeQdrant):
        await store_client(qdrant, api_key="secret-key").collection_exists()
        await store_client(qdrant).collection_exists()
        assert qdrant.headers[0]["api-key"] == "secret-key"
        assert "api-key" not in qdrant.headers[1]

    @pytest.mark.asyncio
    async def test_upsert_and_delete_by_source(self, qdrant: FakeQdrant):
        client = store_client(qdrant)
        await client.upsert([point(1, "a"), point(2, "a"), point(3, "b")])
        assert len(qdrant.points) == 3

        await client.delete_by_source("a")
        assert [p["payload"]["source_id"] for p in qdrant.points.values()] == ["b"]

    @pytest.mark.asyncio
    async def test_writes_wait_for_completion(self):
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json={"result": {}})

        client = VectorStoreClient("http://qdrant.test", "c", transport=httpx.MockTransport(handler))
        await client.upsert([point(1)])
        await client.delete_by_source("src-1")
        assert all(url.params["wait"] == "true" for url in seen)

    @pytest.mark.asyncio
    async def test_indexed_mtime(self, qdrant: FakeQdrant):
        client = store_client(qdrant)
        assert await client.indexed_mtime("a") is None
        await client.upsert([point(1, "a", mtime=42.5)])
        assert await client.indexed_mtime("a") == 42.5

    @pytest.mark.asyncio
    async def test_all_indexed_mtimes_follows_cursor(self, qdrant: FakeQdrant, monkeypatch):
        monkeypatch.setattr(vector_store, "SCROLL_PAGE_SIZE", 2)
        client = store_client(qdrant)
        await client.upsert([point(n, f"src-{n % 3}", mtime=float(n % 3)) for n in range(7)])

        mtimes = await client.all_indexed_mtimes()
        assert mtimes == {"src-0": 0.0, "src-1": 1.0, "src-2": 2.0}
        scrolls = [r for r in qdrant.requests if r[1].endswith("/scroll")]
        assert len(scrolls) == 4

    @pytest.mark.asyncio
    async def test_all_indexed_mtimes_empty(self, qdrant: FakeQdrant):
        assert await store_client(qdrant).all_indexed_mtimes() == {}

    @pytest.mark.asyncio
    async def test_scroll_failure(self, qdrant: FakeQdrant):
        qdrant.fail_bulk_scroll = True
        with pytest.raises(VectorStoreError, match="fetch indexed mtimes"):
            await store_client(qdrant).all_indexed_mtimes()

    @pytest.mark.asyncio
    async def test_search_returns_payloads_in_rank_order(self, qdrant: FakeQdrant):
        client = store_client(qdrant)
        await client.upsert([point(1), point(2), point(3)])
        hits = await client.search(vector_for("2"), 2)
        assert len(hits) == 2
        assert hits[0]["text"] == "2"

    @pytest.mark.asyncio
    async def test_search_failure(self, qdrant: FakeQdrant):
        qdrant.fail_search = True
        with pytest.raises(VectorStoreError, match="search"):
            await store_client(qdrant).search([0.1] * 8, 5)

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = VectorStoreClient("http://qdrant.test", "c", transport=httpx.MockTransport(handler))
        with pytest.raises(VectorStoreError):
            await client.upsert([point(1)])
        with pytest.raises(ServiceUnavailableError):
            await client.health()

    @pytest.mark.asyncio
    async def test_health(self, qdrant: FakeQdrant):
        await store_client(qdrant).health()
        qdrant.healthy = False
        with pytest.raises(ServiceUnavailableError):
            await store_client(qdrant).health()
