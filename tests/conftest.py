"""Shared fixtures: in-memory embedding service and vector store."""

from pathlib import Path

import httpx
import pytest

from fakes import FakeOllama, FakeQdrant
from semindex.config import Config
from semindex.indexer import EmbeddingClient, Indexer, VectorStoreClient


@pytest.fixture
def ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project root."""
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def make_indexer(project: Path, ollama: FakeOllama, qdrant: FakeQdrant):
    """Build an Indexer for ``project`` wired to the fake services."""

    def factory(**overrides) -> Indexer:
        values = {"root": project, "project_id": "test-project", "indexing_enabled": True}
        values.update(overrides)
        config = Config(**values)
        embedder = EmbeddingClient(
            "http://ollama.test", "test-model", transport=httpx.MockTransport(ollama.handler)
        )
        store = VectorStoreClient(
            "http://qdrant.test",
            config.collection_name,
            api_key=config.qdrant_api_key,
            transport=httpx.MockTransport(qdrant.handler),
        )
        return Indexer(config, embedder=embedder, store=store)

    return factory
