"""
Tests for the HTTP API endpoints.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from vecstore.api.main import app, get_store
from vecstore.core.config import VERSION
from vecstore.core.errors import ProviderError
from vecstore.vector.embeddings import DeterministicHashEmbedding, IEmbeddingProvider
from vecstore.vector.store import VectorStore


class PickyEmbedding(DeterministicHashEmbedding):
    """Hash embeddings, except text mentioning 'unembeddable' fails."""

    def embed_text(self, text):
        if "unembeddable" in text:
            raise ProviderError("model rejected input")
        return super().embed_text(text)


class BlockingEmbedding(IEmbeddingProvider):
    def __init__(self):
        self.release = threading.Event()

    def embed_text(self, text):
        self.release.wait(5)
        return [1.0, 0.0]

    def get_dimension(self):
        return 2


@pytest.fixture
def store():
    vector_store = VectorStore(PickyEmbedding(dimension=32))
    yield vector_store
    vector_store.close()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def add(client, *documents):
    return client.post("/documents", json={"documents": list(documents)})


class TestHealth:

    def test_empty_store(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == VERSION
        assert data["record_count"] == 0
        assert data["dimension"] is None
        assert data["metric"] == "cosine"
        assert data["backend"] == "InMemoryIndex"

    def test_reports_dimension_after_add(self, client):
        add(client, {"content": "hello"})
        data = client.get("/health").json()
        assert data["record_count"] == 1
        assert data["dimension"] == 32


class TestDocuments:

    def test_add_documents(self, client, store):
        response = add(client,
                       {"content": "first", "id": "a", "metadata": {"page": 4, "draft": True}},
                       {"content": "second"})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["ids"][0] == "a"
        assert len(store) == 2
        assert store.index.get("a").metadata == {"page": 4, "draft": True}

    @pytest.mark.parametrize("payload", [
        {"documents": []},
        {"documents": [{"content": "   "}]},
        {"documents": [{"content": "ok", "id": " "}]},
        {"documents": [{"content": "ok", "metadata": {"nested": {"a": 1}}}]},
        {},
    ])
    def test_invalid_payloads(self, client, payload):
        response = client.post("/documents", json=payload)
        assert response.status_code == 422

    def test_provider_failure_is_bad_gateway(self, client, store):
        response = add(client,
                       {"content": "fine", "id": "ok"},
                       {"content": "this is unembeddable", "id": "broken"})
        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["document_index"] == 1
        assert detail["document_id"] == "broken"
        assert "model rejected input" in detail["error"]
        assert len(store) == 0

    def test_lone_surrogate_is_bad_request(self, client, store):
        body = b'{"documents": [{"content": "bad \\ud800 text"}]}'
        response = client.post("/documents", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert "UTF-8" in response.json()["detail"]
        assert len(store) == 0

    def test_delete_documents(self, client, store):
        add(client, {"content": "one", "id": "1"}, {"content": "two", "id": "2"})
        response = client.post("/documents/delete", json={"ids": ["1", "missing"]})
        assert response.status_code == 200
        assert response.json() == {"requested": 2, "removed": 1, "success": False}
        assert store.index.ids() == ["2"]


class TestSearch:

    def test_search_finds_identical_text(self, client):
        add(client,
            {"content": "the cat sat on the mat", "id": "cat"},
            {"content": "stock prices fell sharply", "id": "stocks"})

        response = client.post("/search", json={"query": "the cat sat on the mat", "k": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["results"][0]["id"] == "cat"
        assert data["results"][0]["score"] == pytest.approx(1.0)

    def test_search_empty_store(self, client):
        response = client.post("/search", json={"query": "anything"})
        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_threshold_out_of_range(self, client):
        add(client, {"content": "text"})
        response = client.post("/search", json={"query": "text", "threshold": 1.5})
        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [{"query": ""}, {"query": "x", "k": 0}, {"k": 3}])
    def test_invalid_search_requests(self, client, payload):
        assert client.post("/search", json=payload).status_code == 422

    def test_provider_failure_on_query(self, client):
        add(client, {"content": "text"})
        response = client.post("/search", json={"query": "unembeddable query"})
        assert response.status_code == 502

    def test_timeout_is_gateway_timeout(self):
        provider = BlockingEmbedding()
        store = VectorStore(provider, embedding_timeout=0.05)
        app.dependency_overrides[get_store] = lambda: store
        try:
            with TestClient(app) as client:
                response = client.post("/search", json={"query": "slow"})
            assert response.status_code == 504
        finally:
            provider.release.set()
            app.dependency_overrides.clear()
            store.close()
