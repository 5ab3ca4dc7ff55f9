"""
Tests for the HTTP API.
"""
import pytest
import sys
import os

# Add the parent directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from tokenlens.main import app
from tokenlens.services.cache import TokenizerCache, get_tokenizer_cache
from tokenlens.services.loader import LoaderConfig
from reference_engines import CountingFactory


@pytest.fixture
def factory():
    return CountingFactory(delay=0)


@pytest.fixture
def client(factory):
    cache = TokenizerCache(
        max_entries=8,
        factory=factory,
        loader_config=LoaderConfig(allowed_remote_hosts=["https://proxy.example"]),
    )
    app.dependency_overrides[get_tokenizer_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_tokens_get_with_encoder(client):
    response = client.get("/api/v1/tokens", params={"text": "a bb ccc", "encoder": "cl100k_base"})

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "cl100k_base"
    assert data["count"] == 3
    assert len(data["tokens"]) == 3


def test_tokens_post_count_only(client):
    response = client.post(
        "/api/v1/tokens",
        json={"text": "a bb ccc dddd", "model": "gpt-4", "count_only": True},
    )

    assert response.status_code == 200
    assert response.json() == {"name": "gpt-4", "count": 4}


def test_tokens_query_overrides_body(client):
    """Test that query parameters take precedence over body fields."""
    response = client.post(
        "/api/v1/tokens?count_only=TRUE",
        json={"text": "a bb", "model": "gpt-4", "count_only": False},
    )

    assert response.status_code == 200
    assert "tokens" not in response.json()


def test_tokens_rejects_unknown_model(client, factory):
    response = client.get("/api/v1/tokens", params={"text": "hi", "model": "not-a-real-model"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request parameters"
    assert factory.total_calls == 0


def test_tokens_rejects_model_name_as_encoder(client):
    response = client.get("/api/v1/tokens", params={"text": "hi", "encoder": "gpt-4"})
    assert response.status_code == 400


def test_tokens_requires_text(client):
    response = client.get("/api/v1/tokens", params={"model": "gpt-4"})
    assert response.status_code == 400


def test_tokens_method_not_allowed(client):
    response = client.put("/api/v1/tokens", json={"text": "hi", "model": "gpt-4"})
    assert response.status_code == 405


def test_tokens_unsupported_model(client):
    response = client.get("/api/v1/tokens", params={"text": "hi", "model": "text-embedding-3-small"})

    assert response.status_code == 422
    assert response.json()["identifier"] == "text-embedding-3-small"


def test_tokens_load_failure(factory, client):
    factory.fail_times = 1
    response = client.get("/api/v1/tokens", params={"text": "hi", "model": "Qwen/Qwen2.5-72B"})
    assert response.status_code == 502

    response = client.get("/api/v1/tokens", params={"text": "hi", "model": "Qwen/Qwen2.5-72B"})
    assert response.status_code == 200


def test_encode_returns_segments(client):
    response = client.post(
        "/api/v1/encode",
        json={"text": "a bb ccc dddd", "model": "o200k_base", "chunk_size": 5},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 4
    assert "".join(segment["text"] for segment in data["segments"]) == "a bb ccc dddd"
    assert data["segments"][0]["tokens"] == [{"id": 0, "idx": 0}]


def test_encode_fast_mode(client):
    response = client.post(
        "/api/v1/encode",
        json={"text": "word " * 10, "model": "gpt2", "fast_mode": True},
    )

    data = response.json()
    assert data["segments"] == []
    assert data["count"] == 10


def test_encode_passes_remote_host(client, factory):
    client.post(
        "/api/v1/encode",
        json={"text": "hi", "model": "01-ai/Yi-6B", "remote_host": "https://proxy.example"},
    )
    assert factory.calls[("01-ai/Yi-6B", "https://proxy.example")] == 1


def test_encode_rejects_unlisted_remote_host(client, factory):
    """Test that a vocabulary host outside the allowlist is refused before any fetch."""
    response = client.post(
        "/api/v1/encode",
        json={"text": "hi", "model": "01-ai/Yi-6B", "remote_host": "http://127.0.0.1:8080"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Remote host not allowed", "identifier": "01-ai/Yi-6B"}
    assert factory.total_calls == 0


def test_encode_validates_options(client):
    response = client.post("/api/v1/encode", json={"text": "hi", "model": "gpt2", "chunk_size": 0})
    assert response.status_code == 422


def test_list_models(client):
    response = client.get("/api/v1/models")

    data = response.json()
    kinds = {item["id"]: item["kind"] for item in data["models"]}
    assert kinds["cl100k_base"] == "encoding"
    assert kinds["gpt-4o"] == "chat_or_legacy_model"
    assert kinds["openai/whisper-tiny"] == "open_source_model"
    assert data["popular"] == ["cl100k_base", "o200k_base", "gpt-4-1106-preview", "gpt-3.5-turbo"]


def test_health(client):
    client.get("/api/v1/tokens", params={"text": "hi", "encoder": "gpt2"})
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["cache"]["entries"] == 1
