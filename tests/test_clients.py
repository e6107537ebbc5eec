"""Tests for the collaborator HTTP clients."""

import json

import httpx
import pytest

from knowledge_ingestion.clients.chunking_client import ChunkingClient
from knowledge_ingestion.clients.document_atom_client import DocumentAtomClient
from knowledge_ingestion.clients.vector_store_client import VectorStoreClient, build_search_body
from knowledge_ingestion.models.chunk import Chunk
from knowledge_ingestion.models.document import IngestionRule
from knowledge_ingestion.models.retrieval import RetrievalSearchOptions, SearchMode
from knowledge_ingestion.services.retry import NoRetryPolicy
from knowledge_ingestion.utils.errors import ExternalServiceError


class Recorder:
    """httpx MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def http_client(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


class TestDocumentAtomClient:
    """Test suite for DocumentAtomClient."""

    @pytest.mark.asyncio
    async def test_detect_type(self):
        recorder = Recorder(httpx.Response(200, json={"type": "pdf"}))
        async with http_client(recorder) as http:
            client = DocumentAtomClient(
                http, base_url="http://atom:8301/", access_key="secret", retry_policy=NoRetryPolicy()
            )
            detected = await client.detect_type(b"bytes", "a.pdf")

        assert detected == "pdf"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://atom:8301/typedetect"
        assert request.headers["Authorization"] == "Bearer secret"
        assert b'filename="a.pdf"' in request.content

    @pytest.mark.asyncio
    async def test_extract_content_sends_type(self):
        recorder = Recorder(httpx.Response(200, json={"content": "hello"}))
        async with http_client(recorder) as http:
            client = DocumentAtomClient(http, base_url="http://atom", retry_policy=NoRetryPolicy())
            content = await client.extract_content(b"bytes", "pdf", "a.pdf")

        assert content == "hello"
        assert str(recorder.requests[0].url) == "http://atom/extract"
        assert b'name="type"' in recorder.requests[0].content

    @pytest.mark.asyncio
    async def test_empty_extraction_is_none(self):
        recorder = Recorder(httpx.Response(200, json={"content": ""}))
        async with http_client(recorder) as http:
            client = DocumentAtomClient(http, base_url="http://atom", retry_policy=NoRetryPolicy())
            assert await client.extract_content(b"bytes", "pdf") is None

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        recorder = Recorder(httpx.Response(500, text="boom"))
        async with http_client(recorder) as http:
            client = DocumentAtomClient(http, base_url="http://atom", retry_policy=NoRetryPolicy())
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.detect_type(b"bytes")

        assert exc_info.value.upstream_status == 500
        assert exc_info.value.is_retryable is True


class TestChunkingClient:
    """Test suite for ChunkingClient."""

    @pytest.mark.asyncio
    async def test_chunk_and_embed_forwards_rule_configs(self):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "chunks": [
                        {"index": 1, "content": "second", "embeddings": [0.3]},
                        {"index": 0, "content": "first", "embeddings": [0.1]},
                    ]
                },
            )
        )
        rule = IngestionRule(id="r", chunking={"strategy": "Paragraph"}, summarization={"order": "TopDown"})
        async with http_client(recorder) as http:
            client = ChunkingClient(
                http, base_url="http://chunk", embedding_endpoint_id="emb-1", retry_policy=NoRetryPolicy()
            )
            chunks = await client.chunk_and_embed("text", rule)

        assert [c.content for c in chunks] == ["first", "second"]
        body = json.loads(recorder.requests[0].content)
        assert str(recorder.requests[0].url) == "http://chunk/v1/process"
        assert body == {
            "text": "text",
            "chunking": {"strategy": "Paragraph"},
            "summarization": {"order": "TopDown"},
            "embedding": {"embedding_endpoint_id": "emb-1"},
        }

    @pytest.mark.asyncio
    async def test_embed(self):
        recorder = Recorder(httpx.Response(200, json={"embeddings": [0.1, 0.2]}))
        async with http_client(recorder) as http:
            client = ChunkingClient(http, base_url="http://chunk", retry_policy=NoRetryPolicy())
            assert await client.embed("query") == [0.1, 0.2]

        assert str(recorder.requests[0].url) == "http://chunk/v1/embed"

    @pytest.mark.asyncio
    async def test_null_index_falls_back_to_position(self):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "chunks": [
                        {"index": None, "content": "first", "embeddings": [0.1]},
                        {"index": None, "content": "second", "embeddings": [0.2]},
                    ]
                },
            )
        )
        async with http_client(recorder) as http:
            client = ChunkingClient(http, base_url="http://chunk", retry_policy=NoRetryPolicy())
            chunks = await client.chunk_and_embed("text", None)

        assert [(c.index, c.content) for c in chunks] == [(0, "first"), (1, "second")]


class TestVectorStoreClient:
    """Test suite for VectorStoreClient."""

    @pytest.mark.asyncio
    async def test_put_sends_metadata(self):
        recorder = Recorder(httpx.Response(201, json={"id": "rec-7"}))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            record_id = await client.put("col-1", "doc-1", Chunk(index=7, content="c", embeddings=[0.5]))

        assert record_id == "rec-7"
        request = recorder.requests[0]
        assert request.method == "PUT"
        assert str(request.url) == "http://vs/v1/collections/col-1/documents"
        assert json.loads(request.content) == {
            "content": "c",
            "embeddings": [0.5],
            "metadata": {"source_document_id": "doc-1", "chunk_index": 7},
        }

    @pytest.mark.asyncio
    async def test_put_without_body_returns_none(self):
        recorder = Recorder(httpx.Response(204))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.put("col-1", "doc-1", Chunk(index=0, content="c")) is None

    @pytest.mark.asyncio
    async def test_put_with_non_json_body_returns_none(self):
        recorder = Recorder(httpx.Response(201, text="Created"))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.put("col-1", "doc-1", Chunk(index=0, content="c")) is None

    @pytest.mark.asyncio
    async def test_ensure_collection_exists(self):
        recorder = Recorder(httpx.Response(200, json={"id": "col-1"}))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.ensure_collection("col-1") is True

        assert len(recorder.requests) == 1
        assert recorder.requests[0].method == "GET"
        assert str(recorder.requests[0].url) == "http://vs/v1/collections/col-1"

    @pytest.mark.asyncio
    async def test_ensure_collection_creates_missing(self):
        recorder = Recorder(httpx.Response(404, text="not found"), httpx.Response(201, json={"id": "col-1"}))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.ensure_collection("col-1") is True

        create = recorder.requests[1]
        assert create.method == "POST"
        assert str(create.url) == "http://vs/v1/collections"
        assert json.loads(create.content) == {"id": "col-1"}

    @pytest.mark.asyncio
    async def test_ensure_collection_unavailable(self):
        recorder = Recorder(httpx.Response(500, text="boom"))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.ensure_collection("col-1") is False

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_ensure_collection_create_failure(self):
        recorder = Recorder(httpx.Response(404, text="not found"), httpx.Response(409, text="conflict"))
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            assert await client.ensure_collection("col-1") is False

    @pytest.mark.asyncio
    async def test_search_parses_documents(self):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "documents": [
                        {
                            "document_id": "d",
                            "score": 0.8,
                            "text_score": 0.4,
                            "content": "hit",
                            "position": 3,
                            "neighbors": [{"content": "n", "position": 2}],
                        }
                    ]
                },
            )
        )
        options = RetrievalSearchOptions(search_mode=SearchMode.HYBRID)
        async with http_client(recorder) as http:
            client = VectorStoreClient(http, base_url="http://vs", retry_policy=NoRetryPolicy())
            results = await client.search("col-1", "q", [0.1], 10, options)

        assert len(results) == 1
        assert results[0].text_score == 0.4
        assert results[0].neighbors[0].position == 2
        assert str(recorder.requests[0].url) == "http://vs/v1/collections/col-1/search"


class TestBuildSearchBody:
    """Search body per mode."""

    def test_vector(self):
        body = build_search_body("q", [0.1], 5, RetrievalSearchOptions())
        assert body == {"max_results": 5, "vector": {"search_type": "CosineSimilarity", "embeddings": [0.1]}}

    def test_full_text(self):
        options = RetrievalSearchOptions(search_mode=SearchMode.FULL_TEXT, full_text_minimum_score=0.1)
        body = build_search_body("q", None, 5, options)
        assert "vector" not in body
        assert body["full_text"] == {
            "query": "q",
            "search_type": "TsRank",
            "language": "english",
            "normalization": 32,
            "minimum_score": 0.1,
        }

    def test_hybrid_includes_text_weight_and_neighbors(self):
        options = RetrievalSearchOptions(search_mode=SearchMode.HYBRID, text_weight=0.4, include_neighbors=2)
        body = build_search_body("q", [0.1], 5, options)
        assert body["vector"]["embeddings"] == [0.1]
        assert body["full_text"]["text_weight"] == 0.4
        assert body["include_neighbors"] == 2
