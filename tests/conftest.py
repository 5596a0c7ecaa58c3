import asyncio
import json
import logging
import math
import zlib

import httpx
import pytest

from shared.clients.ClientErrors import VectorStoreError
from shared.clients.rag.VectorStoreInterface import VectorStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.retrieval import SearchHit

QDRANT_URL = "http://qdrant.test"
LLM_URL = "http://llm.test"
READER_URL = "http://reader.test"
API_KEY = "test-api-key"

EMBED_DIMENSIONS = 16


@pytest.fixture(autouse=True)
def env(monkeypatch):
    """Backend configuration used by every test."""
    monkeypatch.setenv("EMBED_JINA_API_KEY", "jina-key")
    monkeypatch.setenv("EMBED_JINA_BASE_URL", "http://embed.test")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", QDRANT_URL)
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "test_chunks")
    monkeypatch.setenv("RAG_VECTOR_SIZE", str(EMBED_DIMENSIONS))
    monkeypatch.setenv("LLM_OPENAI_BASE_URL", LLM_URL)
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "server-llm-key")
    monkeypatch.setenv("READER_JINA_BASE_URL", READER_URL)
    monkeypatch.setenv("API_SERVER_API_KEY", API_KEY)
    for key in (
        "RETRIEVAL_PER_SOURCE_TOP_K",
        "RETRIEVAL_TOP_N",
        "RETRIEVAL_SIMILARITY_THRESHOLD",
        "EMBED_BATCH_SIZE",
        "EMBED_ENGINE",
        "RAG_ENGINE",
        "LLM_ENGINE",
        "LLM_CHAT_MODEL",
        "READER_ENGINE",
        "READER_JINA_API_KEY",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("knowledge_chat.tests")))


def cosine(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


def bag_of_words_vector(text: str) -> list[float]:
    """Deterministic toy embedding: word counts hashed into EMBED_DIMENSIONS buckets."""
    vector = [0.0] * EMBED_DIMENSIONS
    for word in text.lower().split():
        vector[zlib.crc32(word.strip(".,!?").encode()) % EMBED_DIMENSIONS] += 1.0
    return vector


##########################################
############# FAKE BACKENDS ##############
##########################################

class FakeQdrant:
    """In-process stand-in for the Qdrant REST API, served through httpx.MockTransport.

    Supports the collection, upsert, search, delete and count endpoints with
    sourceId filters and cosine scoring.
    """

    def __init__(self, collection: str = "test_chunks", exists: bool = False) -> None:
        self.collection = collection
        self.exists = exists
        self.points: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.create_requests = 0
        self.conflicts = 0
        # report "missing" on existence checks even after creation (another writer won the race)
        self.hide_existence = False

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _matches(self, point: dict, filter: dict | None) -> bool:
        for condition in (filter or {}).get("must", []):
            if point["payload"].get(condition["key"]) != condition["match"]["value"]:
                return False
        return True

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        base = f"/collections/{self.collection}"
        path = request.url.path
        body = json.loads(request.content) if request.content else {}

        if path == "/healthz":
            return httpx.Response(200, text="healthz check passed")

        if path == base and request.method == "GET":
            # let concurrent callers interleave between check and create
            await asyncio.sleep(0)
            if self.exists and not self.hide_existence:
                return httpx.Response(200, json={"result": {"status": "green"}})
            return httpx.Response(404, json={"status": {"error": "Not found"}})

        if path == base and request.method == "PUT":
            self.create_requests += 1
            if self.exists:
                self.conflicts += 1
                return httpx.Response(409, json={"status": {"error": f"Collection `{self.collection}` already exists!"}})
            self.exists = True
            return httpx.Response(200, json={"result": True})

        if not self.exists:
            return httpx.Response(404, json={"status": {"error": "Collection not found"}})

        if path == f"{base}/points" and request.method == "PUT":
            for point in body["points"]:
                self.points[point["id"]] = point
            return httpx.Response(200, json={"result": {"status": "completed"}})

        if path == f"{base}/points/search":
            candidates = [p for p in self.points.values() if self._matches(p, body.get("filter"))]
            scored = sorted(
                ({"id": p["id"], "score": cosine(body["vector"], p["vector"]), "payload": p["payload"]} for p in candidates),
                key=lambda hit: -hit["score"],
            )
            return httpx.Response(200, json={"result": scored[: body["limit"]]})

        if path == f"{base}/points/delete":
            for point_id in [pid for pid, p in self.points.items() if self._matches(p, body.get("filter"))]:
                del self.points[point_id]
            return httpx.Response(200, json={"result": {"status": "completed"}})

        if path == f"{base}/points/count":
            count = sum(1 for p in self.points.values() if self._matches(p, body.get("filter")))
            return httpx.Response(200, json={"result": {"count": count}})

        return httpx.Response(400, json={"status": {"error": f"Unexpected request {request.method} {path}"}})


class InMemoryVectorStore(VectorStoreInterface):
    """VectorStoreInterface kept in a dict, with switchable failures."""

    def __init__(self) -> None:
        self.points: dict[int, list[tuple[str, list[float], int]]] = {}
        self.fail_search_for: set[int] = set()
        self.fail_writes = False
        self.fail_deletes = False
        self.ensure_calls = 0

    async def ensure_collection(self) -> None:
        self.ensure_calls += 1

    async def upsert(self, source_id: int, chunks: list[str], vectors: list[list[float]]) -> list[str]:
        if len(chunks) != len(vectors):
            raise ValueError("chunks and vectors differ in length")
        if self.fail_writes:
            raise VectorStoreError("write rejected", status_code=500)
        stored = self.points.setdefault(source_id, [])
        stored.extend((chunk, vector, position) for position, (chunk, vector) in enumerate(zip(chunks, vectors)))
        return [f"{source_id}-{len(stored) - len(chunks) + i}" for i in range(len(chunks))]

    async def search(self, query_vector: list[float], source_id: int, top_k: int) -> list[SearchHit]:
        if source_id in self.fail_search_for:
            raise VectorStoreError("search failed", status_code=500)
        hits = [
            SearchHit(content=chunk, score=cosine(query_vector, vector), position=position)
            for chunk, vector, position in self.points.get(source_id, [])
        ]
        return sorted(hits, key=lambda hit: -hit.score)[:top_k]

    async def delete_by_source(self, source_id: int) -> None:
        if self.fail_deletes:
            raise VectorStoreError("delete failed", status_code=500)
        self.points.pop(source_id, None)

    async def count_by_source(self, source_id: int) -> int:
        return len(self.points.get(source_id, []))


class FakeEmbedClient:
    """Embedding client double producing bag_of_words_vector() embeddings."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []
        self.error: Exception | None = None

    async def do_embed(self, text: str) -> list[float]:
        return (await self.do_embed_batch([text]))[0]

    async def do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        if self.error is not None:
            raise self.error
        self.batches.append(list(texts))
        return [bag_of_words_vector(text) for text in texts]


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


##########################################
############# SSE HELPERS ################
##########################################

def sse_chunk(content: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]})}\n\n".encode()


SSE_DONE = b"data: [DONE]\n\n"


def streaming_handler(chunks: list[bytes], status_code: int = 200, recorder: list | None = None):
    """MockTransport handler answering every request with the given SSE body slices."""

    async def handler(request: httpx.Request) -> httpx.Response:
        if recorder is not None:
            recorder.append(request)

        async def body():
            for chunk in chunks:
                yield chunk

        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "upstream said no"}})
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

    return handler


def parse_sse(text: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in text.split("\n\n") if line.startswith("data: ")]
