import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from conftest import FakeQdrant
from shared.clients.ClientErrors import VectorStoreError
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant


@pytest_asyncio.fixture
async def make_rag_client(helper_config):
    clients = []

    async def _make(fake: FakeQdrant) -> RAGClientQdrant:
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=fake.transport())
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()


def _requests_to(fake: FakeQdrant, method: str, suffix: str) -> list:
    return [r for r in fake.requests if r.method == method and r.url.path.endswith(suffix)]


class TestEnsureCollection:
    @pytest.mark.asyncio
    async def test_creates_missing_collection_once(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)

        await client.ensure_collection()
        await client.ensure_collection()

        assert fake_qdrant.exists
        assert fake_qdrant.create_requests == 1
        create = _requests_to(fake_qdrant, "PUT", "/collections/test_chunks")[0]
        assert json.loads(create.content) == {"vectors": {"size": 16, "distance": "Cosine"}}
        # the ready flag is cached: one existence check only
        assert len(_requests_to(fake_qdrant, "GET", "/collections/test_chunks")) == 1

    @pytest.mark.asyncio
    async def test_existing_collection_is_not_recreated(self, make_rag_client):
        fake = FakeQdrant(exists=True)
        client = await make_rag_client(fake)

        await client.ensure_collection()

        assert fake.create_requests == 0

    @pytest.mark.asyncio
    async def test_conflict_on_create_is_benign(self, make_rag_client):
        fake = FakeQdrant(exists=True)
        fake.hide_existence = True
        client = await make_rag_client(fake)

        await client.ensure_collection()

        assert fake.conflicts == 1
        assert client._collection_ready

    @pytest.mark.asyncio
    async def test_concurrent_first_use(self, fake_qdrant, make_rag_client):
        first = await make_rag_client(fake_qdrant)
        second = await make_rag_client(fake_qdrant)

        await asyncio.gather(first.ensure_collection(), second.ensure_collection(), first.ensure_collection())

        assert fake_qdrant.exists
        assert fake_qdrant.create_requests - fake_qdrant.conflicts == 1

    @pytest.mark.asyncio
    async def test_collection_name_from_env(self, helper_config, monkeypatch):
        monkeypatch.setenv("RAG_QDRANT_COLLECTION", "other_chunks")
        fake = FakeQdrant(collection="other_chunks")
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=fake.transport())
        try:
            await client.ensure_collection()
        finally:
            await client.close()

        assert client.get_collection_name() == "other_chunks"
        assert _requests_to(fake, "PUT", "/collections/other_chunks")

    @pytest.mark.asyncio
    async def test_request_before_boot_raises(self, helper_config):
        client = RAGClientQdrant(helper_config=helper_config)
        assert not client.is_booted()

        with pytest.raises(RuntimeError):
            await client.ensure_collection()

        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        assert client.is_booted()
        await client.close()
        assert not client.is_booted()

    @pytest.mark.asyncio
    async def test_failed_existence_check_raises(self, helper_config):
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
        try:
            with pytest.raises(VectorStoreError):
                await client.ensure_collection()
        finally:
            await client.close()


class TestPoints:
    @pytest.mark.asyncio
    async def test_upsert_payload_and_wait(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)

        ids = await client.upsert(7, ["alpha", "beta"], [[1.0] + [0.0] * 15, [0.0, 1.0] + [0.0] * 14])

        assert len(ids) == 2 and len(set(ids)) == 2
        upsert = _requests_to(fake_qdrant, "PUT", "/points")[0]
        assert upsert.url.params["wait"] == "true"
        payloads = [p["payload"] for p in json.loads(upsert.content)["points"]]
        assert [set(p) for p in payloads] == [{"sourceId", "content", "position", "createdAt"}] * 2
        assert [(p["sourceId"], p["content"], p["position"]) for p in payloads] == [(7, "alpha", 0), (7, "beta", 1)]

    @pytest.mark.asyncio
    async def test_upsert_length_mismatch(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)
        with pytest.raises(ValueError):
            await client.upsert(1, ["a", "b"], [[1.0] * 16])

    @pytest.mark.asyncio
    async def test_upsert_nothing(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)
        assert await client.upsert(1, [], []) == []
        assert not _requests_to(fake_qdrant, "PUT", "/points")

    @pytest.mark.asyncio
    async def test_upsert_is_batched(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)

        await client.upsert(1, [f"c{i}" for i in range(230)], [[1.0] * 16 for _ in range(230)])

        sizes = [len(json.loads(r.content)["points"]) for r in _requests_to(fake_qdrant, "PUT", "/points")]
        assert sizes == [100, 100, 30]
        assert await client.count_by_source(1) == 230

    @pytest.mark.asyncio
    async def test_search_is_isolated_per_source(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)
        query = [1.0] + [0.0] * 15
        await client.upsert(1, ["one-a", "one-b"], [query, [0.0, 1.0] + [0.0] * 14])
        await client.upsert(2, ["two-a"], [query])

        hits = await client.search(query, 1, top_k=5)

        assert [h.content for h in hits] == ["one-a", "one-b"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].position == 0
        search = _requests_to(fake_qdrant, "POST", "/points/search")[0]
        assert json.loads(search.content)["filter"] == {"must": [{"key": "sourceId", "match": {"value": 1}}]}

    @pytest.mark.asyncio
    async def test_search_respects_top_k(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)
        await client.upsert(1, ["a", "b", "c"], [[1.0] * 16] * 3)

        assert len(await client.search([1.0] * 16, 1, top_k=2)) == 2

    @pytest.mark.asyncio
    async def test_delete_by_source(self, fake_qdrant, make_rag_client):
        client = await make_rag_client(fake_qdrant)
        await client.upsert(1, ["a"], [[1.0] * 16])
        await client.upsert(2, ["b"], [[1.0] * 16])

        await client.delete_by_source(1)

        assert await client.count_by_source(1) == 0
        assert await client.count_by_source(2) == 1
        delete = _requests_to(fake_qdrant, "POST", "/points/delete")[0]
        assert delete.url.params["wait"] == "true"


class TestRAGClientManager:
    def test_default_engine(self, helper_config):
        assert isinstance(RAGClientManager(helper_config=helper_config).get_client(), RAGClientQdrant)

    def test_missing_base_url(self, helper_config, monkeypatch):
        monkeypatch.delenv("RAG_QDRANT_BASE_URL")
        with pytest.raises(ValueError):
            RAGClientManager(helper_config=helper_config)
