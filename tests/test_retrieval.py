from unittest.mock import AsyncMock, Mock

import pytest

from services.retrieval.RetrievalService import (
    RetrievalService,
    build_context_message,
    inject_system_message,
)
from shared.clients.ClientErrors import EmbeddingError, VectorStoreError
from shared.models.chat import ChatMessage, ChatRole
from shared.models.retrieval import RetrievalConfig, RetrievalResult, SearchHit
from shared.models.source import SourceMetadata, SourceStatus, SourceType
from shared.repositories.memory.SourceRepositoryMemory import SourceRepositoryMemory


def _user(content: str) -> ChatMessage:
    return ChatMessage(role=ChatRole.USER, content=content)


async def _ready_source(repository: SourceRepositoryMemory, session_id: int, name: str) -> int:
    source = await repository.create_source(session_id, name, SourceType.TEXT, f"content of {name}", SourceMetadata())
    await repository.update_source(source.id, status=SourceStatus.READY)
    return source.id


def _vector_store(hits_by_source: dict[int, list[SearchHit]]) -> Mock:
    store = Mock()
    store.search = AsyncMock(side_effect=lambda vector, source_id, top_k: hits_by_source.get(source_id, [])[:top_k])
    return store


def _embed_client() -> Mock:
    client = Mock()
    client.do_embed = AsyncMock(return_value=[1.0, 0.0])
    return client


class TestInjectSystemMessage:
    def test_prepends_when_absent(self):
        system = ChatMessage(role=ChatRole.SYSTEM, content="ctx")
        messages = [_user("hi")]

        assert inject_system_message(messages, system) == [system, messages[0]]

    def test_replaces_existing_system_messages(self):
        system = ChatMessage(role=ChatRole.SYSTEM, content="ctx")
        messages = [
            ChatMessage(role=ChatRole.SYSTEM, content="old"),
            _user("a"),
            ChatMessage(role=ChatRole.ASSISTANT, content="b"),
            ChatMessage(role=ChatRole.SYSTEM, content="older"),
            _user("c"),
        ]

        result = inject_system_message(messages, system)

        assert [m.role for m in result].count(ChatRole.SYSTEM) == 1
        assert result[0] == system
        assert [m.content for m in result[1:]] == ["a", "b", "c"]

    def test_idempotent(self):
        system = ChatMessage(role=ChatRole.SYSTEM, content="ctx")
        once = inject_system_message([_user("q")], system)
        assert inject_system_message(once, system) == once


class TestBuildContextMessage:
    def test_format(self):
        message = build_context_message([
            RetrievalResult(content="first", score=0.8123, position=0, source_id=1),
            RetrievalResult(content="second", score=0.5, position=3, source_id=2),
        ])

        assert message.role == ChatRole.SYSTEM
        assert "[Snippet 1, relevance: 81.2%]\nfirst\n\n---\n\n[Snippet 2, relevance: 50.0%]\nsecond" in message.content


class TestRetrievalService:
    @pytest.fixture
    def repository(self) -> SourceRepositoryMemory:
        return SourceRepositoryMemory()

    def _service(self, helper_config, repository, embed_client, vector_store, **config) -> RetrievalService:
        return RetrievalService(
            helper_config=helper_config,
            source_repository=repository,
            embed_client=embed_client,
            vector_store=vector_store,
            config=RetrievalConfig(**config),
        )

    @pytest.mark.asyncio
    async def test_injects_top_hits_across_sources(self, helper_config, repository):
        first = await _ready_source(repository, 1, "first")
        second = await _ready_source(repository, 1, "second")
        store = _vector_store({
            first: [SearchHit(content="f0", score=0.9, position=0), SearchHit(content="f1", score=0.4, position=1)],
            second: [SearchHit(content="s0", score=0.7, position=0), SearchHit(content="s1", score=0.35, position=1)],
        })
        service = self._service(helper_config, repository, _embed_client(), store)

        result = await service.augment_messages([_user("question?")], session_id=1)

        assert len(result) == 2
        assert result[0].role == ChatRole.SYSTEM
        content = result[0].content
        assert content.index("f0") < content.index("s0") < content.index("f1")
        assert "s1" not in content
        assert store.search.await_count == 2
        for call in store.search.await_args_list:
            assert call.args[2] == 2

    @pytest.mark.asyncio
    async def test_embeds_last_user_message_once(self, helper_config, repository):
        source_id = await _ready_source(repository, 1, "doc")
        embed_client = _embed_client()
        store = _vector_store({source_id: [SearchHit(content="hit", score=0.9, position=0)]})
        service = self._service(helper_config, repository, embed_client, store)
        messages = [_user("old question"), ChatMessage(role=ChatRole.ASSISTANT, content="answer"), _user("new question")]

        await service.augment_messages(messages, session_id=1)

        embed_client.do_embed.assert_awaited_once_with("new question")

    @pytest.mark.asyncio
    async def test_hits_below_threshold_are_dropped(self, helper_config, repository):
        source_id = await _ready_source(repository, 1, "doc")
        store = _vector_store({source_id: [SearchHit(content="hit", score=0.2, position=0)]})
        service = self._service(helper_config, repository, _embed_client(), store)
        messages = [_user("question?")]

        assert await service.augment_messages(messages, session_id=1) == messages

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, helper_config, repository):
        source_id = await _ready_source(repository, 1, "doc")
        store = _vector_store({source_id: [SearchHit(content="edge", score=0.30, position=0)]})
        service = self._service(helper_config, repository, _embed_client(), store)

        result = await service.augment_messages([_user("question?")], session_id=1)

        assert "edge" in result[0].content

    @pytest.mark.asyncio
    async def test_ties_keep_source_then_position_order(self, helper_config, repository):
        first = await _ready_source(repository, 1, "first")
        second = await _ready_source(repository, 1, "second")
        store = _vector_store({
            second: [SearchHit(content="second-0", score=0.5, position=0)],
            first: [SearchHit(content="first-1", score=0.5, position=1), SearchHit(content="first-0", score=0.5, position=0)],
        })
        service = self._service(helper_config, repository, _embed_client(), store)

        results = await service.retrieve("q", await repository.list_ready_sources(1))

        assert [r.content for r in results] == ["first-0", "first-1", "second-0"]
        assert [r.source_id for r in results] == [first, first, second]

    @pytest.mark.asyncio
    async def test_only_ready_sources_are_searched(self, helper_config, repository):
        ready = await _ready_source(repository, 1, "ready")
        await repository.create_source(1, "parsing", SourceType.TEXT, "still parsing", SourceMetadata())
        await _ready_source(repository, 2, "other session")
        store = _vector_store({})
        service = self._service(helper_config, repository, _embed_client(), store)

        await service.augment_messages([_user("q")], session_id=1)

        assert [call.args[1] for call in store.search.await_args_list] == [ready]

    @pytest.mark.asyncio
    async def test_without_session_messages_are_unchanged(self, helper_config, repository):
        store = _vector_store({})
        embed_client = _embed_client()
        service = self._service(helper_config, repository, embed_client, store)
        messages = [_user("q")]

        assert await service.augment_messages(messages, session_id=None) is messages
        embed_client.do_embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_ready_sources_messages_are_unchanged(self, helper_config, repository):
        embed_client = _embed_client()
        service = self._service(helper_config, repository, embed_client, _vector_store({}))
        messages = [_user("q")]

        assert await service.augment_messages(messages, session_id=1) is messages
        embed_client.do_embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_rag_returns_messages_unchanged(self, helper_config, repository):
        await _ready_source(repository, 1, "doc")
        service = self._service(helper_config, repository, None, None)
        messages = [_user("q")]

        assert not service.is_enabled()
        assert await service.augment_messages(messages, session_id=1) is messages

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back(self, helper_config, repository):
        await _ready_source(repository, 1, "doc")
        embed_client = Mock()
        embed_client.do_embed = AsyncMock(side_effect=EmbeddingError("down", status_code=503))
        service = self._service(helper_config, repository, embed_client, _vector_store({}))
        messages = [_user("q")]

        assert await service.augment_messages(messages, session_id=1) is messages

    @pytest.mark.asyncio
    async def test_search_failure_falls_back(self, helper_config, repository):
        await _ready_source(repository, 1, "doc")
        store = Mock()
        store.search = AsyncMock(side_effect=VectorStoreError("down", status_code=500))
        service = self._service(helper_config, repository, _embed_client(), store)
        messages = [_user("q")]

        assert await service.augment_messages(messages, session_id=1) is messages

    @pytest.mark.asyncio
    async def test_with_real_vectors(self, helper_config, repository, embed_client, vector_store):
        cats = await _ready_source(repository, 1, "cats")
        dogs = await _ready_source(repository, 1, "dogs")
        await vector_store.upsert(cats, ["cats purr and sleep all day"], [await embed_client.do_embed("cats purr and sleep all day")])
        await vector_store.upsert(dogs, ["dogs bark at the mailman"], [await embed_client.do_embed("dogs bark at the mailman")])
        # toy embeddings score low, only the ranking matters here
        service = self._service(helper_config, repository, embed_client, vector_store, similarity_threshold=0.0)

        result = await service.augment_messages([_user("why do cats purr")], session_id=1)

        assert result[0].role == ChatRole.SYSTEM
        assert "cats purr" in result[0].content


class TestRetrievalConfig:
    def test_defaults(self, helper_config):
        config = RetrievalConfig.from_env(helper_config)
        assert (config.per_source_top_k, config.top_n, config.similarity_threshold) == (2, 3, 0.30)

    def test_from_env(self, helper_config, monkeypatch):
        monkeypatch.setenv("RETRIEVAL_PER_SOURCE_TOP_K", "4")
        monkeypatch.setenv("RETRIEVAL_TOP_N", "5")
        monkeypatch.setenv("RETRIEVAL_SIMILARITY_THRESHOLD", "0.5")

        config = RetrievalConfig.from_env(helper_config)

        assert (config.per_source_top_k, config.top_n, config.similarity_threshold) == (4, 5, 0.5)
