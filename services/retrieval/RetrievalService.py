"""Retrieval orchestration.

Embeds the last user question, searches every ready source of the chat
session, keeps the best matches above the similarity threshold and injects
them into the conversation as the single system message.
"""

import asyncio

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.VectorStoreInterface import VectorStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatRole
from shared.models.retrieval import RetrievalConfig, RetrievalResult
from shared.models.source import Source
from shared.repositories.SourceRepositoryInterface import SourceRepositoryInterface

SNIPPET_SEPARATOR = "\n\n---\n\n"

CONTEXT_PROMPT = (
    "You are an AI assistant. The following snippets were retrieved from the "
    "user's knowledge base:\n\n"
    "{context}\n\n"
    "Answer the user's question based on the snippets above. If they do not "
    "contain the relevant information, say so honestly."
)


def build_context_message(results: list[RetrievalResult]) -> ChatMessage:
    """Format retrieval results as the system message carrying the context.

    Args:
        results (list[RetrievalResult]): Hits in the order they should be numbered.

    Returns:
        ChatMessage: A system message with numbered snippets and their relevance.
    """
    context = SNIPPET_SEPARATOR.join(
        f"[Snippet {i}, relevance: {result.score * 100:.1f}%]\n{result.content}"
        for i, result in enumerate(results, start=1)
    )
    return ChatMessage(role=ChatRole.SYSTEM, content=CONTEXT_PROMPT.format(context=context))


def inject_system_message(messages: list[ChatMessage], system_message: ChatMessage) -> list[ChatMessage]:
    """Make system_message the one and only system message, in front.

    Existing system messages are removed, all other messages keep their order.
    Applying it twice with the same message gives the same list.
    """
    return [system_message] + [m for m in messages if m.role != ChatRole.SYSTEM]


def last_user_message(messages: list[ChatMessage]) -> ChatMessage | None:
    for message in reversed(messages):
        if message.role == ChatRole.USER:
            return message
    return None


class RetrievalService:
    """Grounds a chat request in the session's ready sources.

    RAG is best effort: any failure is logged and the caller's messages are
    returned unchanged so basic chat keeps working.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        source_repository: SourceRepositoryInterface,
        embed_client: EmbedClientInterface | None,
        vector_store: VectorStoreInterface | None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._source_repository = source_repository
        self._embed_client = embed_client
        self._vector_store = vector_store
        self._config = config or RetrievalConfig.from_env(helper_config)

    def is_enabled(self) -> bool:
        return self._embed_client is not None and self._vector_store is not None

    ##########################################
    ############### CORE #####################
    ##########################################

    async def augment_messages(self, messages: list[ChatMessage], session_id: int | None) -> list[ChatMessage]:
        """Return messages with the retrieved context injected, or unchanged.

        Args:
            messages (list[ChatMessage]): The conversation as sent by the client.
            session_id (int | None): Chat session whose sources are searched.

        Returns:
            list[ChatMessage]: The messages to send upstream.
        """
        if session_id is None or not self.is_enabled():
            return messages

        question = last_user_message(messages)
        if question is None or not question.content.strip():
            return messages

        try:
            sources = [s for s in await self._source_repository.list_ready_sources(session_id) if s.has_content()]
            if not sources:
                self.logging.debug("RAG: session %s has no ready sources.", session_id)
                return messages

            results = await self.retrieve(question.content, sources)
        except Exception as exc:
            self.logging.error("RAG retrieval failed for session %s, continuing without context: %s", session_id, exc)
            return messages

        if not results:
            return messages

        average = sum(r.score for r in results) / len(results) * 100
        self.logging.info("RAG: injected %d relevant chunks (avg similarity: %.1f%%)", len(results), average)
        return inject_system_message(messages, build_context_message(results))

    async def retrieve(self, query: str, sources: list[Source]) -> list[RetrievalResult]:
        """Search all sources for the query and keep the globally best hits.

        Args:
            query (str): The user's question.
            sources (list[Source]): Sources to search, in session order.

        Returns:
            list[RetrievalResult]: At most top_n hits at or above the threshold,
                by descending score.

        Raises:
            EmbeddingError: If the query cannot be embedded.
            VectorStoreError: If any source search fails.
        """
        self.logging.info("RAG: generating embedding for query: '%s...'", query[:50])
        query_vector = await self._embed_client.do_embed(query)

        per_source = await asyncio.gather(*[
            self._vector_store.search(query_vector, source.id, self._config.per_source_top_k)
            for source in sources
        ])

        candidates: list[tuple[int, RetrievalResult]] = []
        for order, (source, hits) in enumerate(zip(sources, per_source)):
            for hit in hits:
                candidates.append((order, RetrievalResult(source_id=source.id, **hit.model_dump())))

        # ties keep session order, then chunk order
        candidates.sort(key=lambda c: (-c[1].score, c[0], c[1].position))
        top = [result for _, result in candidates[: self._config.top_n]]

        relevant = [r for r in top if r.score >= self._config.similarity_threshold]
        if not relevant:
            best = top[0].score * 100 if top else 0.0
            self.logging.warning(
                "RAG: no high-relevance chunks (max: %.1f%%, threshold: %.0f%%). Skipping knowledge base context.",
                best, self._config.similarity_threshold * 100,
            )
        return relevant
