"""Ingestion service.

Turns knowledge sources into searchable vectors: obtains the content (web
pages through the reader backend), splits it into chunks sized for its
type, embeds the chunks and replaces the source's points in the vector
store. RAG failures never fail a source; they are recorded in its metadata.
"""

import asyncio
from datetime import datetime, timezone

from shared.clients.ClientErrors import ClientRequestError
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.VectorStoreInterface import VectorStoreInterface
from shared.clients.reader.ReaderClientInterface import ReaderClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.source import (
    RagStatus,
    Source,
    SourceMetadata,
    SourceStatus,
    SourceType,
    WebPage,
)
from shared.repositories.SourceRepositoryInterface import SourceRepositoryInterface
from services.chunking.Chunker import get_recommended_chunks
from services.ingestion.WebContentCleaner import clean_web_content, extract_title

MIN_RAG_CONTENT_LENGTH = 50  # shorter content is kept but not embedded
SOURCE_CONCURRENCY = 3       # max parallel sources when reprocessing a session


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class IngestionService:
    """Adds, processes and removes the knowledge sources of chat sessions."""

    def __init__(
        self,
        helper_config: HelperConfig,
        source_repository: SourceRepositoryInterface,
        embed_client: EmbedClientInterface | None,
        vector_store: VectorStoreInterface | None,
        reader_client: ReaderClientInterface | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._source_repository = source_repository
        self._embed_client = embed_client
        self._vector_store = vector_store
        self._reader_client = reader_client

    def is_rag_enabled(self) -> bool:
        return self._embed_client is not None and self._vector_store is not None

    ##########################################
    ################ SOURCES #################
    ##########################################

    async def add_source(
        self,
        session_id: int,
        name: str,
        type: SourceType,
        content: str = "",
        url: str | None = None,
        object_key: str | None = None,
    ) -> Source:
        """Create a source and process it for RAG.

        Website sources without content are fetched from url first. If the
        content cannot be obtained the source ends in status error.

        Args:
            session_id (int): Owning chat session.
            name (str): Display name.
            type (SourceType): Content type; selects the chunk policy.
            content (str): Extracted text, may be empty for websites.
            url (str | None): Origin of a website source.
            object_key (str | None): Storage key of an uploaded file.

        Returns:
            Source: The stored source in its final status.
        """
        metadata = SourceMetadata(word_count=len(content), added_at=_now_iso(), url=url, object_key=object_key)
        source = await self._source_repository.create_source(session_id, name, type, content, metadata)
        self.logging.info("Added source %s to session %s, type: %s", source.id, session_id, type.value)

        if type == SourceType.WEBSITE and not source.has_content():
            if not url:
                return await self._mark_error(source, "Website source has neither content nor URL.")
            try:
                page = await self.fetch_web_content(url)
            except (ClientRequestError, ValueError, RuntimeError) as exc:
                self.logging.error("Fetching website for source %s failed: %s", source.id, exc)
                return await self._mark_error(source, str(exc))
            metadata = source.metadata.model_copy(update={"word_count": page.word_count, "title": page.title or None})
            source = await self._source_repository.update_source(source.id, content=page.content, metadata=metadata)

        if not source.has_content():
            return await self._mark_error(source, "Source has no content.")

        return await self.process_source(source)

    async def fetch_web_content(self, url: str) -> WebPage:
        """Fetch a web page through the reader backend and clean it.

        Raises:
            RuntimeError: If no reader client is configured.
            ValueError: If url is not an http(s) URL.
            ReaderError: If the page cannot be fetched.
        """
        if self._reader_client is None:
            raise RuntimeError("No reader client configured, cannot fetch web pages.")
        raw = await self._reader_client.do_fetch_content(url)
        content = clean_web_content(raw)
        self.logging.info("Fetched %s: %d raw chars, %d after cleaning.", url, len(raw), len(content))
        return WebPage(url=url, title=extract_title(raw), content=content, word_count=len(content))

    async def delete_source(self, source_id: int) -> bool:
        """Delete a source and its vectors.

        A failing vector delete is logged and does not keep the source alive.

        Returns:
            bool: False if the source did not exist.
        """
        source = await self._source_repository.get_source(source_id)
        if source is None:
            return False

        if self._vector_store is not None:
            try:
                await self._vector_store.delete_by_source(source_id)
            except ClientRequestError as exc:
                self.logging.error("Failed to delete vector data for source %s: %s", source_id, exc)

        deleted = await self._source_repository.delete_source(source_id)
        self.logging.info("Source %s deleted.", source_id)
        return deleted

    async def get_rag_status(self, source_id: int) -> RagStatus | None:
        """Report the RAG state of a source, None if the source does not exist."""
        source = await self._source_repository.get_source(source_id)
        if source is None:
            return None

        vector_count: int | None = None
        if self._vector_store is not None:
            try:
                vector_count = await self._vector_store.count_by_source(source_id)
            except ClientRequestError as exc:
                self.logging.warning("Could not count vectors of source %s: %s", source_id, exc)

        return RagStatus(
            source_id=source.id,
            source_name=source.name,
            source_type=source.type,
            status=source.status,
            chunk_count=source.metadata.chunk_count,
            vector_count=vector_count,
            rag_processed=source.metadata.rag_processed,
            rag_skipped=source.metadata.rag_skipped,
            rag_failed=source.metadata.rag_failed,
            rag_error=source.metadata.rag_error,
        )

    async def reprocess(self, source_id: int) -> Source | None:
        """Run RAG processing again for an existing source, None if it does not exist."""
        source = await self._source_repository.get_source(source_id)
        if source is None:
            return None
        if not source.has_content():
            return await self._mark_error(source, "Source has no content.")
        source = await self._source_repository.update_source(source_id, status=SourceStatus.PARSING)
        return await self.process_source(source)

    async def reprocess_session(self, session_id: int) -> list[Source]:
        """Reprocess every source of a session with bounded parallelism.

        Returns:
            list[Source]: The sources that were reprocessed, in session order.
        """
        sources = await self._source_repository.list_session_sources(session_id)
        if not sources:
            self.logging.warning("No sources found for session %s. Skipping.", session_id)
            return []

        sem = asyncio.Semaphore(SOURCE_CONCURRENCY)

        async def _reprocess(source: Source) -> Source | None:
            async with sem:
                return await self.reprocess(source.id)

        results = await asyncio.gather(*[_reprocess(s) for s in sources], return_exceptions=True)

        processed: list[Source] = []
        for source, result in zip(sources, results):
            if isinstance(result, Exception):
                self.logging.error("Reprocessing source %s failed: %s", source.id, result)
            elif result is not None:
                processed.append(result)
        self.logging.info("Reprocessed %d of %d sources of session %s.", len(processed), len(sources), session_id)
        return processed

    ##########################################
    ############# RAG PIPELINE ###############
    ##########################################

    async def process_source(self, source: Source) -> Source:
        """Chunk, embed and store a source; the source always ends up ready.

        Args:
            source (Source): A source with content, usually in status parsing.

        Returns:
            Source: The updated source. Its metadata tells whether RAG ran
                (rag_processed), was skipped (rag_skipped) or failed (rag_failed).
        """
        if not self.is_rag_enabled():
            self.logging.info("RAG disabled, source %s stored without vectors.", source.id)
            return await self._mark_ready(source, rag_skipped=True)

        content = source.content.strip()
        if len(content) < MIN_RAG_CONTENT_LENGTH:
            self.logging.info("Source %s too short for RAG (%d chars), skipping.", source.id, len(content))
            return await self._mark_ready(source, rag_skipped=True)

        chunks = get_recommended_chunks(content, source.type)
        if not chunks:
            self.logging.info("Source %s produced no chunks, skipping.", source.id)
            return await self._mark_ready(source, rag_skipped=True)
        self.logging.debug("Source %s split into %d chunks (%s policy).", source.id, len(chunks), source.type.value)

        try:
            vectors = await self._embed_client.do_embed_batch(chunks)
            # drop stale points of an earlier run before writing the new ones
            await self._vector_store.delete_by_source(source.id)
            point_ids = await self._vector_store.upsert(source.id, chunks, vectors)
        except Exception as exc:
            self.logging.error("RAG processing failed for source %s: %s", source.id, exc)
            return await self._mark_ready(source, rag_failed=True, rag_error=str(exc))

        self.logging.info("Processed source %s: %d chunks, %d vectors.", source.id, len(chunks), len(point_ids), color="green")
        return await self._mark_ready(
            source,
            chunk_count=len(chunks),
            vector_count=len(point_ids),
            rag_processed=True,
            processed_at=_now_iso(),
        )

    async def _mark_ready(self, source: Source, **metadata_updates) -> Source:
        # reset flags of an earlier run so the metadata describes this one only
        update = {
            "rag_processed": False,
            "rag_skipped": False,
            "rag_failed": False,
            "rag_error": None,
            **metadata_updates,
        }
        metadata = source.metadata.model_copy(update=update)
        return await self._source_repository.update_source(source.id, status=SourceStatus.READY, metadata=metadata)

    async def _mark_error(self, source: Source, reason: str) -> Source:
        metadata = source.metadata.model_copy(update={"rag_error": reason})
        return await self._source_repository.update_source(source.id, status=SourceStatus.ERROR, metadata=metadata)
