import itertools

from shared.models.source import Source, SourceMetadata, SourceStatus, SourceType
from shared.repositories.SourceRepositoryInterface import SourceRepositoryInterface


class SourceRepositoryMemory(SourceRepositoryInterface):
    """Process-local source storage, for development and tests."""

    def __init__(self) -> None:
        self._sources: dict[int, Source] = {}
        self._ids = itertools.count(1)

    async def create_source(self, session_id: int, name: str, type: SourceType, content: str, metadata: SourceMetadata) -> Source:
        source = Source(
            id=next(self._ids),
            session_id=session_id,
            name=name,
            type=type,
            status=SourceStatus.PARSING,
            content=content,
            metadata=metadata,
        )
        self._sources[source.id] = source
        return source.model_copy(deep=True)

    async def get_source(self, source_id: int) -> Source | None:
        source = self._sources.get(source_id)
        return source.model_copy(deep=True) if source else None

    async def list_session_sources(self, session_id: int) -> list[Source]:
        sources = [s for s in self._sources.values() if s.session_id == session_id]
        return [s.model_copy(deep=True) for s in sorted(sources, key=lambda s: (s.created_at, s.id))]

    async def update_source(self, source_id: int, status: SourceStatus | None = None, content: str | None = None, metadata: SourceMetadata | None = None) -> Source:
        if source_id not in self._sources:
            raise KeyError(f"Source {source_id} does not exist.")
        changes: dict = {}
        if status is not None:
            changes["status"] = status
        if content is not None:
            changes["content"] = content
        if metadata is not None:
            changes["metadata"] = metadata
        self._sources[source_id] = self._sources[source_id].model_copy(update=changes, deep=True)
        return self._sources[source_id].model_copy(deep=True)

    async def delete_source(self, source_id: int) -> bool:
        return self._sources.pop(source_id, None) is not None
