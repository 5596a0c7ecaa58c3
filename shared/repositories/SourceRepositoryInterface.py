from abc import ABC, abstractmethod

from shared.models.source import Source, SourceMetadata, SourceStatus, SourceType


class SourceRepositoryInterface(ABC):
    """Storage of knowledge sources, owned by the surrounding application."""

    @abstractmethod
    async def create_source(self, session_id: int, name: str, type: SourceType, content: str, metadata: SourceMetadata) -> Source:
        """Create a source in status parsing and return it with its new id."""
        pass

    @abstractmethod
    async def get_source(self, source_id: int) -> Source | None:
        pass

    @abstractmethod
    async def list_session_sources(self, session_id: int) -> list[Source]:
        """Return all sources of a session, oldest first."""
        pass

    async def list_ready_sources(self, session_id: int) -> list[Source]:
        """Return the ready sources of a session, oldest first."""
        return [source for source in await self.list_session_sources(session_id) if source.status == SourceStatus.READY]

    @abstractmethod
    async def update_source(self, source_id: int, status: SourceStatus | None = None, content: str | None = None, metadata: SourceMetadata | None = None) -> Source:
        """Update the given fields of a source.

        Raises:
            KeyError: If the source does not exist.
        """
        pass

    @abstractmethod
    async def delete_source(self, source_id: int) -> bool:
        """Delete a source. Returns False if it did not exist."""
        pass
