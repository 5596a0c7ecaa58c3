from datetime import datetime

from pydantic import BaseModel

from shared.models.source import Source, SourceMetadata, SourceStatus, SourceType


class ChatTestResponse(BaseModel):
    content: str


class SourceResponse(BaseModel):
    """A source without its content."""

    id: int
    session_id: int
    name: str
    type: SourceType
    status: SourceStatus
    metadata: SourceMetadata
    created_at: datetime

    @classmethod
    def from_source(cls, source: Source) -> "SourceResponse":
        return cls(**source.model_dump(exclude={"content"}))


class SourceListResponse(BaseModel):
    sources: list[SourceResponse]
    total: int


class DeleteSourceResponse(BaseModel):
    status: str
    source_id: int
