"""Pydantic models for knowledge sources.

Hierarchy:
  SourceType     : closed set of content types a source can have.
  SourceStatus   : lifecycle state: parsing → ready | error.
  SourceMetadata : free-form processing facts (counts, RAG flags, origin).
  Source         : a document owned by a chat session.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    TEXT = "text"
    WEBSITE = "website"
    PDF = "pdf"


class SourceStatus(str, Enum):
    PARSING = "parsing"
    READY = "ready"
    ERROR = "error"


class SourceMetadata(BaseModel):
    """Processing metadata stored with a source.

    chunk_count and vector_count only agree after a successful RAG pass;
    rag_skipped / rag_failed record why they may not.
    """

    word_count: int = 0
    chunk_count: int = 0
    vector_count: int = 0
    rag_processed: bool = False
    rag_skipped: bool = False
    rag_failed: bool = False
    rag_error: str | None = None
    processed_at: str | None = None
    added_at: str | None = None
    url: str | None = None
    object_key: str | None = None
    title: str | None = None


class Source(BaseModel):
    id: int
    session_id: int
    name: str
    type: SourceType
    status: SourceStatus = SourceStatus.PARSING
    content: str = ""
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())


class WebPage(BaseModel):
    """A fetched and cleaned web page, as previewed before it becomes a source."""

    url: str
    title: str
    content: str
    word_count: int


class RagStatus(BaseModel):
    """RAG processing state of a source.

    vector_count is read live from the vector store; None when RAG is
    disabled or the store could not be reached.
    """

    source_id: int
    source_name: str
    source_type: SourceType
    status: SourceStatus
    chunk_count: int
    vector_count: int | None = None
    rag_processed: bool = False
    rag_skipped: bool = False
    rag_failed: bool = False
    rag_error: str | None = None
