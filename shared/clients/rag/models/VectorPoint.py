"""VectorPoint model: payload stored alongside each chunk vector in a RAG backend."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class VectorPoint(BaseModel):
    """Payload stored alongside each vector chunk in a RAG backend.

    Serialised with camelCase keys (model_dump(by_alias=True)) because the
    search and delete filters match on the "sourceId" payload key.

    Attributes:
        source_id:   Mandatory, id of the owning source; used for filter-based search and delete.
        content:     Raw text of the chunk.
        position:    Zero-based position of the chunk within its source.
        created_at:  ISO-8601 timestamp of the write.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_id: int = Field(alias="sourceId")
    content: str
    position: int
    created_at: str = Field(
        alias="createdAt",
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )
