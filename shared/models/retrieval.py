"""Pydantic models used by the retrieval pipeline."""

from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig


class SearchHit(BaseModel):
    """A single similarity-search hit as returned by a vector store."""

    content: str
    score: float
    position: int


class RetrievalResult(SearchHit):
    """A search hit tagged with the source it was found in. Never persisted."""

    source_id: int


class RetrievalConfig(BaseModel):
    """Tuning knobs of the retrieval orchestrator.

    The defaults were chosen empirically for jina-embeddings-v4, whose cosine
    scores for relevant passages are typically well below 0.7.

    Attributes:
        per_source_top_k:      Hits requested from each source.
        top_n:                 Hits kept after merging all sources.
        similarity_threshold:  Minimum cosine score of a kept hit.
    """

    per_source_top_k: int = 2
    top_n: int = 3
    similarity_threshold: float = 0.30

    @classmethod
    def from_env(cls, helper_config: HelperConfig) -> "RetrievalConfig":
        defaults = cls()
        return cls(
            per_source_top_k=int(helper_config.get_number_val("RETRIEVAL_PER_SOURCE_TOP_K", default=defaults.per_source_top_k)),
            top_n=int(helper_config.get_number_val("RETRIEVAL_TOP_N", default=defaults.top_n)),
            similarity_threshold=float(helper_config.get_number_val("RETRIEVAL_SIMILARITY_THRESHOLD", default=defaults.similarity_threshold)),
        )
