"""Text chunking for RAG ingestion.

Splits raw document text into overlapping, paragraph-aware segments sized
per content type. All functions are pure and deterministic.
"""

import re

from pydantic import BaseModel, model_validator

from shared.models.source import SourceType

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"[。！？.!?]+")
_PARAGRAPH_SEPARATOR = "\n\n"


class ChunkOptions(BaseModel):
    """Chunk size and overlap, both in characters.

    Raises:
        ValueError: If chunk_size is not positive, overlap is negative, or
            overlap >= chunk_size (the window would never advance).
    """

    chunk_size: int = 500
    overlap: int = 50

    @model_validator(mode="after")
    def _check_progress(self) -> "ChunkOptions":
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0:
            raise ValueError(f"overlap must not be negative, got {self.overlap}")
        if self.overlap >= self.chunk_size:
            raise ValueError(f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})")
        return self


# chunk policy per content type: web and PDF extractions carry more
# boilerplate, so they get larger windows (and websites a larger overlap)
CHUNK_POLICIES: dict[SourceType, ChunkOptions] = {
    SourceType.PDF: ChunkOptions(chunk_size=1500, overlap=100),
    SourceType.WEBSITE: ChunkOptions(chunk_size=1200, overlap=150),
    SourceType.TEXT: ChunkOptions(chunk_size=1000, overlap=100),
}


def chunk_text(text: str, options: ChunkOptions | None = None) -> list[str]:
    """Split text with a fixed-size sliding window.

    Windows of chunk_size characters start every chunk_size - overlap
    characters; each slice is stripped and empty slices are dropped.

    Args:
        text (str): The text to split.
        options (ChunkOptions | None): Window size and overlap, default 500/50.

    Returns:
        list[str]: Ordered, non-empty chunks.
    """
    options = options or ChunkOptions()
    step = options.chunk_size - options.overlap
    chunks: list[str] = []
    for start in range(0, len(text), step):
        chunk = text[start: start + options.chunk_size].strip()
        if chunk:
            chunks.append(chunk)
    return chunks


def smart_chunk(text: str, options: ChunkOptions | None = None) -> list[str]:
    """Split text on paragraph boundaries, packing paragraphs greedily.

    Paragraphs (separated by blank lines) are joined with a blank line while
    the chunk stays within chunk_size. A paragraph longer than chunk_size
    flushes the current chunk and is split on its own with chunk_text().

    Args:
        text (str): The text to split.
        options (ChunkOptions | None): Window size and overlap for oversized
            paragraphs, default 500/0.

    Returns:
        list[str]: Ordered, non-empty chunks.
    """
    options = options or ChunkOptions(chunk_size=500, overlap=0)
    paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT.split(text)]
    paragraphs = [p for p in paragraphs if p]

    chunks: list[str] = []
    current = ""
    for paragraph in paragraphs:
        if len(paragraph) > options.chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(chunk_text(paragraph, options))
            continue

        if not current:
            current = paragraph
        elif len(current) + len(paragraph) + len(_PARAGRAPH_SEPARATOR) <= options.chunk_size:
            current = f"{current}{_PARAGRAPH_SEPARATOR}{paragraph}"
        else:
            chunks.append(current)
            current = paragraph

    if current:
        chunks.append(current)
    return chunks


def chunk_by_sentence(text: str, options: ChunkOptions | None = None) -> list[str]:
    """Pack whole sentences into chunks of at most chunk_size characters.

    Sentences are split on Chinese and Latin end punctuation; the punctuation
    itself is dropped and sentences are re-joined with a space. A single
    sentence longer than chunk_size becomes its own chunk.

    Alternative strategy for callers that want sentence-bounded chunks;
    get_recommended_chunks() and therefore ingestion never select it.

    Args:
        text (str): The text to split.
        options (ChunkOptions | None): Only chunk_size is used, default 500.

    Returns:
        list[str]: Ordered, non-empty chunks.
    """
    options = options or ChunkOptions()
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text)]
    sentences = [s for s in sentences if s]

    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        if not current:
            current = sentence
        elif len(current) + len(sentence) + 1 <= options.chunk_size:
            current = f"{current} {sentence}"
        else:
            chunks.append(current)
            current = sentence
    if current:
        chunks.append(current)
    return chunks


def get_recommended_chunks(text: str, content_type: SourceType = SourceType.TEXT) -> list[str]:
    """Chunk text with the paragraph-aware strategy sized for its content type.

    Args:
        text (str): The source content.
        content_type (SourceType): Declared type of the source.

    Returns:
        list[str]: Ordered, non-empty chunks.
    """
    return smart_chunk(text, CHUNK_POLICIES[content_type])
