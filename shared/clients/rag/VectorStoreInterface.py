from abc import ABC, abstractmethod

from shared.models.retrieval import SearchHit


class VectorStoreInterface(ABC):
    """The four vector store operations the RAG pipeline depends on.

    Implemented over REST by RAGClientInterface subclasses; any other store
    (or an in-memory fake) can implement it directly. Points are always
    scoped by their source id, so independent sources never see each other's
    data.
    """

    @abstractmethod
    async def ensure_collection(self) -> None:
        """Create the collection if it does not exist yet. Idempotent and safe
        under concurrent first use.

        Raises:
            VectorStoreError: If existence cannot be checked or creation fails.
        """
        pass

    @abstractmethod
    async def upsert(self, source_id: int, chunks: list[str], vectors: list[list[float]]) -> list[str]:
        """Store one point per chunk and wait until the store acknowledges the write.

        Args:
            source_id (int): Owning source of all chunks.
            chunks (list[str]): Chunk texts in position order.
            vectors (list[list[float]]): One embedding per chunk.

        Returns:
            list[str]: The generated point ids (empty when there are no chunks).

        Raises:
            ValueError: If chunks and vectors differ in length.
            VectorStoreError: If the write fails.
        """
        pass

    @abstractmethod
    async def search(self, query_vector: list[float], source_id: int, top_k: int) -> list[SearchHit]:
        """Return up to top_k points of the given source, by descending similarity.

        Raises:
            VectorStoreError: If the search fails.
        """
        pass

    @abstractmethod
    async def delete_by_source(self, source_id: int) -> None:
        """Delete every point of the source and wait for acknowledgement.

        Raises:
            VectorStoreError: If the delete fails.
        """
        pass

    @abstractmethod
    async def count_by_source(self, source_id: int) -> int:
        """Return the number of stored points of the source.

        Raises:
            VectorStoreError: If the count fails.
        """
        pass
