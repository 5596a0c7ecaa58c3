from abc import abstractmethod
from typing import Any
import uuid

import httpx
from shared.clients.ClientErrors import VectorStoreError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.VectorStoreInterface import VectorStoreInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.retrieval import SearchHit

from shared.helper.HelperConfig import HelperConfig

UPSERT_BATCH_SIZE = 100  # max points per upsert call


class RAGClientInterface(ClientInterface, VectorStoreInterface):
    error_class = VectorStoreError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # collection config
        self.vector_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=1024))
        self.distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self._collection_ready = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """Name of the collection holding the chunk vectors."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        """
        Returns the endpoint path used for both the existence check (GET) and
        creation (PUT) of the collection.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path for points requests (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/count")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_source_filter(self, source_id: int) -> dict:
        """
        Returns the backend-specific filter matching all points of one source.

        Args:
            source_id (int): The source whose points should match.

        Returns:
            dict: The filter object.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self) -> dict:
        """Builds the request body that creates the collection with vector_size and distance."""
        pass

    @abstractmethod
    def get_search_payload(self, query_vector: list[float], filter: dict, limit: int) -> dict:
        """
        Builds the request body for a filtered similarity search.

        Args:
            query_vector (list[float]): The query embedding.
            filter (dict): Hard filter restricting the candidate points.
            limit (int): Maximum number of hits.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict) -> dict:
        """Builds the backend-specific request payload for a point count.

        Args:
            filter (dict): Filter applied before counting.

        Returns:
            dict: The payload for the count request.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the backend-specific request payload for a filter-based delete.

        Args:
            filter (dict): The filter that identifies which points to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        """
        Extracts the hits from a raw search response, keeping backend order
        (descending score).

        Args:
            raw_response (dict): The raw JSON response from the search endpoint.

        Returns:
            list[SearchHit]: The parsed hits.
        """
        pass

    @abstractmethod
    def extract_count(self, raw_response: dict) -> int:
        """Extracts the point count from a raw count response."""
        pass

    @abstractmethod
    def is_collection_conflict(self, response: httpx.Response) -> bool:
        """
        Returns True if a failed create-collection response only means that
        the collection already exists (e.g. created concurrently).
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.

        Raises:
            VectorStoreError: On any status other than 200 or 404.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection())
        if resp.status_code == 404:
            return False
        if not resp.is_success:
            raise VectorStoreError(
                f"Collection existence check failed with status {resp.status_code}",
                status_code=resp.status_code,
            )
        return True

    async def do_create_collection(self) -> httpx.Response:
        """Create the collection in the rag backend.

        Returns:
            httpx.Response: The response from the create collection request (status unchecked).
        """
        return await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(),
            endpoint=self._get_endpoint_collection())

    async def ensure_collection(self) -> None:
        if self._collection_ready:
            return
        if await self.do_existence_check():
            self.logging.debug("RAG collection '%s' on %s already exists.", self.get_collection_name(), self.get_engine_name())
            self._collection_ready = True
            return

        resp = await self.do_create_collection()
        if resp.is_success:
            self.logging.info("Created RAG collection '%s' on %s (size=%d, distance=%s).", self.get_collection_name(), self.get_engine_name(), self.vector_size, self.distance)
        elif self.is_collection_conflict(resp):
            # lost the check-then-create race against another caller
            self.logging.debug("RAG collection was created concurrently on %s.", self.get_engine_name())
        else:
            self.logging.error("Creating RAG collection failed with status %d: %s", resp.status_code, resp.text[:500])
            raise VectorStoreError(
                f"Creating collection failed with status {resp.status_code}",
                status_code=resp.status_code,
            )
        self._collection_ready = True

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> None:
        """Upsert points into the collection and wait for the write to be applied.

        Args:
            points (list[dict[str, Any]]): The list of points to upsert.
        """
        await self.do_request(
            method="PUT",
            json={"points": points},
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(),
            raise_on_error=True,
        )

    async def upsert(self, source_id: int, chunks: list[str], vectors: list[list[float]]) -> list[str]:
        if len(chunks) != len(vectors):
            raise ValueError(f"Got {len(chunks)} chunks but {len(vectors)} vectors for source {source_id}.")
        if not chunks:
            self.logging.warning("No chunks to upsert for source %s.", source_id)
            return []

        await self.ensure_collection()
        points: list[dict] = []
        for position, (chunk, vector) in enumerate(zip(chunks, vectors)):
            payload = VectorPoint(source_id=source_id, content=chunk, position=position)
            points.append({
                "id": str(uuid.uuid4()),
                "vector": vector,
                "payload": payload.model_dump(by_alias=True),
            })

        # upsert in batches to avoid oversized requests
        for batch_start in range(0, len(points), UPSERT_BATCH_SIZE):
            await self.do_upsert_points(points[batch_start: batch_start + UPSERT_BATCH_SIZE])

        self.logging.info("Upserted %d points for source %s into %s.", len(points), source_id, self.get_engine_name())
        return [point["id"] for point in points]

    async def search(self, query_vector: list[float], source_id: int, top_k: int) -> list[SearchHit]:
        await self.ensure_collection()
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(query_vector, self.get_source_filter(source_id), top_k),
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        hits = self.extract_search_hits(resp.json())
        self.logging.debug("Found %d similar chunks for source %s.", len(hits), source_id)
        return hits[:top_k]

    async def delete_by_source(self, source_id: int) -> None:
        await self.do_delete_points_by_filter(self.get_source_filter(source_id))
        self.logging.info("Deleted all vectors for source %s.", source_id)

    async def do_delete_points_by_filter(self, filter: dict) -> None:
        """Deletes all points matching the given filter and waits for acknowledgement,
        so a following re-add of the same source cannot race with the delete.

        Args:
            filter (dict): The filter that identifies which points to delete.
        """
        await self.ensure_collection()
        await self.do_request(
            method="POST",
            json=self.get_delete_payload(filter),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )

    async def count_by_source(self, source_id: int) -> int:
        return await self.do_count(self.get_source_filter(source_id))

    async def do_count(self, filter: dict) -> int:
        """Count the number of points matching the given filter.

        Args:
            filter (dict): Filter applied before counting.

        Returns:
            int: Number of matching points.
        """
        await self.ensure_collection()
        resp = await self.do_request(
            method="POST",
            json=self.get_count_payload(filter),
            endpoint=self._get_endpoint_count(),
            raise_on_error=True,
        )
        return self.extract_count(resp.json())
