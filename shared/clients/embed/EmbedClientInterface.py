from abc import abstractmethod

from shared.clients.ClientErrors import EmbeddingError
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    error_class = EmbeddingError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())
        self.embed_task = helper_config.get_string_val(f"{self.get_client_type().upper()}_TASK", default="text-matching")
        self.embed_dimensions = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DIMENSIONS", default=1024))
        self.embed_batch_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_BATCH_SIZE", default=100))
        if self.embed_batch_size <= 0:
            raise ValueError(f"{self.get_client_type().upper()}_BATCH_SIZE must be positive, got {self.embed_batch_size}.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """Returns the model identifier used when EMBED_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/v1/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed, at most embed_batch_size of them.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            EmbeddingError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, text: str) -> list[float]:
        """Embed a single text (e.g. a chat query).

        Args:
            text (str): The text to embed.

        Returns:
            list[float]: The embedding vector.

        Raises:
            EmbeddingError: If the backend call fails.
        """
        vectors = await self.do_embed_batch([text])
        return vectors[0]

    async def do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, splitting them into sequential requests of at most
        embed_batch_size inputs and concatenating the results in input order.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: One vector per input text, parallel to texts.

        Raises:
            EmbeddingError: If any batch fails or returns the wrong number of vectors.
        """
        vectors: list[list[float]] = []
        total_batches = (len(texts) + self.embed_batch_size - 1) // self.embed_batch_size
        for batch_no, start in enumerate(range(0, len(texts), self.embed_batch_size), start=1):
            batch = texts[start: start + self.embed_batch_size]
            batch_vectors = await self._do_embed_request(batch)
            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding backend returned {len(batch_vectors)} vectors for {len(batch)} inputs."
                )
            vectors.extend(batch_vectors)
            self.logging.debug("Embedded batch %d of %d (%d texts).", batch_no, total_batches, len(batch))
        return vectors

    async def _do_embed_request(self, texts: list[str]) -> list[list[float]]:
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=self.get_embed_payload(texts))
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise EmbeddingError("Embedding request failed with status %d." % response.status_code, status_code=response.status_code)
        try:
            return self.extract_embeddings_from_response(response.json())
        except ValueError as exc:
            raise EmbeddingError(f"Embedding response could not be parsed: {exc}") from exc
