from shared.clients.ClientErrors import EmbeddingError
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientJina(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.jina.ai", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Jina"

    def _get_default_model(self) -> str:
        return "jina-embeddings-v4"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.jina.ai"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/"

    def get_endpoint_embedding(self) -> str:
        return "/v1/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the Jina embedding request body.

        The task mode is shared by queries and documents so both live in the
        same similarity space.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: {"model": "...", "task": "...", "dimensions": 1024, "input": [...]}
        """
        return {
            "model": self.embed_model,
            "task": self.embed_task,
            "dimensions": self.embed_dimensions,
            "input": texts,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a Jina /v1/embeddings response.

        Format: {"data": [{"embedding": [...], "index": 0}, ...]}. Items are
        sorted by index when the backend provides it.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in input order.

        Raises:
            EmbeddingError: If the response does not contain valid embeddings.
        """
        if not isinstance(response_data, dict):
            raise EmbeddingError(f"Jina response is not a JSON object: {type(response_data).__name__}")
        data = response_data.get("data")
        if not isinstance(data, list) or not data:
            raise EmbeddingError(
                "Jina response does not contain embedding data. "
                f"Response keys: {list(response_data.keys())}"
            )
        if all(isinstance(item, dict) and "index" in item for item in data):
            data = sorted(data, key=lambda item: item["index"])
        embeddings = [item.get("embedding") if isinstance(item, dict) else None for item in data]
        if any(not embedding for embedding in embeddings):
            raise EmbeddingError("Jina response contains an empty embedding.")
        return embeddings
