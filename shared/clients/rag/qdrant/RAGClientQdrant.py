import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.models.config import EnvConfig
from shared.models.retrieval import SearchHit


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="knowledge_chunks", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="knowledge_chunks"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self.get_collection_name()}"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self.get_collection_name()}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self.get_collection_name()}/points/search"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self.get_collection_name()}/points/delete"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self.get_collection_name()}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_source_filter(self, source_id: int) -> dict:
        return {"must": [{"key": "sourceId", "match": {"value": source_id}}]}

    def get_create_collection_payload(self) -> dict:
        return {"vectors": {"size": self.vector_size, "distance": self.distance}}

    def get_search_payload(self, query_vector: list[float], filter: dict, limit: int) -> dict:
        return {
            "vector": query_vector,
            "limit": limit,
            "filter": filter,
            "with_payload": True,
        }

    def get_count_payload(self, filter: dict) -> dict:
        return {"filter": filter, "exact": True}

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for hit in raw_response.get("result") or []:
            payload = hit.get("payload") or {}
            hits.append(SearchHit(
                content=str(payload.get("content", "")),
                score=float(hit.get("score", 0.0)),
                position=int(payload.get("position", 0)),
            ))
        return hits

    def extract_count(self, raw_response: dict) -> int:
        return int((raw_response.get("result") or {}).get("count", 0))

    def is_collection_conflict(self, response: httpx.Response) -> bool:
        # Qdrant answers 409, older releases 400, with "already exists" in the status error
        if response.status_code == 409:
            return True
        return response.status_code == 400 and "already exists" in response.text
