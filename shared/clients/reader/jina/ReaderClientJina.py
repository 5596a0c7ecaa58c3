from shared.clients.reader.ReaderClientInterface import ReaderClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ReaderClientJina(ReaderClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://r.jina.ai", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Jina"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://r.jina.ai"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # the reader also works anonymously, with a lower rate limit
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/"

    def get_endpoint_read(self, url: str) -> str:
        # Jina Reader takes the target URL as the path: https://r.jina.ai/https://example.com
        return f"/{url}"

    def _get_read_headers(self) -> dict:
        return {"Accept": "text/plain", "X-Return-Format": "markdown"}
