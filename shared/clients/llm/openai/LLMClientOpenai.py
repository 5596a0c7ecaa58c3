from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    """OpenAI-compatible chat completion backend (OpenAI, DeepSeek, ...)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.deepseek.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_chat_model(self) -> str:
        return "deepseek-chat"

    def get_default_api_key(self) -> str:
        return self._api_key

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.deepseek.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], model: str, stream: bool) -> dict:
        """Build the OpenAI chat completion request body.

        Args:
            messages (list[dict]): OpenAI-format messages.
            model (str): The model to use.
            stream (bool): Request a server-sent-events stream.

        Returns:
            dict: {"model": "...", "messages": [...], "stream": bool}
        """
        return {"model": model, "messages": messages, "stream": stream}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a /chat/completions response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ValueError: If the response does not contain a message.
        """
        choices = response_data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if content is None:
            raise ValueError(
                "Chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content

    def extract_stream_delta(self, chunk_data: dict) -> str | None:
        choices = chunk_data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None
