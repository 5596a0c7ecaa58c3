from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from shared.clients.ClientErrors import CompletionError
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import CompletionSettings


class LLMClientInterface(ClientInterface):
    error_class = CompletionError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=self._get_default_chat_model())

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    def _get_default_timeout(self) -> float:
        # first tokens of long answers can take a while
        return 120.0

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        """Returns the model used when neither LLM_CHAT_MODEL nor the caller's settings name one."""
        pass

    def get_default_api_key(self) -> str:
        """Returns the API key configured for the backend, "" if none."""
        return ""

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict], model: str, stream: bool) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).
            model (str): The model to use.
            stream (bool): Request a server-sent-events stream.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    def _get_settings_headers(self, settings: CompletionSettings | None) -> dict:
        if settings and settings.api_key:
            return {"Authorization": f"Bearer {settings.api_key}"}
        return {}

    def _resolve_model(self, settings: CompletionSettings | None) -> str:
        return (settings.model if settings and settings.model else None) or self.chat_model

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw (non-streaming) chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.
        """
        pass

    @abstractmethod
    def extract_stream_delta(self, chunk_data: dict) -> str | None:
        """Extract the incremental content of one parsed stream chunk.

        Args:
            chunk_data (dict): The JSON object of one "data:" line.

        Returns:
            str | None: The content delta, None if the chunk carries none.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict], settings: CompletionSettings | None = None) -> str:
        """Send a non-streaming chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.
            settings (CompletionSettings | None): Caller's key, URL and model overrides.

        Returns:
            str: The assistant reply text.

        Raises:
            CompletionError: If the request fails; kind reflects 401 / 429 / other.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            url=settings.api_url if settings else None,
            json=self.get_chat_payload(messages, self._resolve_model(settings), stream=False),
            additional_headers=self._get_settings_headers(settings),
        )
        if not response.is_success:
            self.logging.error("Chat request failed: status %d, body: %s", response.status_code, response.text[:200])
            raise CompletionError.from_status(response.status_code, response.text)
        try:
            return self.extract_chat_response(response.json())
        except ValueError as exc:
            raise CompletionError(f"Chat response could not be parsed: {exc}") from exc

    @asynccontextmanager
    async def do_stream_chat(self, messages: list[dict], settings: CompletionSettings | None = None) -> AsyncIterator[httpx.Response]:
        """Open a streaming chat/completion request.

        The caller checks the status and reads the SSE body; leaving the context
        closes the upstream stream.

        Args:
            messages (list[dict]): OpenAI-format messages.
            settings (CompletionSettings | None): Caller's key, URL and model overrides.

        Yields:
            httpx.Response: The unread streaming response.
        """
        model = self._resolve_model(settings)
        self.logging.info("Opening completion stream: model=%s, messages=%d", model, len(messages))
        async with self.do_stream_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            url=settings.api_url if settings else None,
            json=self.get_chat_payload(messages, model, stream=True),
            additional_headers=self._get_settings_headers(settings),
        ) as response:
            yield response
