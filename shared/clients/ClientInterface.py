from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from httpx._types import QueryParamTypes, RequestContent
from shared.clients.ClientErrors import ClientRequestError
from shared.models.config import EnvConfig

from shared.helper.HelperConfig import HelperConfig


class ClientInterface(ABC):
    """Base of every backend client: env configuration, an httpx.AsyncClient
    with explicit boot/close, and request helpers that raise error_class.

    Settings are read as {TYPE}_{ENGINE}_{KEY} (e.g. RAG_QDRANT_BASE_URL),
    the timeout as {TYPE}_TIMEOUT. A client is unusable until boot().
    """

    # error type raised by do_request; narrowed by the client families
    error_class: type[ClientRequestError] = ClientRequestError

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=self._get_default_timeout())
        self._client: httpx.AsyncClient | None = None
        # fail at construction, not on the first request
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """Read every setting from _get_required_config().

        Raises:
            ValueError: If a mandatory setting is missing or a value has the wrong type.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """Client family, e.g. "rag"; first part of every env key."""
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """Backend name, e.g. "Qdrant"; second part of the engine's env keys."""
        pass

    def _get_default_timeout(self) -> float:
        """Request timeout in seconds when {TYPE}_TIMEOUT is not set."""
        return 30.0

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Settings checked by validate_full_configuration()."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Read one engine setting.

        Args:
            raw_key (str): Key without prefix, e.g. "BASE_URL".
            default (Any): Fallback; None makes the setting mandatory.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: If the setting is missing/invalid or val_type is unknown.
        """
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for '{raw_key}' in {self.get_client_type()} client '{self.get_engine_name()}'.")
        return readers[val_type](self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Auth header sent with every request; {} when no key is configured."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """Backend base URL, e.g. "http://localhost:6333"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Path probed by do_healthcheck(), e.g. "/healthz"."""
        pass

    def _build_url(self, endpoint: str, url: str | None = None) -> str:
        """Join base URL and endpoint, unless an absolute URL overrides both."""
        if url:
            return url
        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""
        return f"{self._get_base_url().rstrip('/')}{endpoint}"

    def _build_headers(self, additional_headers: dict | None) -> dict:
        # httpx sets Content-Type for json bodies; raw content needs it via additional_headers
        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)
        return headers

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the client backend is healthy by sending a test request.

        Returns:
            httpx.Response: The response from the healthcheck request.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialise the HTTP client.

        Args:
            transport: Optional custom transport (e.g. httpx.MockTransport in tests).
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        """Close the HTTP client and any other resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self.is_booted():
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")
        return self._client

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        url: str | None = None,
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the client backend.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / stream body.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional).
            url: Absolute URL that replaces base URL + endpoint.
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise when the response status is not 2xx.

        Returns:
            The raw httpx.Response.

        Raises:
            RuntimeError: If the client is not booted.
            ClientRequestError: (the client's error_class) on transport failure, or on a
                non-2xx status when raise_on_error is True.
        """
        client = self._require_client()
        kwargs: dict = {
            "url": self._build_url(endpoint, url),
            "headers": self._build_headers(additional_headers),
            "timeout": self.timeout,
            "params": params,
        }
        # add exactly one body argument
        if content is not None:
            kwargs["content"] = content
        elif json is not None:
            kwargs["json"] = json

        try:
            response = await client.request(method, **kwargs)
        except httpx.TimeoutException as exc:
            self.logging.error("Request to %s timed out after %ss", kwargs["url"], self.timeout)
            raise self.error_class(f"Request to {kwargs['url']} timed out") from exc
        except httpx.HTTPError as exc:
            self.logging.error("Request to %s failed: %s", kwargs["url"], exc)
            raise self.error_class(f"Request to {kwargs['url']} failed: {exc}") from exc

        if raise_on_error and not response.is_success:
            self.logging.error(
                "Request to %s failed with status %d: %s",
                kwargs["url"],
                response.status_code,
                response.text[:500],
            )
            raise self.error_class(
                f"Request to {kwargs['url']} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        return response

    @asynccontextmanager
    async def do_stream_request(
        self,
        method: str = "POST",
        json: dict | None = None,
        endpoint: str = "",
        url: str | None = None,
        additional_headers: dict | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming HTTP request; the body is read by the caller.

        Leaving the context (normally, on error or on cancellation) closes the
        response and with it the upstream connection.

        Yields:
            httpx.Response: The response with an unread body. Status is not checked.
        """
        client = self._require_client()
        async with client.stream(
            method,
            self._build_url(endpoint, url),
            json=json,
            headers=self._build_headers(additional_headers),
            timeout=self.timeout,
        ) as response:
            yield response
