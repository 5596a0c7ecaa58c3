"""Typed errors raised by the HTTP clients."""


class ClientRequestError(Exception):
    """A request to a backend failed (transport error or unexpected status).

    Attributes:
        status_code: HTTP status of the failed response, None for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmbeddingError(ClientRequestError):
    """The embedding backend could not produce vectors."""


class VectorStoreError(ClientRequestError):
    """The vector store rejected or failed a collection/point operation."""


class ReaderError(ClientRequestError):
    """Fetching web content through the reader backend failed."""


class CompletionError(ClientRequestError):
    """The chat completion backend failed.

    The kind distinguishes credential problems, rate limiting and generic
    upstream failures so the caller can show a matching message.
    """

    KIND_AUTH = "auth"
    KIND_RATE_LIMIT = "rate_limit"
    KIND_UPSTREAM = "upstream"

    _USER_MESSAGES = {
        KIND_AUTH: "Invalid credentials: please check the API key in your settings.",
        KIND_RATE_LIMIT: "Rate limited by the AI service: please try again later.",
    }

    def __init__(self, message: str, status_code: int | None = None, kind: str = KIND_UPSTREAM):
        super().__init__(message, status_code=status_code)
        self.kind = kind

    @classmethod
    def from_status(cls, status_code: int, detail: str = "") -> "CompletionError":
        """Build the error for a non-success upstream status.

        Args:
            status_code (int): HTTP status returned by the completion backend.
            detail (str): Response body, used for logging only.

        Returns:
            CompletionError: The classified error.
        """
        if status_code == 401:
            kind = cls.KIND_AUTH
        elif status_code == 429:
            kind = cls.KIND_RATE_LIMIT
        else:
            kind = cls.KIND_UPSTREAM
        return cls(f"Completion request failed with status {status_code}: {detail[:200]}", status_code=status_code, kind=kind)

    @property
    def user_message(self) -> str:
        """Message safe to show to the end user."""
        if self.kind in self._USER_MESSAGES:
            return self._USER_MESSAGES[self.kind]
        if self.status_code is not None:
            return f"AI service error (status {self.status_code})."
        return "AI service request failed."
