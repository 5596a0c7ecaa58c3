"""Pydantic models for chat messages, completion settings and stream events."""

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single chat message in OpenAI format.

    timestamp is set (epoch milliseconds) on persisted messages only.
    """

    role: ChatRole
    content: str
    timestamp: int | None = None

    def to_upstream(self) -> dict:
        """Return the {"role", "content"} dict sent to completion backends."""
        return {"role": self.role.value, "content": self.content}


class CompletionSettings(BaseModel):
    """Per-caller completion settings, already decrypted by the settings owner.

    Attributes:
        api_key:  Bearer token for the completion backend.
        api_url:  Full chat completion URL; None uses the client's configured base URL.
        model:    Model identifier; None uses the client's configured chat model.
    """

    api_key: str
    api_url: str | None = None
    model: str | None = None


##########################################
############# STREAM EVENTS ##############
##########################################

class _ChatEventBase(BaseModel):
    def to_sse(self) -> str:
        """Serialise the event as one server-sent-events frame."""
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"


class ConnectedEvent(_ChatEventBase):
    type: Literal["connected"] = "connected"


class ContentEvent(_ChatEventBase):
    type: Literal["content"] = "content"
    content: str


class DoneEvent(_ChatEventBase):
    type: Literal["done"] = "done"


class ErrorEvent(_ChatEventBase):
    type: Literal["error"] = "error"
    message: str


ChatEvent = Union[ConnectedEvent, ContentEvent, DoneEvent, ErrorEvent]
