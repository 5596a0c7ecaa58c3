from pydantic import BaseModel, Field

from shared.models.chat import ChatMessage
from shared.models.source import SourceType


class ChatCompletionRequest(BaseModel):
    user_id: int
    messages: list[ChatMessage] = Field(min_length=1)
    session_id: int | None = None


class ChatTestRequest(BaseModel):
    user_id: int
    messages: list[ChatMessage] = Field(min_length=1)


class AddSourceRequest(BaseModel):
    session_id: int
    name: str = Field(min_length=1)
    type: SourceType
    content: str = ""
    url: str | None = None
    object_key: str | None = None


class FetchUrlRequest(BaseModel):
    url: str = Field(min_length=1)
