from collections import defaultdict

from shared.models.chat import ChatMessage
from shared.repositories.ChatMessageRepositoryInterface import ChatMessageRepositoryInterface


class ChatMessageRepositoryMemory(ChatMessageRepositoryInterface):
    """Process-local chat history, for development and tests."""

    def __init__(self) -> None:
        self._messages: dict[int, list[ChatMessage]] = defaultdict(list)

    async def count_messages(self, session_id: int) -> int:
        return len(self._messages.get(session_id, []))

    async def add_messages(self, session_id: int, messages: list[ChatMessage]) -> None:
        self._messages[session_id].extend(m.model_copy() for m in messages)

    async def list_messages(self, session_id: int) -> list[ChatMessage]:
        return [m.model_copy() for m in self._messages.get(session_id, [])]
