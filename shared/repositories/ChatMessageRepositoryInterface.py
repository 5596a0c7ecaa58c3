from abc import ABC, abstractmethod

from shared.models.chat import ChatMessage


class ChatMessageRepositoryInterface(ABC):
    """Storage of the persisted chat history of a session."""

    @abstractmethod
    async def count_messages(self, session_id: int) -> int:
        pass

    @abstractmethod
    async def add_messages(self, session_id: int, messages: list[ChatMessage]) -> None:
        """Append messages to the session history, in order."""
        pass

    @abstractmethod
    async def list_messages(self, session_id: int) -> list[ChatMessage]:
        pass
