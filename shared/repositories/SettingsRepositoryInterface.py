from abc import ABC, abstractmethod

from shared.models.chat import CompletionSettings


class SettingsRepositoryInterface(ABC):
    """Per-user completion settings. Credentials are returned already decrypted."""

    @abstractmethod
    async def get_completion_settings(self, user_id: int) -> CompletionSettings | None:
        """Return the user's settings, None if the user has not configured an API key."""
        pass
