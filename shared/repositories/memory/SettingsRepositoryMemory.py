from shared.models.chat import CompletionSettings
from shared.repositories.SettingsRepositoryInterface import SettingsRepositoryInterface


class SettingsRepositoryMemory(SettingsRepositoryInterface):
    """Process-local user settings with an optional fallback for unknown users."""

    def __init__(self, default: CompletionSettings | None = None) -> None:
        self._settings: dict[int, CompletionSettings] = {}
        self._default = default

    def set_completion_settings(self, user_id: int, settings: CompletionSettings) -> None:
        self._settings[user_id] = settings

    async def get_completion_settings(self, user_id: int) -> CompletionSettings | None:
        return self._settings.get(user_id, self._default)
