import asyncio
from contextlib import aclosing
from typing import AsyncIterator

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatEvent, ChatMessage, CompletionSettings
from shared.repositories.ChatMessageRepositoryInterface import ChatMessageRepositoryInterface
from shared.repositories.SettingsRepositoryInterface import SettingsRepositoryInterface
from services.chat.StreamRelay import StreamRelay
from services.retrieval.RetrievalService import RetrievalService


class SettingsNotConfiguredError(Exception):
    """The user has no usable completion settings (no API key)."""


class ChatService:
    """Chat entry point: resolves the caller's settings, grounds the messages
    in the session's sources and relays the completion."""

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        retrieval_service: RetrievalService,
        settings_repository: SettingsRepositoryInterface,
        message_repository: ChatMessageRepositoryInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._llm_client = llm_client
        self._retrieval_service = retrieval_service
        self._settings_repository = settings_repository
        self._message_repository = message_repository

    async def get_settings(self, user_id: int) -> CompletionSettings:
        """Return the user's completion settings.

        Raises:
            SettingsNotConfiguredError: If no API key is configured for the user.
        """
        settings = await self._settings_repository.get_completion_settings(user_id)
        if settings is None or not settings.api_key:
            raise SettingsNotConfiguredError("Please configure an API key in your settings first.")
        return settings

    async def stream_completion(
        self,
        user_id: int,
        messages: list[ChatMessage],
        session_id: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ChatEvent]:
        """Stream one chat turn.

        Settings are resolved before the first event so a missing API key can
        still be answered with a plain HTTP error.

        Args:
            user_id (int): The calling user.
            messages (list[ChatMessage]): The conversation as sent by the client.
            session_id (int | None): Session for retrieval and persistence.
            cancel_event (asyncio.Event | None): Set to abort the turn.

        Returns:
            AsyncIterator[ChatEvent]: The turn's events.

        Raises:
            SettingsNotConfiguredError: If the user has no API key.
        """
        settings = await self.get_settings(user_id)
        return self._stream(settings, messages, session_id, cancel_event)

    async def _stream(
        self,
        settings: CompletionSettings,
        messages: list[ChatMessage],
        session_id: int | None,
        cancel_event: asyncio.Event | None,
    ) -> AsyncIterator[ChatEvent]:
        # retrieval completes before the upstream call is opened
        upstream_messages = await self._retrieval_service.augment_messages(messages, session_id)
        relay = StreamRelay(self._helper_config, self._llm_client, self._message_repository)
        async with aclosing(relay.stream(upstream_messages, settings, messages, session_id, cancel_event)) as events:
            async for event in events:
                yield event

    async def complete(self, user_id: int, messages: list[ChatMessage]) -> str:
        """Run a non-streaming completion, without retrieval or persistence.

        Raises:
            SettingsNotConfiguredError: If the user has no API key.
            CompletionError: If the completion backend fails.
        """
        settings = await self.get_settings(user_id)
        return await self._llm_client.do_chat([m.to_upstream() for m in messages], settings)
