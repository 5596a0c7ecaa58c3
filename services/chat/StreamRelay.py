"""Streaming completion relay.

Forwards one chat turn to the completion backend and re-emits the upstream
server-sent events as ChatEvents, persisting the turn once it completes.

State machine of a turn:
  CONNECTING : connected event sent, upstream stream being opened.
  STREAMING  : upstream answered 2xx, content is relayed.
  DONE       : [DONE] or end of body; turn persisted, done event sent.
  ERROR      : upstream status or transport failure; error event sent.
  ABORTED    : cancelled by the client; nothing further is sent or stored.
"""

import asyncio
import time
from enum import Enum
from typing import AsyncIterator

import httpx
from shared.clients.ClientErrors import CompletionError
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import (
    ChatEvent,
    ChatMessage,
    ChatRole,
    CompletionSettings,
    ConnectedEvent,
    DoneEvent,
    ErrorEvent,
)
from shared.repositories.ChatMessageRepositoryInterface import ChatMessageRepositoryInterface
from services.chat.SSELineParser import SSELineParser
from services.retrieval.RetrievalService import last_user_message


class RelayState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"


class _Aborted(Exception):
    pass


class StreamRelay:
    """Relays a single chat turn. Create one instance per turn."""

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        message_repository: ChatMessageRepositoryInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._message_repository = message_repository
        self.state = RelayState.CONNECTING
        self.reply = ""

    ##########################################
    ############### STREAM ###################
    ##########################################

    async def stream(
        self,
        messages: list[ChatMessage],
        settings: CompletionSettings,
        history: list[ChatMessage],
        session_id: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ChatEvent]:
        """Run the turn and yield its events.

        Args:
            messages (list[ChatMessage]): Messages sent upstream (possibly with
                injected context).
            settings (CompletionSettings): The caller's completion settings.
            history (list[ChatMessage]): The conversation as the client sent it,
                used to decide whether the turn still needs to be stored.
            session_id (int | None): Session the turn is persisted to, if any.
            cancel_event (asyncio.Event | None): Set by the caller to abort the turn.

        Yields:
            ChatEvent: connected, then content*, then done or error. An aborted
                turn just stops.
        """
        cancel_event = cancel_event or asyncio.Event()
        self.state = RelayState.CONNECTING
        parts: list[str] = []

        try:
            self._check_cancelled(cancel_event)
            yield ConnectedEvent()

            async with self._llm_client.do_stream_chat([m.to_upstream() for m in messages], settings) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise CompletionError.from_status(response.status_code, body)

                self.state = RelayState.STREAMING
                parser = SSELineParser(self._llm_client.extract_stream_delta, self.logging)
                chunks = response.aiter_bytes()
                finished = False
                while not finished:
                    self._check_cancelled(cancel_event)
                    try:
                        data = await anext(chunks)
                    except StopAsyncIteration:
                        break
                    for event in parser.feed(data):
                        self._check_cancelled(cancel_event)
                        if isinstance(event, DoneEvent):
                            finished = True
                            break
                        parts.append(event.content)
                        yield event

            self._check_cancelled(cancel_event)
        except _Aborted:
            self._abort(len(parts))
            return
        except (asyncio.CancelledError, GeneratorExit):
            # task cancelled on disconnect, or the consumer closed the stream
            self._abort(len(parts))
            raise
        except CompletionError as exc:
            self.state = RelayState.ERROR
            self.logging.error("Completion stream failed: %s", exc)
            yield ErrorEvent(message=exc.user_message)
            return
        except httpx.HTTPError as exc:
            self.state = RelayState.ERROR
            self.logging.error("Completion stream transport failure: %s", exc)
            yield ErrorEvent(message=CompletionError(str(exc)).user_message)
            return

        self.state = RelayState.DONE
        self.reply = "".join(parts)
        self.logging.info("Completion stream finished: %d chunks, %d chars.", len(parts), len(self.reply))
        await self.persist_turn(history, self.reply, session_id)
        yield DoneEvent()

    def _check_cancelled(self, cancel_event: asyncio.Event) -> None:
        if cancel_event.is_set():
            raise _Aborted()

    def _abort(self, chunk_count: int) -> None:
        self.state = RelayState.ABORTED
        self.logging.info("Client disconnected, completion stream aborted after %d chunks.", chunk_count)

    ##########################################
    ############# PERSISTENCE ################
    ##########################################

    async def persist_turn(self, history: list[ChatMessage], reply: str, session_id: int | None) -> bool:
        """Store the last user message and the reply, unless already stored.

        The turn is new when the client-visible user and assistant messages
        outnumber the stored ones (or nothing is stored yet). Failures are
        logged only; the stream has already succeeded.

        Returns:
            bool: True if the turn was written.
        """
        question = last_user_message(history)
        if session_id is None or question is None:
            return False
        if not reply:
            self.logging.warning("Empty reply for session %s, not persisting the turn.", session_id)
            return False

        try:
            stored = await self._message_repository.count_messages(session_id)
            visible = sum(1 for m in history if m.role in (ChatRole.USER, ChatRole.ASSISTANT))
            if visible <= stored and stored != 0:
                self.logging.info("Skipped saving duplicate messages to session %s", session_id)
                return False

            now = int(time.time() * 1000)
            await self._message_repository.add_messages(session_id, [
                ChatMessage(role=ChatRole.USER, content=question.content, timestamp=now),
                ChatMessage(role=ChatRole.ASSISTANT, content=reply, timestamp=now + 1),
            ])
            self.logging.info("Saved messages to session %s (total: %d)", session_id, stored + 2)
            return True
        except Exception as exc:
            self.logging.error("Failed to save messages to session %s: %s", session_id, exc)
            return False
