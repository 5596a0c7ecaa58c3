from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from shared.clients.ClientErrors import CompletionError
from server.dependencies.auth import verify_api_key
from server.models.requests import ChatCompletionRequest, ChatTestRequest
from server.models.responses import ChatTestResponse
from services.chat.ChatService import SettingsNotConfiguredError

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # disable proxy buffering (nginx)
    "X-Accel-Buffering": "no",
}


@router.post("/completions")
async def stream_completions(
    request: Request,
    body: ChatCompletionRequest,
    _: None = Depends(verify_api_key),
) -> StreamingResponse:
    """Stream a chat completion as server-sent events.

    The stream carries connected, content, done and error events. When the
    client disconnects the response task is cancelled, which closes the
    upstream stream; the turn is then not persisted.

    Args:
        request (Request): FastAPI request (provides app.state.chat_service).
        body (ChatCompletionRequest): The conversation and optional session id.
        _ (None): Auth dependency result (unused).

    Returns:
        StreamingResponse: A text/event-stream response.
    """
    chat_service = request.app.state.chat_service
    try:
        events = await chat_service.stream_completion(body.user_id, body.messages, body.session_id)
    except SettingsNotConfiguredError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    async def event_stream():
        async with aclosing(events):
            async for event in events:
                yield event.to_sse()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/test")
async def test_completion(
    request: Request,
    body: ChatTestRequest,
    _: None = Depends(verify_api_key),
) -> ChatTestResponse:
    """Run a non-streaming completion, e.g. to check the user's settings."""
    chat_service = request.app.state.chat_service
    try:
        content = await chat_service.complete(body.user_id, body.messages)
    except SettingsNotConfiguredError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except CompletionError as exc:
        status_code = 429 if exc.kind == CompletionError.KIND_RATE_LIMIT else 502
        raise HTTPException(status_code=status_code, detail=exc.user_message)
    return ChatTestResponse(content=content)
