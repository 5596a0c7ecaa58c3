"""FastAPI application entry point for the knowledge chat backend."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientErrors import ClientRequestError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.reader.ReaderClientManager import ReaderClientManager
from shared.models.chat import CompletionSettings
from shared.repositories.memory.ChatMessageRepositoryMemory import ChatMessageRepositoryMemory
from shared.repositories.memory.SettingsRepositoryMemory import SettingsRepositoryMemory
from shared.repositories.memory.SourceRepositoryMemory import SourceRepositoryMemory
from services.chat.ChatService import ChatService
from services.ingestion.IngestionService import IngestionService
from services.retrieval.RetrievalService import RetrievalService
from server.routers.ChatRouter import router as chat_router
from server.routers.SourceRouter import router as source_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def build_rag_clients(helper_config: HelperConfig) -> tuple[EmbedClientInterface | None, RAGClientInterface | None]:
    """Instantiate the embed and vector store clients.

    RAG is optional: if either client is not configured both are disabled and
    chat runs without retrieval.
    """
    try:
        embed_client = EmbedClientManager(helper_config=helper_config).get_client()
        rag_client = RAGClientManager(helper_config=helper_config).get_client()
    except ValueError as exc:
        logging.warning("RAG disabled, embedding or vector store not configured: %s", exc, color="yellow")
        return None, None
    return embed_client, rag_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    embed_client, rag_client = build_rag_clients(app.state.helper_config)
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    reader_client = ReaderClientManager(helper_config=app.state.helper_config).get_client()
    clients: list[ClientInterface] = [c for c in (embed_client, rag_client, llm_client, reader_client) if c is not None]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.source_repository = SourceRepositoryMemory()
    app.state.message_repository = ChatMessageRepositoryMemory()
    # until the settings owner is wired in, every user falls back to the server's own key
    default_key = llm_client.get_default_api_key()
    app.state.settings_repository = SettingsRepositoryMemory(
        default=CompletionSettings(api_key=default_key) if default_key else None,
    )

    retrieval_service = RetrievalService(
        helper_config=app.state.helper_config,
        source_repository=app.state.source_repository,
        embed_client=embed_client,
        vector_store=rag_client,
    )
    app.state.chat_service = ChatService(
        helper_config=app.state.helper_config,
        llm_client=llm_client,
        retrieval_service=retrieval_service,
        settings_repository=app.state.settings_repository,
        message_repository=app.state.message_repository,
    )
    app.state.ingestion_service = IngestionService(
        helper_config=app.state.helper_config,
        source_repository=app.state.source_repository,
        embed_client=embed_client,
        vector_store=rag_client,
        reader_client=reader_client,
    )

    await check_connections(rag_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="knowledge_chat",
    description=(
        "Chat backend with retrieval-augmented generation over per-session knowledge sources. "
        "Sources are chunked, embedded and stored in a vector collection via /sources; "
        "POST /chat/completions streams grounded answers as server-sent events."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(source_router)


async def check_connections(rag_client: RAGClientInterface | None) -> None:
    """Check the vector store on startup.

    Failures are non-fatal: RAG is best effort and chat works without it,
    so an unreachable store is only reported.
    """
    if rag_client is None:
        return
    try:
        result = await rag_client.do_healthcheck()
    except ClientRequestError as exc:
        logging.warning("RAG client '%s' is not reachable: %s. Retrieval will fail until it is.", rag_client.__class__.__name__, exc)
        return
    if not result.is_success:
        logging.warning(
            "RAG client '%s' is not reachable (status %d). Retrieval will fail until it is.",
            rag_client.__class__.__name__,
            result.status_code,
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting knowledge_chat API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
