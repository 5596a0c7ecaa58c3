from fastapi import APIRouter, Depends, HTTPException, Request

from shared.clients.ClientErrors import ReaderError
from shared.clients.reader.ReaderClientInterface import is_valid_url
from shared.models.source import RagStatus, SourceType, WebPage
from server.dependencies.auth import verify_api_key
from server.models.requests import AddSourceRequest, FetchUrlRequest
from server.models.responses import DeleteSourceResponse, SourceListResponse, SourceResponse

router = APIRouter(prefix="/sources", tags=["sources"])


@router.post("", status_code=201)
async def add_source(
    request: Request,
    body: AddSourceRequest,
    _: None = Depends(verify_api_key),
) -> SourceResponse:
    """Add a source to a session and process it for RAG.

    Website sources may omit the content; it is then fetched from url.
    A source whose content could not be obtained is returned in status error.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        body (AddSourceRequest): The source to add.
        _ (None): Auth dependency result (unused).

    Returns:
        SourceResponse: The stored source without its content.
    """
    if body.type == SourceType.WEBSITE:
        if not body.content.strip() and not body.url:
            raise HTTPException(status_code=400, detail="Website sources need content or a URL.")
        if body.url and not is_valid_url(body.url):
            raise HTTPException(status_code=400, detail="Invalid URL format.")
    elif not body.content.strip():
        raise HTTPException(status_code=400, detail="Source content must not be empty.")

    ingestion_service = request.app.state.ingestion_service
    source = await ingestion_service.add_source(
        session_id=body.session_id,
        name=body.name,
        type=body.type,
        content=body.content,
        url=body.url,
        object_key=body.object_key,
    )
    return SourceResponse.from_source(source)


@router.post("/fetch-url")
async def fetch_url(
    request: Request,
    body: FetchUrlRequest,
    _: None = Depends(verify_api_key),
) -> WebPage:
    """Fetch and clean a web page for preview, without storing it."""
    if not is_valid_url(body.url):
        raise HTTPException(status_code=400, detail="Invalid URL format.")

    ingestion_service = request.app.state.ingestion_service
    try:
        return await ingestion_service.fetch_web_content(body.url)
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ReaderError as exc:
        status_code = exc.status_code if exc.status_code in (403, 404) else 502
        raise HTTPException(status_code=status_code, detail=str(exc))


@router.get("/session/{session_id}")
async def list_session_sources(
    request: Request,
    session_id: int,
    _: None = Depends(verify_api_key),
) -> SourceListResponse:
    """List the sources of a session, oldest first."""
    source_repository = request.app.state.source_repository
    sources = await source_repository.list_session_sources(session_id)
    return SourceListResponse(sources=[SourceResponse.from_source(s) for s in sources], total=len(sources))


@router.post("/session/{session_id}/reprocess")
async def reprocess_session(
    request: Request,
    session_id: int,
    _: None = Depends(verify_api_key),
) -> SourceListResponse:
    """Run RAG processing again for every source of a session."""
    ingestion_service = request.app.state.ingestion_service
    sources = await ingestion_service.reprocess_session(session_id)
    return SourceListResponse(sources=[SourceResponse.from_source(s) for s in sources], total=len(sources))


@router.delete("/{source_id}")
async def delete_source(
    request: Request,
    source_id: int,
    _: None = Depends(verify_api_key),
) -> DeleteSourceResponse:
    """Delete a source together with its vectors."""
    ingestion_service = request.app.state.ingestion_service
    if not await ingestion_service.delete_source(source_id):
        raise HTTPException(status_code=404, detail=f"Source {source_id} not found.")
    return DeleteSourceResponse(status="deleted", source_id=source_id)


@router.get("/{source_id}/rag-status")
async def get_rag_status(
    request: Request,
    source_id: int,
    _: None = Depends(verify_api_key),
) -> RagStatus:
    """Report chunk and vector counts and the RAG flags of a source."""
    ingestion_service = request.app.state.ingestion_service
    status = await ingestion_service.get_rag_status(source_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Source {source_id} not found.")
    return status


@router.post("/{source_id}/reprocess")
async def reprocess_source(
    request: Request,
    source_id: int,
    _: None = Depends(verify_api_key),
) -> SourceResponse:
    """Run RAG processing again for one source."""
    ingestion_service = request.app.state.ingestion_service
    source = await ingestion_service.reprocess(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail=f"Source {source_id} not found.")
    return SourceResponse.from_source(source)
