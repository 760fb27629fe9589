"""
BioNova-X - API Route Definitions
==================================
REST endpoints mounted under ``/api``:

  - POST /search             → cached AI search
  - POST /extend-search      → merge new findings into a previous result
  - POST /timeline-analysis  → impact analysis of a result set
  - POST /comparison         → side-by-side comparison of ≥ 2 items
  - POST /hypothesis         → testable hypothesis from a result set
  - POST /glossary           → definition + relevance of one term
  - POST /chat               → ``text/plain`` streamed answer

Each route handler is a thin controller: the body is validated by its
pydantic model, the work is delegated to ``ResearchOrchestrator``, and
``ProviderError`` is mapped to 500 by the app-level handler.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from bionova.src.api.schemas import (
    ChatRequest,
    ComparisonRequest,
    ExtendSearchRequest,
    GlossaryRequest,
    SearchRequest,
    SearchResultRequest,
)
from bionova.src.core.errors import ProviderError
from bionova.src.core.orchestrator import ResearchOrchestrator
from bionova.src.utils.logger import get_logger

logger = get_logger(__name__)

PROVIDER_ERROR_MESSAGE = "Failed to process request with AI provider."

router = APIRouter()


def get_orchestrator(request: Request) -> ResearchOrchestrator:
    """Return the process-wide orchestrator created in the app lifespan."""
    return request.app.state.orchestrator


def provider_error_response(exc: ProviderError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": PROVIDER_ERROR_MESSAGE, "details": str(exc)})


@router.post("/search")
async def search(body: SearchRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    logger.info("[API] /search query='%s'", body.query[:60])
    return await orchestrator.search(body.query, body.filters)


@router.post("/extend-search")
async def extend_search(body: ExtendSearchRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    logger.info("[API] /extend-search query='%s'", body.query[:60])
    return await orchestrator.extend_search(body.query, body.existingResult, body.filters)


@router.post("/timeline-analysis")
async def timeline_analysis(body: SearchResultRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return await orchestrator.timeline_analysis(body.searchResult)


@router.post("/comparison")
async def comparison(body: ComparisonRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return await orchestrator.compare(body.items)


@router.post("/hypothesis")
async def hypothesis(body: SearchResultRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return await orchestrator.hypothesis(body.searchResult)


@router.post("/glossary")
async def glossary(body: GlossaryRequest, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return await orchestrator.glossary(body.term)


@router.post("/chat", response_model=None)
async def chat(body: ChatRequest, request: Request, orchestrator: ResearchOrchestrator = Depends(get_orchestrator)) -> StreamingResponse | JSONResponse:
    """
    Stream the answer as ``text/plain`` fragments.

    The first fragment is awaited before headers go out, so a failure
    to start the stream is still a 500 with a JSON body.  Once the
    stream has started a failure simply ends it, and a client
    disconnect closes the upstream stream.
    """
    history = [turn.model_dump() for turn in body.history]
    stream = orchestrator.chat_stream(body.query, body.initialSearchQuery, body.searchResultContext, history)

    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = None
    except ProviderError as exc:
        logger.error("[CHAT] Stream failed before the first fragment: %s", exc)
        return provider_error_response(exc)

    async def body_stream() -> AsyncIterator[str]:
        try:
            if first is not None:
                yield first
            async for fragment in stream:
                if await request.is_disconnected():
                    logger.info("[CHAT] Client disconnected — closing upstream stream.")
                    break
                yield fragment
        except ProviderError as exc:
            logger.warning("[CHAT] Stream truncated: %s", exc)
        finally:
            await stream.aclose()  # type: ignore[attr-defined]

    return StreamingResponse(body_stream(), media_type="text/plain; charset=utf-8", headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
