"""
BioNova-X - Request Schemas
============================
Fixed request shapes for every endpoint.  FastAPI validates inbound
bodies against these models before a handler runs; failures are turned
into a single 400 response listing *every* violated field
(see ``validation_error_handler``).

Rules
-----
- ``/search`` requires all five filter keys; ``/extend-search`` and
  ``/chat`` only check that their nested objects exist.
- ``query`` / ``term`` are trimmed before their length caps apply.
- Unknown keys are rejected.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from bionova.src.utils.logger import get_logger

logger = get_logger(__name__)

VALIDATION_ERROR_MESSAGE = "Invalid request data provided."

TrimmedQuery = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
RequiredQuery = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]
GlossaryText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
ChatQuery = Annotated[str, StringConstraints(min_length=1, max_length=2000)]


class _StrictBody(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SearchFilters(_StrictBody):
    """Advanced filter state; every key must be present."""

    yearRange: Annotated[list[int], Field(min_length=2, max_length=2)]
    organisms: list[str]
    missions: list[str]
    researchAreas: list[str]
    publicationTypes: list[str]

    @model_validator(mode="after")
    def _year_range_ordered(self) -> "SearchFilters":
        start, end = self.yearRange
        if start > end:
            raise ValueError(f"yearRange start ({start}) must not exceed end ({end})")
        return self


class SearchRequest(_StrictBody):
    query: TrimmedQuery = ""
    filters: SearchFilters


class ExtendSearchRequest(_StrictBody):
    query: RequiredQuery
    existingResult: dict[str, Any]
    filters: dict[str, Any]


class SearchResultRequest(_StrictBody):
    """Body shared by ``/timeline-analysis`` and ``/hypothesis``."""

    searchResult: dict[str, Any]


class ComparisonRequest(_StrictBody):
    items: Annotated[list[dict[str, Any]], Field(min_length=2)]


class GlossaryRequest(_StrictBody):
    term: GlossaryText


class ChatPart(_StrictBody):
    text: Annotated[str, StringConstraints(min_length=1)]


class ChatTurn(_StrictBody):
    role: Literal["user", "model"]
    parts: list[ChatPart]


class ChatRequest(_StrictBody):
    query: ChatQuery
    initialSearchQuery: Annotated[str, StringConstraints(min_length=1)]
    searchResultContext: dict[str, Any]
    history: list[ChatTurn]


# ── Error formatting ──────────────────────────────────────────────────

def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    """
    Flatten pydantic error dicts into one human-readable string.

    ``{"loc": ("body", "filters", "yearRange"), "msg": "Field required"}``
    becomes ``"filters.yearRange: Field required"``.
    """
    messages: list[str] = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        path = ".".join(loc) or "body"
        messages.append(f"{path}: {error.get('msg', 'invalid value')}")
    return ", ".join(messages)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map ``RequestValidationError`` to a 400 ``{error, details}`` body."""
    details = format_validation_errors(list(exc.errors()))
    logger.info("[API] 400 on %s: %s", request.url.path, details)
    return JSONResponse(status_code=400, content={"error": VALIDATION_ERROR_MESSAGE, "details": details})
