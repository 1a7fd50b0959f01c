"""Public handbook endpoints: grounded answers and Q&A search."""

import math

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from server.core.RagService import empty_response
from server.core.RetrievalService import sanitize_slug
from server.core.SearchService import MIN_QUERY_LENGTH
from server.models.requests import RagRequest
from server.models.responses import HandbookSearchResponse
from shared.clients.vector.models.VectorRecord import SUPPORTED_LANGUAGES, Language

router = APIRouter(prefix="/handbook", tags=["handbook"])

DEFAULT_TOP_K = 6
MAX_TOP_K = 12

TOO_SHORT_MESSAGES: dict[str, str] = {
    "vi": "Vui lòng nhập câu hỏi dài hơn để tìm kiếm trong cẩm nang.",
    "en": "Please enter a longer query to search the handbook.",
}


def resolve_language(explicit_language: str | None, accept_language: str | None) -> Language:
    """Pick the answer language: explicit value, then Accept-Language, then English."""
    if explicit_language in SUPPORTED_LANGUAGES:
        return explicit_language
    header = (accept_language or "").lower()
    if "vi" in header:
        return "vi"
    return "en"


def clamp_top_k(value: float | None) -> int:
    if value is None or math.isnan(value):
        return DEFAULT_TOP_K
    if math.isinf(value):
        return MAX_TOP_K if value > 0 else 1
    return min(max(round(value), 1), MAX_TOP_K)


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/rag")
async def handbook_rag(request: Request) -> JSONResponse:
    """Answer a natural-language question from the handbook.

    Body: {query, lang?, bookSlug?, sectionId?, topK?}. Queries shorter than two
    characters get a "type more" answer without retrieval.

    Raises:
        HTTPException: 400 if the body is not a JSON object of the expected shape
            or bookSlug is not a valid slug.
    """
    try:
        raw_body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body.")
    if not isinstance(raw_body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body.")
    try:
        body = RagRequest.model_validate(raw_body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {exc.error_count()} error(s).")

    query = (body.query or "").strip()
    language = resolve_language(body.lang, request.headers.get("accept-language"))

    if len(query) < MIN_QUERY_LENGTH:
        return JSONResponse(content=_dump(empty_response(language, answer=TOO_SHORT_MESSAGES[language])))

    book_slug = body.book_slug.strip() if body.book_slug else None
    if book_slug:
        try:
            sanitize_slug(book_slug)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    request.app.state.logging.info("RAG query received, lang=%s query=%r", language, query[:80])
    response = await request.app.state.rag_service.generate_handbook_rag_response(
        query,
        language,
        top_k=clamp_top_k(body.top_k),
        book_slug=book_slug,
        section_id=body.section_id,
    )
    return JSONResponse(content=_dump(response))


@router.get("/search")
async def handbook_search(
    request: Request,
    q: str = "",
    lang: str | None = None,
    limit: str | None = None,
) -> JSONResponse:
    """Search Q&As by question, hybrid first with a lexical fallback.

    Returns:
        JSONResponse: {"results": [...], "total": n}.
    """
    language: Language = lang if lang in SUPPORTED_LANGUAGES else "en"
    try:
        parsed_limit = int(limit) if limit else None
    except ValueError:
        parsed_limit = None

    results = await request.app.state.search_service.search(q, language, parsed_limit)
    return JSONResponse(content=_dump(HandbookSearchResponse(results=results, total=len(results))))
