"""Operator endpoints maintaining the handbook vector namespace."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from server.dependencies.auth import require_vector_configured, verify_admin_key, verify_admin_key_or_cron_secret
from server.models.requests import SyncRequest
from server.models.responses import SyncResponse, SyncResultItem

router = APIRouter(prefix="/handbook/vector", tags=["vector"])


def is_truthy(value: str | None) -> bool:
    return bool(value) and value.lower() in ("1", "true", "yes", "on")


def sanitize_ids(values: list[Any] | None) -> list[int]:
    """Keep positive integers only, de-duplicated in first-seen order."""
    ids: list[int] = []
    seen: set[int] = set()
    for value in values or []:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            continue
        if value in seen:
            continue
        seen.add(value)
        ids.append(value)
    return ids


@router.post(
    "/reindex",
    dependencies=[Depends(require_vector_configured), Depends(verify_admin_key_or_cron_secret)],
)
async def reindex_vectors(request: Request, reset: str | None = None) -> JSONResponse:
    """Rebuild the whole namespace from the CMS, optionally emptying it first.

    Returns:
        JSONResponse: {success, namespace, stats} or 500 with {success: false, error}.
    """
    sync_service = request.app.state.sync_service
    try:
        stats = await sync_service.reindex_handbook_vectors_from_database(reset=is_truthy(reset))
    except Exception as exc:
        request.app.state.logging.error("Failed to reindex handbook vectors: %s", exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to reindex handbook vectors."},
        )

    return JSONResponse(
        content={
            "success": True,
            "namespace": sync_service.get_namespace(),
            "stats": stats.model_dump(by_alias=True),
        }
    )


@router.post(
    "/sync",
    dependencies=[Depends(require_vector_configured), Depends(verify_admin_key)],
)
async def sync_vectors(request: Request) -> JSONResponse:
    """Sync selected Q&As or sections, each id independently.

    Body: {collection: "qas"|"sections", ids?, selectAllMatchingFilters?, where?}.
    With selectAllMatchingFilters, every id matching where (drafts included) is
    added to the explicit ids.

    Raises:
        HTTPException: 400 on a malformed body or when no valid id is selected.
    """
    try:
        raw_body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body.")
    if not isinstance(raw_body, dict) or raw_body.get("collection") not in ("qas", "sections"):
        raise HTTPException(status_code=400, detail='collection must be either "qas" or "sections".')
    try:
        body = SyncRequest.model_validate(raw_body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {exc.error_count()} error(s).")

    ids = sanitize_ids(body.ids)
    if body.select_all_matching_filters:
        seen = set(ids)
        for doc_id in await request.app.state.cms_client.collect_ids(body.collection, where=body.where):
            if doc_id not in seen:
                seen.add(doc_id)
                ids.append(doc_id)

    if not ids:
        raise HTTPException(status_code=400, detail="ids must contain at least one positive integer.")

    sync_service = request.app.state.sync_service
    results: list[SyncResultItem] = []
    for doc_id in ids:
        outcome = await sync_service.run_safely(
            lambda doc_id=doc_id: sync_service.sync_entity(body.collection, doc_id),
            "sync %s id=%d" % (body.collection, doc_id),
        )
        results.append(
            SyncResultItem(id=doc_id, success=outcome.success, vectors_upserted=outcome.vectors_upserted, error=outcome.error)
        )

    success_count = sum(1 for result in results if result.success)
    response = SyncResponse(
        success=success_count == len(results),
        collection=body.collection,
        select_all_matching_filters=body.select_all_matching_filters,
        ids=ids,
        success_count=success_count,
        failure_count=len(results) - success_count,
        vectors_upserted=sum(result.vectors_upserted for result in results),
        results=results,
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True, exclude_none=True))
