from fastapi import APIRouter, BackgroundTasks, Depends, Request

from server.dependencies.auth import verify_admin_key
from server.models.requests import WebhookRequest
from server.models.responses import WebhookResponse

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/handbook")
async def webhook_handbook(
    request: Request,
    body: WebhookRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_admin_key),
) -> WebhookResponse:
    """Accept a CMS change or delete event for a Q&A or section and sync it in the background.

    The event is always accepted: vector sync failures are logged by the sync
    service and never reported back to the CMS write that triggered them.

    Args:
        request (Request): FastAPI request (provides app.state.sync_service).
        body (WebhookRequest): JSON body {collection, operation, id}.
        background_tasks (BackgroundTasks): FastAPI background task queue.
        _ (None): Auth dependency result (unused).

    Returns:
        WebhookResponse: Acknowledgement echoing the event.
    """
    sync_service = request.app.state.sync_service
    request.app.state.logging.info("Webhook received: %s %s id=%d", body.operation, body.collection, body.id)
    background_tasks.add_task(sync_service.handle_collection_event, body.collection, body.operation, body.id)
    return WebhookResponse(status="accepted", collection=body.collection, operation=body.operation, id=body.id)
