from fastapi import APIRouter, Request

from server.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> HealthResponse:
    """Report liveness and whether the vector store connection is configured."""
    sync_service = request.app.state.sync_service
    return HealthResponse(
        status="ok",
        vector_configured=sync_service.is_configured(),
        namespace=sync_service.get_namespace(),
    )
