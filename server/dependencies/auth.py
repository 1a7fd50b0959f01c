from fastapi import Header, HTTPException, Request


def _is_admin(request: Request, x_api_key: str | None) -> bool:
    helper_config = request.app.state.helper_config
    if not x_api_key or not helper_config.is_set("API_SERVER_ADMIN_API_KEY"):
        return False
    return x_api_key == helper_config.get_string_val("API_SERVER_ADMIN_API_KEY")


def _is_cron(request: Request, authorization: str | None) -> bool:
    helper_config = request.app.state.helper_config
    if not authorization or not helper_config.is_set("CRON_SECRET"):
        return False
    return authorization == f"Bearer {helper_config.get_string_val('CRON_SECRET')}"


async def verify_admin_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-Api-Key header against the configured admin key.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str | None): The value of the X-Api-Key header.

    Raises:
        HTTPException: 403 if the key is missing, unconfigured or does not match.
    """
    if not _is_admin(request, x_api_key):
        raise HTTPException(status_code=403, detail="Action forbidden.")


async def verify_admin_key_or_cron_secret(
    request: Request,
    x_api_key: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
) -> None:
    """Accept either the admin key or "Authorization: Bearer <CRON_SECRET>" from a scheduler.

    Raises:
        HTTPException: 403 if neither credential is valid.
    """
    if not _is_cron(request, authorization) and not _is_admin(request, x_api_key):
        raise HTTPException(status_code=403, detail="Action forbidden.")


async def require_vector_configured(request: Request) -> None:
    """Reject maintenance requests while the vector store connection is not configured.

    Raises:
        HTTPException: 503 if the vector store is not configured.
    """
    if not request.app.state.sync_service.is_configured():
        raise HTTPException(status_code=503, detail="Vector store is not configured.")
