"""FastAPI application entry point for the handbook vector service."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.cms.CMSClientInterface import CMSClientInterface
from shared.clients.vector.VectorClientInterface import VectorClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.clients.vector.VectorClientManager import VectorClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from services.handbook_vector_sync.SyncService import SyncService
from server.core.RetrievalService import RetrievalService
from server.core.RagService import RagService
from server.core.SearchService import SearchService
from server.routers.HandbookRouter import router as handbook_router
from server.routers.VectorRouter import router as vector_router
from server.routers.WebhookRouter import router as webhook_router
from server.routers.HealthRouter import router as health_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    # every client is created once here and handed to the services that need it
    cms_client = CMSClientManager(helper_config=app.state.helper_config).get_client()
    vector_client = VectorClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    clients = [cms_client, vector_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.", color="green")

    app.state.cms_client = cms_client
    app.state.vector_client = vector_client
    app.state.llm_client = llm_client

    app.state.sync_service = SyncService(
        helper_config=app.state.helper_config,
        cms_client=cms_client,
        vector_client=vector_client,
    )
    retrieval_service = RetrievalService(
        helper_config=app.state.helper_config,
        vector_client=vector_client,
    )
    app.state.retrieval_service = retrieval_service
    app.state.rag_service = RagService(
        helper_config=app.state.helper_config,
        retrieval_service=retrieval_service,
        llm_client=llm_client,
    )
    app.state.search_service = SearchService(
        helper_config=app.state.helper_config,
        retrieval_service=retrieval_service,
        cms_client=cms_client,
    )

    await check_connections(cms_client, vector_client, llm_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="handbook_vector",
    description=(
        "Bilingual handbook retrieval service. Keeps a hybrid vector index of books, "
        "sections and Q&As in sync with the CMS (POST /webhook/handbook, "
        "POST /handbook/vector/sync, POST /handbook/vector/reindex) and answers "
        "questions with validated citations (POST /handbook/rag, GET /handbook/search)."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=HelperConfig(logger=logging).get_list_val("API_SERVER_CORS_ORIGINS", default=["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(handbook_router)
app.include_router(vector_router)
app.include_router(webhook_router)


async def check_connections(
    cms_client: CMSClientInterface,
    vector_client: VectorClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    Every failure is non-fatal: an unreachable vector store or LLM degrades
    answers to the canned reply, an unreachable CMS makes syncs fail per id.
    """
    checks: list[tuple[str, object]] = [("CMS", cms_client), ("LLM", llm_client)]
    if vector_client.is_configured():
        checks.append(("Vector", vector_client))
    else:
        logging.warning("Vector store is not configured. Retrieval returns no results and sync is disabled.")

    for label, client in checks:
        try:
            result: httpx.Response = await client.do_healthcheck()
        except httpx.TransportError as exc:
            logging.warning("%s client '%s' is not reachable: %s", label, client.__class__.__name__, exc)
            continue
        if not result.is_success:
            logging.warning(
                "%s client '%s' is not reachable (status %d).",
                label,
                client.__class__.__name__,
                result.status_code,
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting handbook_vector API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
