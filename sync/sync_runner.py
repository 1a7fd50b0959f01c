"""Sync runner entry point.

Rebuilds the handbook vector namespace from the CMS in one pass. Use --reset
to empty the namespace first. Do not run two resets concurrently.

Usage:
    python -m sync.sync_runner [--reset]
"""

import argparse
import asyncio

from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.clients.vector.VectorClientManager import VectorClientManager
from services.handbook_vector_sync.SyncService import SyncService
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


async def main(reset: bool = False) -> int:
    """Run the full reindex. Returns the process exit code."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    cms_client = CMSClientManager(helper_config=config).get_client()
    vector_client = VectorClientManager(helper_config=config).get_client()

    if not vector_client.is_configured():
        logger.error("Vector store is not configured. Aborting.")
        return 1

    try:
        await cms_client.boot()
        await vector_client.boot()

        sync_service = SyncService(helper_config=config, cms_client=cms_client, vector_client=vector_client)
        stats = await sync_service.reindex_handbook_vectors_from_database(reset=reset)
        logger.info("Reindex stats: %s", stats.model_dump_json(by_alias=True), color="green")
        return 0
    except Exception as e:
        logger.error(f"Reindex failed: {e}. Aborting.")
        return 1
    finally:
        await cms_client.close()
        await vector_client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rebuild the handbook vector namespace from the CMS.")
    parser.add_argument("--reset", action="store_true", help="empty the namespace before reindexing")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(reset=args.reset)))
