"""Handbook vector synchronisation service.

Reads books, sections and Q&As from the CMS, joins them outside the database,
builds the bilingual vector records and writes them into the vector store
namespace. Incremental syncs are driven by collection change events; the full
reindex rebuilds the whole namespace from the CMS.
"""

from typing import Awaitable, Callable

from services.handbook_vector_sync.RecordMapper import (
    build_qa_record_ids,
    build_qa_vector_records,
    build_section_record_ids,
    build_section_vector_records,
)
from services.handbook_vector_sync.models.SyncError import SyncError
from services.handbook_vector_sync.models.SyncOutcome import SyncOutcome
from services.handbook_vector_sync.models.SyncStats import SyncStats
from shared.clients.cms.CMSClientInterface import COLLECTION_QAS, COLLECTION_SECTIONS, CMSClientInterface
from shared.clients.cms.models.Handbook import Book, Section
from shared.clients.vector.VectorClientInterface import VectorClientInterface
from shared.clients.vector.models.VectorRecord import VectorRecord
from shared.helper.HelperConfig import HelperConfig

BATCH_SIZE = 64  # max records or ids per vector store request

OPERATION_CHANGE = "change"
OPERATION_DELETE = "delete"


class SyncService:
    """Keeps the vector namespace consistent with the published handbook content."""

    def __init__(
        self,
        helper_config: HelperConfig,
        cms_client: CMSClientInterface,
        vector_client: VectorClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._cms_client = cms_client
        self._vector_client = vector_client

    ##########################################
    ################ GETTER ##################
    ##########################################

    def is_configured(self) -> bool:
        return self._vector_client.is_configured()

    def get_namespace(self) -> str:
        return self._vector_client.get_namespace()

    ##########################################
    ############### QA SYNC ##################
    ##########################################

    async def sync_qa_vector_by_id(self, qa_id: int) -> int:
        """Rebuild the records of one Q&A, or purge them if its chain is broken.

        The Q&A, its section and the section's book must all exist in the
        published view. The first broken link deletes both Q&A records.

        Args:
            qa_id (int): Q&A id.

        Returns:
            int: Number of records upserted (0 after a purge or when unconfigured).
        """
        if not self.is_configured():
            self.logging.debug("Vector store not configured, skipping sync of Q&A id=%d.", qa_id)
            return 0

        qa = await self._cms_client.get_published_qa(qa_id)
        if qa is None:
            return await self._purge_qa(qa_id, "not published or deleted")
        if qa.section_id is None:
            return await self._purge_qa(qa_id, "no section")

        section = await self._cms_client.get_published_section(qa.section_id)
        if section is None:
            return await self._purge_qa(qa_id, "section %d not published or missing" % qa.section_id)

        book = await self._resolve_book(section)
        if book is None:
            return await self._purge_qa(qa_id, "book of section %d not published or missing" % section.id)

        upserted = await self._upsert_records(build_qa_vector_records(qa, section, book), "upsert Q&A %d" % qa_id)
        self.logging.info("Synced Q&A id=%d: %d vectors upserted.", qa_id, upserted)
        return upserted

    async def delete_qa_vectors_by_id(self, qa_id: int) -> int:
        """Delete both records of a Q&A.

        Returns:
            int: Number of records the vector store reports as deleted.
        """
        if not self.is_configured():
            return 0
        deleted = await self._delete_record_ids(build_qa_record_ids(qa_id), "delete Q&A %d" % qa_id)
        self.logging.info("Deleted vectors of Q&A id=%d: %d removed.", qa_id, deleted)
        return deleted

    async def _purge_qa(self, qa_id: int, reason: str) -> int:
        self.logging.info("Purging vectors of Q&A id=%d: %s.", qa_id, reason)
        await self._delete_record_ids(build_qa_record_ids(qa_id), "purge Q&A %d" % qa_id)
        return 0

    ##########################################
    ############# SECTION SYNC ###############
    ##########################################

    async def sync_section_and_qas_by_section_id(self, section_id: int) -> int:
        """Rebuild a section's records and cascade to every published Q&A under it.

        Q&A records carry the section and book titles, so they are rebuilt on
        every section change. If the section or its book does not resolve, the
        section records and those of its published Q&As are purged instead.

        Args:
            section_id (int): Section id.

        Returns:
            int: Number of records upserted, section and Q&As together.
        """
        if not self.is_configured():
            self.logging.debug("Vector store not configured, skipping sync of section id=%d.", section_id)
            return 0

        section = await self._cms_client.get_published_section(section_id)
        book = await self._resolve_book(section) if section is not None else None
        if section is None or book is None:
            self.logging.info("Purging vectors of section id=%d and its Q&As: section or book unresolved.", section_id)
            await self.delete_section_and_qa_vectors_by_section_id(section_id)
            return 0

        upserted = await self._upsert_records(
            build_section_vector_records(section, book), "upsert section %d" % section_id
        )

        qa_records: list[VectorRecord] = []
        for qa in await self._cms_client.collect_published_qas(section_id=section_id):
            qa_records.extend(build_qa_vector_records(qa, section, book))
        upserted += await self._upsert_records(qa_records, "upsert Q&As of section %d" % section_id)

        self.logging.info(
            "Synced section id=%d with %d Q&A records: %d vectors upserted.",
            section_id, len(qa_records), upserted,
        )
        return upserted

    async def delete_section_and_qa_vectors_by_section_id(self, section_id: int) -> int:
        """Delete a section's records and the records of every published Q&A under it.

        Returns:
            int: Number of records the vector store reports as deleted.
        """
        if not self.is_configured():
            return 0

        section_deleted = await self._delete_record_ids(
            build_section_record_ids(section_id), "delete section %d" % section_id
        )

        qa_ids: list[str] = []
        for qa in await self._cms_client.collect_published_qas(section_id=section_id):
            qa_ids.extend(build_qa_record_ids(qa.id))
        qa_deleted = await self._delete_record_ids(qa_ids, "delete Q&As of section %d" % section_id)

        self.logging.info(
            "Deleted vectors of section id=%d: %d section and %d Q&A records removed.",
            section_id, section_deleted, qa_deleted,
        )
        return section_deleted + qa_deleted

    ##########################################
    ############### REINDEX ##################
    ##########################################

    async def reindex_handbook_vectors_from_database(self, reset: bool = False) -> SyncStats:
        """Rebuild the namespace from every published book, section and Q&A.

        Args:
            reset (bool): Empty the namespace first. Must not run concurrently with itself.

        Returns:
            SyncStats: Scan, upsert and skip counters.

        Raises:
            SyncError: If the vector store is not configured.
        """
        if not self.is_configured():
            raise SyncError("Vector store is not configured.", operation="reindex")

        stats = SyncStats()
        namespace = self.get_namespace()
        self.logging.info("Starting full reindex of namespace '%s' (reset=%s)...", namespace, reset)

        if reset:
            await self._vector_client.retry_with_backoff(
                lambda: self._vector_client.do_reset(namespace), "reset namespace %s" % namespace
            )
            stats.reset_performed = True

        books = await self._cms_client.collect_published_books()
        stats.books_scanned = len(books)
        books_by_id = {book.id: book for book in books}

        sections = await self._cms_client.collect_published_sections()
        stats.sections_scanned = len(sections)
        resolved: dict[int, tuple[Section, Book]] = {}
        section_records: list[VectorRecord] = []
        for section in sections:
            book = books_by_id.get(section.book_id) if section.book_id is not None else None
            if book is None:
                self.logging.warning("Skipping section id=%d: book %s not published or missing.", section.id, section.book_id)
                stats.skipped += 1
                continue
            resolved[section.id] = (section, book)
            section_records.extend(build_section_vector_records(section, book))

        qas = await self._cms_client.collect_published_qas()
        stats.qas_scanned = len(qas)
        qa_records: list[VectorRecord] = []
        for qa in qas:
            chain = resolved.get(qa.section_id) if qa.section_id is not None else None
            if chain is None:
                self.logging.warning("Skipping Q&A id=%d: section %s or its book unresolved.", qa.id, qa.section_id)
                stats.skipped += 1
                continue
            qa_records.extend(build_qa_vector_records(qa, *chain))
            stats.qas_upserted += 1

        stats.sections_upserted = len(resolved)
        stats.vectors_upserted += await self._upsert_records(section_records, "reindex sections")
        stats.vectors_upserted += await self._upsert_records(qa_records, "reindex Q&As")

        self.logging.info(
            "Reindex complete: %d sections and %d Q&As upserted (%d vectors), %d skipped.",
            stats.sections_upserted, stats.qas_upserted, stats.vectors_upserted, stats.skipped,
        )
        return stats

    ##########################################
    ########### EVENT BOUNDARY ###############
    ##########################################

    async def sync_entity(self, collection: str, entity_id: int) -> int:
        """Run the change sync matching a collection."""
        if collection == COLLECTION_QAS:
            return await self.sync_qa_vector_by_id(entity_id)
        if collection == COLLECTION_SECTIONS:
            return await self.sync_section_and_qas_by_section_id(entity_id)
        raise ValueError("Unsupported collection '%s'." % collection)

    async def delete_entity(self, collection: str, entity_id: int) -> int:
        """Run the delete matching a collection."""
        if collection == COLLECTION_QAS:
            return await self.delete_qa_vectors_by_id(entity_id)
        if collection == COLLECTION_SECTIONS:
            return await self.delete_section_and_qa_vectors_by_section_id(entity_id)
        raise ValueError("Unsupported collection '%s'." % collection)

    async def run_safely(self, operation: Callable[[], Awaitable[int]], context: str) -> SyncOutcome:
        """Run a sync operation and turn any failure into a failed SyncOutcome.

        This is the only place where sync errors are caught: content writes
        must never fail because the vector store did.

        Args:
            operation (Callable[[], Awaitable[int]]): Zero-argument factory of the sync call.
            context (str): Short description used in the log message.

        Returns:
            SyncOutcome: Upsert count on success, error message on failure.
        """
        try:
            return SyncOutcome.ok(await operation())
        except Exception as exc:
            self.logging.warning("Vector sync failed for %s: %s", context, exc)
            return SyncOutcome.failed(exc)

    async def handle_collection_event(self, collection: str, operation: str, entity_id: int) -> SyncOutcome:
        """Apply a collection change or delete event to the vector namespace.

        Args:
            collection (str): "qas" or "sections".
            operation (str): "change" or "delete".
            entity_id (int): Id of the changed document.

        Returns:
            SyncOutcome: Never raises.
        """
        context = "%s %s id=%d" % (operation, collection, entity_id)
        if operation == OPERATION_DELETE:
            outcome = await self.run_safely(lambda: self.delete_entity(collection, entity_id), context)
            # a delete upserts nothing, the count returned is the number removed
            return SyncOutcome.ok(0) if outcome.success else outcome
        return await self.run_safely(lambda: self.sync_entity(collection, entity_id), context)

    ##########################################
    ############## BATCH I/O #################
    ##########################################

    async def _resolve_book(self, section: Section) -> Book | None:
        if section.book_id is None:
            return None
        return await self._cms_client.get_published_book(section.book_id)

    async def _upsert_records(self, records: list[VectorRecord], context: str) -> int:
        """Upsert records in sequential batches, each through the retry policy.

        A batch that still fails after retries aborts the remaining batches.
        """
        namespace = self.get_namespace()
        for start in range(0, len(records), BATCH_SIZE):
            batch = records[start: start + BATCH_SIZE]
            await self._vector_client.retry_with_backoff(
                lambda batch=batch: self._vector_client.do_upsert(namespace, batch), context
            )
        return len(records)

    async def _delete_record_ids(self, ids: list[str], context: str) -> int:
        namespace = self.get_namespace()
        deleted = 0
        for start in range(0, len(ids), BATCH_SIZE):
            batch = ids[start: start + BATCH_SIZE]
            deleted += await self._vector_client.retry_with_backoff(
                lambda batch=batch: self._vector_client.do_delete(namespace, batch), context
            )
        return deleted
