"""
Unit tests for the handbook vector sync service.
"""

import pytest

from services.handbook_vector_sync.SyncService import BATCH_SIZE, SyncService
from services.handbook_vector_sync.models.SyncError import SyncError
from shared.clients.vector.VectorStoreError import VectorStoreError
from tests.factories import FakeCMSClient, FakeVectorClient, make_book, make_qa, make_section


def make_service(helper_config, cms_client, vector_client) -> SyncService:
    return SyncService(helper_config=helper_config, cms_client=cms_client, vector_client=vector_client)


class TestSyncQa:
    """Tests for single Q&A sync."""

    @pytest.mark.asyncio
    async def test_upserts_both_languages(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        upserted = await service.sync_qa_vector_by_id(100)

        assert upserted == 2
        assert set(vector_client.records) == {"qa:100:vi", "qa:100:en"}

    @pytest.mark.asyncio
    async def test_idempotent_upsert(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        await service.sync_qa_vector_by_id(100)
        first = {record_id: record.model_dump() for record_id, record in vector_client.records.items()}
        await service.sync_qa_vector_by_id(100)
        second = {record_id: record.model_dump() for record_id, record in vector_client.records.items()}

        assert first == second
        assert vector_client.upsert_calls == [["qa:100:vi", "qa:100:en"], ["qa:100:vi", "qa:100:en"]]

    @pytest.mark.asyncio
    async def test_orphan_section_purges_records(self, helper_config, vector_client):
        cms_client = FakeCMSClient(books=[make_book()], sections=[], qas=[make_qa(100, section_id=999)])
        service = make_service(helper_config, cms_client, vector_client)

        upserted = await service.sync_qa_vector_by_id(100)

        assert upserted == 0
        assert vector_client.delete_calls == [["qa:100:vi", "qa:100:en"]]
        assert vector_client.upsert_calls == []

    @pytest.mark.asyncio
    async def test_unpublished_qa_removes_existing_records(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_qa_vector_by_id(100)

        cms_client.qas[100] = make_qa(100, status="draft")
        upserted = await service.sync_qa_vector_by_id(100)

        assert upserted == 0
        assert "qa:100:vi" not in vector_client.records
        assert "qa:100:en" not in vector_client.records

    @pytest.mark.asyncio
    async def test_missing_book_purges_records(self, helper_config, vector_client):
        cms_client = FakeCMSClient(books=[], sections=[make_section(book_id=5)], qas=[make_qa()])
        service = make_service(helper_config, cms_client, vector_client)

        assert await service.sync_qa_vector_by_id(100) == 0
        assert vector_client.delete_calls == [["qa:100:vi", "qa:100:en"]]

    @pytest.mark.asyncio
    async def test_section_without_book_purges_records(self, helper_config, vector_client):
        cms_client = FakeCMSClient(books=[make_book()], sections=[make_section(book_id=None)], qas=[make_qa()])
        service = make_service(helper_config, cms_client, vector_client)

        assert await service.sync_qa_vector_by_id(100) == 0
        assert vector_client.upsert_calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_is_noop(self, helper_config, cms_client):
        vector_client = FakeVectorClient(configured=False)
        service = make_service(helper_config, cms_client, vector_client)

        assert await service.sync_qa_vector_by_id(100) == 0
        assert await service.delete_qa_vectors_by_id(100) == 0
        assert vector_client.upsert_calls == []
        assert vector_client.delete_calls == []

    @pytest.mark.asyncio
    async def test_delete_reports_removed_count(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_qa_vector_by_id(100)

        assert await service.delete_qa_vectors_by_id(100) == 2
        assert vector_client.records == {}


class TestSyncSection:
    """Tests for section sync with its Q&A cascade."""

    @pytest.mark.asyncio
    async def test_upserts_section_and_its_qas(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        upserted = await service.sync_section_and_qas_by_section_id(10)

        assert upserted == 6
        assert set(vector_client.records) == {
            "section:10:vi", "section:10:en",
            "qa:100:vi", "qa:100:en",
            "qa:101:vi", "qa:101:en",
        }

    @pytest.mark.asyncio
    async def test_rename_cascades_to_qa_metadata(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_section_and_qas_by_section_id(10)

        cms_client.sections[10] = make_section(title_en="Value chain emissions")
        await service.sync_section_and_qas_by_section_id(10)

        assert vector_client.records["section:10:en"].metadata.section_title == "Value chain emissions"
        assert vector_client.records["qa:100:en"].metadata.section_title == "Value chain emissions"
        assert vector_client.records["qa:101:en"].metadata.section_title == "Value chain emissions"

    @pytest.mark.asyncio
    async def test_unpublished_section_purges_section_and_qas(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_section_and_qas_by_section_id(10)

        cms_client.sections[10] = make_section(status="draft")
        upserted = await service.sync_section_and_qas_by_section_id(10)

        assert upserted == 0
        assert vector_client.records == {}

    @pytest.mark.asyncio
    async def test_delete_section_counts_section_and_qa_records(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_section_and_qas_by_section_id(10)

        assert await service.delete_section_and_qa_vectors_by_section_id(10) == 6
        assert vector_client.delete_calls[0] == ["section:10:vi", "section:10:en"]


class TestReindex:
    """Tests for the full reindex."""

    @pytest.mark.asyncio
    async def test_reindex_scenario_counts(self, helper_config, vector_client):
        cms_client = FakeCMSClient(
            books=[make_book(1), make_book(2, slug="second-book")],
            sections=[
                make_section(10, book_id=1),
                make_section(11, book_id=2, slug="other"),
                make_section(12, book_id=99, slug="orphan"),
            ],
            qas=[
                make_qa(100, section_id=10),
                make_qa(101, section_id=10),
                make_qa(102, section_id=11),
                make_qa(103, section_id=11),
                make_qa(104, section_id=404),
            ],
        )
        service = make_service(helper_config, cms_client, vector_client)

        stats = await service.reindex_handbook_vectors_from_database()

        assert stats.books_scanned == 2
        assert stats.sections_scanned == 3
        assert stats.qas_scanned == 5
        assert stats.skipped == 2
        assert stats.sections_upserted == 2
        assert stats.qas_upserted == 4
        assert stats.vectors_upserted == 12
        assert stats.reset_performed is False
        assert len(vector_client.records) == 12

    @pytest.mark.asyncio
    async def test_reindex_with_reset(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        stats = await service.reindex_handbook_vectors_from_database(reset=True)

        assert vector_client.reset_calls == 1
        assert stats.reset_performed is True
        assert stats.model_dump(by_alias=True)["resetPerformed"] is True

    @pytest.mark.asyncio
    async def test_reindex_matches_incremental_sync(self, helper_config, cms_client):
        incremental = FakeVectorClient()
        await make_service(helper_config, cms_client, incremental).sync_section_and_qas_by_section_id(10)
        rebuilt = FakeVectorClient()
        await make_service(helper_config, cms_client, rebuilt).reindex_handbook_vectors_from_database()

        assert {k: v.model_dump() for k, v in incremental.records.items()} == {
            k: v.model_dump() for k, v in rebuilt.records.items()
        }

    @pytest.mark.asyncio
    async def test_reindex_batches_upserts(self, helper_config, vector_client):
        qas = [make_qa(1000 + index) for index in range(40)]
        cms_client = FakeCMSClient(books=[make_book()], sections=[make_section()], qas=qas)
        service = make_service(helper_config, cms_client, vector_client)

        stats = await service.reindex_handbook_vectors_from_database()

        assert stats.vectors_upserted == 82
        assert all(len(batch) <= BATCH_SIZE for batch in vector_client.upsert_calls)
        # one section batch, then 80 Q&A records split into 64 + 16
        assert [len(batch) for batch in vector_client.upsert_calls] == [2, 64, 16]

    @pytest.mark.asyncio
    async def test_reindex_requires_configuration(self, helper_config, cms_client):
        service = make_service(helper_config, cms_client, FakeVectorClient(configured=False))

        with pytest.raises(SyncError, match="not configured"):
            await service.reindex_handbook_vectors_from_database()


class TestEventBoundary:
    """Tests for the hook-facing boundary adapter."""

    @pytest.mark.asyncio
    async def test_change_event_syncs(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        outcome = await service.handle_collection_event("qas", "change", 100)

        assert outcome.success is True
        assert outcome.vectors_upserted == 2

    @pytest.mark.asyncio
    async def test_delete_event_removes_records(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)
        await service.sync_section_and_qas_by_section_id(10)

        outcome = await service.handle_collection_event("sections", "delete", 10)

        assert outcome.success is True
        assert vector_client.records == {}

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, helper_config, cms_client, vector_client):
        vector_client.upsert_error = VectorStoreError("Request failed with status 400", status_code=400)
        service = make_service(helper_config, cms_client, vector_client)

        outcome = await service.handle_collection_event("qas", "change", 100)

        assert outcome.success is False
        assert "400" in outcome.error
        assert outcome.vectors_upserted == 0

    @pytest.mark.asyncio
    async def test_unknown_collection_fails_safely(self, helper_config, cms_client, vector_client):
        service = make_service(helper_config, cms_client, vector_client)

        outcome = await service.handle_collection_event("books", "change", 1)

        assert outcome.success is False
        assert "Unsupported collection" in outcome.error
