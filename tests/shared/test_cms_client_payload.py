"""
Unit tests for the Payload CMS client, against a mocked HTTP transport.
"""

import logging

import httpx
import pytest

from shared.clients.ClientRequestError import ClientRequestError
from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.clients.cms.payload.CMSClientPayload import CMSClientPayload, _flatten_query
from shared.helper.HelperConfig import HelperConfig

BASE_URL = "https://cms.example.com"


@pytest.fixture(autouse=True)
def payload_env(monkeypatch):
    monkeypatch.setenv("CMS_PAYLOAD_BASE_URL", BASE_URL)
    monkeypatch.setenv("CMS_PAYLOAD_API_KEY", "cms-key")
    monkeypatch.delenv("CMS_PAYLOAD_AUTH_COLLECTION", raising=False)
    monkeypatch.delenv("CMS_ENGINE", raising=False)


def make_client(handler) -> CMSClientPayload:
    client = CMSClientPayload(helper_config=HelperConfig(logger=logging.getLogger("tests.cms")))
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


RAW_QA = {
    "id": 100,
    "question_vi": "Phát thải phạm vi 3 là gì?",
    "question_en": {"vi": "ignored", "en": "What are scope 3 emissions?"},
    "answer_en": {"root": {"children": []}},
    "section": {"id": 10, "slug": "scope-emissions"},
    "sources": [{"label": "GHG Protocol", "url": "https://ghgprotocol.org"}, {"label": "missing url"}],
    "metadata": {"tags": [{"value": "Scope 3"}, {"value": None}], "keywords": ["value chain"]},
    "_status": "published",
    "updatedAt": "2024-05-01T00:00:00.000Z",
}


class TestQueryEncoding:
    """Tests for the qs-style where encoding."""

    def test_flatten_nested_where(self):
        where = {"and": [{"_status": {"equals": "published"}}, {"id": {"in": [1, 2]}}], "draft": True}

        assert _flatten_query(where, "where") == [
            ("where[and][0][_status][equals]", "published"),
            ("where[and][1][id][in][0]", "1"),
            ("where[and][1][id][in][1]", "2"),
            ("where[draft]", "true"),
        ]

    def test_find_params(self):
        client = make_client(lambda request: httpx.Response(200))

        params = client.get_find_params(where={"slug": {"equals": "x"}}, page=2, limit=50, draft=True, sort="-order")

        assert ("page", "2") in params
        assert ("draft", "true") in params
        assert ("sort", "-order") in params
        assert ("where[slug][equals]", "x") in params


class TestParsing:
    """Tests for turning raw documents into handbook entities."""

    def test_manager_picks_payload_by_default(self):
        client = CMSClientManager(helper_config=HelperConfig(logger=logging.getLogger("tests.cms"))).get_client()

        assert isinstance(client, CMSClientPayload)

    def test_parse_qa(self):
        qa = make_client(lambda request: httpx.Response(200)).parse_qa(RAW_QA)

        assert qa.question_vi == "Phát thải phạm vi 3 là gì?"
        assert qa.question_en == "What are scope 3 emissions?"
        assert qa.section_id == 10
        assert [source.label for source in qa.sources] == ["GHG Protocol"]
        assert qa.metadata.tags == ["Scope 3"]
        assert qa.metadata.keywords == ["value chain"]
        assert qa.status == "published"

    def test_parse_section_with_missing_book(self):
        section = make_client(lambda request: httpx.Response(200)).parse_section(
            {"id": 10, "slug": "scope-emissions", "book": None, "title_en": "Scope"}
        )

        assert section.book_id is None
        assert section.status == "draft"
        assert section.title_en == "Scope"

    def test_extract_search_qa_id(self):
        client = make_client(lambda request: httpx.Response(200))

        assert client.extract_search_qa_id({"doc": {"relationTo": "qas", "value": 7}}) == 7
        assert client.extract_search_qa_id({"doc": {"relationTo": "qas", "value": {"id": 8}}}) == 8
        assert client.extract_search_qa_id({"doc": {"relationTo": "books", "value": 9}}) is None


class TestRequests:
    """Tests for the request methods."""

    @pytest.mark.asyncio
    async def test_find_by_id_missing_is_none(self):
        client = make_client(lambda request: httpx.Response(404, json={"errors": []}))

        assert await client.do_find_by_id("qas", 404) is None
        assert await client.get_published_qa(404) is None

    @pytest.mark.asyncio
    async def test_find_by_id_server_error_raises(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ClientRequestError):
            await client.do_find_by_id("qas", 1)

    @pytest.mark.asyncio
    async def test_published_view_hides_drafts(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={**RAW_QA, "_status": "draft"})

        client = make_client(handler)

        assert await client.get_published_qa(100) is None
        assert seen[0].url.path == "/api/qas/100"
        assert seen[0].headers["Authorization"] == "users API-Key cms-key"

    @pytest.mark.asyncio
    async def test_collect_all_follows_pages(self):
        pages = {
            "1": {"docs": [{"id": 1}, {"id": 2}], "hasNextPage": True, "totalDocs": 3, "page": 1},
            "2": {"docs": [{"id": 3}], "hasNextPage": False, "totalDocs": 3, "page": 2},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=pages[request.url.params["page"]])

        client = make_client(handler)

        assert [doc["id"] for doc in await client.do_collect_all("books")] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_collect_ids_reads_drafts_and_skips_invalid_ids(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"docs": [{"id": 5}, {"id": "x"}, {"id": 0}, {"id": "6"}], "hasNextPage": False})

        client = make_client(handler)

        assert await client.collect_ids("qas", where={"section": {"equals": 10}}) == [5, 6]
        assert seen[0].url.params["draft"] == "true"
        assert seen[0].url.params["where[section][equals]"] == "10"

    @pytest.mark.asyncio
    async def test_lexical_search_dedups_and_limits(self):
        docs = [
            {"doc": {"relationTo": "qas", "value": 3}},
            {"doc": {"relationTo": "books", "value": 1}},
            {"doc": {"relationTo": "qas", "value": {"id": 3}}},
            {"doc": {"relationTo": "qas", "value": 4}},
            {"doc": {"relationTo": "qas", "value": 5}},
        ]
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"docs": docs, "hasNextPage": False})

        client = make_client(handler)

        assert await client.do_search_lexical("scope", limit=2) == [3, 4]
        assert seen[0].url.path == "/api/search"
        assert seen[0].url.params["limit"] == "20"
        assert seen[0].url.params["where[or][0][title][like]"] == "scope"

    @pytest.mark.asyncio
    async def test_find_by_ids_restricts_to_published(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"docs": [RAW_QA], "totalDocs": 1, "hasNextPage": False})

        client = make_client(handler)

        assert await client.find_by_ids("qas", [1, 2]) == [RAW_QA]
        params = seen[0].url.params
        assert params["where[and][0][_status][equals]"] == "published"
        assert params["where[and][1][id][in][0]"] == "1"
        assert params["where[and][1][id][in][1]"] == "2"

    @pytest.mark.asyncio
    async def test_find_by_ids_with_drafts_filters_only_ids(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"docs": [], "totalDocs": 0, "hasNextPage": False})

        client = make_client(handler)

        await client.find_by_ids("qas", [7], draft=True)

        params = seen[0].url.params
        assert params["where[id][in][0]"] == "7"
        assert not any("_status" in key for key in params.keys())
