from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.ClientRequestError import ClientRequestError
from shared.clients.cms.models.FindResult import FindResult
from shared.clients.cms.models.Handbook import Book, Qa, Section
from shared.helper.HelperConfig import HelperConfig

COLLECTION_BOOKS = "books"
COLLECTION_SECTIONS = "sections"
COLLECTION_QAS = "qas"
COLLECTION_SEARCH = "search"

FETCH_PAGE_SIZE = 100


def published_where(*conditions: dict) -> dict:
    """Filter expression restricting a query to published documents plus extra conditions."""
    return {"and": [{"_status": {"equals": "published"}}, *conditions]}


class CMSClientInterface(ClientInterface):
    """Read access to the relational source of truth (books, sections, Q&As).

    Filter expressions use the CMS query language: field equality ({"field": {"equals": v}}),
    membership ({"field": {"in": [...]}}), "like" and and/or composition.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "cms"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self, collection: str) -> str:
        """Returns the endpoint path for listing a collection (e.g. "/api/qas")."""
        pass

    @abstractmethod
    def _get_endpoint_document(self, collection: str, document_id: int) -> str:
        """Returns the endpoint path for a single document (e.g. "/api/qas/42")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_find_params(
        self,
        where: dict | None,
        page: int,
        limit: int,
        draft: bool,
        sort: str | None,
    ) -> list[tuple[str, str]]:
        """Build the backend-specific query parameters of a listing request."""
        pass

    @abstractmethod
    def get_find_by_id_params(self, draft: bool) -> list[tuple[str, str]]:
        """Build the backend-specific query parameters of a single-document request."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def parse_find_result(self, raw_response: dict) -> FindResult:
        """Parse one page of a listing response."""
        pass

    @abstractmethod
    def parse_book(self, raw: dict) -> Book:
        pass

    @abstractmethod
    def parse_section(self, raw: dict) -> Section:
        pass

    @abstractmethod
    def parse_qa(self, raw: dict) -> Qa:
        pass

    @abstractmethod
    def extract_search_qa_id(self, raw: dict) -> int | None:
        """Return the Q&A id a search-index document points to, None for other collections."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_find(
        self,
        collection: str,
        where: dict | None = None,
        page: int = 1,
        limit: int = FETCH_PAGE_SIZE,
        draft: bool = False,
        sort: str | None = None,
    ) -> FindResult:
        """Fetch one page of a collection.

        Args:
            collection (str): Collection slug.
            where (dict | None): Filter expression.
            page (int): 1-based page number.
            limit (int): Page size.
            draft (bool): Read the latest draft versions instead of the published ones.
            sort (str | None): Sort field, "-field" for descending.

        Returns:
            FindResult: The page of raw documents and pagination info.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_collection(collection),
            params=self.get_find_params(where=where, page=page, limit=limit, draft=draft, sort=sort),
            raise_on_error=True,
        )
        return self.parse_find_result(resp.json())

    async def do_find_by_id(self, collection: str, document_id: int, draft: bool = False) -> dict | None:
        """Fetch a single document, returning None when it does not exist."""
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_document(collection, document_id),
            params=self.get_find_by_id_params(draft=draft),
        )
        if resp.status_code == 404:
            return None
        if resp.status_code >= 300:
            self.logging.error(
                "Fetching %s id=%d from %s failed with status %d: %s",
                collection, document_id, self.get_engine_name(), resp.status_code, resp.text[:500],
            )
            raise ClientRequestError(
                f"Fetching {collection} id={document_id} failed with status {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def do_collect_all(self, collection: str, where: dict | None = None, draft: bool = False, sort: str | None = None) -> list[dict]:
        """Fetch every document matching where, following hasNextPage."""
        docs: list[dict] = []
        page = 1
        while True:
            result = await self.do_find(collection, where=where, page=page, limit=FETCH_PAGE_SIZE, draft=draft, sort=sort)
            docs.extend(result.docs)
            self.logging.debug(
                "Fetched %s page %d from %s, total so far: %d of %d",
                collection, page, self.get_engine_name(), len(docs), result.total_docs,
            )
            if not result.has_next_page:
                break
            page += 1
        return docs

    ############# PUBLISHED VIEW ##############
    async def get_published_book(self, book_id: int) -> Book | None:
        raw = await self.do_find_by_id(COLLECTION_BOOKS, book_id)
        book = self.parse_book(raw) if raw else None
        return book if book and book.status == "published" else None

    async def get_published_section(self, section_id: int) -> Section | None:
        raw = await self.do_find_by_id(COLLECTION_SECTIONS, section_id)
        section = self.parse_section(raw) if raw else None
        return section if section and section.status == "published" else None

    async def get_published_qa(self, qa_id: int) -> Qa | None:
        raw = await self.do_find_by_id(COLLECTION_QAS, qa_id)
        qa = self.parse_qa(raw) if raw else None
        return qa if qa and qa.status == "published" else None

    async def collect_published_books(self) -> list[Book]:
        return [self.parse_book(raw) for raw in await self.do_collect_all(COLLECTION_BOOKS, where=published_where())]

    async def collect_published_sections(self) -> list[Section]:
        return [self.parse_section(raw) for raw in await self.do_collect_all(COLLECTION_SECTIONS, where=published_where())]

    async def collect_published_qas(self, section_id: int | None = None) -> list[Qa]:
        conditions = [{"section": {"equals": section_id}}] if section_id is not None else []
        raws = await self.do_collect_all(COLLECTION_QAS, where=published_where(*conditions))
        return [self.parse_qa(raw) for raw in raws]

    async def collect_ids(self, collection: str, where: dict | None = None) -> list[int]:
        """Collect the ids of every document (drafts included) matching where."""
        ids: list[int] = []
        for raw in await self.do_collect_all(collection, where=where, draft=True):
            doc_id = _as_positive_int(raw.get("id"))
            if doc_id is not None:
                ids.append(doc_id)
        return ids

    ############# LOOKUPS ##############
    async def find_by_ids(self, collection: str, ids: list[int], draft: bool = False) -> list[dict]:
        """Fetch documents by id. Unless draft is set, only published documents are returned."""
        if not ids:
            return []
        id_filter = {"id": {"in": ids}}
        where = id_filter if draft else published_where(id_filter)
        result = await self.do_find(collection, where=where, limit=len(ids), draft=draft)
        return result.docs

    async def do_search_lexical(self, query: str, limit: int, draft: bool = False) -> list[int]:
        """Find Q&A ids whose search-index entry matches query, in search ranking order.

        Args:
            query (str): Trimmed user query.
            limit (int): Maximum number of Q&A ids returned.
            draft (bool): Search draft content as well.

        Returns:
            list[int]: De-duplicated Q&A ids.
        """
        where = {
            "or": [
                {"title": {"like": query}},
                {"meta.description": {"like": query}},
                {"meta.title": {"like": query}},
                {"slug": {"like": query}},
            ]
        }
        result = await self.do_find(COLLECTION_SEARCH, where=where, limit=min(limit * 10, 100), draft=draft)

        seen: set[int] = set()
        qa_ids: list[int] = []
        for raw in result.docs:
            qa_id = self.extract_search_qa_id(raw)
            if qa_id is None or qa_id in seen:
                continue
            seen.add(qa_id)
            qa_ids.append(qa_id)
            if len(qa_ids) >= limit:
                break
        return qa_ids


def _as_positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
