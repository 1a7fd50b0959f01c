from server.core.RetrievalService import RetrievalService
from shared.clients.cms.CMSClientInterface import (
    COLLECTION_BOOKS,
    COLLECTION_QAS,
    COLLECTION_SECTIONS,
    CMSClientInterface,
)
from shared.clients.cms.models.SearchResult import HandbookSearchResult
from shared.clients.vector.models.VectorRecord import Language
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import pick_localized

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 8
MAX_LIMIT = 20


def clamp_search_limit(value: int | None) -> int:
    if not value:
        return DEFAULT_LIMIT
    return min(max(value, 1), MAX_LIMIT)


class SearchService:
    """Handbook Q&A search: hybrid vector ranking first, CMS search index as fallback."""

    def __init__(
        self,
        helper_config: HelperConfig,
        retrieval_service: RetrievalService,
        cms_client: CMSClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._retrieval_service = retrieval_service
        self._cms_client = cms_client
        self._min_query_length = int(
            helper_config.get_number_val("HANDBOOK_SEARCH_MIN_QUERY_LENGTH", default=MIN_QUERY_LENGTH)
        )

    ##########################################
    ############### CORE #####################
    ##########################################

    async def search(self, query: str, language: Language, limit: int | None = None) -> list[HandbookSearchResult]:
        """Search Q&As for a query.

        Hybrid search failures are logged and treated as zero hits, which
        sends the query to the lexical fallback.

        Args:
            query (str): User query, trimmed before use.
            language (Language): Language of titles and questions in the results.
            limit (int | None): Maximum number of results, clamped to [1, 20], default 8.

        Returns:
            list[HandbookSearchResult]: Results, [] for queries shorter than 2 characters.
        """
        trimmed_query = query.strip()
        if len(trimmed_query) < self._min_query_length:
            return []
        safe_limit = clamp_search_limit(limit)

        results: list[HandbookSearchResult] = []
        try:
            results = await self._retrieval_service.search_handbook_with_hybrid(trimmed_query, language, safe_limit)
        except Exception as exc:
            self.logging.warning("Hybrid handbook search failed, using lexical search: %s", exc)

        if not results:
            results = await self.search_lexical(trimmed_query, language, safe_limit)

        self.logging.info("Handbook search lang=%s: returning %d result(s).", language, len(results))
        return results

    async def search_lexical(self, query: str, language: Language, limit: int) -> list[HandbookSearchResult]:
        """Search the CMS search index and join each hit to its section and book.

        Hits whose Q&A, section or book cannot be resolved in the published
        view are skipped; the search ranking order of the Q&As is kept.
        """
        qa_ids = await self._cms_client.do_search_lexical(query, limit)
        if not qa_ids:
            return []

        qas = {qa.id: qa for qa in map(self._cms_client.parse_qa, await self._cms_client.find_by_ids(COLLECTION_QAS, qa_ids))}

        section_ids = list(dict.fromkeys(qa.section_id for qa in qas.values() if qa.section_id))
        sections = {
            section.id: section
            for section in map(self._cms_client.parse_section, await self._cms_client.find_by_ids(COLLECTION_SECTIONS, section_ids))
        }

        book_ids = list(dict.fromkeys(section.book_id for section in sections.values() if section.book_id))
        books = {
            book.id: book
            for book in map(self._cms_client.parse_book, await self._cms_client.find_by_ids(COLLECTION_BOOKS, book_ids))
        }

        results: list[HandbookSearchResult] = []
        for qa_id in qa_ids:
            qa = qas.get(qa_id)
            section = sections.get(qa.section_id) if qa and qa.section_id else None
            book = books.get(section.book_id) if section and section.book_id else None
            if qa is None or section is None or book is None:
                continue
            # the CMS key can read drafts, so the published view is enforced here too
            if not all(entity.status == "published" for entity in (qa, section, book)):
                continue

            results.append(
                HandbookSearchResult(
                    qa_id=qa.id,
                    question=pick_localized(language, qa.question_vi, qa.question_en),
                    section_id=section.id,
                    section_title=pick_localized(language, section.title_vi, section.title_en),
                    section_slug=section.slug,
                    book_id=book.id,
                    book_title=pick_localized(language, book.title_vi, book.title_en),
                    book_slug=book.slug,
                )
            )
            if len(results) >= limit:
                break
        return results
