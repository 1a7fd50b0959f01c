"""Hybrid retrieval over the handbook vector namespace.

One query combines lexical and dense similarity, restricted by a metadata
filter on publication, language, document type and optional book or section
scope. Matches are projected into RetrievedChunk objects.
"""

import re

from server.models.responses import RetrievedChunk
from shared.clients.cms.models.SearchResult import HandbookSearchResult
from shared.clients.vector.VectorClientInterface import VectorClientInterface
from shared.clients.vector.models.VectorMatch import VectorMatch
from shared.clients.vector.models.VectorRecord import DocType, Language
from shared.helper.HelperConfig import HelperConfig

DEFAULT_TOP_K = 12
MAX_TOP_K = 40
DEFAULT_DOCUMENT_TYPES: tuple[DocType, ...] = ("qa", "section")

_SLUG_ALLOWLIST = re.compile(r"^[a-z0-9\-_/]+$", re.IGNORECASE)
_QUESTION_PREFIX = re.compile(r"^question:\s*", re.IGNORECASE)


def clamp_top_k(top_k: int | None, default: int = DEFAULT_TOP_K) -> int:
    """Clamp a requested result count to [1, MAX_TOP_K], using default when unset or 0."""
    return min(max(top_k or default, 1), MAX_TOP_K)


def sanitize_slug(slug: str) -> str:
    """Return slug unchanged if it only holds letters, digits, "-", "_" and "/".

    Raises:
        ValueError: For any other character, which could break out of the filter expression.
    """
    if not _SLUG_ALLOWLIST.match(slug):
        raise ValueError(
            f"Invalid slug format: {slug}. Only alphanumeric, hyphens, underscores, and slashes allowed."
        )
    return slug


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_hybrid_filter(
    language: Language,
    document_types: tuple[DocType, ...] | list[DocType],
    book_slug: str | None = None,
    section_id: int | None = None,
) -> str:
    """Build the metadata filter expression of a hybrid query.

    Example:
        published = true AND lang = 'en' AND (docType = 'qa' OR docType = 'section') AND bookSlug = 'carbon'

    Raises:
        ValueError: If book_slug fails the slug allow-list.
    """
    clauses = ["published = true", f"lang = {_quote(language)}"]

    if len(document_types) == 1:
        clauses.append(f"docType = {_quote(document_types[0])}")
    elif len(document_types) > 1:
        clauses.append("(" + " OR ".join(f"docType = {_quote(doc_type)}" for doc_type in document_types) + ")")

    if book_slug:
        clauses.append(f"bookSlug = {_quote(sanitize_slug(book_slug))}")

    if section_id is not None:
        clauses.append(f"sectionId = {int(section_id)}")

    return " AND ".join(clauses)


def parse_question_from_data(data: str) -> str:
    """Pull the question out of a record text blob ("question: ..." line), "" if absent."""
    for line in data.split("\n"):
        if line.lower().startswith("question:"):
            return _QUESTION_PREFIX.sub("", line).strip()
    return ""


def to_chunk(match: VectorMatch) -> RetrievedChunk | None:
    """Project a raw match into a RetrievedChunk, None when it carries no metadata."""
    metadata = match.metadata
    if metadata is None:
        return None

    text = (match.data or "").strip()
    question = (metadata.question or "").strip() or parse_question_from_data(text)
    if metadata.doc_type == "qa" and question and not text:
        text = f"question: {question}"

    return RetrievedChunk(
        id=match.id,
        score=match.score,
        doc_type=metadata.doc_type,
        lang=metadata.lang,
        text=text,
        question=question or None,
        qa_id=metadata.qa_id,
        section_id=metadata.section_id,
        section_slug=metadata.section_slug,
        section_title=metadata.section_title or "",
        book_id=metadata.book_id,
        book_slug=metadata.book_slug,
        book_title=metadata.book_title or "",
    )


class RetrievalService:
    """Runs hybrid queries against the configured vector namespace."""

    def __init__(
        self,
        helper_config: HelperConfig,
        vector_client: VectorClientInterface,
        search_overfetch_factor: int | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._vector_client = vector_client
        # search drops sections, duplicates and incomplete hits after ranking, so it asks for more
        self._search_overfetch_factor = search_overfetch_factor or int(
            helper_config.get_number_val("HANDBOOK_SEARCH_OVERFETCH_FACTOR", default=4)
        )

    ##########################################
    ############### CORE #####################
    ##########################################

    async def retrieve_handbook_hybrid(
        self,
        query: str,
        language: Language,
        top_k: int | None = None,
        book_slug: str | None = None,
        section_id: int | None = None,
        document_types: tuple[DocType, ...] | list[DocType] = DEFAULT_DOCUMENT_TYPES,
    ) -> list[RetrievedChunk]:
        """Retrieve ranked evidence for a query.

        Args:
            query (str): User query, trimmed before use.
            language (Language): Only records in this language are returned.
            top_k (int | None): Number of matches, clamped to [1, 40], default 12.
            book_slug (str | None): Restrict to one book.
            section_id (int | None): Restrict to one section.
            document_types (tuple[DocType, ...] | list[DocType]): Record types to include.

        Returns:
            list[RetrievedChunk]: Chunks in ranking order, [] if unconfigured or the query is blank.

        Raises:
            ValueError: If book_slug is not a valid slug.
            VectorStoreError: If the query still fails after retries.
        """
        if not self._vector_client.is_configured():
            return []

        trimmed_query = query.strip()
        if not trimmed_query:
            return []

        safe_top_k = clamp_top_k(top_k)
        filter_expression = build_hybrid_filter(language, document_types, book_slug=book_slug, section_id=section_id)
        namespace = self._vector_client.get_namespace()

        matches = await self._vector_client.retry_with_backoff(
            lambda: self._vector_client.do_query(
                namespace, trimmed_query, top_k=safe_top_k, filter=filter_expression, hybrid=True
            ),
            "hybrid search query (%s)" % trimmed_query[:50],
        )

        chunks = [chunk for chunk in (to_chunk(match) for match in matches) if chunk is not None]
        self.logging.debug(
            "Hybrid query returned %d match(es), %d usable chunk(s) for lang=%s.",
            len(matches), len(chunks), language,
        )
        return chunks

    async def search_handbook_with_hybrid(self, query: str, language: Language, limit: int) -> list[HandbookSearchResult]:
        """Search Q&As by hybrid ranking, one result per Q&A.

        The first occurrence of a Q&A wins, so the hybrid ranking order is kept.
        Hits without a question, slugs or titles to display are dropped.

        Returns:
            list[HandbookSearchResult]: At most limit results.
        """
        chunks = await self.retrieve_handbook_hybrid(
            query,
            language,
            top_k=min(limit * self._search_overfetch_factor, MAX_TOP_K),
            document_types=("qa",),
        )

        seen_qa_ids: set[int] = set()
        results: list[HandbookSearchResult] = []
        for chunk in chunks:
            if chunk.doc_type != "qa" or not chunk.qa_id:
                continue
            if not chunk.section_slug or not chunk.book_slug:
                continue
            if chunk.qa_id in seen_qa_ids:
                continue

            question = chunk.question or parse_question_from_data(chunk.text)
            if not question or not chunk.section_title or not chunk.book_title:
                continue

            seen_qa_ids.add(chunk.qa_id)
            results.append(
                HandbookSearchResult(
                    qa_id=chunk.qa_id,
                    question=question,
                    section_id=chunk.section_id,
                    section_title=chunk.section_title,
                    section_slug=chunk.section_slug,
                    book_id=chunk.book_id,
                    book_title=chunk.book_title,
                    book_slug=chunk.book_slug,
                )
            )
            if len(results) >= limit:
                break

        return results
