from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.clients.cms.models.SearchResult import HandbookSearchResult
from shared.clients.vector.models.VectorRecord import DocType, Language


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RetrievedChunk(CamelModel):
    """One piece of retrieved evidence: a section or Q&A record in one language.

    Only lives for a single retrieval and generation cycle.
    """

    id: str
    score: float
    doc_type: DocType
    lang: Language
    text: str
    question: str | None = None
    qa_id: int | None = None
    section_id: int
    section_slug: str
    section_title: str = ""
    book_id: int
    book_slug: str
    book_title: str = ""


class HandbookRagResponse(CamelModel):
    """Grounded answer with the evidence it may cite.

    citations only ever holds chunks that were actually retrieved for the query.
    """

    answer: str
    language: Language
    citations: list[RetrievedChunk] = Field(default_factory=list)
    results: list[RetrievedChunk] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class HandbookSearchResponse(CamelModel):
    results: list[HandbookSearchResult]
    total: int


class SyncResultItem(CamelModel):
    id: int
    success: bool
    vectors_upserted: int = 0
    error: str | None = None


class SyncResponse(CamelModel):
    success: bool
    collection: Literal["qas", "sections"]
    select_all_matching_filters: bool
    ids: list[int]
    success_count: int
    failure_count: int
    vectors_upserted: int
    results: list[SyncResultItem]


class WebhookResponse(CamelModel):
    status: str
    collection: str
    operation: str
    id: int


class HealthResponse(CamelModel):
    status: str
    vector_configured: bool
    namespace: str
