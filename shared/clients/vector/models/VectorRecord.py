"""VectorRecord model - one derived, denormalised handbook entry in the vector index."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DocType = Literal["qa", "section"]
Language = Literal["vi", "en"]

SUPPORTED_LANGUAGES: tuple[Language, ...] = ("vi", "en")


class VectorMetadata(BaseModel):
    """Structured metadata stored next to each record and used by hybrid filters.

    Keys are serialised in camelCase (docType, bookSlug, sectionId, ...) because the
    filter expressions built at query time reference them by those names.

    Attributes:
        doc_type:       "qa" or "section".
        lang:           Language of the record content.
        doc_id:         Id of the source entity (Q&A id or Section id).
        qa_id:          Q&A id, only set on Q&A records.
        section_id:     Owning (or own) section id.
        book_id:        Owning book id.
        book_slug:      Owning book slug, used for book-scoped retrieval.
        book_title:     Localised book title (denormalised).
        section_slug:   Section slug.
        section_title:  Localised section title (denormalised).
        published:      Mirrors the entity's publication status.
        tags:           Normalised, de-duplicated tags.
        keywords:       Normalised, de-duplicated keywords.
        updated_at:     Entity updatedAt timestamp as delivered by the CMS.
        question:       Localised question, only set on Q&A records.
        title:          Localised section title, only set on Section records.
        record_version: Layout tag of the record, bumped on format migrations.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    doc_type: DocType
    lang: Language
    doc_id: int
    qa_id: int | None = None
    section_id: int
    book_id: int
    book_slug: str
    book_title: str | None = None
    section_slug: str
    section_title: str | None = None
    published: bool
    tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    updated_at: str = ""
    question: str | None = None
    title: str | None = None
    record_version: str


class VectorRecord(BaseModel):
    """A record as written to the vector store.

    The id is "{docType}:{entityId}:{lang}" and acts as the idempotency key:
    re-upserting the same id overwrites the stored record.
    """

    id: str
    data: str
    metadata: VectorMetadata

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "data": self.data,
            "metadata": self.metadata.model_dump(by_alias=True, exclude_none=True),
        }
