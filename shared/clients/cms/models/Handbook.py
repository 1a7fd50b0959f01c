"""Handbook entities as read from the CMS - backend-independent."""

from typing import Any, Literal

from pydantic import BaseModel, Field

Status = Literal["draft", "published"]


class TermMetadata(BaseModel):
    """Free-form tags and keywords attached to a Section or Q&A (raw, un-normalised)."""

    tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class Book(BaseModel):
    """Root of a handbook. Owns Sections."""

    id: int
    slug: str
    title_vi: str | None = None
    title_en: str | None = None
    status: Status = "published"


class Section(BaseModel):
    """A chapter of a Book, ordered by (order, id) within it.

    book_id is None when the relation is missing or unresolvable.
    """

    id: int
    order: int = 0
    slug: str
    title_vi: str | None = None
    title_en: str | None = None
    summary_vi: str | None = None
    summary_en: str | None = None
    book_id: int | None = None
    status: Status = "draft"
    metadata: TermMetadata = Field(default_factory=TermMetadata)
    updated_at: str = ""


class QaSource(BaseModel):
    label: str
    url: str


class Qa(BaseModel):
    """A question/answer pair belonging to exactly one Section.

    Answers are kept as raw rich-text documents; the record mapper reduces them
    to plain text.
    """

    id: int
    order: int = 0
    question_vi: str | None = None
    question_en: str | None = None
    answer_vi: Any = None
    answer_en: Any = None
    section_id: int | None = None
    sources: list[QaSource] = Field(default_factory=list)
    metadata: TermMetadata = Field(default_factory=TermMetadata)
    status: Status = "draft"
    updated_at: str = ""
