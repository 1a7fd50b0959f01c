from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HandbookSearchResult(BaseModel):
    """A Q&A hit shown in handbook search, with its section and book for display and linking."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    qa_id: int
    question: str
    section_id: int
    section_title: str
    section_slug: str
    book_id: int
    book_title: str
    book_slug: str
