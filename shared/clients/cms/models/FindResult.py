from pydantic import BaseModel, Field


class FindResult(BaseModel):
    """One page of a CMS collection listing.

    Attributes:
        docs:          Raw documents of this page.
        has_next_page: True if another page follows.
        total_docs:    Total number of documents matching the query.
        page:          1-based page number of this result.
    """

    docs: list[dict] = Field(default_factory=list)
    has_next_page: bool = False
    total_docs: int = 0
    page: int = 1
