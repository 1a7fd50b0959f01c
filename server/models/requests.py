from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RagRequest(CamelRequest):
    query: str | None = None
    lang: str | None = None
    book_slug: str | None = None
    section_id: int | None = None
    top_k: float | None = None


class SyncRequest(CamelRequest):
    """Body of the admin sync trigger.

    Either ids or select_all_matching_filters (with an optional CMS where
    expression) selects the documents to sync.
    """

    collection: Literal["qas", "sections"]
    ids: list[Any] | None = None
    select_all_matching_filters: bool = False
    where: dict | None = None


class WebhookRequest(BaseModel):
    collection: Literal["qas", "sections"]
    operation: Literal["change", "delete"]
    id: int

    @field_validator("id")
    @classmethod
    def id_must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("id must be a positive integer")
        return value
