from typing import Any

from shared.clients.cms.CMSClientInterface import CMSClientInterface, COLLECTION_QAS
from shared.clients.cms.models.FindResult import FindResult
from shared.clients.cms.models.Handbook import Book, Qa, QaSource, Section, TermMetadata
from shared.clients.cms.models.LocalizedField import resolve_localized
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


def _flatten_query(value: Any, prefix: str) -> list[tuple[str, str]]:
    """Encode a nested structure as bracketed query parameters (qs style).

    {"and": [{"_status": {"equals": "published"}}]} with prefix "where" becomes
    [("where[and][0][_status][equals]", "published")].
    """
    if isinstance(value, dict):
        params: list[tuple[str, str]] = []
        for key, item in value.items():
            params.extend(_flatten_query(item, f"{prefix}[{key}]"))
        return params
    if isinstance(value, (list, tuple)):
        params = []
        for index, item in enumerate(value):
            params.extend(_flatten_query(item, f"{prefix}[{index}]"))
        return params
    if isinstance(value, bool):
        return [(prefix, "true" if value else "false")]
    return [(prefix, str(value))]


def _relation_id(value: Any) -> int | None:
    """Resolve a relationship field that is either an id or a populated document."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _term_rows(rows: Any) -> list[str]:
    """Extract raw values from an array field of {"value": ...} rows."""
    if not isinstance(rows, list):
        return []
    values: list[str] = []
    for row in rows:
        value = row.get("value") if isinstance(row, dict) else row
        if isinstance(value, str):
            values.append(value)
    return values


class CMSClientPayload(CMSClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._auth_collection = self.get_config_val("AUTH_COLLECTION", default="users", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Payload"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="AUTH_COLLECTION", val_type="string", default="users"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"{self._auth_collection} API-Key {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/books?limit=1&depth=0"

    def _get_endpoint_collection(self, collection: str) -> str:
        return f"/api/{collection}"

    def _get_endpoint_document(self, collection: str, document_id: int) -> str:
        return f"/api/{collection}/{document_id}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_find_params(self, where: dict | None, page: int, limit: int, draft: bool, sort: str | None) -> list[tuple[str, str]]:
        params = [
            ("depth", "0"),
            ("limit", str(limit)),
            ("page", str(page)),
            ("pagination", "true"),
            ("draft", "true" if draft else "false"),
        ]
        if sort:
            params.append(("sort", sort))
        if where:
            params.extend(_flatten_query(where, "where"))
        return params

    def get_find_by_id_params(self, draft: bool) -> list[tuple[str, str]]:
        return [("depth", "0"), ("draft", "true" if draft else "false")]

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def parse_find_result(self, raw_response: dict) -> FindResult:
        return FindResult(
            docs=[doc for doc in raw_response.get("docs", []) if isinstance(doc, dict)],
            has_next_page=bool(raw_response.get("hasNextPage")),
            total_docs=int(raw_response.get("totalDocs") or 0),
            page=int(raw_response.get("page") or 1),
        )

    def parse_book(self, raw: dict) -> Book:
        return Book(
            id=raw.get("id"),
            slug=raw.get("slug") or "",
            title_vi=resolve_localized(raw.get("title_vi"), "vi"),
            title_en=resolve_localized(raw.get("title_en"), "en"),
            status=raw.get("_status") or "published",
        )

    def parse_section(self, raw: dict) -> Section:
        metadata = raw.get("metadata") or {}
        return Section(
            id=raw.get("id"),
            order=raw.get("order") or 0,
            slug=raw.get("slug") or "",
            title_vi=resolve_localized(raw.get("title_vi"), "vi"),
            title_en=resolve_localized(raw.get("title_en"), "en"),
            summary_vi=resolve_localized(raw.get("summary_vi"), "vi"),
            summary_en=resolve_localized(raw.get("summary_en"), "en"),
            book_id=_relation_id(raw.get("book")),
            status=raw.get("_status") or "draft",
            metadata=TermMetadata(tags=_term_rows(metadata.get("tags")), keywords=_term_rows(metadata.get("keywords"))),
            updated_at=raw.get("updatedAt") or "",
        )

    def parse_qa(self, raw: dict) -> Qa:
        metadata = raw.get("metadata") or {}
        sources = [
            QaSource(label=source["label"], url=source["url"])
            for source in raw.get("sources") or []
            if isinstance(source, dict) and source.get("label") and source.get("url")
        ]
        return Qa(
            id=raw.get("id"),
            order=raw.get("order") or 0,
            question_vi=resolve_localized(raw.get("question_vi"), "vi"),
            question_en=resolve_localized(raw.get("question_en"), "en"),
            answer_vi=raw.get("answer_vi"),
            answer_en=raw.get("answer_en"),
            section_id=_relation_id(raw.get("section")),
            sources=sources,
            metadata=TermMetadata(tags=_term_rows(metadata.get("tags")), keywords=_term_rows(metadata.get("keywords"))),
            status=raw.get("_status") or "draft",
            updated_at=raw.get("updatedAt") or "",
        )

    def extract_search_qa_id(self, raw: dict) -> int | None:
        doc = raw.get("doc") or {}
        if not isinstance(doc, dict) or doc.get("relationTo") != COLLECTION_QAS:
            return None
        return _relation_id(doc.get("value"))
