"""Localised text as it arrives from the CMS, resolved once at the client boundary.

A CMS field is either a plain string (one column per language, e.g. title_vi) or,
when field-level localisation is enabled, an object keyed by locale. Both shapes
become a LocalizedField; the rest of the code only sees the resolved string.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel


class PlainString(BaseModel):
    kind: Literal["plain"] = "plain"
    value: str | None = None

    def for_language(self, language: str) -> str | None:
        return self.value


class SplitByLanguage(BaseModel):
    kind: Literal["split"] = "split"
    vi: str | None = None
    en: str | None = None

    def for_language(self, language: str) -> str | None:
        return self.vi if language == "vi" else self.en


LocalizedField = Union[PlainString, SplitByLanguage]


def parse_localized(raw: Any) -> LocalizedField:
    """Classify a raw CMS string field.

    Args:
        raw (Any): A string, a {"vi": ..., "en": ...} object, or None.

    Returns:
        LocalizedField: The tagged value.
    """
    if isinstance(raw, dict) and ("vi" in raw or "en" in raw):
        return SplitByLanguage(
            vi=raw.get("vi") if isinstance(raw.get("vi"), str) else None,
            en=raw.get("en") if isinstance(raw.get("en"), str) else None,
        )
    return PlainString(value=raw if isinstance(raw, str) else None)


def resolve_localized(raw: Any, language: str) -> str | None:
    """Resolve a raw CMS string field to the value stored for one language."""
    return parse_localized(raw).for_language(language)
