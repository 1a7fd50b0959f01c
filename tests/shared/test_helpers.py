"""
Unit tests for the configuration and text helpers.
"""

import logging

import pytest

from shared.clients.cms.models.LocalizedField import PlainString, SplitByLanguage, parse_localized, resolve_localized
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import extract_plain_text, normalize_whitespace, pick_localized, truncate


@pytest.fixture
def config():
    return HelperConfig(logger=logging.getLogger("tests.helpers"))


class TestHelperConfig:
    """Tests for HelperConfig."""

    def test_blank_value_is_not_set(self, config, monkeypatch):
        monkeypatch.setenv("HANDBOOK_TEST_KEY", "   ")

        assert config.is_set("handbook_test_key") is False

    def test_missing_value_without_default_raises(self, config, monkeypatch):
        monkeypatch.delenv("HANDBOOK_TEST_KEY", raising=False)

        with pytest.raises(ValueError):
            config.get_string_val("HANDBOOK_TEST_KEY")
        assert config.get_string_val("HANDBOOK_TEST_KEY", default="fallback") == "fallback"

    def test_numbers_and_bools(self, config, monkeypatch):
        monkeypatch.setenv("HANDBOOK_FACTOR", "4")
        monkeypatch.setenv("HANDBOOK_RATIO", "0.5")
        monkeypatch.setenv("HANDBOOK_FLAG", "Yes")
        monkeypatch.setenv("HANDBOOK_BROKEN", "four")

        assert config.get_number_val("HANDBOOK_FACTOR") == 4
        assert config.get_number_val("HANDBOOK_RATIO") == 0.5
        assert config.get_bool_val("HANDBOOK_FLAG") is True
        with pytest.raises(ValueError):
            config.get_number_val("HANDBOOK_BROKEN")

    def test_list_values(self, config, monkeypatch):
        monkeypatch.setenv("HANDBOOK_ORIGINS", "[https://a.example, https://b.example]")
        monkeypatch.setenv("HANDBOOK_BAD_LIST", "https://a.example")

        assert config.get_list_val("HANDBOOK_ORIGINS") == ["https://a.example", "https://b.example"]
        with pytest.raises(ValueError):
            config.get_list_val("HANDBOOK_BAD_LIST")


class TestHelperText:
    """Tests for the plain-text helpers."""

    def test_normalize_and_truncate(self):
        assert normalize_whitespace("  a \n\t b  ") == "a b"
        assert normalize_whitespace(None) == ""
        assert truncate("abcdef", 3, "...") == "abc..."
        assert truncate("abc", 3, "...") == "abc"

    def test_pick_localized_falls_back(self):
        assert pick_localized("vi", "  ", "English") == "English"
        assert pick_localized("en", "Tiếng Việt", None) == "Tiếng Việt"
        assert pick_localized("en", "Tiếng Việt", "English") == "English"

    def test_extract_plain_text_from_lexical_tree(self):
        document = {
            "root": {
                "children": [
                    {"type": "paragraph", "children": [{"text": "Scope 3 covers"}, {"text": " the value\nchain."}]},
                    {"type": "list", "children": [{"children": [{"text": "Purchased goods"}]}]},
                ]
            }
        }

        assert extract_plain_text(document) == "Scope 3 covers the value chain. Purchased goods"
        assert extract_plain_text(None) == ""
        assert extract_plain_text("not a tree") == ""


class TestLocalizedField:
    """Tests for the tagged CMS string field."""

    def test_parse_localized_tags_both_shapes(self):
        assert parse_localized({"vi": "Phạm vi 3", "en": 3}) == SplitByLanguage(vi="Phạm vi 3", en=None)
        assert parse_localized("Scope 3") == PlainString(value="Scope 3")
        assert parse_localized(None) == PlainString(value=None)

    def test_resolve_localized(self):
        assert resolve_localized({"vi": "Phạm vi 3", "en": "Scope 3"}, "en") == "Scope 3"
        assert resolve_localized("Scope 3", "vi") == "Scope 3"
