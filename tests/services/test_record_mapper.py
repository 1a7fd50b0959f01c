"""
Unit tests for the record mapper.
"""

from services.handbook_vector_sync.RecordMapper import (
    MAX_DATA_LENGTH,
    RECORD_VERSION,
    build_qa_record_ids,
    build_qa_vector_records,
    build_section_record_ids,
    build_section_vector_records,
    create_record_id,
    normalize_terms,
)
from shared.clients.cms.models.Handbook import TermMetadata
from tests.factories import make_book, make_qa, make_section


class TestNormalizeTerms:
    """Tests for tag and keyword normalization."""

    def test_trims_collapses_and_dedupes_case_insensitively(self):
        terms = normalize_terms(["  Scope   3 ", "scope 3", "SCOPE 3", "Value chain", "", "   "])

        assert terms == ["Scope 3", "Value chain"]

    def test_preserves_first_seen_order_and_casing(self):
        assert normalize_terms(["b", "A", "a", "B", "c"]) == ["b", "A", "c"]

    def test_none_is_empty(self):
        assert normalize_terms(None) == []


class TestRecordIds:
    """Tests for deterministic record ids."""

    def test_create_record_id(self):
        assert create_record_id("qa", 42, "vi") == "qa:42:vi"

    def test_id_builders_cover_both_languages(self):
        assert build_qa_record_ids(42) == ["qa:42:vi", "qa:42:en"]
        assert build_section_record_ids(7) == ["section:7:vi", "section:7:en"]

    def test_qa_ids_match_built_records(self):
        records = build_qa_vector_records(make_qa(42), make_section(), make_book())

        assert [record.id for record in records] == build_qa_record_ids(42)

    def test_section_ids_match_built_records(self):
        records = build_section_vector_records(make_section(7), make_book())

        assert [record.id for record in records] == build_section_record_ids(7)


class TestSectionRecords:
    """Tests for section record construction."""

    def test_one_record_per_language_with_localized_titles(self):
        section = make_section(summary_en="Direct and indirect emissions.", summary_vi=None)
        vi_record, en_record = build_section_vector_records(section, make_book())

        assert vi_record.metadata.lang == "vi"
        assert vi_record.metadata.section_title == "Phát thải phạm vi"
        assert vi_record.metadata.book_title == "Sổ tay Carbon"
        assert en_record.metadata.section_title == "Scope emissions"
        assert en_record.metadata.title == "Scope emissions"
        # vi falls back to the English summary when the Vietnamese one is blank
        assert "summary: Direct and indirect emissions." in vi_record.data

    def test_data_layout(self):
        section = make_section(metadata=TermMetadata(tags=["ghg", "GHG"], keywords=["scope 1", "scope 2"]))
        _, en_record = build_section_vector_records(section, make_book())

        assert en_record.data.split("\n") == [
            "type: section",
            "language: en",
            "book: Carbon Book",
            "section: Scope emissions",
            "tags: ghg",
            "keywords: scope 1, scope 2",
            "keyword_terms: scope 1 scope 2",
        ]

    def test_metadata_payload_uses_camel_case(self):
        _, en_record = build_section_vector_records(make_section(), make_book())
        payload = en_record.to_payload()

        assert payload["id"] == "section:10:en"
        assert payload["metadata"]["docType"] == "section"
        assert payload["metadata"]["bookSlug"] == "carbon-book"
        assert payload["metadata"]["sectionId"] == 10
        assert payload["metadata"]["published"] is True
        assert payload["metadata"]["recordVersion"] == RECORD_VERSION
        assert "qaId" not in payload["metadata"]


class TestQaRecords:
    """Tests for Q&A record construction."""

    def test_contains_question_and_plain_text_answer(self):
        _, en_record = build_qa_vector_records(make_qa(), make_section(), make_book())

        assert "question: What are scope 3 emissions?" in en_record.data
        assert "answer: Indirect emissions in the value chain." in en_record.data
        assert en_record.metadata.qa_id == 100
        assert en_record.metadata.doc_id == 100
        assert en_record.metadata.question == "What are scope 3 emissions?"
        assert en_record.metadata.tags == ["scope 3"]
        assert en_record.metadata.keywords == ["value chain"]

    def test_vietnamese_record_falls_back_to_english_answer(self):
        vi_record, _ = build_qa_vector_records(make_qa(answer_vi=None), make_section(), make_book())

        assert "answer: Indirect emissions in the value chain." in vi_record.data
        assert vi_record.metadata.question == "Phát thải phạm vi 3 là gì?"

    def test_question_never_empty_if_either_language_set(self):
        qa = make_qa(question_vi="  ", question_en="What is a carbon budget?")
        vi_record, en_record = build_qa_vector_records(qa, make_section(), make_book())

        assert vi_record.metadata.question == "What is a carbon budget?"
        assert en_record.metadata.question == "What is a carbon budget?"

    def test_data_is_capped(self):
        long_answer = {"root": {"children": [{"text": "x" * 20000}]}}
        records = build_qa_vector_records(make_qa(answer_en=long_answer, answer_vi=long_answer), make_section(), make_book())

        assert all(len(record.data) <= MAX_DATA_LENGTH for record in records)

    def test_denormalizes_section_and_book(self):
        _, en_record = build_qa_vector_records(make_qa(), make_section(title_en="Renamed"), make_book())

        assert en_record.metadata.section_title == "Renamed"
        assert en_record.metadata.book_title == "Carbon Book"
        assert en_record.metadata.section_slug == "scope-emissions"
