"""Record mapper.

Pure functions turning (Section, Book) and (Q&A, Section, Book) triples into
vector records, one per supported language. Nothing here performs I/O.
"""

from shared.clients.cms.models.Handbook import Book, Qa, Section
from shared.clients.vector.models.VectorRecord import (
    SUPPORTED_LANGUAGES,
    DocType,
    Language,
    VectorMetadata,
    VectorRecord,
)
from shared.helper.HelperText import extract_plain_text, normalize_whitespace, pick_localized, truncate

RECORD_VERSION = "v1"
MAX_DATA_LENGTH = 8000    # characters per record text blob
MAX_ANSWER_LENGTH = 4000  # characters of answer text per Q&A record
MAX_SUMMARY_LENGTH = 1000 # characters of summary text per Section record


def normalize_terms(values: list[str] | None) -> list[str]:
    """Trim, collapse whitespace and de-duplicate tags or keywords case-insensitively.

    The first spelling of a term wins and the input order is preserved.

    Args:
        values (list[str] | None): Raw terms.

    Returns:
        list[str]: Cleaned terms.
    """
    seen: set[str] = set()
    terms: list[str] = []
    for value in values or []:
        normalized = normalize_whitespace(value)
        if not normalized:
            continue
        key = normalized.casefold()
        if key in seen:
            continue
        seen.add(key)
        terms.append(normalized)
    return terms


def create_record_id(doc_type: DocType, entity_id: int, language: Language) -> str:
    return f"{doc_type}:{entity_id}:{language}"


def build_qa_record_ids(qa_id: int) -> list[str]:
    return [create_record_id("qa", qa_id, language) for language in SUPPORTED_LANGUAGES]


def build_section_record_ids(section_id: int) -> list[str]:
    return [create_record_id("section", section_id, language) for language in SUPPORTED_LANGUAGES]


def _term_rows(tags: list[str], keywords: list[str]) -> list[str]:
    rows: list[str] = []
    if tags:
        rows.append(f"tags: {', '.join(tags)}")
    if keywords:
        rows.append(f"keywords: {', '.join(keywords)}")
        # space-joined duplicate biases lexical matching towards keywords
        rows.append(f"keyword_terms: {' '.join(keywords)}")
    return rows


def _assemble(rows: list[str]) -> str:
    return truncate("\n".join(row for row in rows if row), MAX_DATA_LENGTH)


def _build_section_data(section: Section, book: Book, language: Language, tags: list[str], keywords: list[str]) -> str:
    summary = truncate(pick_localized(language, section.summary_vi, section.summary_en), MAX_SUMMARY_LENGTH)
    rows = [
        "type: section",
        f"language: {language}",
        f"book: {pick_localized(language, book.title_vi, book.title_en)}",
        f"section: {pick_localized(language, section.title_vi, section.title_en)}",
        f"summary: {summary}" if summary else "",
        *_term_rows(tags, keywords),
    ]
    return _assemble(rows)


def _pick_answer(qa: Qa, language: Language) -> str:
    primary, secondary = (qa.answer_vi, qa.answer_en) if language == "vi" else (qa.answer_en, qa.answer_vi)
    return extract_plain_text(primary) or extract_plain_text(secondary)


def _build_qa_data(qa: Qa, section: Section, book: Book, language: Language, tags: list[str], keywords: list[str]) -> str:
    question = pick_localized(language, qa.question_vi, qa.question_en)
    answer = truncate(_pick_answer(qa, language), MAX_ANSWER_LENGTH)
    rows = [
        "type: qa",
        f"language: {language}",
        f"book: {pick_localized(language, book.title_vi, book.title_en)}",
        f"section: {pick_localized(language, section.title_vi, section.title_en)}",
        f"question: {question}" if question else "",
        f"answer: {answer}" if answer else "",
        *_term_rows(tags, keywords),
    ]
    return _assemble(rows)


def build_section_vector_records(section: Section, book: Book) -> list[VectorRecord]:
    """Build one record per language for a section.

    Args:
        section (Section): The section, already resolved and published.
        book (Book): The section's book.

    Returns:
        list[VectorRecord]: The vi and en records, in that order.
    """
    tags = normalize_terms(section.metadata.tags)
    keywords = normalize_terms(section.metadata.keywords)

    records: list[VectorRecord] = []
    for language in SUPPORTED_LANGUAGES:
        title = pick_localized(language, section.title_vi, section.title_en)
        records.append(
            VectorRecord(
                id=create_record_id("section", section.id, language),
                data=_build_section_data(section, book, language, tags, keywords),
                metadata=VectorMetadata(
                    doc_type="section",
                    lang=language,
                    doc_id=section.id,
                    section_id=section.id,
                    book_id=book.id,
                    book_slug=book.slug,
                    book_title=pick_localized(language, book.title_vi, book.title_en),
                    section_slug=section.slug,
                    section_title=title,
                    published=section.status == "published",
                    tags=tags,
                    keywords=keywords,
                    updated_at=section.updated_at,
                    title=title,
                    record_version=RECORD_VERSION,
                ),
            )
        )
    return records


def build_qa_vector_records(qa: Qa, section: Section, book: Book) -> list[VectorRecord]:
    """Build one record per language for a Q&A.

    Section and book titles are copied into every record, so a rename upstream
    requires the Q&A records to be rebuilt.

    Args:
        qa (Qa): The Q&A, already resolved and published.
        section (Section): The Q&A's section.
        book (Book): The section's book.

    Returns:
        list[VectorRecord]: The vi and en records, in that order.
    """
    tags = normalize_terms(qa.metadata.tags)
    keywords = normalize_terms(qa.metadata.keywords)

    records: list[VectorRecord] = []
    for language in SUPPORTED_LANGUAGES:
        records.append(
            VectorRecord(
                id=create_record_id("qa", qa.id, language),
                data=_build_qa_data(qa, section, book, language, tags, keywords),
                metadata=VectorMetadata(
                    doc_type="qa",
                    lang=language,
                    doc_id=qa.id,
                    qa_id=qa.id,
                    section_id=section.id,
                    book_id=book.id,
                    book_slug=book.slug,
                    book_title=pick_localized(language, book.title_vi, book.title_en),
                    section_slug=section.slug,
                    section_title=pick_localized(language, section.title_vi, section.title_en),
                    published=qa.status == "published",
                    tags=tags,
                    keywords=keywords,
                    updated_at=qa.updated_at,
                    question=pick_localized(language, qa.question_vi, qa.question_en),
                    record_version=RECORD_VERSION,
                ),
            )
        )
    return records
