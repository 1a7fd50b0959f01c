"""Retrieval-augmented answers over the handbook.

Retrieved chunks are numbered into a context block, the generation model
answers in a strict JSON shape citing those numbers, and citations are then
checked against the chunks that were really retrieved. Follow-up suggestions
are generated separately and always come back as exactly three questions.
"""

import re
import unicodedata

from server.core.RetrievalService import MAX_TOP_K, RetrievalService
from server.models.generation import (
    CITATION_COUNT,
    MAX_SUGGESTION_LENGTH,
    SUGGESTIONS_COUNT,
    RagAnswerSchema,
    SuggestionsSchema,
)
from server.models.responses import HandbookRagResponse, RetrievedChunk
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.vector.models.VectorRecord import Language
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import normalize_whitespace, truncate

DEFAULT_TOP_K = 6
MAX_CONTEXT_CHARS_PER_CHUNK = 700
MAX_RESPONSE_CHARS_PER_CHUNK = 320
MAX_QUERY_LENGTH = 2000
FALLBACK_TOPIC_LENGTH = 48

ANSWER_TEMPERATURE = 0.1
SUGGESTIONS_TEMPERATURE = 0.7

_LEADING_MARKERS = re.compile(r"^[-*•\d.)\s]+")
_SURROUNDING_QUOTES = re.compile(r"^[\"'“”‘’]+|[\"'“”‘’]+$")
_TRAILING_SENTENCE_PUNCTUATION = re.compile(r"[.!。]+$")
_TRAILING_QUERY_PUNCTUATION = re.compile(r"[?!。？！.]+$")

EMPTY_ANSWERS: dict[str, str] = {
    "vi": "Tôi chưa tìm thấy thông tin phù hợp trong tài liệu hiện có.",
    "en": "I could not find relevant information in the current handbook content.",
}

ANSWER_SYSTEM_PROMPTS: dict[str, str] = {
    "vi": "\n".join([
        "Bạn là trợ lý tri thức cho sổ tay Carbon Book.",
        "Chỉ trả lời bằng tiếng Việt.",
        "Chỉ dùng thông tin trong ngữ cảnh được cung cấp.",
        "Nếu thiếu dữ liệu, nói rõ là chưa đủ thông tin.",
        "Trả lời ngắn gọn, đúng trọng tâm.",
        "Khi trích dẫn nguồn, dùng các số [1], [2], v.v. khớp với các nhãn Citation #N.",
        "QUAN TRỌNG: Trả lời CHỈ định dạng JSON như sau, không có văn bản khác:",
        '{"answer": "...", "citations": [1, 2]}',
    ]),
    "en": "\n".join([
        "You are a handbook QA assistant for Carbon Book.",
        "Answer only in English.",
        "Use only the provided context.",
        "If evidence is insufficient, explicitly say so.",
        "Keep the answer concise and direct.",
        "When citing sources, reference them as [1], [2], etc., matching the Citation #N labels.",
        "IMPORTANT: Respond ONLY in JSON format, no other text:",
        '{"answer": "...", "citations": [1, 2]}',
    ]),
}

SUGGESTIONS_SYSTEM_PROMPTS: dict[str, str] = {
    "vi": "\n".join([
        "Bạn là trợ lý tạo câu hỏi tiếp theo cho sổ tay Carbon Book.",
        "",
        "NHIỆM VỤ: Tạo 3 câu hỏi tiếp theo có liên quan nhất dựa trên câu hỏi gốc và câu trả lời đã cho.",
        "",
        "YÊU CẦU VỀ ĐỊNH DẠNG CÂU HỎI:",
        "- Mỗi câu hỏi phải ngắn gọn (dưới 100 ký tự)",
        '- Phải bắt đầu với "Cách", "Làm sao", "Tại sao", "Là gì", "Có thể" hoặc "Nên"',
        '- Luôn kết thúc bằng dấu "?"',
        "- Không lặp lại từ khóa chính từ câu hỏi gốc",
        "- Phải có thể trả lời từ ngữ cảnh hiện có",
        "",
        "ĐỊNH DẠNG ĐẦU RA (BẮT BUỘC): Chỉ trả lời JSON hợp lệ, không markdown, không văn bản khác:",
        '{"suggestions": ["Câu hỏi 1?", "Câu hỏi 2?", "Câu hỏi 3?"]}',
    ]),
    "en": "\n".join([
        "You are a follow-up question suggestion generator for Carbon Book handbook.",
        "",
        "TASK: Generate 3 most relevant follow-up questions based on the original query and answer provided.",
        "",
        "QUESTION FORMAT REQUIREMENTS:",
        "- Each question must be concise (under 100 characters)",
        '- Start with "What", "How", "Why", "Can", "Should", or "Where"',
        '- Always end with a question mark "?"',
        "- Avoid repeating main keywords from the original query",
        "- Must be answerable from the current context",
        "",
        "OUTPUT FORMAT (STRICT): Return valid JSON only, no markdown, no extra text:",
        '{"suggestions": ["Question 1?", "Question 2?", "Question 3?"]}',
    ]),
}

FALLBACK_TEMPLATES: dict[str, tuple[str, ...]] = {
    "vi": (
        "Làm sao áp dụng {topic} trong thực tế?",
        "Tại sao {topic} lại quan trọng?",
        "Nên tìm hiểu thêm gì về {topic}?",
    ),
    "en": (
        "How can I apply {topic} in practice?",
        "Why is {topic} important here?",
        "What should I explore next about {topic}?",
    ),
}
FALLBACK_TOPICS: dict[str, str] = {"vi": "nội dung này", "en": "this topic"}


def get_empty_answer(language: Language) -> str:
    return EMPTY_ANSWERS["vi" if language == "vi" else "en"]


def empty_response(language: Language, answer: str | None = None) -> HandbookRagResponse:
    return HandbookRagResponse(answer=answer or get_empty_answer(language), language=language)


def compact_chunk(chunk: RetrievedChunk) -> RetrievedChunk:
    """Copy of chunk with its text cut down for the response payload."""
    return chunk.model_copy(
        update={"text": truncate(normalize_whitespace(chunk.text), MAX_RESPONSE_CHARS_PER_CHUNK, "...")}
    )


def build_context_block(chunks: list[RetrievedChunk]) -> str:
    """Number chunks as "Citation #N" (1-based, in retrieval order) for the prompt."""
    blocks: list[str] = []
    for index, chunk in enumerate(chunks, start=1):
        heading = " | ".join([
            f"**Citation #{index}**",
            f"id={chunk.id}",
            f"type={chunk.doc_type}",
            f"book={chunk.book_title}",
            f"section={chunk.section_title}",
        ])
        text = truncate(normalize_whitespace(chunk.text), MAX_CONTEXT_CHARS_PER_CHUNK, "...")
        blocks.append(f"{heading}\n{text}")
    return "\n\n---\n\n".join(blocks)


def select_cited_chunks(chunks: list[RetrievedChunk], citations: list[int]) -> list[RetrievedChunk]:
    """Map citation numbers back to chunks; numbers outside 1..len(chunks) are dropped.

    Citation N always means chunks[N - 1]. The result keeps retrieval order and
    holds at most CITATION_COUNT chunks.
    """
    cited = set(citations)
    return [chunk for index, chunk in enumerate(chunks, start=1) if index in cited][:CITATION_COUNT]


def normalize_suggestion(value: str) -> str:
    """Clean one suggestion into a single question ending in "?", "" if nothing is left."""
    cleaned = _LEADING_MARKERS.sub("", normalize_whitespace(value))
    cleaned = _SURROUNDING_QUOTES.sub("", cleaned)
    if not cleaned:
        return ""

    normalized = _TRAILING_SENTENCE_PUNCTUATION.sub("", cleaned) or cleaned
    if not normalized.endswith("?"):
        normalized = f"{normalized}?"

    if len(normalized) > MAX_SUGGESTION_LENGTH:
        normalized = f"{normalized[:MAX_SUGGESTION_LENGTH - 1].rstrip()}?"
    return normalized


def build_fallback_suggestions(query: str, language: Language) -> list[str]:
    """Three templated follow-up questions about the query's topic."""
    topic = _TRAILING_QUERY_PUNCTUATION.sub("", normalize_whitespace(query))[:FALLBACK_TOPIC_LENGTH]
    key = "vi" if language == "vi" else "en"
    safe_topic = topic or FALLBACK_TOPICS[key]
    suggestions = [normalize_suggestion(template.format(topic=safe_topic)) for template in FALLBACK_TEMPLATES[key]]
    return suggestions[:SUGGESTIONS_COUNT]


def _dedupe_key(value: str, language: Language) -> str:
    """Case-insensitive comparison key for a suggestion in the given language.

    Vietnamese text may arrive with decomposed diacritics, so it is composed first.
    """
    if language == "vi":
        value = unicodedata.normalize("NFC", value)
    return value.casefold()


def finalize_suggestions(suggestions: list[str], query: str, language: Language) -> list[str]:
    """Normalize and de-duplicate model suggestions, padding with fallbacks up to three."""
    unique: list[str] = []
    seen: set[str] = set()

    for suggestion in suggestions:
        normalized = normalize_suggestion(suggestion)
        if not normalized:
            continue
        key = _dedupe_key(normalized, language)
        if key in seen:
            continue
        seen.add(key)
        unique.append(normalized)
        if len(unique) == SUGGESTIONS_COUNT:
            return unique

    for fallback in build_fallback_suggestions(query, language):
        key = _dedupe_key(fallback, language)
        if key in seen:
            continue
        seen.add(key)
        unique.append(fallback)
        if len(unique) == SUGGESTIONS_COUNT:
            break

    return unique[:SUGGESTIONS_COUNT]


def build_suggestions_prompt(query: str, answer: str, language: Language) -> str:
    if language == "vi":
        return "\n".join(["CÂU HỎI GỐC: " + query, "", "CÂU TRẢ LỜI ĐÃ CHO:", answer, "", "Tạo 3 câu hỏi tiếp theo:"])
    return "\n".join(["ORIGINAL QUESTION: " + query, "", "PROVIDED ANSWER:", answer, "", "Generate 3 follow-up questions:"])


class RagService:
    """Answers handbook questions from retrieved evidence only."""

    def __init__(
        self,
        helper_config: HelperConfig,
        retrieval_service: RetrievalService,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._retrieval_service = retrieval_service
        self._llm_client = llm_client

    def _log_error(self, query: str, language: str, stage: str, error: BaseException) -> None:
        self.logging.error(
            "RAG error lang=%s query=%r: %s: %s",
            language, query[:80], error.__class__.__name__, error,
            exc_info=error,
            extra={"stage": stage},
        )

    ##########################################
    ############### ANSWER ###################
    ##########################################

    async def generate_handbook_rag_response(
        self,
        query: str,
        language: Language,
        top_k: int | None = None,
        book_slug: str | None = None,
        section_id: int | None = None,
    ) -> HandbookRagResponse:
        """Answer a query from the handbook with validated citations.

        Retrieval and generation failures never propagate: the caller always
        gets a response, at worst the canned "no information" answer.

        Args:
            query (str): User query, trimmed and capped to 2000 characters.
            language (Language): Answer language.
            top_k (int | None): Number of chunks used as context, clamped to [1, 40], default 6.
            book_slug (str | None): Restrict retrieval to one book.
            section_id (int | None): Restrict retrieval to one section.

        Returns:
            HandbookRagResponse: Answer, cited chunks, all retrieved chunks and suggestions.
        """
        safe_query = query.strip()[:MAX_QUERY_LENGTH]
        if not safe_query:
            return empty_response(language)

        safe_top_k = min(max(top_k if top_k is not None else DEFAULT_TOP_K, 1), MAX_TOP_K)

        try:
            chunks = await self._retrieval_service.retrieve_handbook_hybrid(
                safe_query,
                language,
                top_k=safe_top_k,
                book_slug=book_slug,
                section_id=section_id,
                document_types=("qa", "section"),
            )
        except Exception as exc:
            self._log_error(safe_query, language, "retrieval", exc)
            return empty_response(language)

        # never build a context larger than requested, even if retrieval over-returns
        context_chunks = chunks[:safe_top_k]
        if not context_chunks:
            return empty_response(language)

        response_results = [compact_chunk(chunk) for chunk in context_chunks]
        prompt = "\n".join([f"User query: {safe_query}", "", "Context:", build_context_block(context_chunks)])

        try:
            parsed = await self._llm_client.do_generate_object(
                system=ANSWER_SYSTEM_PROMPTS["vi" if language == "vi" else "en"],
                prompt=prompt,
                schema=RagAnswerSchema,
                temperature=ANSWER_TEMPERATURE,
            )
        except Exception as exc:
            self._log_error(safe_query, language, "generation", exc)
            return HandbookRagResponse(
                answer=get_empty_answer(language),
                language=language,
                results=response_results,
            )

        cited_chunks = select_cited_chunks(context_chunks, parsed.citations)
        suggestions = await self.generate_suggestions(safe_query, parsed.answer, language)

        self.logging.info(
            "RAG answer for lang=%s: %d chunk(s) in context, %d of %d citation(s) valid.",
            language, len(context_chunks), len(cited_chunks), len(parsed.citations),
        )
        return HandbookRagResponse(
            answer=parsed.answer,
            language=language,
            citations=[compact_chunk(chunk) for chunk in cited_chunks],
            results=response_results,
            suggestions=suggestions,
        )

    ##########################################
    ############# SUGGESTIONS ################
    ##########################################

    async def generate_suggestions(self, query: str, answer: str, language: Language) -> list[str]:
        """Generate exactly three follow-up questions.

        Any failure falls back to the templated questions.
        """
        try:
            parsed = await self._llm_client.do_generate_object(
                system=SUGGESTIONS_SYSTEM_PROMPTS["vi" if language == "vi" else "en"],
                prompt=build_suggestions_prompt(query, answer, language),
                schema=SuggestionsSchema,
                temperature=SUGGESTIONS_TEMPERATURE,
            )
            return finalize_suggestions(parsed.suggestions, query, language)
        except Exception as exc:
            self._log_error(query, language, "suggestions", exc)
            return build_fallback_suggestions(query, language)
