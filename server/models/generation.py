"""Structured output shapes requested from the generation model."""

from typing import Annotated

from pydantic import BaseModel, Field

CITATION_COUNT = 4
SUGGESTIONS_COUNT = 3
MAX_ANSWER_LENGTH = 1500
MAX_SUGGESTION_LENGTH = 150

# 1-based, matching the "Citation #N" labels of the context block
CitationNumber = Annotated[int, Field(ge=1)]
SuggestionText = Annotated[str, Field(min_length=1, max_length=MAX_SUGGESTION_LENGTH)]


class RagAnswerSchema(BaseModel):
    answer: str = Field(min_length=1, max_length=MAX_ANSWER_LENGTH)
    citations: list[CitationNumber] = Field(max_length=CITATION_COUNT)


class SuggestionsSchema(BaseModel):
    suggestions: list[SuggestionText] = Field(min_length=SUGGESTIONS_COUNT, max_length=SUGGESTIONS_COUNT)
