"""
Unit tests for structured generation through the Ollama client.
"""

import json
import logging

import httpx
import pytest
from pydantic import BaseModel

from shared.clients.llm.GenerationError import GenerationError
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.helper.HelperConfig import HelperConfig


class Answer(BaseModel):
    answer: str
    citations: list[int]


@pytest.fixture(autouse=True)
def ollama_env(monkeypatch):
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama.local:11434")
    monkeypatch.setenv("LLM_CHAT_MODEL", "llama3.1")
    monkeypatch.delenv("LLM_OLLAMA_API_KEY", raising=False)
    monkeypatch.delenv("LLM_ENGINE", raising=False)


def make_client(reply: str, seen: list | None = None) -> LLMClientOllama:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(200, json={"message": {"role": "assistant", "content": reply}})

    client = LLMClientOllama(helper_config=HelperConfig(logger=logging.getLogger("tests.llm")))
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


class TestGenerateObject:
    """Tests for do_generate_object."""

    def test_manager_picks_ollama_by_default(self):
        client = LLMClientManager(helper_config=HelperConfig(logger=logging.getLogger("tests.llm"))).get_client()

        assert isinstance(client, LLMClientOllama)

    @pytest.mark.asyncio
    async def test_valid_reply_is_validated(self):
        seen = []
        client = make_client('{"answer": "Scope 3 [1]", "citations": [1]}', seen)

        result = await client.do_generate_object("system", "prompt", Answer, temperature=0.1)

        assert result == Answer(answer="Scope 3 [1]", citations=[1])
        assert seen[0]["model"] == "llama3.1"
        assert seen[0]["stream"] is False
        assert seen[0]["options"] == {"temperature": 0.1}
        assert seen[0]["format"] == Answer.model_json_schema()
        assert [message["role"] for message in seen[0]["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_code_fence_is_stripped(self):
        client = make_client('```json\n{"answer": "ok", "citations": []}\n```')

        result = await client.do_generate_object("system", "prompt", Answer)

        assert result.answer == "ok"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_generation_error(self):
        client = make_client("I cannot answer that.")

        with pytest.raises(GenerationError) as exc_info:
            await client.do_generate_object("system", "prompt", Answer)

        assert exc_info.value.raw_output == "I cannot answer that."

    @pytest.mark.asyncio
    async def test_schema_violation_raises_generation_error(self):
        client = make_client('{"answer": "ok", "citations": ["first"]}')

        with pytest.raises(GenerationError):
            await client.do_generate_object("system", "prompt", Answer)
