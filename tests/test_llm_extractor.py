from __future__ import annotations

import json
from typing import List

import pytest

from config.settings import LLMSettings
from core.contracts import ProductIdentity, PropertySpec
from extractors.llm_extractor import LLMStructuredExtractor, parse_json_reply
from extractors.prompts import build_user_prompt
from llm.base import BaseLLM, LLMResponse, Message
from llm.factory import get_llm
from llm.openai_llm import OpenAILLM
from utils.exceptions import ConfigurationError, ExtractionError

SCHEMA = [
    PropertySpec(name="Gewicht", description="Nettogewicht", expected_format="kg", order_index=1),
    PropertySpec(name="Breite (in mm)", order_index=0),
]


class _FakeLLM(BaseLLM):
    def __init__(self, content: str) -> None:
        super().__init__("fake-model")
        self.content = content
        self.requests: List[dict] = []

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(self, messages: List[Message], *, json_mode: bool = False, **kwargs) -> LLMResponse:
        self.requests.append({"messages": messages, "json_mode": json_mode, **kwargs})
        return LLMResponse(
            content=self.content,
            model="fake-model-2024",
            usage={"prompt_tokens": 321, "completion_tokens": 12},
        )


def test_prompt_lists_properties_in_order_with_formats() -> None:
    prompt = build_user_prompt(
        "Breite: 550 mm " * 10,
        SCHEMA,
        ProductIdentity(article_number="A123", product_name="Widget Pro"),
        max_chars=20,
    )
    assert "Article: A123" in prompt
    assert "Product: Widget Pro" in prompt
    assert prompt.index('1. "Breite (in mm)"') < prompt.index('2. "Gewicht" (Nettogewicht) - Format: kg')
    assert prompt.endswith("CONTENT:\n" + ("Breite: 550 mm " * 10)[:20])


def test_parse_json_reply_tolerates_fences_and_chatter() -> None:
    assert parse_json_reply('```json\n{"Gewicht": "12 kg"}\n```') == {"Gewicht": "12 kg"}
    assert parse_json_reply('Here you go: {"Gewicht": "12 kg"} hope it helps') == {"Gewicht": "12 kg"}
    with pytest.raises(ExtractionError):
        parse_json_reply("no json at all")
    with pytest.raises(ExtractionError):
        parse_json_reply("")


@pytest.mark.asyncio
async def test_llm_extractor_uses_json_mode_and_reports_usage() -> None:
    llm = _FakeLLM(json.dumps({"Breite (in mm)": "550", "Gewicht": "12 kg"}))
    extractor = LLMStructuredExtractor(llm, max_chars=1000, temperature=0.1)

    reply = await extractor.extract("Breite 550 mm, Gewicht 12 kg", SCHEMA, ProductIdentity(product_name="Widget"))

    assert reply.data == {"Breite (in mm)": "550", "Gewicht": "12 kg"}
    assert reply.model == "fake-model-2024"
    assert reply.prompt_tokens == 321
    assert reply.completion_tokens == 12
    assert extractor.model_name == "fake-model"
    request = llm.requests[0]
    assert request["json_mode"] is True
    assert request["temperature"] == 0.1
    assert [message.role.value for message in request["messages"]] == ["system", "user"]


def test_get_llm_requires_api_key_and_known_provider() -> None:
    with pytest.raises(ConfigurationError):
        get_llm("openai", settings=LLMSettings(openai_api_key=None))
    with pytest.raises(ConfigurationError):
        get_llm("mystery", settings=LLMSettings(openai_api_key="sk-test"))

    llm = get_llm("openai", settings=LLMSettings(openai_api_key="sk-test", model_name="gpt-4.1"))
    assert isinstance(llm, OpenAILLM)
    assert llm.model == "gpt-4.1"
    assert llm.provider == "openai"
