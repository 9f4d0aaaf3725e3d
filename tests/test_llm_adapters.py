"""Message conversion and response parsing; no network calls."""

import json
from types import SimpleNamespace

import pytest

from orgchart.errors import ConfigError
from orgchart.llm import AnthropicAdapter, OpenAIAdapter, create_adapter
from orgchart.llm import anthropic_adapter, openai_adapter
from orgchart.llm.base import FunctionSchema, ToolCall

SCHEMA = FunctionSchema(name="Read", description="Read a file", parameters={"type": "object", "properties": {}})

CONVERSATION = [
    {"role": "system", "content": "You are helpful."},
    {"role": "user", "content": "Read a.py"},
    {
        "role": "assistant",
        "content": "Reading",
        "tool_calls": [ToolCall("Read", '{"file_path": "a.py"}', id="call_1").to_message_dict()],
    },
    {"role": "tool", "tool_call_id": "call_1", "content": "print(1)"},
    {"role": "user", "content": "Also b.py"},
]


class TestOpenAIAdapter:
    def test_build_tools(self):
        assert openai_adapter._build_tools([SCHEMA]) == [
            {
                "type": "function",
                "function": {"name": "Read", "description": "Read a file", "parameters": SCHEMA.parameters},
            }
        ]
        assert openai_adapter._build_tools([]) is None

    def test_parse_response(self):
        raw = SimpleNamespace(
            choices=[
                SimpleNamespace(
                    message=SimpleNamespace(
                        content="Let me look",
                        tool_calls=[
                            SimpleNamespace(
                                id="call_9",
                                function=SimpleNamespace(name="Read", arguments='{"file_path": "x"}'),
                            )
                        ],
                        reasoning="thinking it over",
                    )
                )
            ],
            usage=SimpleNamespace(
                prompt_tokens=120,
                completion_tokens=30,
                prompt_tokens_details=SimpleNamespace(cached_tokens=100),
                completion_tokens_details=SimpleNamespace(reasoning_tokens=12),
            ),
        )
        response = openai_adapter._parse_response(raw)
        assert response.text == "Let me look"
        assert response.tool_calls == [ToolCall("Read", '{"file_path": "x"}', id="call_9")]
        assert response.thoughts == ["thinking it over"]
        assert (response.usage.input_tokens, response.usage.output_tokens) == (120, 30)
        assert response.usage.cached_tokens == 100
        assert response.usage.thinking_tokens == 12

    def test_parse_empty_response(self):
        response = openai_adapter._parse_response(SimpleNamespace(choices=[], usage=None))
        assert response.tool_calls == []
        assert response.usage is None

    def test_vendor_prefix(self):
        adapter = OpenAIAdapter("sk-test", strip_vendor_prefix=True)
        assert adapter._resolve_model("openai/gpt-4o-mini") == "gpt-4o-mini"
        router = OpenAIAdapter("sk-test", base_url="https://openrouter.ai/api/v1", provider="openrouter")
        assert router._resolve_model("openai/gpt-4o-mini") == "openai/gpt-4o-mini"


class TestAnthropicAdapter:
    def test_convert_messages(self):
        system, messages = anthropic_adapter._convert_messages(CONVERSATION)
        assert system == "You are helpful."
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[1]["content"] == [
            {"type": "text", "text": "Reading"},
            {"type": "tool_use", "id": "call_1", "name": "Read", "input": {"file_path": "a.py"}},
        ]
        # Tool result and the follow-up user message merge into one turn
        assert messages[2]["content"] == [
            {"type": "tool_result", "tool_use_id": "call_1", "content": "print(1)"},
            {"type": "text", "text": "Also b.py"},
        ]

    def test_bad_arguments_are_preserved(self):
        assert anthropic_adapter._tool_input("{oops") == {"_raw_arguments": "{oops"}
        assert anthropic_adapter._tool_input("[1]") == {"_value": [1]}

    def test_parse_response(self):
        raw = SimpleNamespace(
            content=[
                SimpleNamespace(type="thinking", thinking="hmm"),
                SimpleNamespace(type="text", text="Reading now"),
                SimpleNamespace(type="tool_use", id="toolu_1", name="Read", input={"file_path": "a.py"}),
            ],
            usage=SimpleNamespace(input_tokens=50, output_tokens=5, cache_read_input_tokens=None),
        )
        response = anthropic_adapter._parse_response(raw)
        assert response.text == "Reading now"
        assert response.thoughts == ["hmm"]
        assert response.tool_calls[0].id == "toolu_1"
        assert json.loads(response.tool_calls[0].arguments) == {"file_path": "a.py"}
        assert response.usage.cached_tokens == 0

    def test_model_aliases(self):
        assert AnthropicAdapter._resolve_model("anthropic/claude-sonnet-4") == "claude-sonnet-4-0"
        assert AnthropicAdapter._resolve_model("claude-3-5-haiku-latest") == "claude-3-5-haiku-latest"


class TestCreateAdapter:
    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(ConfigError, match="OPENROUTER_API_KEY"):
            create_adapter("openrouter")

    def test_unknown_provider(self, monkeypatch):
        with pytest.raises(ConfigError):
            create_adapter("carrier-pigeon")

    def test_builds_provider_adapters(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        router = create_adapter("openrouter")
        assert isinstance(router, OpenAIAdapter)
        assert router.provider == "openrouter"
        assert router.base_url == "https://openrouter.ai/api/v1"
        assert isinstance(create_adapter("anthropic"), AnthropicAdapter)
