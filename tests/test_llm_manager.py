"""
Tests for orchestrator/llm_manager.py: provider detection, client setup,
structured calls and fail-soft reply handling.
"""

import json
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

from codeward.config_loader import ScanConfig
from codeward.exceptions import AnalysisBackendError
from codeward.orchestrator.llm_manager import REPORT_TOOL_NAME, LLMManager, strip_code_fences
from codeward.schemas import analysis_output_schema

SCHEMA = analysis_output_schema()
VALID_REPLY = {
    "security_risks": [
        {"type": "XSS", "location": "app.rb:3", "details": "raw output", "severity": "high", "code_snippet": "raw x"}
    ]
}


def _manager(provider="anthropic", **config):
    manager = LLMManager(ScanConfig(**config))
    manager.client = MagicMock()
    manager.provider = provider
    manager.model = "test-model"
    return manager


# ============================================================================
# Provider detection
# ============================================================================


class TestDetectProvider:
    def test_explicit_provider(self):
        assert LLMManager(ScanConfig(ai_provider="ollama")).detect_provider() == "ollama"

    def test_anthropic_first(self):
        config = ScanConfig(anthropic_api_key="a", openai_api_key="o", ollama_endpoint="http://h")
        assert LLMManager(config).detect_provider() == "anthropic"

    def test_openai_second(self):
        config = ScanConfig(openai_api_key="o", ollama_endpoint="http://h")
        assert LLMManager(config).detect_provider() == "openai"

    def test_ollama_last(self):
        assert LLMManager(ScanConfig(ollama_endpoint="http://h")).detect_provider() == "ollama"

    def test_none_configured(self):
        assert LLMManager(ScanConfig()).detect_provider() is None


# ============================================================================
# Initialization
# ============================================================================


class TestInitialize:
    def test_no_provider(self):
        manager = LLMManager(ScanConfig())
        assert manager.initialize() is False
        assert manager.is_ready is False

    @patch("anthropic.Anthropic")
    def test_anthropic(self, mock_cls):
        manager = LLMManager(ScanConfig(anthropic_api_key="sk-ant"))
        assert manager.initialize() is True
        mock_cls.assert_called_once_with(api_key="sk-ant")
        assert manager.provider == "anthropic"
        assert manager.model == LLMManager.DEFAULT_MODELS["anthropic"]

    @patch("openai.OpenAI")
    def test_ollama_uses_v1_endpoint(self, mock_cls):
        manager = LLMManager(ScanConfig(ai_provider="ollama", ollama_endpoint="http://localhost:11434/"))
        assert manager.initialize() is True
        mock_cls.assert_called_once_with(base_url="http://localhost:11434/v1", api_key="ollama")

    def test_missing_key_fails_softly(self):
        manager = LLMManager(ScanConfig(ai_provider="openai"))
        assert manager.initialize() is False

    def test_unknown_provider(self):
        assert LLMManager(ScanConfig()).initialize("gemini") is False

    def test_explicit_model(self):
        assert LLMManager(ScanConfig(model="gpt-4o-mini")).get_model_name("openai") == "gpt-4o-mini"


# ============================================================================
# Structured calls
# ============================================================================


class TestCallLLMApi:
    def test_not_initialized(self):
        with pytest.raises(AnalysisBackendError):
            LLMManager(ScanConfig()).call_llm_api("p", SCHEMA)

    def test_anthropic_forces_tool_use(self):
        manager = _manager("anthropic", max_tokens=1000, request_timeout=30.0)
        tool_block = SimpleNamespace(type="tool_use", input=VALID_REPLY)
        manager.client.messages.create.return_value = SimpleNamespace(content=[tool_block])

        assert manager.call_llm_api("prompt", SCHEMA) == VALID_REPLY

        kwargs = manager.client.messages.create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": REPORT_TOOL_NAME}
        assert kwargs["tools"][0]["input_schema"] == SCHEMA
        assert kwargs["max_tokens"] == 1000
        assert kwargs["timeout"] == 30.0
        assert kwargs["temperature"] == 0

    def test_anthropic_text_fallback(self):
        manager = _manager("anthropic")
        manager.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"security_risks": []}')]
        )
        assert manager.call_llm_api("prompt", SCHEMA) == '{"security_risks": []}'

    def test_openai_json_schema_format(self):
        manager = _manager("openai")
        message = SimpleNamespace(content=json.dumps(VALID_REPLY))
        manager.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)]
        )
        assert manager.call_llm_api("prompt", SCHEMA) == json.dumps(VALID_REPLY)
        response_format = manager.client.chat.completions.create.call_args.kwargs["response_format"]
        assert response_format["type"] == "json_schema"
        assert response_format["json_schema"]["schema"] == SCHEMA

    def test_ollama_json_object_format(self):
        manager = _manager("ollama")
        manager.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        )
        assert manager.call_llm_api("prompt", SCHEMA) == ""
        kwargs = manager.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}


# ============================================================================
# analyze / parse_response
# ============================================================================


class TestAnalyze:
    def test_valid_dict_reply(self):
        manager = _manager()
        with patch.object(LLMManager, "call_llm_api", return_value=VALID_REPLY):
            result = manager.analyze("p", SCHEMA)
        assert result["security_risks"][0]["severity"] == "High"
        assert result["security_risks"][0]["type"] == "XSS"

    def test_fenced_text_reply(self):
        manager = _manager()
        text = "```json\n" + json.dumps(VALID_REPLY) + "\n```"
        with patch.object(LLMManager, "call_llm_api", return_value=text):
            result = manager.analyze("p", SCHEMA)
        assert result["security_risks"][0]["location"] == "app.rb:3"

    def test_transport_error_returns_none(self):
        manager = _manager()
        with patch.object(LLMManager, "call_llm_api", side_effect=ConnectionError("reset")):
            assert manager.analyze("p", SCHEMA) is None

    def test_non_json_text_returns_none(self):
        manager = _manager()
        with patch.object(LLMManager, "call_llm_api", return_value="I found nothing."):
            assert manager.analyze("p", SCHEMA) is None

    def test_schema_violation_returns_none(self):
        manager = _manager()
        bad = {"security_risks": [{"type": "XSS", "severity": "Catastrophic"}]}
        with patch.object(LLMManager, "call_llm_api", return_value=bad):
            assert manager.analyze("p", SCHEMA) is None

    def test_missing_envelope_returns_none(self):
        manager = _manager()
        with patch.object(LLMManager, "call_llm_api", return_value=["not", "a", "dict"]):
            assert manager.analyze("p", SCHEMA) is None

    def test_extra_fields_preserved(self):
        reply = {"security_risks": [dict(VALID_REPLY["security_risks"][0], cwe="CWE-79")]}
        manager = _manager()
        with patch.object(LLMManager, "call_llm_api", return_value=reply):
            result = manager.analyze("p", SCHEMA)
        assert result["security_risks"][0]["cwe"] == "CWE-79"

    def test_uninitialized_returns_none(self):
        assert LLMManager(ScanConfig()).analyze("p", SCHEMA) is None


class TestStripCodeFences:
    @pytest.mark.parametrize("text,expected", [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
    ])
    def test_strip(self, text, expected):
        assert strip_code_fences(text) == expected
