"""
Tests for orchestrator/prompt_manager.py: template filling and risk selection.
"""

import json
import sys
from pathlib import Path
from types import MappingProxyType

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

from codeward.config_loader import ScanConfig
from codeward.orchestrator.prompt_manager import (
    DEFAULT_CHECKS,
    DEFAULT_PROMPT_TEMPLATE,
    RISK_PROMPTS,
    PromptManager,
)

CODE = "def risky(input); eval(input); end"
SCHEMA = {"type": "object", "properties": {"security_risks": {"type": "array"}}}


def _config(**kwargs):
    if "prompt_templates" in kwargs:
        kwargs["prompt_templates"] = MappingProxyType(kwargs["prompt_templates"])
    return ScanConfig(**kwargs)


# ============================================================================
# Catalogue
# ============================================================================


class TestCatalogue:
    def test_default_checks_are_known(self):
        assert all(check in RISK_PROMPTS for check in DEFAULT_CHECKS)

    def test_catalogue_size(self):
        assert len(RISK_PROMPTS) == 35


# ============================================================================
# build_prompt
# ============================================================================


class TestBuildPrompt:
    def test_default_template(self):
        manager = PromptManager(_config(language="ja"))
        prompt = manager.build_prompt(CODE, ["xss", "csrf"], SCHEMA, file_label="app/x.rb")

        assert RISK_PROMPTS["xss"] + ", " + RISK_PROMPTS["csrf"] in prompt
        assert json.dumps(SCHEMA) in prompt
        assert "in ja." in prompt
        assert "app/x.rb" in prompt
        assert prompt.rstrip().endswith(CODE)

    def test_unknown_risks_are_skipped(self):
        manager = PromptManager()
        prompt = manager.build_prompt(CODE, ["xss", "invalid_risk", "csrf"], SCHEMA)
        expected = ", ".join([RISK_PROMPTS["xss"], RISK_PROMPTS["csrf"]])
        assert f"vulnerabilities: {expected}\n" in prompt

    def test_empty_risk_list(self):
        prompt = PromptManager().build_prompt(CODE, [], SCHEMA)
        assert "vulnerabilities: \n" in prompt

    def test_custom_template(self):
        config = _config(prompt_templates={"custom_scan": "Custom for {risk_list}:\n{code_content}"})
        prompt = PromptManager(config).build_prompt(CODE, ["xss"], SCHEMA, template_key="custom_scan")
        assert prompt == f"Custom for {RISK_PROMPTS['xss']}:\n{CODE}"

    def test_custom_default_overrides_builtin(self):
        config = _config(prompt_templates={"default": "Only code: {code_content}"})
        assert PromptManager(config).build_prompt(CODE, ["xss"], SCHEMA) == f"Only code: {CODE}"

    def test_unknown_template_key_falls_back(self):
        manager = PromptManager()
        assert manager.build_prompt(CODE, ["xss"], SCHEMA, template_key="nope") == manager.build_prompt(
            CODE, ["xss"], SCHEMA
        )

    def test_unknown_placeholder_left_as_is(self):
        config = _config(prompt_templates={"default": "{code_content} {not_a_field}"})
        assert PromptManager(config).build_prompt(CODE, [], SCHEMA) == f"{CODE} {{not_a_field}}"

    def test_malformed_template_falls_back_to_default(self):
        config = _config(prompt_templates={"default": "broken {"})
        prompt = PromptManager(config).build_prompt(CODE, ["xss"], SCHEMA)
        assert prompt.startswith(DEFAULT_PROMPT_TEMPLATE.split("{")[0])

    @pytest.mark.parametrize("template", [
        "Code: {code_content[body]}",
        "Code: {code_content.body}",
        "Code: {not_a_field.attr}",
    ])
    def test_bad_field_access_falls_back_to_default(self, template, caplog):
        config = _config(prompt_templates={"default": template})
        prompt = PromptManager(config).build_prompt(CODE, ["xss"], SCHEMA, file_label="app/a.rb")
        assert prompt.startswith(DEFAULT_PROMPT_TEMPLATE.split("{")[0])
        assert CODE in prompt
        assert "app/a.rb" in prompt
        assert "is malformed" in caplog.text

    def test_braces_in_code_are_not_interpreted(self):
        code = 'h = { "a" => "{b}" }'
        prompt = PromptManager().build_prompt(code, [], SCHEMA)
        assert code in prompt

    def test_missing_label(self):
        prompt = PromptManager().build_prompt(CODE, [], SCHEMA)
        assert "unnamed content" in prompt
