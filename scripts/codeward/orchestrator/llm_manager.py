#!/usr/bin/env python3
"""
LLM Provider Management Module
Centralized management for the AI analysis backend.

Supports multiple LLM providers:
- Anthropic (Claude)
- OpenAI (GPT-4)
- Ollama (local, self-hosted, through its OpenAI-compatible endpoint)

Features:
- Provider auto-detection
- Client initialization with error handling
- Structured output: the JSON schema of the expected reply is sent with
  every request and replies are validated against it
- Fail-soft ``analyze``: any failure yields ``None``
"""

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import ValidationError

from codeward.exceptions import AnalysisBackendError
from codeward.schemas import AIAnalysisResponse

if TYPE_CHECKING:
    from codeward.config_loader import ScanConfig

# Configure logging
logger = logging.getLogger(__name__)

REPORT_TOOL_NAME = "report_security_risks"

_CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if present."""
    match = _CODE_FENCE_RE.match(text)
    return match.group(1) if match else text.strip()


class LLMManager:
    """Unified LLM provider management

    Handles all interactions with LLM providers including:
    - Provider detection and client initialization
    - Model selection
    - Structured API calls and reply validation
    """

    # Default models for each provider
    DEFAULT_MODELS = {
        "anthropic": "claude-sonnet-4-5-20250929",
        "openai": "gpt-4o",
        "ollama": "llama3.2:3b",
    }

    DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"

    def __init__(self, config: "ScanConfig"):
        """Initialize LLM Manager

        Args:
            config: Frozen scan configuration with API keys and settings
        """
        self.config = config
        self.client = None
        self.provider = None
        self.model = None

    def detect_provider(self) -> Optional[str]:
        """Auto-detect which AI provider to use based on available keys

        Returns:
            Provider name or None if no provider is configured
        """
        provider = self.config.ai_provider

        # Explicit provider selection (overrides auto-detection)
        if provider != "auto":
            return provider

        # Priority: Anthropic > OpenAI > Ollama (local)
        if self.config.anthropic_api_key:
            return "anthropic"
        elif self.config.openai_api_key:
            return "openai"
        elif self.config.ollama_endpoint:
            return "ollama"
        else:
            logger.warning("No AI provider configured")
            logger.info("Set one of: ANTHROPIC_API_KEY, OPENAI_API_KEY, or OLLAMA_ENDPOINT")
            return None

    def initialize(self, provider: Optional[str] = None) -> bool:
        """Initialize LLM client for the specified provider

        Args:
            provider: Provider name (if None, will auto-detect)

        Returns:
            True if initialization successful, False otherwise
        """
        if provider is None:
            provider = self.detect_provider()

        if provider is None:
            logger.error("No provider detected or specified")
            return False

        try:
            self.client, self.provider = self._get_client(provider)
            self.model = self.get_model_name(provider)
            logger.info(f"Successfully initialized LLM Manager with {self.provider} / {self.model}")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize LLM: {type(e).__name__}: {e}")
            return False

    @property
    def is_ready(self) -> bool:
        return self.client is not None and self.provider is not None

    def _get_client(self, provider: str):
        """Get AI client for the specified provider

        Args:
            provider: Provider name

        Returns:
            Tuple of (client, provider_name)

        Raises:
            ImportError: If required dependencies are not installed
            ValueError: If API key is not configured
        """
        if provider == "anthropic":
            try:
                from anthropic import Anthropic

                api_key = self.config.anthropic_api_key
                if not api_key:
                    raise ValueError("ANTHROPIC_API_KEY not set")

                logger.info("Using Anthropic API")
                return Anthropic(api_key=api_key), "anthropic"
            except ImportError:
                logger.error("anthropic package not installed. Run: pip install anthropic")
                raise

        elif provider == "openai":
            try:
                from openai import OpenAI

                api_key = self.config.openai_api_key
                if not api_key:
                    raise ValueError("OPENAI_API_KEY not set")

                logger.info("Using OpenAI API")
                return OpenAI(api_key=api_key), "openai"
            except ImportError:
                logger.error("openai package not installed. Run: pip install openai")
                raise

        elif provider == "ollama":
            try:
                from openai import OpenAI

                endpoint = (self.config.ollama_endpoint or self.DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
                # Sanitize endpoint URL for logging
                safe_endpoint = endpoint.split("@")[-1] if "@" in endpoint else endpoint.split("//")[-1].split("/")[0]
                logger.info(f"Using Ollama endpoint: {safe_endpoint}")
                return OpenAI(base_url=f"{endpoint}/v1", api_key="ollama"), "ollama"
            except ImportError:
                logger.error("openai package not installed. Run: pip install openai")
                raise

        else:
            # Sanitize provider name before logging
            safe_provider = str(provider).split("/")[-1] if provider else "unknown"
            logger.error(f"Unknown AI provider: {safe_provider}")
            raise ValueError(f"Unknown provider: {safe_provider}")

    def get_model_name(self, provider: Optional[str] = None) -> str:
        """Get the appropriate model name for the provider

        Args:
            provider: Provider name (if None, uses self.provider)

        Returns:
            Model name
        """
        if provider is None:
            provider = self.provider

        model = self.config.model

        if model and model != "auto":
            return model

        return self.DEFAULT_MODELS.get(provider, self.DEFAULT_MODELS["anthropic"])

    def call_llm_api(self, prompt: str, output_schema: Dict[str, Any]) -> Any:
        """Send one structured-output request.

        Returns:
            The tool input dict (Anthropic) or the reply text (OpenAI/Ollama)

        Raises:
            AnalysisBackendError: If the manager is not initialized
        """
        if not self.is_ready:
            raise AnalysisBackendError("LLM Manager not initialized. Call initialize() first.")

        if self.provider == "anthropic":
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.config.max_tokens,
                temperature=0,
                messages=[{"role": "user", "content": prompt}],
                tools=[
                    {
                        "name": REPORT_TOOL_NAME,
                        "description": "Report the security risks found in the analyzed code.",
                        "input_schema": output_schema,
                    }
                ],
                tool_choice={"type": "tool", "name": REPORT_TOOL_NAME},
                timeout=self.config.request_timeout,
            )
            texts = []
            for block in message.content:
                if getattr(block, "type", None) == "tool_use":
                    return block.input
                if getattr(block, "type", None) == "text":
                    texts.append(block.text)
            return "".join(texts)

        if self.provider in ("openai", "ollama"):
            if self.provider == "openai":
                response_format = {
                    "type": "json_schema",
                    "json_schema": {"name": REPORT_TOOL_NAME, "schema": output_schema, "strict": False},
                }
            else:
                response_format = {"type": "json_object"}

            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.config.max_tokens,
                temperature=0,
                response_format=response_format,
                timeout=self.config.request_timeout,
            )
            return response.choices[0].message.content or ""

        raise AnalysisBackendError(f"Unknown provider: {self.provider}")

    def parse_response(self, raw: Any) -> Optional[Dict[str, Any]]:
        """Decode and validate a raw reply; ``None`` when it is unusable."""
        if isinstance(raw, str):
            try:
                raw = json.loads(strip_code_fences(raw))
            except json.JSONDecodeError as e:
                logger.warning("AI reply is not valid JSON: %s", e)
                return None

        if not isinstance(raw, dict):
            logger.warning("AI reply has unexpected type %s", type(raw).__name__)
            return None

        try:
            validated = AIAnalysisResponse.model_validate(raw)
        except ValidationError as e:
            logger.warning("AI reply does not match the output schema: %d error(s)", e.error_count())
            logger.debug("Validation details: %s", e)
            return None
        return validated.model_dump(mode="json", exclude_none=True)

    def analyze(self, prompt: str, output_schema: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Run one analysis request.

        Never raises: transport errors, non-JSON replies and schema
        violations are logged and reported as ``None``.
        """
        try:
            raw = self.call_llm_api(prompt, output_schema)
        except Exception as e:
            logger.error("LLM API call failed: %s: %s", type(e).__name__, e)
            return None
        return self.parse_response(raw)


__all__ = ["LLMManager", "REPORT_TOOL_NAME", "strip_code_fences"]
