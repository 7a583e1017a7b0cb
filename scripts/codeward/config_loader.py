"""
Configuration Loader for codeward.

Implements a layered configuration system:
    hardcoded defaults < .codewardrc < env vars < CLI args

The merged flat dict is validated and frozen into a ``ScanConfig`` value that
is passed explicitly to every component.

Usage:
    from codeward.config_loader import build_scan_config
    config = build_scan_config(cli_args=args)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from codeward.exceptions import ConfigError
from codeward.orchestrator.prompt_manager import DEFAULT_CHECKS, RISK_PROMPTS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".codewardrc"
DEFAULT_IGNORE_PATH = ".codewardignore"
DEFAULT_CHUNK_SIZE = 8000  # characters, a cost proxy for tokens

_VALID_AI_PROVIDERS = {"auto", "anthropic", "openai", "ollama"}

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------

def get_default_config() -> Dict[str, Any]:
    """Return all configuration parameters with sensible defaults.

    This is the lowest-priority layer.  Every configurable key must appear
    here so that downstream code never needs to guard against missing keys.
    """
    return {
        # -- AI --
        "ai_provider": "auto",
        "model": "auto",
        "anthropic_api_key": "",
        "openai_api_key": "",
        "ollama_endpoint": "",
        "max_tokens": 4096,
        "request_timeout": 300.0,

        # -- Prompting --
        "checks": list(DEFAULT_CHECKS),
        "language": "en",
        "prompt_templates": {},

        # -- Files --
        "chunk_size": DEFAULT_CHUNK_SIZE,
        "source_extensions": [".rb"],
        "ignore_file": DEFAULT_IGNORE_PATH,

        # -- Static analysers --
        "brakeman_options": {},
        "bundler_audit_options": {},
        "tool_timeout": 600,

        # -- Output --
        "report_output_path": "./codeward_report",
        "html_template": None,

        # -- CI setup --
        "github_actions_path": ".github/workflows/codeward_scan.yml",
        "gitlab_ci_path": ".gitlab-ci.yml",
    }

# ---------------------------------------------------------------------------
# Frozen configuration value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanConfig:
    """Immutable, fully-resolved configuration for one scan invocation."""

    ai_provider: str = "auto"
    model: str = "auto"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ollama_endpoint: str = ""
    max_tokens: int = 4096
    request_timeout: float = 300.0
    checks: Tuple[str, ...] = tuple(DEFAULT_CHECKS)
    language: str = "en"
    prompt_templates: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    chunk_size: int = DEFAULT_CHUNK_SIZE
    source_extensions: Tuple[str, ...] = (".rb",)
    ignore_file: str = DEFAULT_IGNORE_PATH
    brakeman_options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    bundler_audit_options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    tool_timeout: int = 600
    report_output_path: str = "./codeward_report"
    html_template: Optional[str] = None
    github_actions_path: str = ".github/workflows/codeward_scan.yml"
    gitlab_ci_path: str = ".gitlab-ci.yml"

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "ScanConfig":
        """Freeze a flat config dict; unknown keys are ignored."""
        merged = get_default_config()
        merged.update({k: v for k, v in config.items() if k in merged})
        return cls(
            ai_provider=str(merged["ai_provider"]),
            model=str(merged["model"]),
            anthropic_api_key=merged["anthropic_api_key"] or "",
            openai_api_key=merged["openai_api_key"] or "",
            ollama_endpoint=merged["ollama_endpoint"] or "",
            max_tokens=int(merged["max_tokens"]),
            request_timeout=float(merged["request_timeout"]),
            checks=tuple(str(c) for c in merged["checks"]),
            language=str(merged["language"]),
            prompt_templates=MappingProxyType(dict(merged["prompt_templates"] or {})),
            chunk_size=int(merged["chunk_size"]),
            source_extensions=tuple(merged["source_extensions"]),
            ignore_file=str(merged["ignore_file"]),
            brakeman_options=MappingProxyType(dict(merged["brakeman_options"] or {})),
            bundler_audit_options=MappingProxyType(dict(merged["bundler_audit_options"] or {})),
            tool_timeout=int(merged["tool_timeout"]),
            report_output_path=str(merged["report_output_path"]),
            html_template=str(merged["html_template"]) if merged["html_template"] else None,
            github_actions_path=str(merged["github_actions_path"]),
            gitlab_ci_path=str(merged["gitlab_ci_path"]),
        )

# ---------------------------------------------------------------------------
# .codewardrc loading
# ---------------------------------------------------------------------------


def flatten_config_file(nested: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert the nested ``.codewardrc`` YAML dict to a flat config dict.

    Mapping rules:
    - ``ai.provider``                        -> ``ai_provider``
    - ``ai.model`` / ``ai.max_tokens`` / ``ai.request_timeout`` -> same key
    - ``ai.anthropic_api_key`` etc.          -> same key
    - ``report.output_path``                 -> ``report_output_path``
    - ``report.html_template``               -> ``html_template``
    - ``static_analysers.brakeman.options``  -> ``brakeman_options``
    - ``static_analysers.bundler_audit.options`` -> ``bundler_audit_options``
    - ``static_analysers.timeout``           -> ``tool_timeout``
    - ``ci_setup.github_actions_path`` / ``gitlab_ci_path`` -> same key
    - ``files.source_extensions`` / ``files.ignore_file`` -> same key
    - Top-level ``checks``, ``language``, ``prompt_templates``,
      ``chunk_size`` and ``model`` are passed through.

    Only non-None values are included.
    """
    flat: Dict[str, Any] = {}

    ai = nested.get("ai")
    if isinstance(ai, dict):
        for key, value in ai.items():
            if value is None:
                continue
            flat["ai_provider" if key == "provider" else key] = value

    for scalar_key in ("checks", "language", "prompt_templates", "chunk_size", "model"):
        if nested.get(scalar_key) is not None:
            flat[scalar_key] = nested[scalar_key]

    report = nested.get("report")
    if isinstance(report, dict):
        if report.get("output_path") is not None:
            flat["report_output_path"] = report["output_path"]
        if report.get("html_template") is not None:
            flat["html_template"] = report["html_template"]

    analysers = nested.get("static_analysers")
    if isinstance(analysers, dict):
        for tool in ("brakeman", "bundler_audit"):
            block = analysers.get(tool)
            if isinstance(block, dict) and block.get("options") is not None:
                flat[f"{tool}_options"] = block["options"]
        if analysers.get("timeout") is not None:
            flat["tool_timeout"] = analysers["timeout"]

    ci = nested.get("ci_setup")
    if isinstance(ci, dict):
        for key in ("github_actions_path", "gitlab_ci_path"):
            if ci.get(key) is not None:
                flat[key] = ci[key]

    files = nested.get("files")
    if isinstance(files, dict):
        for key in ("source_extensions", "ignore_file"):
            if files.get(key) is not None:
                flat[key] = files[key]

    return flat


def load_config_file(path: str) -> Dict[str, Any]:
    """Load and flatten a ``.codewardrc`` file.

    A missing file yields ``{}``.  A file that cannot be read or parsed also
    yields ``{}`` after a warning, so a broken config never aborts a scan.
    """
    config_path = Path(path)
    if not config_path.is_file():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        logger.warning("Error parsing config file %s: %s", config_path, exc)
        return {}
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read config file %s: %s", config_path, exc)
        return {}

    if not isinstance(raw, dict):
        logger.warning("Config file %s must contain a mapping; ignoring it", config_path)
        return {}

    logger.debug("Loaded config file %s (%d keys)", config_path, len(raw))
    return flatten_config_file(raw)

# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

# Mapping: (env_var_name, ...) -> (config_key, type)
# Types: "str", "int", "float", "list"
_ENV_MAPPINGS: List[tuple] = [
    # AI
    (("CODEWARD_AI_PROVIDER", "AI_PROVIDER"),      "ai_provider",          "str"),
    (("CODEWARD_MODEL",),                          "model",                "str"),
    (("ANTHROPIC_API_KEY",),                       "anthropic_api_key",    "str"),
    (("OPENAI_API_KEY",),                          "openai_api_key",       "str"),
    (("OLLAMA_ENDPOINT",),                         "ollama_endpoint",      "str"),
    (("CODEWARD_MAX_TOKENS",),                     "max_tokens",           "int"),
    (("CODEWARD_REQUEST_TIMEOUT",),                "request_timeout",      "float"),

    # Prompting
    (("CODEWARD_CHECKS",),                         "checks",               "list"),
    (("CODEWARD_LANGUAGE",),                       "language",             "str"),

    # Files
    (("CODEWARD_CHUNK_SIZE",),                     "chunk_size",           "int"),
    (("CODEWARD_IGNORE_FILE",),                    "ignore_file",          "str"),

    # Output
    (("CODEWARD_REPORT_PATH",),                    "report_output_path",   "str"),
]


def _coerce(raw: str, type_tag: str) -> Any:
    """Convert a raw env-var string to the appropriate Python type."""
    if type_tag == "int":
        return int(raw)
    if type_tag == "float":
        return float(raw)
    if type_tag == "list":
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def load_env_overrides() -> Dict[str, Any]:
    """Load configuration values from explicitly-set environment variables.

    Only variables that are **present** in ``os.environ`` are returned.
    The first found wins (left-to-right in the mapping tuple).
    """
    overrides: Dict[str, Any] = {}

    for env_names, config_key, type_tag in _ENV_MAPPINGS:
        for env_name in env_names:
            if env_name in os.environ:
                try:
                    overrides[config_key] = _coerce(os.environ[env_name], type_tag)
                except (ValueError, TypeError) as exc:
                    logger.warning(
                        "Ignoring env var %s: could not convert %r to %s (%s)",
                        env_name, os.environ[env_name], type_tag, exc,
                    )
                break  # first match wins

    return overrides

# ---------------------------------------------------------------------------
# CLI argument extraction
# ---------------------------------------------------------------------------

# Mapping: argparse attribute -> config key
_CLI_ATTR_MAP: Dict[str, str] = {
    "provider": "ai_provider",
    "model": "model",
    "chunk_size": "chunk_size",
    "language": "language",
    "output_path": "report_output_path",
}


def extract_cli_overrides(cli_args: Any) -> Dict[str, Any]:
    """Pick the explicitly provided (non-None) CLI values."""
    if cli_args is None:
        return {}
    overrides: Dict[str, Any] = {}
    for attr, config_key in _CLI_ATTR_MAP.items():
        value = getattr(cli_args, attr, None)
        if value is not None:
            overrides[config_key] = value
    return overrides

# ---------------------------------------------------------------------------
# Merge + validation
# ---------------------------------------------------------------------------


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return *base* updated with *override*; nested dicts merge recursively."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate a configuration dict and return a list of warnings/errors.

    Returns
    -------
    list[str]
        Human-readable messages prefixed with ``ERROR:`` or ``WARNING:``.
        An empty list means the config is valid.
    """
    issues: List[str] = []

    provider = config.get("ai_provider", "auto")
    if provider not in _VALID_AI_PROVIDERS:
        issues.append(
            f"ERROR: Invalid ai_provider '{provider}'. "
            f"Must be one of: {', '.join(sorted(_VALID_AI_PROVIDERS))}"
        )
    if provider == "anthropic" and not config.get("anthropic_api_key"):
        issues.append("WARNING: ai_provider is 'anthropic' but ANTHROPIC_API_KEY is not set.")
    if provider == "openai" and not config.get("openai_api_key"):
        issues.append("WARNING: ai_provider is 'openai' but OPENAI_API_KEY is not set.")
    if provider == "auto" and not (
        config.get("anthropic_api_key") or config.get("openai_api_key") or config.get("ollama_endpoint")
    ):
        issues.append(
            "WARNING: ai_provider is 'auto' but no API keys or endpoints are "
            "configured.  AI analysis will be unavailable."
        )

    for key in ("chunk_size", "max_tokens", "tool_timeout"):
        if not _is_positive_int(config.get(key)):
            issues.append(f"ERROR: {key} must be a positive integer, got {config.get(key)!r}")

    timeout = config.get("request_timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        issues.append(f"ERROR: request_timeout must be a positive number, got {timeout!r}")

    checks = config.get("checks")
    if not isinstance(checks, (list, tuple)) or not all(isinstance(c, str) for c in checks):
        issues.append("ERROR: checks must be a list of risk names")
    else:
        unknown = [c for c in checks if c not in RISK_PROMPTS]
        if unknown:
            issues.append(f"WARNING: Unknown checks will be skipped: {', '.join(unknown)}")

    extensions = config.get("source_extensions")
    if (
        not isinstance(extensions, (list, tuple))
        or not extensions
        or not all(isinstance(e, str) and e.startswith(".") for e in extensions)
    ):
        issues.append("ERROR: source_extensions must be a non-empty list like ['.rb']")

    for key in ("prompt_templates", "brakeman_options", "bundler_audit_options"):
        if not isinstance(config.get(key), dict):
            issues.append(f"ERROR: {key} must be a mapping")

    html_template = config.get("html_template")
    if html_template is not None and not isinstance(html_template, str):
        issues.append(f"ERROR: html_template must be a file path, got {html_template!r}")

    return issues


def build_scan_config(
    cli_args: Any = None,
    repo_path: str = ".",
    config_path: Optional[str] = None,
) -> ScanConfig:
    """Build the fully-merged, validated, frozen configuration.

    Layer precedence (last wins):
        1. Hard-coded defaults          (``get_default_config()``)
        2. ``.codewardrc``              (``load_config_file()``)
        3. Environment variables        (``load_env_overrides()``)
        4. CLI arguments                (``extract_cli_overrides()``)

    Raises
    ------
    ConfigError
        If validation reports any ``ERROR:`` issue.
    """
    config = get_default_config()

    file_values = load_config_file(config_path or str(Path(repo_path) / DEFAULT_CONFIG_PATH))
    if file_values:
        config = deep_merge(config, file_values)
        logger.info("Applied %s overrides (%d keys)", DEFAULT_CONFIG_PATH, len(file_values))

    env_overrides = load_env_overrides()
    if env_overrides:
        config = deep_merge(config, env_overrides)
        logger.debug("Applied %d env-var overrides", len(env_overrides))

    cli_overrides = extract_cli_overrides(cli_args)
    if cli_overrides:
        config = deep_merge(config, cli_overrides)
        logger.debug("Applied %d CLI overrides", len(cli_overrides))

    issues = validate_config(config)
    errors = [issue for issue in issues if issue.startswith("ERROR:")]
    for issue in issues:
        if not issue.startswith("ERROR:"):
            logger.warning(issue)
    if errors:
        raise ConfigError("; ".join(errors))

    return ScanConfig.from_dict(config)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_IGNORE_PATH",
    "DEFAULT_CHUNK_SIZE",
    "ScanConfig",
    "get_default_config",
    "flatten_config_file",
    "load_config_file",
    "load_env_overrides",
    "extract_cli_overrides",
    "deep_merge",
    "validate_config",
    "build_scan_config",
]
