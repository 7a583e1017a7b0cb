"""
Project scaffolding for codeward.

Functions:
    generate_initial_files: Write ``.codewardrc`` and ``.codewardignore``
    generate_ci_setup: Write a CI workflow that runs codeward
"""

import logging
from pathlib import Path
from typing import Dict, List

from codeward.config_loader import DEFAULT_CONFIG_PATH, DEFAULT_IGNORE_PATH, ScanConfig

logger = logging.getLogger(__name__)

CI_SERVICES = ("github_actions", "gitlab_ci")

DEFAULT_CONFIG_CONTENT = """\
# .codewardrc
# Configuration file for codeward.

# AI backend (optional).  API keys are best provided through the
# ANTHROPIC_API_KEY / OPENAI_API_KEY / OLLAMA_ENDPOINT environment variables.
# ai:
#   provider: auto        # auto, anthropic, openai or ollama
#   model: auto
#   max_tokens: 4096
#   request_timeout: 300

# Security checks to enable (optional, default: xss, csrf, idor,
# open_redirect, ssrf, session_fixation).
# checks:
#   - xss
#   - csrf
#   - idor
#   - open_redirect

# Custom prompt templates (optional).  Placeholders: {risk_list},
# {json_schema}, {language}, {code_content}, {file_label}.
# prompt_templates:
#   default: |
#     Analyze the following Ruby code for security vulnerabilities.
#     Focus on: {risk_list}.
#     Report in JSON format: {json_schema}.
#     Code:
#     {code_content}

# Language for the finding details (optional, default: "en").
# language: "ja"

# Characters per analysis unit for large content (optional, default: 8000).
# chunk_size: 10000

# Files to analyze (optional).
# files:
#   source_extensions: [".rb"]
#   ignore_file: ".codewardignore"

# Report output settings (optional).
# report:
#   output_path: "./codeward_report"   # prefix for json/markdown/html reports
#   html_template: "config/codeward_report.html.j2"   # Jinja2 template for --format html

# Static analyser options (optional).
# static_analysers:
#   timeout: 600
#   brakeman:
#     options: {"--skip-checks": "BasicAuth", "--no-progress": true}
#   bundler_audit:
#     options: {"--quiet": true}

# CI setup file paths (optional).
# ci_setup:
#   github_actions_path: ".github/workflows/codeward_scan.yml"
#   gitlab_ci_path: ".gitlab-ci.yml"
"""

DEFAULT_IGNORE_CONTENT = """\
# codeward ignore file
# Files and directories to skip during scans, one pattern per line.
# Lines starting with # are comments.
# Globs are supported (e.g. *.tmp); a trailing / matches a whole directory
# relative to the project root.  A leading ! re-includes a path; the first
# matching line wins.

# Log files
log/
*.log

# Temporary files
tmp/
*.tmp
*.swp
*.swo

# OS-specific files
.DS_Store
Thumbs.db

# Vendored gems
vendor/bundle/

# Coverage reports
coverage/

# Node.js dependencies
node_modules/

# Build artifacts
pkg/
"""

GITHUB_ACTIONS_WORKFLOW = """\
# .github/workflows/codeward_scan.yml
name: Codeward Security Scan

on: [push, pull_request]

jobs:
  security_scan:
    runs-on: ubuntu-latest

    steps:
    - name: Checkout code
      uses: actions/checkout@v4

    - name: Set up Ruby
      uses: ruby/setup-ruby@v1
      with:
        ruby-version: '3.3'
        bundler-cache: true

    - name: Set up Python
      uses: actions/setup-python@v5
      with:
        python-version: '3.11'

    - name: Install scanners
      run: |
        gem install brakeman bundler-audit --no-document
        pip install codeward

    - name: Run codeward scan
      env:
        ANTHROPIC_API_KEY: ${{ secrets.ANTHROPIC_API_KEY }}
      run: |
        if [ "$GITHUB_EVENT_NAME" == "pull_request" ]; then
          codeward scan --diff --format console
        else
          codeward scan --all --format console
        fi
"""

GITLAB_CI_WORKFLOW = """\
# .gitlab-ci.yml
stages:
  - security_scan

codeward_security_scan:
  stage: security_scan
  image: ruby:3.3
  before_script:
    - apt-get update -qq && apt-get install -y --no-install-recommends python3-pip
    - gem install brakeman bundler-audit --no-document
    - pip3 install --break-system-packages codeward
    - bundle install --jobs $(nproc)
  script:
    - |
      if [ "$CI_PIPELINE_SOURCE" == "merge_request_event" ]; then
        codeward scan --diff --format console
      else
        codeward scan --all --format console
      fi
  variables:
    ANTHROPIC_API_KEY: $ANTHROPIC_API_KEY
  rules:
    - if: '$CI_COMMIT_BRANCH == $CI_DEFAULT_BRANCH'
    - if: '$CI_PIPELINE_SOURCE == "merge_request_event"'
"""


def _write_unless_exists(path: Path, content: str, description: str) -> bool:
    if path.exists():
        logger.warning(f"⚠️  {description} already exists at {path}; leaving it untouched")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"   ✅ {description} generated: {path}")
    return True


def generate_initial_files(project_root: str = ".") -> List[str]:
    """Create the default config and ignore files; returns the paths written."""
    root = Path(project_root)
    written = []
    for name, content, description in (
        (DEFAULT_CONFIG_PATH, DEFAULT_CONFIG_CONTENT, "Config file"),
        (DEFAULT_IGNORE_PATH, DEFAULT_IGNORE_CONTENT, "Ignore file"),
    ):
        if _write_unless_exists(root / name, content, description):
            written.append(str(root / name))
    return written


def ci_output_paths(config: ScanConfig) -> Dict[str, str]:
    return {
        "github_actions": config.github_actions_path,
        "gitlab_ci": config.gitlab_ci_path,
    }


def generate_ci_setup(service: str, config: ScanConfig, project_root: str = ".") -> str:
    """Write the workflow for *service* and return its path.

    The workflow file is overwritten if it already exists.

    Raises:
        ValueError: If the CI service is not supported
    """
    templates = {"github_actions": GITHUB_ACTIONS_WORKFLOW, "gitlab_ci": GITLAB_CI_WORKFLOW}
    if service not in templates:
        raise ValueError(f"Unsupported CI service: {service}. Supported: {', '.join(CI_SERVICES)}")

    output_path = Path(project_root) / ci_output_paths(config)[service]
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(templates[service], encoding="utf-8")
    logger.info(f"   ✅ {service} workflow generated: {output_path}")
    return str(output_path)


__all__ = [
    "CI_SERVICES",
    "DEFAULT_CONFIG_CONTENT",
    "DEFAULT_IGNORE_CONTENT",
    "generate_initial_files",
    "generate_ci_setup",
]
