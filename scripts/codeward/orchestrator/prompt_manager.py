"""
Prompt Manager - Builds the analysis prompt sent to the LLM backend.

Combines a prompt template with the descriptions of the risks to check, the
expected JSON output schema, the reply language and the code under analysis.

Template placeholders (``str.format`` syntax):
    {risk_list}     descriptions of the selected risks
    {json_schema}   JSON schema the reply must follow
    {language}      language the findings should be written in
    {code_content}  the code, file or diff being analyzed
    {file_label}    origin of the code (file path and chunk position)

Placeholders missing from a custom template are simply not filled; unknown
placeholders are left as written.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from codeward.config_loader import ScanConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_KEY = "default"

DEFAULT_PROMPT_TEMPLATE = """You are a security expert reviewing Ruby code. Analyze the code below and detect potential security risks.
Focus in particular on these kinds of vulnerabilities: {risk_list}
Report the risks you find using the following JSON Schema.
{json_schema}
If no risks are found, return an empty "security_risks" array.
Write the details of each finding in {language}.

[Code under analysis: {file_label}]
{code_content}
"""

DEFAULT_CHECKS = [
    "xss",
    "csrf",
    "idor",
    "open_redirect",
    "ssrf",
    "session_fixation",
]

# risk key -> description included in the prompt
RISK_PROMPTS: Dict[str, str] = {
    "xss": "Cross-Site Scripting (XSS): user input reaches HTML or JavaScript output without escaping, letting an attacker run script in a victim's browser. Look for unsanitized input, html_safe/raw calls and missing output encoding.",
    "csrf": "Cross-Site Request Forgery (CSRF): state-changing requests accepted without a CSRF token or origin check, so a forged request runs with the victim's session.",
    "idor": "Insecure Direct Object Reference (IDOR): records looked up by a user-supplied identifier without checking that the current user may access them.",
    "open_redirect": "Open Redirect: redirects to a URL taken from user input without restricting the destination host.",
    "ssrf": "Server-Side Request Forgery (SSRF): the server fetches a URL chosen by the user, exposing internal services or cloud metadata endpoints.",
    "session_fixation": "Session Fixation: the session identifier is not regenerated after login, so a pre-set session ID can be hijacked.",
    "inappropriate_cookie_attributes": "Insecure Cookie Attributes: cookies without HttpOnly, Secure or SameSite flags.",
    "insufficient_encryption": "Insufficient Encryption: weak algorithms such as MD5 or SHA1 for secrets, or sensitive data stored or sent in plain text.",
    "insecure_deserialization_rce": "Insecure Deserialization: Marshal.load, YAML.load or similar applied to untrusted data, which can lead to remote code execution.",
    "directory_traversal": "Directory Traversal: file paths built from user input without canonicalization, allowing ../ sequences to escape the intended directory.",
    "dangerous_eval": "Dangerous Code Execution: eval, instance_eval, send, system or backticks called with untrusted input.",
    "inappropriate_file_permissions": "Insecure File Permissions: files or directories created with overly permissive modes such as 0777.",
    "temporary_backup_file_leak": "Temporary or Backup File Exposure: .bak, .tmp or editor backup files that end up publicly reachable.",
    "overly_detailed_errors": "Excessive Error Disclosure: stack traces or internal error messages returned to users.",
    "csp_not_set": "Missing Content Security Policy: no Content-Security-Policy header, which widens the impact of XSS.",
    "mime_sniffing_vulnerability": "MIME Sniffing: responses without X-Content-Type-Options: nosniff.",
    "clickjacking_vulnerability": "Clickjacking: pages served without X-Frame-Options or a frame-ancestors directive.",
    "auto_index_exposure": "Directory Listing Enabled: automatic indexes expose files and internal structure.",
    "inappropriate_password_policy": "Weak Password Policy: short or simple passwords accepted, or no brute-force protection.",
    "two_factor_auth_missing": "Missing Two-Factor Authentication for sensitive operations.",
    "race_condition": "Race Condition: concurrent access to shared state without locking or transactions, leading to inconsistent data or privilege escalation.",
    "server_error_information_exposure": "Server Error Information Exposure: 500 responses that reveal stack traces or server details.",
    "dependency_trojan_package": "Malicious Dependency: gems installed from untrusted sources or with typosquatted names.",
    "api_overexposure": "Excessive API Exposure: endpoints reachable without authentication or returning more data than needed.",
    "security_middleware_disabled": "Security Middleware Disabled: protections such as forgery protection or parameter filtering switched off.",
    "security_header_inconsistency": "Security Header Inconsistency: security headers missing on some routes or environments.",
    "excessive_login_attempts": "Unlimited Login Attempts: no rate limiting or lockout on authentication endpoints.",
    "inappropriate_cache_settings": "Insecure Cache Settings: pages with sensitive data marked as publicly cacheable.",
    "secret_key_committed": "Committed Secrets: credentials, API keys or signing secrets hardcoded in the source.",
    "third_party_script_validation_missing": "Unverified Third-Party Scripts: external scripts loaded without Subresource Integrity checks.",
    "over_logging": "Over-Logging: passwords, tokens or personal data written to logs.",
    "fail_open_design": "Fail-Open Design: access granted when an error or exception occurs instead of being denied.",
    "environment_differences": "Uncontrolled Environment Differences: security settings that differ between development and production.",
    "audit_log_missing": "Missing Audit Logging: critical actions or authorization decisions are not logged.",
    "time_based_side_channel": "Timing Side Channel: secrets compared with non-constant-time operations.",
}


class _KeepMissing(dict):
    """format_map mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class PromptManager:
    """Fills prompt templates for the analysis backend."""

    def __init__(self, config: Optional["ScanConfig"] = None):
        custom_templates = dict(config.prompt_templates) if config is not None else {}
        self.prompt_templates: Dict[str, str] = {DEFAULT_TEMPLATE_KEY: DEFAULT_PROMPT_TEMPLATE, **custom_templates}
        self.risk_prompts = RISK_PROMPTS
        self.language = config.language if config is not None else "en"

    def risk_descriptions(self, risks: Iterable[str]) -> List[str]:
        descriptions = []
        for risk in risks:
            description = self.risk_prompts.get(risk)
            if description is None:
                logger.debug("Unknown risk '%s' skipped", risk)
                continue
            descriptions.append(description)
        return descriptions

    def build_prompt(
        self,
        code_content: str,
        risks: Iterable[str],
        output_schema: Dict[str, Any],
        file_label: Optional[str] = None,
        template_key: str = DEFAULT_TEMPLATE_KEY,
    ) -> str:
        """Render the prompt for one analysis unit.

        An unknown ``template_key`` falls back to the default template, as
        does a custom template that cannot be formatted.
        """
        template = self.prompt_templates.get(template_key, self.prompt_templates[DEFAULT_TEMPLATE_KEY])
        values = _KeepMissing(
            risk_list=", ".join(self.risk_descriptions(risks)),
            json_schema=json.dumps(output_schema),
            language=self.language,
            code_content=code_content,
            file_label=file_label or "unnamed content",
        )
        try:
            return template.format_map(values)
        except (ValueError, IndexError, KeyError, AttributeError, TypeError) as e:
            logger.warning("Prompt template '%s' is malformed (%s); using the default template", template_key, e)
            return DEFAULT_PROMPT_TEMPLATE.format_map(values)


__all__ = [
    "DEFAULT_CHECKS",
    "DEFAULT_PROMPT_TEMPLATE",
    "DEFAULT_TEMPLATE_KEY",
    "RISK_PROMPTS",
    "PromptManager",
]
