"""
Report Generation for codeward.

Pure presentation over the CombinedReport model.

Functions:
    count_by_severity: Count AI findings by severity level
    count_static_findings: Count Brakeman warnings and vulnerable gems
    format_console: Human-readable text report for the terminal
    format_json: Pretty-printed JSON report
    format_markdown: Markdown report
    format_html: Standalone HTML page rendered with Jinja2
    write_report: Render a report in the requested format and write it out
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, Template, TemplateSyntaxError

from codeward.aggregator import UNAVAILABLE
from codeward.models import CombinedReport

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ["Critical", "High", "Medium", "Low", "Info"]
SEVERITY_EMOJI = {"Critical": "🔴", "High": "🟠", "Medium": "🟡", "Low": "🟢", "Info": "🔵"}

REPORT_FORMATS = ("console", "json", "markdown", "html")
FILE_EXTENSIONS = {"json": ".json", "markdown": ".md", "html": ".html"}


def count_by_severity(risks: List[Dict[str, Any]]) -> Dict[str, int]:
    """Count findings by severity level"""
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for risk in risks:
        severity = str(risk.get("severity", "")).capitalize()
        if severity in counts:
            counts[severity] += 1
    return counts


def _brakeman_warnings(report: CombinedReport) -> Optional[List[Dict[str, Any]]]:
    result = report.static_analysis_results.get("brakeman")
    if not result or result.get("status") == UNAVAILABLE:
        return None
    return result.get("warnings", [])


def _vulnerable_gems(report: CombinedReport) -> Optional[List[Dict[str, Any]]]:
    result = report.static_analysis_results.get("bundler_audit")
    if not result or result.get("status") == UNAVAILABLE:
        return None
    results = result.get("scan", {}).get("results", [])
    return [entry for entry in results if entry.get("type") == "unpatched_gem"]


def count_static_findings(report: CombinedReport) -> Dict[str, int]:
    warnings = _brakeman_warnings(report) or []
    gems = _vulnerable_gems(report) or []
    return {"brakeman": len(warnings), "bundler_audit": len(gems)}


def _numbered_snippet(snippet: Optional[str], indent: str = "      ") -> str:
    if not snippet:
        return f"{indent}(none)\n"
    return "".join(f"{indent}{i}: {line}\n" for i, line in enumerate(snippet.splitlines(), 1))


def format_console(report: CombinedReport) -> str:
    """Render the report as terminal text."""
    lines: List[str] = []
    risks = report.ai_security_risks

    lines.append("=" * 80)
    lines.append("🔒 CODEWARD SECURITY SCAN")
    lines.append("=" * 80)
    lines.append("")
    lines.append("--- AI Analysis Results ---")
    if not risks:
        lines.append("✅ No AI-detected security risks.")
    for risk in risks:
        severity = str(risk.get("severity", "Unknown"))
        lines.append(f"  - Type: {risk.get('type') or 'Unknown Type'}")
        lines.append(f"    Severity: {SEVERITY_EMOJI.get(severity, '⚪')} {severity}")
        lines.append(f"    Location: {risk.get('location', '')}")
        lines.append(f"    Details: {risk.get('details', '')}")
        lines.append("    Code Snippet:")
        lines.append(_numbered_snippet(risk.get("code_snippet")).rstrip("\n"))
        lines.append("")
    lines.append("")

    lines.append("--- Static Analysis Results ---")
    if not report.static_analysis_results:
        lines.append("Static analyzers were skipped.")
    else:
        warnings = _brakeman_warnings(report)
        lines.append("Brakeman:")
        if warnings is None:
            lines.append("  ⚠️  Brakeman results not available.")
        elif not warnings:
            lines.append("  ✅ No Brakeman warnings found.")
        for warning in warnings or []:
            lines.append(f"    - Warning Type: {warning.get('warning_type')}")
            lines.append(f"      Confidence: {warning.get('confidence')}")
            lines.append(f"      Message: {warning.get('message')}")
            lines.append(f"      File: {warning.get('file')}")
            lines.append(f"      Line: {warning.get('line')}")
            lines.append(f"      Code: {warning.get('code')}")
            lines.append(f"      Link: {warning.get('link')}")
        lines.append("")

        gems = _vulnerable_gems(report)
        lines.append("Bundler-Audit:")
        if gems is None:
            lines.append("  ⚠️  Bundler-Audit results not available.")
        elif not gems:
            lines.append("  ✅ No vulnerable gems found.")
        for entry in gems or []:
            advisory = entry.get("advisory", {})
            gem = entry.get("gem", {})
            lines.append(f"    - ID: {advisory.get('id')}")
            lines.append(f"      Gem: {gem.get('name')} ({gem.get('version')})")
            lines.append(f"      Title: {advisory.get('title')}")
            lines.append(f"      URL: {advisory.get('url')}")
            lines.append(f"      Criticality: {advisory.get('criticality')}")
            lines.append(f"      Patched Versions: {', '.join(advisory.get('patched_versions') or [])}")
        lines.append("")

    counts = count_by_severity(risks)
    static_counts = count_static_findings(report)
    lines.append("--- Scan Summary ---")
    lines.append(f"📊 AI Analysis: {len(risks)} issues")
    for severity in SEVERITY_ORDER:
        lines.append(f"   {SEVERITY_EMOJI[severity]} {severity + ':':<10}{counts[severity]}")
    lines.append(f"🔧 Brakeman: {static_counts['brakeman']} warnings")
    lines.append(f"📦 Bundler-Audit: {static_counts['bundler_audit']} vulnerabilities")
    lines.append("=" * 80)
    return "\n".join(lines) + "\n"


def format_json(report: CombinedReport) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def format_markdown(report: CombinedReport) -> str:
    """Generate human-readable Markdown report."""
    md = []
    risks = report.ai_security_risks

    md.append("# 🔒 Codeward Security Report\n\n")
    md.append("## 📊 Summary\n\n")
    md.append(f"**AI Findings**: {len(risks)}\n\n")
    for severity, count in count_by_severity(risks).items():
        md.append(f"- {SEVERITY_EMOJI[severity]} **{severity}**: {count}\n")
    static_counts = count_static_findings(report)
    md.append(f"\n**Brakeman warnings**: {static_counts['brakeman']}\n\n")
    md.append(f"**Vulnerable gems**: {static_counts['bundler_audit']}\n\n")
    md.append("---\n\n")

    for severity in SEVERITY_ORDER:
        severity_risks = [r for r in risks if str(r.get("severity", "")).capitalize() == severity]
        if not severity_risks:
            continue
        md.append(f"## {severity} Issues ({len(severity_risks)})\n\n")
        for i, risk in enumerate(severity_risks, 1):
            md.append(f"### {i}. {risk.get('type') or 'Unknown Type'}\n\n")
            md.append(f"**Location**: `{risk.get('location', '')}`\n\n")
            md.append(f"**Details**: {risk.get('details', '')}\n\n")
            if risk.get("code_snippet"):
                md.append(f"```ruby\n{risk['code_snippet']}\n```\n\n")
            md.append("---\n\n")

    warnings = _brakeman_warnings(report)
    if warnings:
        md.append("## Brakeman Warnings\n\n")
        for warning in warnings:
            md.append(
                f"- **{warning.get('warning_type')}** ({warning.get('confidence')}): "
                f"{warning.get('message')} `{warning.get('file')}:{warning.get('line')}`\n"
            )
        md.append("\n")

    gems = _vulnerable_gems(report)
    if gems:
        md.append("## Vulnerable Gems\n\n")
        for entry in gems:
            advisory = entry.get("advisory", {})
            gem = entry.get("gem", {})
            md.append(
                f"- **{gem.get('name')} {gem.get('version')}**: {advisory.get('id')} "
                f"{advisory.get('title')} ({advisory.get('criticality')})\n"
            )
        md.append("\n")

    return "".join(md)


DEFAULT_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Codeward Security Report</title>
  <style>
    body { font-family: Arial, sans-serif; background: #f8f8f8; color: #222; }
    .container { max-width: 1000px; margin: 2em auto; background: #fff; padding: 2em; border-radius: 8px; }
    h1 { color: #2d5be3; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 1.5em; }
    th, td { border: 1px solid #ddd; padding: 0.5em; text-align: left; vertical-align: top; }
    th { background: #f0f0f0; }
    pre { background: #f4f4f4; padding: 0.5em; border-radius: 4px; overflow-x: auto; margin: 0; }
    .severity-critical { color: #b00020; font-weight: bold; }
    .severity-high { color: #d35400; font-weight: bold; }
    .severity-medium { color: #b7950b; }
    .severity-low { color: #1e8449; }
    .unavailable { color: #888; font-style: italic; }
    .timestamp { color: #888; font-size: 0.9em; }
  </style>
</head>
<body>
<div class="container">
  <h1>🔒 Codeward Security Report</h1>
  <div class="timestamp">Generated: {{ generated_at }}</div>

  <h2>Summary</h2>
  <ul>
    <li>AI findings: {{ ai_risks | length }}</li>
    {% for severity, count in severity_counts.items() %}<li>{{ severity }}: {{ count }}</li>
    {% endfor %}
    <li>Brakeman warnings: {{ static_counts.brakeman }}</li>
    <li>Vulnerable gems: {{ static_counts.bundler_audit }}</li>
  </ul>

  <h2>AI Analysis Results</h2>
  {% if ai_risks %}
  <table>
    <tr><th>Type</th><th>Severity</th><th>Location</th><th>Details</th><th>Code Snippet</th></tr>
    {% for risk in ai_risks %}
    <tr class="ai-risk">
      <td>{{ risk.type or "Unknown Type" }}</td>
      <td class="severity-{{ (risk.severity or '') | lower }}">{{ risk.severity }}</td>
      <td>{{ risk.location }}</td>
      <td>{{ risk.details }}</td>
      <td>{% if risk.code_snippet %}<pre>{{ risk.code_snippet }}</pre>{% endif %}</td>
    </tr>
    {% endfor %}
  </table>
  {% else %}
  <p>No AI-detected security risks.</p>
  {% endif %}

  <h2>Static Analysis Results</h2>
  {% if static_skipped %}
  <p class="unavailable">Static analyzers were skipped.</p>
  {% else %}
  <h3>Brakeman</h3>
  {% if brakeman_warnings is none %}
  <p class="unavailable">Brakeman results not available.</p>
  {% elif not brakeman_warnings %}
  <p>No Brakeman warnings found.</p>
  {% else %}
  <table>
    <tr><th>Warning Type</th><th>Confidence</th><th>Message</th><th>File</th><th>Line</th></tr>
    {% for warning in brakeman_warnings %}
    <tr>
      <td>{% if warning.link %}<a href="{{ warning.link }}">{{ warning.warning_type }}</a>{% else %}{{ warning.warning_type }}{% endif %}</td>
      <td>{{ warning.confidence }}</td>
      <td>{{ warning.message }}</td>
      <td>{{ warning.file }}</td>
      <td>{{ warning.line }}</td>
    </tr>
    {% endfor %}
  </table>
  {% endif %}

  <h3>Bundler-Audit</h3>
  {% if vulnerable_gems is none %}
  <p class="unavailable">Bundler-Audit results not available.</p>
  {% elif not vulnerable_gems %}
  <p>No vulnerable gems found.</p>
  {% else %}
  <table>
    <tr><th>Gem</th><th>Advisory</th><th>Title</th><th>Criticality</th><th>Patched Versions</th></tr>
    {% for entry in vulnerable_gems %}
    <tr>
      <td>{{ entry.gem.name }} ({{ entry.gem.version }})</td>
      <td>{% if entry.advisory.url %}<a href="{{ entry.advisory.url }}">{{ entry.advisory.id }}</a>{% else %}{{ entry.advisory.id }}{% endif %}</td>
      <td>{{ entry.advisory.title }}</td>
      <td>{{ entry.advisory.criticality }}</td>
      <td>{{ (entry.advisory.patched_versions or []) | join(", ") }}</td>
    </tr>
    {% endfor %}
  </table>
  {% endif %}
  {% endif %}
</div>
</body>
</html>
"""

_html_env = Environment(autoescape=True)


def _load_html_template(template_path: Optional[str]) -> Template:
    if template_path:
        try:
            return _html_env.from_string(Path(template_path).read_text(encoding="utf-8"))
        except OSError as e:
            logger.warning(f"⚠️  HTML template not readable ({e}); using the built-in template")
        except TemplateSyntaxError as e:
            logger.warning(f"⚠️  HTML template {template_path} is invalid ({e}); using the built-in template")
    return _html_env.from_string(DEFAULT_HTML_TEMPLATE)


def format_html(report: CombinedReport, template_path: Optional[str] = None) -> str:
    """Render the report as a standalone HTML page.

    ``template_path`` points at a custom Jinja2 template.  It receives the same
    context as the built-in one: ``ai_risks``, ``static_results``,
    ``brakeman_warnings`` and ``vulnerable_gems`` (``None`` when the tool was
    unavailable), ``severity_counts``, ``static_counts``, ``static_skipped``
    and ``generated_at``.
    """
    template = _load_html_template(template_path)
    return template.render(
        ai_risks=report.ai_security_risks,
        static_results=report.static_analysis_results,
        brakeman_warnings=_brakeman_warnings(report),
        vulnerable_gems=_vulnerable_gems(report),
        severity_counts=count_by_severity(report.ai_security_risks),
        static_counts=count_static_findings(report),
        static_skipped=not report.static_analysis_results,
        generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )


_FORMATTERS = {
    "console": format_console,
    "json": format_json,
    "markdown": format_markdown,
    "html": format_html,
}


def write_report(
    report: CombinedReport,
    fmt: str,
    output_prefix: str,
    html_template: Optional[str] = None,
) -> Optional[str]:
    """Render *report* in *fmt*.

    Console output is printed to stdout and ``None`` is returned.  File
    formats are written to ``<output_prefix>.<ext>`` and the path is returned.
    ``html_template`` only applies to the html format.
    """
    if fmt not in _FORMATTERS:
        raise ValueError(f"Unknown report format: {fmt}. Choose from: {', '.join(REPORT_FORMATS)}")

    if fmt == "html":
        rendered = format_html(report, html_template)
    else:
        rendered = _FORMATTERS[fmt](report)

    if fmt == "console":
        print(rendered)
        return None

    output_path = Path(f"{output_prefix}{FILE_EXTENSIONS[fmt]}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(rendered, encoding="utf-8")
    logger.info(f"📄 {fmt.upper()} report generated: {output_path}")
    return str(output_path)


__all__ = [
    "REPORT_FORMATS",
    "count_by_severity",
    "count_static_findings",
    "format_console",
    "format_json",
    "format_markdown",
    "format_html",
    "write_report",
]
