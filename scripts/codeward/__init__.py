"""
codeward - security scanning for Ruby code.

Combines Brakeman and bundler-audit with an LLM-backed analyzer and renders
one unified report.
"""

__version__ = "0.1.0"
