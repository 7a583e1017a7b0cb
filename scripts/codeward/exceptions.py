#!/usr/bin/env python3
"""
Codeward Exceptions Module

Custom exception classes for the codeward scanner.
Centralized exception definitions for consistent error handling.
"""

__all__ = [
    "CodewardError",
    "ConfigError",
    "IgnoreFileError",
    "ScannerError",
    "AnalysisBackendError",
    "GitError",
]


class CodewardError(Exception):
    """Base exception for all codeward errors"""
    pass


class ConfigError(CodewardError):
    """Raised when a configuration value is invalid"""
    pass


class IgnoreFileError(CodewardError):
    """Raised when the ignore file cannot be read or decoded"""
    pass


class ScannerError(CodewardError):
    """Raised when a static analysis tool cannot be executed"""
    pass


class AnalysisBackendError(CodewardError):
    """Raised when the AI analysis backend is unusable"""
    pass


class GitError(CodewardError):
    """Raised when a git command fails"""
    pass
