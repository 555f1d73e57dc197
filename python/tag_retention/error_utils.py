"""
Error types and builders for the retention engine.

Every error raised by the engine carries a category, a list of suggested
fixes and a details mapping, so the orchestrator can surface something
actionable instead of a bare regex or parse failure.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class ConfigurationError(ActionableError):
    """Invalid engine configuration, raised when a config value is built"""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.CONFIGURATION, suggestions, details)


class ValidationError(ActionableError):
    """A single item (tag, folder, timestamp) failed a hard check"""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.VALIDATION, suggestions, details)


def create_config_error(field: str, value: Any, reason: str) -> ConfigurationError:
    """Create actionable error for configuration validation failures"""
    suggestions = [
        f"Check the '{field}' value in config.yaml",
        "Verify the value matches the expected format",
        "Check the environment variables that override config.yaml",
    ]

    if "days" in field.lower():
        suggestions.insert(1, "Day counts must be non-negative numbers")
    elif "count" in field.lower() or "min" in field.lower():
        suggestions.insert(1, "Counts must be non-negative integers")

    return ConfigurationError(
        message=f"Configuration error: Invalid value for '{field}'",
        suggestions=suggestions,
        details={
            "field": field,
            "value": value,
            "reason": reason
        }
    )


def create_pattern_error(field: str, pattern: str, reason: str) -> ConfigurationError:
    """Create actionable error for a tag or folder pattern that can not be used"""
    suggestions = [
        f"Check the '{field}' pattern in config.yaml",
        "Verify the pattern compiles as a Python regular expression",
    ]

    if "capture" in reason or "named" in reason:
        suggestions.insert(0, "Date patterns need exactly one group, e.g. ^release-(\\d{8}).*$")
        suggestions.insert(1, "Group patterns need named groups, e.g. (?P<group>build)-(?P<id>[0-9]+)")
    if not pattern:
        suggestions.insert(0, "The pattern is required and can not be empty")

    return ConfigurationError(
        message=f"Configuration error: Invalid pattern for '{field}'",
        suggestions=suggestions,
        details={
            "field": field,
            "pattern": pattern,
            "reason": reason
        }
    )


def create_release_tag_error(tag: str, reason: str, details: Optional[Dict[str, Any]] = None) -> ValidationError:
    """Create actionable error for a release tag that fails the CI check"""
    suggestions = [
        "Release tags must embed their build date as YYYYMMDD, e.g. release-20220320",
        "The embedded date must not be in the future",
        "Tag the release close to the commit date it points to",
    ]

    return ValidationError(
        message=f"Release tag '{tag}' is not valid: {reason}",
        suggestions=suggestions,
        details={"tag": tag, **(details or {})}
    )


def create_item_error(item: str, reason: str, details: Optional[Dict[str, Any]] = None) -> ValidationError:
    """Create actionable error for a listed item that breaks its pattern contract"""
    suggestions = [
        "Check that the configured pattern only captures the intended values",
        "Remove or rename the offending item",
    ]

    return ValidationError(
        message=f"Item '{item}' is not valid: {reason}",
        suggestions=suggestions,
        details={"item": item, **(details or {})}
    )
