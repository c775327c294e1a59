"""Exception hierarchy for the documentation retrieval layer.

Every error carries a stable ``code``, a human readable message, a ``details``
mapping with whatever context was at hand, and a ``retryable`` hint.  Callers
that speak JSON (the CLI, tests) use :meth:`DocsError.to_payload`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Sequence

__all__ = [
    "ErrorCode",
    "DocsError",
    "InvalidInputError",
    "TopicNotFoundError",
    "SectionNotFoundError",
    "VersionNotFoundError",
    "NetworkError",
    "ParseError",
    "CacheError",
    "SourceError",
    "ConfigError",
]


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    TOPIC_NOT_FOUND = "TOPIC_NOT_FOUND"
    SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    SOURCE_ERROR = "SOURCE_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DocsError(RuntimeError):
    """Base exception; subclasses pin the error code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in (details or {}).items() if v is not None}
        self.retryable = retryable

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


class InvalidInputError(DocsError):
    code = ErrorCode.INVALID_INPUT

    def __init__(self, field: str, value: Any, reason: Optional[str] = None) -> None:
        msg = f"Invalid input for {field}: {value}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, details={"field": field, "value": value, "reason": reason})


class TopicNotFoundError(DocsError):
    code = ErrorCode.TOPIC_NOT_FOUND

    def __init__(
        self, topic_id: str, version: Optional[str] = None, **details: Any
    ) -> None:
        msg = f"Topic not found: {topic_id}"
        if version:
            msg += f" (version: {version})"
        super().__init__(msg, details={"topic_id": topic_id, "version": version, **details})


class SectionNotFoundError(DocsError):
    code = ErrorCode.SECTION_NOT_FOUND

    def __init__(
        self,
        section: str,
        version: Optional[str] = None,
        available_sections: Optional[Sequence[str]] = None,
    ) -> None:
        msg = f"Section not found: {section}"
        if version:
            msg += f" (version: {version})"
        super().__init__(
            msg,
            details={
                "section": section,
                "version": version,
                "available_sections": list(available_sections) if available_sections else None,
            },
        )


class VersionNotFoundError(DocsError):
    code = ErrorCode.VERSION_NOT_FOUND

    def __init__(self, version: str, available_versions: Optional[Sequence[str]] = None) -> None:
        super().__init__(
            f"Version not found: {version}",
            details={
                "version": version,
                "available_versions": list(available_versions) if available_versions else None,
            },
        )


class NetworkError(DocsError):
    code = ErrorCode.NETWORK_ERROR

    def __init__(self, url: str, reason: Optional[str] = None, retryable: bool = True) -> None:
        msg = f"Network error fetching {url}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"url": url, "reason": reason}, retryable=retryable)


class ParseError(DocsError):
    """The raw document could not be turned into a topic at all."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, url: str, version: Optional[str] = None, reason: Optional[str] = None) -> None:
        msg = "Parse error during HTML parsing"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"url": url, "version": version, "reason": reason})
        self.url = url
        self.version = version


class CacheError(DocsError):
    code = ErrorCode.CACHE_ERROR

    def __init__(self, operation: str, reason: Optional[str] = None, **details: Any) -> None:
        msg = f"Cache error during {operation}"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, details={"operation": operation, "reason": reason, **details}, retryable=True
        )


class SourceError(DocsError):
    code = ErrorCode.SOURCE_ERROR

    def __init__(self, source: str, reason: Optional[str] = None, **details: Any) -> None:
        msg = f"Source error ({source})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"source": source, "reason": reason, **details})


class ConfigError(DocsError):
    code = ErrorCode.CONFIG_ERROR
