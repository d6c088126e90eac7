"""
Unified exception hierarchy for adminapi.

All exception classes live here. No per-module exception files.

Hierarchy:
    AdminapiError (base)
    ├── QueryParseError
    │   ├── EmptyQueryError
    │   ├── UnmatchedParenError
    │   ├── UnmatchedQuoteError
    │   ├── InvalidExpressionError
    │   └── UnknownOperatorError
    ├── ConfigurationError
    ├── SigningError
    ├── PayloadError
    ├── APIError
    ├── ResponseError
    └── ObjectCountError

Usage:
    from adminapi.exceptions import QueryParseError, APIError
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# ROOT
# =============================================================================


class AdminapiError(Exception):
    """
    Base exception for all adminapi errors.

    Attributes:
        message: Human-readable error description
        context: Additional context about what was being done
        details: Technical details (fragments, operator names, status codes)
    """

    def __init__(
        self,
        message: str,
        context: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.context = context
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"Details: {detail_str}")
        return ". ".join(parts)


# =============================================================================
# QUERY PARSING
# =============================================================================


class QueryParseError(AdminapiError):
    """Raised when a textual query cannot be turned into filters."""

    def __init__(
        self,
        message: str,
        fragment: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if fragment is not None:
            details["fragment"] = fragment
        super().__init__(message, details=details, **kwargs)
        self.fragment = fragment


class EmptyQueryError(QueryParseError):
    """Raised when the query text is empty or only whitespace."""

    def __init__(self, message: str = "Query must not be empty", **kwargs: Any):
        super().__init__(message, **kwargs)


class UnmatchedParenError(QueryParseError):
    """Raised when parentheses are unbalanced."""


class UnmatchedQuoteError(QueryParseError):
    """Raised when a quoted span is still open at the end of the input."""


class InvalidExpressionError(QueryParseError):
    """Raised when a fragment is not of the form ``key=value``."""


class UnknownOperatorError(QueryParseError):
    """Raised when ``name(...)`` names no known filter operator."""

    def __init__(
        self,
        message: str,
        operator: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if operator is not None:
            details["operator"] = operator
        super().__init__(message, details=details, **kwargs)
        self.operator = operator


# =============================================================================
# CONFIGURATION & AUTH
# =============================================================================


class ConfigurationError(AdminapiError):
    """Raised when settings are missing or inconsistent."""


class SigningError(AdminapiError):
    """Raised when a request cannot be signed (bad key, unsupported type)."""


# =============================================================================
# TRANSPORT
# =============================================================================


class PayloadError(AdminapiError, ValueError):
    """Raised when filters or a request body cannot be encoded as JSON."""


class APIError(AdminapiError):
    """
    Raised when the service answers with a non-2xx status.

    ``server_message`` holds ``error.message`` from the JSON body when the
    service sent one, otherwise the raw body text.
    """

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        server_message: str = "",
        **kwargs: Any,
    ):
        self.status_code = status_code
        self.reason = reason
        self.server_message = server_message
        message = f"HTTP error {status_code} {reason}".rstrip()
        if server_message:
            message = f"{message}: {server_message}"
        super().__init__(message, **kwargs)


class ResponseError(AdminapiError):
    """Raised when a response body cannot be decoded."""


class ObjectCountError(AdminapiError):
    """Raised when a query expected exactly one object but got another count."""

    def __init__(self, actual: int, expected: int = 1, **kwargs: Any):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected exactly {expected} server object, got {actual}", **kwargs
        )
