from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration_error"
    AUTHENTICATION = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limit_exceeded"
    TRANSIENT_NETWORK = "transient_network_error"
    PARSE = "parse_error"
    VALIDATION = "validation_error"
    CANCELLED = "cancelled"

    @property
    def is_fatal(self) -> bool:
        """Fatal kinds surface to the caller and are never masked by fallback content."""
        return self in _FATAL

    @property
    def is_retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_NETWORK)

    @property
    def is_absorbed(self) -> bool:
        return self in _ABSORBED


_FATAL = frozenset({
    ErrorKind.CONFIGURATION,
    ErrorKind.AUTHENTICATION,
    ErrorKind.QUOTA_EXCEEDED,
    ErrorKind.VALIDATION,
    ErrorKind.CANCELLED,
})

_ABSORBED = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.TRANSIENT_NETWORK,
    ErrorKind.PARSE,
})


_USER_MESSAGES = {
    ErrorKind.CONFIGURATION: "Content generation is not configured. Please configure your API key.",
    ErrorKind.AUTHENTICATION: "Invalid or expired API key. Please check your configuration.",
    ErrorKind.QUOTA_EXCEEDED: "API quota exceeded. Please check your account balance and retry later.",
    ErrorKind.RATE_LIMITED: "Rate limit exceeded. Please try again later.",
    ErrorKind.TRANSIENT_NETWORK: "Network error. Please try again later.",
    ErrorKind.PARSE: "The generated content could not be read. Please retry.",
    ErrorKind.VALIDATION: "Some required fields are missing.",
    ErrorKind.CANCELLED: "The request was cancelled.",
}


def user_message(kind: ErrorKind) -> str:
    return _USER_MESSAGES[kind]


class GenerationError(Exception):
    """Internal failure tagged with its ErrorKind.

    Raised by the request builder, the normalizer and the configuration
    check; `generate` converts every instance into a GenerationResult.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or user_message(kind)
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"GenerationError({self.kind.value!r}, {self.message!r})"
