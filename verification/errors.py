"""
Error taxonomy for the verification core.

Every error raised out of a pipeline is a VerificationError carrying a kind
and a message, so the calling layer can map it to a response or persist it
on a FAILED verification record without inspecting exception types.
"""
from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Any, Dict, Optional

import openai


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    SCHEMA = "schema"
    CLIENT = "client"
    RUN_FATAL = "run_fatal"
    CANCELLED = "cancelled"
    INVALID_INPUT = "invalid_input"


class VerificationError(Exception):
    """Base error: kind + message, plus the stage it was raised from."""

    kind: ErrorKind = ErrorKind.RUN_FATAL
    retryable: bool = False

    def __init__(self, message: str, *, stage: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause

    def with_stage(self, stage: str) -> "VerificationError":
        if self.stage is None:
            self.stage = stage
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "stage": self.stage,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, stage={self.stage!r})"


class ConfigurationError(VerificationError):
    """Missing credentials or invalid settings; raised before any network call."""
    kind = ErrorKind.CONFIGURATION


class TransientProviderError(VerificationError):
    """Rate limit, timeout, or 5xx from a provider."""
    kind = ErrorKind.TRANSIENT
    retryable = True


class SchemaValidationError(VerificationError):
    """Model output could not be parsed into the required shape. Never retried."""
    kind = ErrorKind.SCHEMA


class ProviderRequestError(VerificationError):
    """Terminal provider failure, e.g. a 4xx response."""
    kind = ErrorKind.CLIENT


class RunFatalError(VerificationError):
    """The whole run is invalid: no baseline exists to compare against."""
    kind = ErrorKind.RUN_FATAL


class InvalidProfileUrlError(RunFatalError):
    kind = ErrorKind.INVALID_INPUT


class ScrapeError(VerificationError):
    """The scraping collaborator failed for a single URL."""
    kind = ErrorKind.CLIENT


class VerificationCancelled(VerificationError):
    kind = ErrorKind.CANCELLED


_RETRYABLE_MESSAGE_RE = re.compile(
    r"\b429\b|rate[\s_-]?limit|too many requests|timed?[\s_-]?out|timeout|"
    r"\b5\d\d\b|overloaded|unavailable|bad gateway|connection (?:error|reset|aborted)",
    re.IGNORECASE,
)

_RETRYABLE_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


def is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, VerificationError):
        return exc.retryable
    if isinstance(exc, _RETRYABLE_OPENAI_ERRORS):
        return True
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(status, int):
        return status == 429 or status >= 500
    return bool(_RETRYABLE_MESSAGE_RE.search(str(exc)))


def classify_provider_error(exc: BaseException) -> VerificationError:
    """
    Map a raw provider exception onto the taxonomy.

    phidata sometimes re-raises the OpenAI error as a plain Exception, so the
    message is checked as a last resort.
    """
    if isinstance(exc, VerificationError):
        return exc
    message = str(exc) or type(exc).__name__
    if is_retryable_error(exc):
        return TransientProviderError(message, cause=exc)
    return ProviderRequestError(message, cause=exc)
