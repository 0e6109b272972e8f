"""Provider failure taxonomy and the rule table that maps raw errors onto it.

Upstream providers do not expose stable structured error codes, so failures
are classified by message substrings and HTTP status. The rules are plain
data and evaluated in order; the first match wins.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx


class ErrorKind(str, Enum):
    AUTH = "auth_error"
    QUOTA = "quota_error"
    PERMISSION = "permission_error"
    RATE_LIMIT = "rate_limit_error"
    TIMEOUT = "timeout_error"
    UNKNOWN = "unknown_provider_error"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.TIMEOUT})


class ProviderError(Exception):
    """Raw failure reported by a provider, before classification."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ClassifiedError(Exception):
    """Gateway failure with a stable kind the caller can act on."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = kind in RETRYABLE_KINDS if retryable is None else retryable
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "retryable": self.retryable}


@dataclass(frozen=True)
class ErrorRule:
    kind: ErrorKind
    message: str
    substrings: tuple[str, ...] = ()
    status_codes: tuple[int, ...] = ()

    def matches(self, text: str, status_code: Optional[int]) -> bool:
        lowered = text.lower()
        if any(s.lower() in lowered for s in self.substrings):
            return True
        return status_code is not None and status_code in self.status_codes


DEFAULT_ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        ErrorKind.AUTH,
        "API key is invalid, check that it was copied correctly",
        substrings=("api key not valid", "invalid api key", "api_key_invalid", "no api key"),
    ),
    ErrorRule(
        ErrorKind.QUOTA,
        "API key quota is exhausted, check your Google AI account",
        substrings=("quota", "exceeded"),
    ),
    ErrorRule(
        ErrorKind.PERMISSION,
        "API key lacks permission for this request, check its access settings",
        substrings=("permission", "access"),
    ),
    ErrorRule(
        ErrorKind.AUTH,
        "API key authentication failed, check that it is correct",
        status_codes=(401,),
    ),
    ErrorRule(
        ErrorKind.RATE_LIMIT,
        "Too many requests to the model provider, try again later",
        status_codes=(429,),
    ),
)


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def classify_error(
    exc: BaseException,
    rules: tuple[ErrorRule, ...] = DEFAULT_ERROR_RULES,
) -> ClassifiedError:
    """Map any exception raised while calling a provider to a ``ClassifiedError``."""
    if isinstance(exc, ClassifiedError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ClassifiedError(ErrorKind.TIMEOUT, "Model provider did not respond in time")

    text = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    status_code = _status_of(exc)

    for rule in rules:
        if rule.matches(text, status_code):
            return ClassifiedError(rule.kind, rule.message, status_code=status_code)

    # 5xx upstream failures are transient more often than not.
    retryable = status_code is not None and status_code >= 500
    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"Model provider request failed: {text}",
        retryable=retryable,
        status_code=status_code,
    )
