"""Error taxonomy and the single normalization step for caller-facing errors."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CONFIG = "config"
    RATE_NOT_FOUND = "rate_not_found"
    UNKNOWN_CAPABILITY = "unknown_capability"
    MALFORMED_ARGUMENTS = "malformed_arguments"
    CATALOG_READ = "catalog_read"
    CAPABILITY_FAILED = "capability_failed"
    PROVIDER_QUOTA = "provider_quota"
    PROVIDER_AUTH = "provider_auth"
    PROVIDER_NOT_FOUND = "provider_not_found"
    UPSTREAM = "upstream"


class ChatbotError(Exception):
    """Base error carrying a kind tag and the status reported to the caller."""

    kind: ErrorKind = ErrorKind.UPSTREAM
    status_code: int = 500
    default_message = "An error occurred while processing your request. Please try again later."

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ConfigError(ChatbotError):
    kind = ErrorKind.CONFIG
    status_code = 503
    default_message = "Service is not configured"


class RateNotFoundError(ChatbotError):
    kind = ErrorKind.RATE_NOT_FOUND
    status_code = 404

    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"Exchange rate not found for {currency}")


class UnknownCapability(ChatbotError):
    kind = ErrorKind.UNKNOWN_CAPABILITY

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown function: {name}")


class MalformedCapabilityArguments(ChatbotError):
    kind = ErrorKind.MALFORMED_ARGUMENTS

    def __init__(self, name: str, detail: str) -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Invalid arguments for {name}: {detail}")


class CatalogReadError(ChatbotError):
    kind = ErrorKind.CATALOG_READ
    default_message = "Error reading product database"


class CapabilityError(ChatbotError):
    kind = ErrorKind.CAPABILITY_FAILED
    default_message = "Error executing capability"


class ProviderQuotaError(ChatbotError):
    kind = ErrorKind.PROVIDER_QUOTA
    status_code = 429
    default_message = (
        "API quota exceeded. Please try again later or check your OpenAI account balance."
    )


class ProviderAuthError(ChatbotError):
    kind = ErrorKind.PROVIDER_AUTH
    status_code = 401
    default_message = "Invalid API key. Please check your OpenAI credentials."


class ProviderNotFoundError(ChatbotError):
    kind = ErrorKind.PROVIDER_NOT_FOUND
    status_code = 404
    default_message = "The requested AI model is not available. Please contact support."


class UpstreamError(ChatbotError):
    kind = ErrorKind.UPSTREAM


def normalize_error(exc: BaseException) -> ChatbotError:
    """Map any raised exception to exactly one categorized `ChatbotError`.

    Already-categorized errors pass through untouched. Otherwise the raw
    provider signals are checked in a fixed order: quota, auth, not-found,
    nested provider message, then the generic fallback.
    """

    if isinstance(exc, ChatbotError):
        return exc

    status = _extract_status(exc)
    if status == 429:
        return ProviderQuotaError()
    if status == 401:
        return ProviderAuthError()
    if status == 404:
        return ProviderNotFoundError()

    nested = _extract_nested_message(exc)
    if nested:
        return UpstreamError(nested, status_code=_response_status(exc) or 400)

    return UpstreamError()


def _extract_status(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return _response_status(exc)


def _response_status(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def _extract_nested_message(exc: BaseException) -> str | None:
    message = _message_from_payload(getattr(exc, "body", None))
    if message:
        return message

    response = getattr(exc, "response", None)
    if response is None:
        return None
    payload: Any = getattr(response, "data", None)
    if payload is None and callable(getattr(response, "json", None)):
        try:
            payload = response.json()
        except ValueError:
            logger.debug("Upstream error response body is not JSON")
            return None
    return _message_from_payload(payload)


def _message_from_payload(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"] or None
    message = payload.get("message")
    if isinstance(message, str):
        return message or None
    return None
