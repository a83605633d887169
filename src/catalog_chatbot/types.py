"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(slots=True)
class Product:
    """One catalog row. Values are kept exactly as read from the source."""

    display_title: str
    embedding_text: str
    url: str
    image_url: str
    product_type: str
    discount: str
    price: str
    variants: str
    create_date: str

    @classmethod
    def from_row(cls, row: Mapping[str, str | None]) -> "Product":
        def _get(column: str) -> str:
            return row.get(column) or ""

        return cls(
            display_title=_get("displayTitle"),
            embedding_text=_get("embeddingText"),
            url=_get("url"),
            image_url=_get("imageUrl"),
            product_type=_get("productType"),
            discount=_get("discount"),
            price=_get("price"),
            variants=_get("variants"),
            create_date=_get("createDate"),
        )


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Provider-reported token accounting for one LLM call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_message(cls, message: Any) -> "TokenUsage":
        """Read usage from a langchain message.

        Prefers `usage_metadata`; falls back to the raw OpenAI `token_usage`
        block in `response_metadata`. Missing accounting yields zeros.
        """

        usage = getattr(message, "usage_metadata", None)
        if usage:
            return cls(
                prompt_tokens=max(0, int(usage.get("input_tokens", 0))),
                completion_tokens=max(0, int(usage.get("output_tokens", 0))),
                total_tokens=max(0, int(usage.get("total_tokens", 0))),
            )

        metadata = getattr(message, "response_metadata", None) or {}
        raw = metadata.get("token_usage") or {}
        return cls(
            prompt_tokens=max(0, int(raw.get("prompt_tokens") or 0)),
            completion_tokens=max(0, int(raw.get("completion_tokens") or 0)),
            total_tokens=max(0, int(raw.get("total_tokens") or 0)),
        )


@dataclass(slots=True)
class FunctionCallDecision:
    """The capability the model chose, with its still-unvalidated arguments."""

    name: str
    arguments: dict[str, Any]
    call_id: str | None = None


@dataclass
class ChatbotResponse:
    """The single object returned to the caller."""

    response: str


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
