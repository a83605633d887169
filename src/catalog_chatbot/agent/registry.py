"""Capability registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ConfigDict, ValidationError

from catalog_chatbot.errors import (
    CapabilityError,
    ChatbotError,
    MalformedCapabilityArguments,
    UnknownCapability,
)
from catalog_chatbot.types import ToolTrace


class ToolSpec(BaseModel):
    """Declarative capability specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[Any], Awaitable[str]]

    def validate_payload(self, payload: dict[str, Any]) -> BaseModel:
        try:
            return self.args_schema.model_validate(payload)
        except ValidationError as exc:
            raise MalformedCapabilityArguments(self.name, str(exc)) from exc

    async def invoke(self, payload: dict[str, Any]) -> str:
        data = self.validate_payload(payload)
        return await self.handler(data)

    def as_openai_tool(self) -> dict[str, Any]:
        """Export the OpenAI function-calling declaration for this capability."""
        tool = convert_to_openai_tool(self.args_schema)
        tool["function"]["name"] = self.name
        tool["function"]["description"] = self.description
        return tool


class ToolRegistry:
    """Stores capability specs and dispatches validated calls to them."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def has(self, name: str) -> bool:
        return name in self._tools

    async def execute(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        observer: Callable[[ToolTrace], None] | None = None,
    ) -> str:
        """Validate `payload` and run the named capability.

        `observer`, when given, receives a `ToolTrace` after a successful run.
        """
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownCapability(name)
        return await self._execute_spec(spec, payload, observer)

    def as_openai_tools(self) -> list[dict[str, Any]]:
        return [spec.as_openai_tool() for spec in self._tools.values()]

    async def _execute_spec(
        self,
        spec: ToolSpec,
        payload: dict[str, Any],
        observer: Callable[[ToolTrace], None] | None,
    ) -> str:
        start = perf_counter()
        try:
            output = await spec.invoke(payload)
        except ChatbotError:
            raise
        except Exception as exc:
            raise CapabilityError(f"Error executing {spec.name}") from exc
        latency_ms = (perf_counter() - start) * 1000.0

        if observer is not None:
            observer(
                ToolTrace(
                    name=spec.name,
                    input_payload=payload,
                    output_preview=output[:320],
                    latency_ms=latency_ms,
                )
            )
        return output
