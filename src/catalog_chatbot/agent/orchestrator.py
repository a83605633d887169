"""Function-calling orchestrator: one model call, at most one capability."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage

from catalog_chatbot.agent.registry import ToolRegistry
from catalog_chatbot.errors import (
    ConfigError,
    MalformedCapabilityArguments,
    UnknownCapability,
    normalize_error,
)
from catalog_chatbot.obs.tracing import Timer, UsageStore
from catalog_chatbot.types import ChatbotResponse, FunctionCallDecision, TokenUsage, ToolTrace

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated"


class QueryOrchestrator:
    """Sends a query to the chat model and dispatches its capability choice.

    The model is bound once to the registry's capabilities with automatic
    tool choice. Each `process_query` call is independent: the only state
    touched across requests is the bounded usage store.
    """

    def __init__(
        self,
        *,
        llm: Any | None,
        tool_registry: ToolRegistry,
        usage_store: UsageStore | None = None,
        model_name: str = "unknown",
    ) -> None:
        self.tool_registry = tool_registry
        self.usage_store = usage_store if usage_store is not None else UsageStore()
        self.model_name = model_name
        self._model = (
            llm.bind_tools(
                self.tool_registry.as_openai_tools(),
                tool_choice="auto",
                parallel_tool_calls=False,
            )
            if llm is not None
            else None
        )

    @property
    def configured(self) -> bool:
        return self._model is not None

    async def process_query(self, query: str) -> ChatbotResponse:
        """Answer one user query.

        Raises:
            ChatbotError: exactly one categorized error; see `normalize_error`.
        """

        observed_tools: list[ToolTrace] = []
        try:
            if self._model is None:
                raise ConfigError("OPENAI_API_KEY is not defined in environment variables")
            with Timer() as timer:
                message = await self._model.ainvoke([HumanMessage(content=query)])
                usage = TokenUsage.from_message(message)
                result = await self._respond(message, observed_tools)
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Error processing query: %s", error.message, exc_info=exc)
            if error is exc:
                raise
            raise error from exc

        logger.info(
            "Token usage - Prompt: %d, Completion: %d, Total: %d",
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.total_tokens,
        )
        self.usage_store.create_record(
            query=query,
            response=result,
            model=self.model_name,
            usage=usage,
            latency_ms=timer.elapsed_ms,
            tool_traces=observed_tools,
        )
        return ChatbotResponse(response=result)

    async def _respond(self, message: Any, observed_tools: list[ToolTrace]) -> str:
        decision = self._extract_decision(message)
        if decision is None:
            return _extract_content(message) or NO_RESPONSE

        logger.debug("Model selected %s with %s", decision.name, decision.arguments)
        return await self.tool_registry.execute(
            decision.name,
            decision.arguments,
            observer=observed_tools.append,
        )

    def _extract_decision(self, message: Any) -> FunctionCallDecision | None:
        tool_calls = getattr(message, "tool_calls", None) or []
        if tool_calls:
            if len(tool_calls) > 1:
                logger.warning(
                    "Model returned %d tool calls; only the first is executed",
                    len(tool_calls),
                )
            call = tool_calls[0]
            return FunctionCallDecision(
                name=str(call.get("name", "")),
                arguments=dict(call.get("args") or {}),
                call_id=call.get("id"),
            )

        invalid_calls = getattr(message, "invalid_tool_calls", None) or []
        if invalid_calls:
            bad = invalid_calls[0]
            name = str(bad.get("name") or "")
            if not self.tool_registry.has(name):
                raise UnknownCapability(name)
            raise MalformedCapabilityArguments(
                name, str(bad.get("error") or "arguments are not valid JSON")
            )
        return None


def _extract_content(message: Any) -> str:
    content = getattr(message, "content", "")
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return "".join(parts).strip()
    return str(content or "")
