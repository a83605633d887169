"""FastAPI entrypoint for chatbot/trace/metrics endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from catalog_chatbot.agent.orchestrator import QueryOrchestrator
from catalog_chatbot.agent.registry import ToolRegistry
from catalog_chatbot.agent.tools import register_builtin_tools
from catalog_chatbot.catalog.search import ProductCatalog
from catalog_chatbot.config import AppConfig, LLMConfig
from catalog_chatbot.currency.converter import CurrencyConverter
from catalog_chatbot.errors import ChatbotError
from catalog_chatbot.obs.tracing import UsageStore
from catalog_chatbot.types import ChatbotResponse

logger = logging.getLogger(__name__)


def _create_llm(config: LLMConfig) -> Any:
    if not config.api_key:
        logger.warning("OPENAI_API_KEY is not defined in environment variables")
        return None
    if not config.organization:
        logger.warning("OPENAI_ORGANIZATION_ID is not defined in environment variables")

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model,
        temperature=config.temperature,
        api_key=config.api_key,
        organization=config.organization,
        max_retries=0,
    )


def build_orchestrator(config: AppConfig) -> QueryOrchestrator:
    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        ProductCatalog(config.catalog),
        CurrencyConverter(config.exchange),
    )
    return QueryOrchestrator(
        llm=_create_llm(config.llm),
        tool_registry=registry,
        usage_store=UsageStore(max_records=config.traces.max_records),
        model_name=config.llm.model,
    )


class ChatbotRequest(BaseModel):
    query: str = Field(min_length=1)


def create_app(orchestrator: QueryOrchestrator | None = None) -> FastAPI:
    if orchestrator is None:
        config = AppConfig.from_env()
        logging.basicConfig(level=config.log_level)
        orchestrator = build_orchestrator(config)

    app = FastAPI(title="Catalog Chatbot", version="0.1.0")
    usage_store = orchestrator.usage_store

    @app.exception_handler(ChatbotError)
    async def chatbot_error_handler(request: Request, exc: ChatbotError) -> JSONResponse:
        logger.warning(
            "Request failed: %s %s [%s %s]",
            exc.status_code,
            exc.message,
            request.method,
            request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.message,
                "error_code": exc.kind.value.upper(),
            },
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": orchestrator.configured,
            "trace_count": len(usage_store),
        }

    @app.post("/chatbot", response_model=ChatbotResponse)
    async def chatbot(request: ChatbotRequest) -> ChatbotResponse:
        return await orchestrator.process_query(request.query)

    @app.get("/traces")
    def traces(limit: int = Query(default=20, ge=1)) -> dict[str, Any]:
        records = [asdict(record) for record in usage_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = usage_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return usage_store.summary()

    return app


app = create_app()
