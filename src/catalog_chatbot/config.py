"""Configuration models for the chatbot service."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_EXCHANGE_BASE_URL = "http://api.exchangeratesapi.io/v1"


class LLMConfig(BaseModel):
    """Configures the chat model used for capability selection."""

    api_key: str | None = None
    organization: str | None = None
    model: str = "gpt-3.5-turbo-0125"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)


class ExchangeConfig(BaseModel):
    """Configures the exchange-rate provider."""

    api_key: str | None = None
    base_url: str = DEFAULT_EXCHANGE_BASE_URL


class CatalogConfig(BaseModel):
    """Configures the CSV product catalog."""

    path: str = "data/products_list.csv"
    max_results: int = Field(default=2, ge=1)
    encoding: str = "utf-8"


class TraceConfig(BaseModel):
    """Configures the in-memory usage trace store."""

    max_records: int = Field(default=1000, ge=1)


class AppConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    traces: TraceConfig = Field(default_factory=TraceConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from process environment variables.

        Credentials are optional here; their absence surfaces as a
        `ConfigError` when the capability that needs them is used.
        """

        llm = LLMConfig(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            organization=os.getenv("OPENAI_ORGANIZATION_ID") or None,
            model=os.getenv("OPENAI_MODEL", LLMConfig().model),
            temperature=float(os.getenv("OPENAI_TEMPERATURE", "0")),
        )
        exchange = ExchangeConfig(
            api_key=os.getenv("EXCHANGE_API_KEY") or None,
            base_url=os.getenv("EXCHANGE_API_BASE_URL", DEFAULT_EXCHANGE_BASE_URL),
        )
        catalog = CatalogConfig(
            path=os.getenv("CATALOG_PATH", CatalogConfig().path),
            max_results=int(os.getenv("CATALOG_MAX_RESULTS", "2")),
            encoding=os.getenv("CATALOG_ENCODING", "utf-8"),
        )
        traces = TraceConfig(max_records=int(os.getenv("TRACE_MAX_RECORDS", "1000")))
        return cls(
            llm=llm,
            exchange=exchange,
            catalog=catalog,
            traces=traces,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
