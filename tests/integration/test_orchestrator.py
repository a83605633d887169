import asyncio
import csv
import logging
from pathlib import Path

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage

from catalog_chatbot.agent.orchestrator import NO_RESPONSE, QueryOrchestrator
from catalog_chatbot.agent.registry import ToolRegistry
from catalog_chatbot.agent.tools import register_builtin_tools
from catalog_chatbot.catalog.search import ProductCatalog
from catalog_chatbot.config import CatalogConfig, ExchangeConfig
from catalog_chatbot.currency.converter import CurrencyConverter
from catalog_chatbot.errors import (
    CatalogReadError,
    ConfigError,
    MalformedCapabilityArguments,
    ProviderAuthError,
    ProviderNotFoundError,
    ProviderQuotaError,
    RateNotFoundError,
    UnknownCapability,
    UpstreamError,
)

_USAGE = {"input_tokens": 42, "output_tokens": 7, "total_tokens": 49}


class FakeChatModel:
    """Stands in for a tool-bound chat model and replays one reply."""

    def __init__(self, reply: AIMessage | Exception) -> None:
        self.reply = reply
        self.bound_tools: list[dict] = []
        self.bind_kwargs: dict = {}
        self.received: list = []

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        self.bind_kwargs = kwargs
        return self

    async def ainvoke(self, messages):
        self.received.append(messages)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _tool_call(name: str, args: dict) -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args, "id": "call_1"}],
        usage_metadata=_USAGE,
    )


def _write_catalog(path: Path) -> Path:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["displayTitle", "embeddingText", "url", "price"])
        writer.writerow(["Watch A", "", "", "10"])
        writer.writerow(["Watch B", "", "", "20"])
        writer.writerow(["Watch C", "", "", "30"])
    return path


def _orchestrator(
    reply: AIMessage | Exception,
    tmp_path: Path,
    *,
    rate_handler=None,
    exchange_key: str | None = "fx-key",
) -> tuple[QueryOrchestrator, FakeChatModel]:
    def default_rates(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rates": {"EUR": 0.85}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(rate_handler or default_rates))
    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        ProductCatalog(CatalogConfig(path=str(_write_catalog(tmp_path / "products.csv")))),
        CurrencyConverter(ExchangeConfig(api_key=exchange_key), client=client),
    )
    llm = FakeChatModel(reply)
    return QueryOrchestrator(llm=llm, tool_registry=registry, model_name="fake"), llm


def test_binds_both_capabilities_with_auto_choice(tmp_path) -> None:
    _, llm = _orchestrator(AIMessage(content="hi"), tmp_path)

    names = [tool["function"]["name"] for tool in llm.bound_tools]
    assert names == ["searchProducts", "convertCurrencies"]
    assert llm.bind_kwargs["tool_choice"] == "auto"


def test_query_is_sent_as_single_user_message(tmp_path) -> None:
    orchestrator, llm = _orchestrator(AIMessage(content="hi"), tmp_path)

    asyncio.run(orchestrator.process_query("Do you sell watches?"))

    (messages,) = llm.received
    assert len(messages) == 1
    assert messages[0].type == "human"
    assert messages[0].content == "Do you sell watches?"


def test_plain_reply_is_returned_verbatim(tmp_path) -> None:
    orchestrator, _ = _orchestrator(AIMessage(content="Hello! How can I help?"), tmp_path)

    result = asyncio.run(orchestrator.process_query("hello"))

    assert result.response == "Hello! How can I help?"


def test_empty_reply_uses_placeholder(tmp_path) -> None:
    orchestrator, _ = _orchestrator(AIMessage(content=""), tmp_path)

    result = asyncio.run(orchestrator.process_query("hello"))

    assert result.response == NO_RESPONSE


def test_search_products_dispatch(tmp_path) -> None:
    reply = _tool_call("searchProducts", {"query": {"name": "watch", "price": True}})
    orchestrator, _ = _orchestrator(reply, tmp_path)

    result = asyncio.run(orchestrator.process_query("How much is a watch?"))

    assert result.response == "Products found: Watch A - 10, Watch B - 20"


def test_search_products_without_matches(tmp_path) -> None:
    reply = _tool_call("searchProducts", {"query": {"name": "phone"}})
    orchestrator, _ = _orchestrator(reply, tmp_path)

    result = asyncio.run(orchestrator.process_query("Any phones?"))

    assert result.response == "Products found: No products found"


def test_convert_currencies_dispatch_drops_model_content(tmp_path) -> None:
    reply = AIMessage(
        content="Let me convert that.",
        tool_calls=[
            {
                "name": "convertCurrencies",
                "args": {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"},
                "id": "call_2",
            }
        ],
    )
    orchestrator, _ = _orchestrator(reply, tmp_path)

    result = asyncio.run(orchestrator.process_query("100 USD in EUR?"))

    assert result.response == "Converted amount: 85.00"


def test_unknown_capability_is_rejected(tmp_path) -> None:
    orchestrator, _ = _orchestrator(_tool_call("deleteCatalog", {}), tmp_path)

    with pytest.raises(UnknownCapability):
        asyncio.run(orchestrator.process_query("wipe it"))


def test_malformed_arguments_are_rejected(tmp_path) -> None:
    reply = _tool_call("convertCurrencies", {"amount": "lots", "fromCurrency": "USD"})
    orchestrator, _ = _orchestrator(reply, tmp_path)

    with pytest.raises(MalformedCapabilityArguments):
        asyncio.run(orchestrator.process_query("convert"))


def test_unparseable_tool_arguments_are_rejected(tmp_path) -> None:
    reply = AIMessage(
        content="",
        invalid_tool_calls=[
            {"name": "searchProducts", "args": "{not json", "id": "call_3", "error": "bad json"}
        ],
    )
    orchestrator, _ = _orchestrator(reply, tmp_path)

    with pytest.raises(MalformedCapabilityArguments):
        asyncio.run(orchestrator.process_query("watch"))


def test_missing_exchange_key_surfaces_config_error(tmp_path) -> None:
    reply = _tool_call(
        "convertCurrencies", {"amount": 1, "fromCurrency": "USD", "toCurrency": "EUR"}
    )
    orchestrator, _ = _orchestrator(reply, tmp_path, exchange_key=None)

    with pytest.raises(ConfigError) as excinfo:
        asyncio.run(orchestrator.process_query("1 USD to EUR"))

    assert excinfo.value.status_code == 503


def test_catalog_failure_surfaces_catalog_read_error(tmp_path) -> None:
    reply = _tool_call("searchProducts", {"query": {"name": "watch"}})
    orchestrator, _ = _orchestrator(reply, tmp_path)
    (tmp_path / "products.csv").unlink()

    with pytest.raises(CatalogReadError):
        asyncio.run(orchestrator.process_query("watch"))


def test_provider_errors_are_normalized(tmp_path) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    quota = openai.RateLimitError(
        "quota", response=httpx.Response(429, request=request), body=None
    )
    auth = openai.AuthenticationError(
        "auth", response=httpx.Response(401, request=request), body=None
    )

    with pytest.raises(ProviderQuotaError):
        asyncio.run(_orchestrator(quota, tmp_path)[0].process_query("hi"))
    with pytest.raises(ProviderAuthError):
        asyncio.run(_orchestrator(auth, tmp_path)[0].process_query("hi"))


def test_missing_llm_raises_config_error() -> None:
    orchestrator = QueryOrchestrator(llm=None, tool_registry=ToolRegistry())

    assert not orchestrator.configured
    with pytest.raises(ConfigError):
        asyncio.run(orchestrator.process_query("hi"))


def test_token_usage_is_logged_and_recorded(tmp_path, caplog) -> None:
    reply = _tool_call("searchProducts", {"query": {"name": "watch"}})
    orchestrator, _ = _orchestrator(reply, tmp_path)

    with caplog.at_level(logging.INFO, logger="catalog_chatbot.agent.orchestrator"):
        result = asyncio.run(orchestrator.process_query("watches"))

    assert "Token usage - Prompt: 42, Completion: 7, Total: 49" in caplog.text
    (record,) = orchestrator.usage_store.list_recent()
    assert record.response == result.response
    assert record.usage.total_tokens == 49
    assert [trace.name for trace in record.tool_traces] == ["searchProducts"]


def test_failed_requests_are_not_recorded(tmp_path) -> None:
    orchestrator, _ = _orchestrator(_tool_call("deleteCatalog", {}), tmp_path)

    with pytest.raises(UnknownCapability):
        asyncio.run(orchestrator.process_query("wipe it"))

    assert orchestrator.usage_store.list_recent() == []


def test_missing_rate_keeps_its_category(tmp_path) -> None:
    def rates_without_eur(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rates": {"GBP": 0.79}})

    reply = _tool_call(
        "convertCurrencies", {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"}
    )
    orchestrator, _ = _orchestrator(reply, tmp_path, rate_handler=rates_without_eur)

    with pytest.raises(RateNotFoundError) as excinfo:
        asyncio.run(orchestrator.process_query("100 USD in EUR?"))

    assert not isinstance(excinfo.value, ProviderNotFoundError)
    assert excinfo.value.currency == "EUR"
    assert excinfo.value.status_code == 404


def test_provider_connection_failure_falls_back_to_upstream_error(tmp_path) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.APIConnectionError(request=request)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(_orchestrator(error, tmp_path)[0].process_query("hi"))

    assert type(excinfo.value) is UpstreamError
    assert excinfo.value.status_code == 500
    assert isinstance(excinfo.value.__cause__, openai.APIConnectionError)
