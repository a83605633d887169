"""Built-in capabilities offered to the model."""

from __future__ import annotations

import asyncio

from pydantic import BaseModel

from catalog_chatbot.agent.registry import ToolRegistry, ToolSpec
from catalog_chatbot.catalog.search import ProductCatalog, ProductQuery
from catalog_chatbot.currency.converter import ConversionRequest, CurrencyConverter

SEARCH_PRODUCTS = "searchProducts"
CONVERT_CURRENCIES = "convertCurrencies"

_SEARCH_DESCRIPTION = (
    "Search for products by name and retrieve specific characteristics such as price. "
    'If the user requests a product and asks for the price, return the product name and set "price" to true. '
    "For queries involving prices in different currencies, identify the currency if mentioned "
    "and rely on a currency conversion function if necessary."
)
_CONVERT_DESCRIPTION = "Convert currencies using exchange rates"


class SearchProductsInput(BaseModel):
    query: ProductQuery


def register_builtin_tools(
    registry: ToolRegistry,
    catalog: ProductCatalog,
    converter: CurrencyConverter,
) -> None:
    """Register the capability set used by the orchestrator.

    Tools:
    - `searchProducts`: name search over the CSV catalog.
    - `convertCurrencies`: amount conversion via the exchange-rate provider.
    """

    async def _search(input_data: SearchProductsInput) -> str:
        summary = await asyncio.to_thread(catalog.search, input_data.query)
        return f"Products found: {summary}"

    async def _convert(input_data: ConversionRequest) -> str:
        converted = await converter.convert(
            input_data.amount,
            input_data.from_currency,
            input_data.to_currency,
        )
        return f"Converted amount: {converted:.2f}"

    registry.register(
        ToolSpec(
            name=SEARCH_PRODUCTS,
            description=_SEARCH_DESCRIPTION,
            args_schema=SearchProductsInput,
            handler=_search,
        )
    )
    registry.register(
        ToolSpec(
            name=CONVERT_CURRENCIES,
            description=_CONVERT_DESCRIPTION,
            args_schema=ConversionRequest,
            handler=_convert,
        )
    )
