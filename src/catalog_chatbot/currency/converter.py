"""Currency conversion against the exchangeratesapi.io "latest" endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from catalog_chatbot.config import ExchangeConfig
from catalog_chatbot.errors import ChatbotError, ConfigError, RateNotFoundError, UpstreamError

logger = logging.getLogger(__name__)


class ConversionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(description="Amount to convert")
    from_currency: str = Field(
        alias="fromCurrency", min_length=1, description="Source currency code (e.g., USD)"
    )
    to_currency: str = Field(
        alias="toCurrency", min_length=1, description="Target currency code (e.g., EUR)"
    )


class CurrencyConverter:
    """Converts an amount with a single rate lookup per call.

    A shared `httpx.AsyncClient` may be injected; otherwise a short-lived
    client is opened for each conversion.
    """

    def __init__(
        self,
        config: ExchangeConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or ExchangeConfig()
        self._client = client

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        try:
            if not self.config.api_key:
                raise ConfigError("Exchange rate service is not configured")

            payload = await self._fetch_latest(from_currency, to_currency)
            rates = payload.get("rates") if isinstance(payload, dict) else None
            rate = rates.get(to_currency) if isinstance(rates, dict) else None
            if not rate:
                raise RateNotFoundError(to_currency)

            return amount * float(rate)
        except ChatbotError as exc:
            logger.error("Error converting currencies: %s", exc.message)
            raise
        except Exception as exc:
            logger.error("Error converting currencies: %s", exc)
            raise UpstreamError("Error converting currencies") from exc

    async def _fetch_latest(self, base: str, symbol: str) -> Any:
        params = {
            "access_key": self.config.api_key,
            "base": base,
            "symbols": symbol,
        }
        url = f"{self.config.base_url.rstrip('/')}/latest"
        if self._client is not None:
            response = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()
