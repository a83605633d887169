"""Catalog chatbot package."""

from .config import AppConfig, CatalogConfig, ExchangeConfig, LLMConfig

__all__ = ["AppConfig", "CatalogConfig", "ExchangeConfig", "LLMConfig"]
