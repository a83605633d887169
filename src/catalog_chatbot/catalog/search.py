"""Streaming name search over the CSV product catalog."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, Field

from catalog_chatbot.config import CatalogConfig
from catalog_chatbot.errors import CatalogReadError
from catalog_chatbot.types import Product

logger = logging.getLogger(__name__)

NO_PRODUCTS_FOUND = "No products found"
TITLE_COLUMN = "displayTitle"


class ProductQuery(BaseModel):
    """Identifies the product by name and whether its price was asked for."""

    name: str = Field(
        min_length=1,
        description='The name of the product being searched for. Example: "watch".',
    )
    price: bool = Field(
        default=False,
        description="Set to true if the user is asking for the price of the product.",
    )


class ProductCatalog:
    """Read-only view over a delimited product file.

    The file is re-read on every search; nothing is cached between calls, so
    repeated searches over an unchanged file return identical summaries.
    """

    def __init__(self, config: CatalogConfig | None = None) -> None:
        self.config = config or CatalogConfig()

    @property
    def path(self) -> Path:
        return Path(self.config.path)

    def search(self, query: ProductQuery) -> str:
        matches = self.find(query.name)
        if not matches:
            return NO_PRODUCTS_FOUND
        return ", ".join(_format(product, with_price=query.price) for product in matches)

    def find(self, name: str) -> list[Product]:
        """Return up to `max_results` products whose title contains `name`.

        Matches keep source order. Reading stops as soon as the result list
        is full.
        """

        needle = name.lower()
        matches: list[Product] = []
        try:
            for product in self.iter_products():
                if needle in product.display_title.lower():
                    matches.append(product)
                    if len(matches) >= self.config.max_results:
                        break
        except (OSError, LookupError, UnicodeDecodeError, csv.Error) as exc:
            logger.error("Error reading CSV %s: %s", self.path, exc)
            raise CatalogReadError() from exc
        return matches

    def iter_products(self) -> Iterator[Product]:
        with self.path.open("r", encoding=self.config.encoding, newline="") as handle:
            reader = csv.DictReader(handle)
            if reader.fieldnames is None or TITLE_COLUMN not in reader.fieldnames:
                logger.error("CSV %s has no %s column", self.path, TITLE_COLUMN)
                raise CatalogReadError()
            for row in reader:
                yield Product.from_row(row)


def _format(product: Product, *, with_price: bool) -> str:
    if with_price:
        return f"{product.display_title} - {product.price}"
    return product.display_title
