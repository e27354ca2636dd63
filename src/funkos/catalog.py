"""Client-side cache of the product catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from funkos.client import CatalogClient
from funkos.events import ChangeNotifier, Listener
from funkos.exceptions import BackendError
from funkos.models import Product, ProductInput

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Error loading products. Check the connection to the server."


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable product list plus its id index."""

    products: tuple[Product, ...] = ()
    by_id: dict[int, Product] = field(default_factory=dict)

    @classmethod
    def build(cls, products: list[Product]) -> "CatalogSnapshot":
        return cls(
            products=tuple(products),
            by_id={p.product_id: p for p in products},
        )


class ProductCatalogCache:
    """
    Holds the last fetched product list.

    ``refresh`` swaps in a whole new snapshot, so readers only ever see a
    complete list. Overlapping refreshes are last-writer-wins. Write
    operations go through the backend and refresh on success; on failure
    they re-raise and leave the cached list untouched.
    """

    def __init__(self, client: CatalogClient) -> None:
        self._client = client
        self._snapshot = CatalogSnapshot()
        self._notifier = ChangeNotifier("catalog")
        self._pending = 0
        self.error: Optional[str] = None

    @property
    def loading(self) -> bool:
        """True while at least one refresh is in flight."""
        return self._pending > 0

    @property
    def products(self) -> tuple[Product, ...]:
        return self._snapshot.products

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return self._snapshot.by_id.get(product_id)

    def search(self, term: str) -> list[Product]:
        """Products whose name, SKU, licence or category contains ``term``, ignoring case."""
        needle = term.strip().lower()
        products = self._snapshot.products
        if not needle:
            return list(products)
        return [
            p
            for p in products
            if any(
                needle in text.lower()
                for text in (p.product_name, p.sku, p.licence_name or "", p.category_name or "")
            )
        ]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    async def refresh(self) -> None:
        """Fetch the full product list; on failure empty the cache and set ``error``."""
        self._pending += 1
        try:
            products = await self._client.list_products()
        except BackendError as e:
            logger.error("Error loading products: %s", e.message)
            self._snapshot = CatalogSnapshot()
            self.error = LOAD_ERROR_MESSAGE
        else:
            self._snapshot = CatalogSnapshot.build(products)
            self.error = None
            logger.info("Loaded %d products", len(products))
        finally:
            self._pending -= 1
        self._notifier.notify()

    async def add_product(self, data: ProductInput) -> None:
        try:
            await self._client.create_product(data)
        except BackendError as e:
            logger.error("Error creating product: %s", e.message)
            raise
        await self.refresh()

    async def update_product(self, product_id: int, data: ProductInput) -> None:
        try:
            await self._client.update_product(product_id, data)
        except BackendError as e:
            logger.error("Error updating product %s: %s", product_id, e.message)
            raise
        await self.refresh()

    async def delete_product(self, product_id: int) -> None:
        try:
            await self._client.delete_product(product_id)
        except BackendError as e:
            logger.error("Error deleting product %s: %s", product_id, e.message)
            raise
        await self.refresh()
