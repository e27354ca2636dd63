"""Explicit resource container wiring the storefront state stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from funkos.cart import CartStore
from funkos.catalog import ProductCatalogCache
from funkos.client import CatalogClient
from funkos.config import StoreConfig
from funkos.session import SessionStore
from funkos.storage import JsonFileStorage, KeyValueStorage


@dataclass
class StoreResources:
    """Storefront resources sharing one storage and one backend client."""

    config: StoreConfig
    storage: KeyValueStorage
    client: CatalogClient
    session: SessionStore
    cart: CartStore
    catalog: ProductCatalogCache

    async def aclose(self) -> None:
        await self.client.aclose()


def build_resources(
    config: StoreConfig,
    *,
    storage: Optional[KeyValueStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StoreResources:
    """Build the stores; storage defaults to the JSON file at ``config.storage_path``."""
    storage = storage if storage is not None else JsonFileStorage(config.storage_path)
    client = CatalogClient(config, transport=transport)
    return StoreResources(
        config=config,
        storage=storage,
        client=client,
        session=SessionStore(storage, client, config),
        cart=CartStore(storage, storage_key=config.cart_storage_key),
        catalog=ProductCatalogCache(client),
    )
