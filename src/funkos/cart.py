"""Shopping cart store with stock clamping and durable persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError

from funkos.events import ChangeNotifier, Listener
from funkos.models import CartLine, Product
from funkos.storage import KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSummary:
    """Totals of a cart at the moment it was checked out."""

    count: int
    total: float


class CartStore:
    """
    Insertion-ordered cart keyed by product id.

    Quantities are clamped to the product stock and a line whose quantity
    drops to zero or below is removed. Every mutating call rewrites the full
    cart snapshot to storage and then notifies subscribers.
    """

    def __init__(self, storage: KeyValueStorage, *, storage_key: str = "cart") -> None:
        self._storage = storage
        self._storage_key = storage_key
        self._lines: dict[int, CartLine] = {}
        self._notifier = ChangeNotifier("cart")
        self.hydrate()

    def hydrate(self) -> None:
        """Load the cart from storage; malformed content yields an empty cart."""
        self._lines = self._load()

    def _load(self) -> dict[int, CartLine]:
        raw = self._storage.get(self._storage_key)
        if raw is None:
            return {}

        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning("Error loading cart, starting empty: %s", e)
            return {}

        if not isinstance(payload, list):
            logger.warning("Error loading cart, starting empty: expected a list")
            return {}

        lines: dict[int, CartLine] = {}
        try:
            for entry in payload:
                line = CartLine.model_validate(entry)
                if line.product_id in lines:
                    raise ValueError(f"duplicate line for product {line.product_id}")
                lines[line.product_id] = line
        except (ValidationError, ValueError) as e:
            logger.warning("Error loading cart, starting empty: %s", e)
            return {}

        logger.debug("Loaded cart with %d lines", len(lines))
        return lines

    def _commit(self) -> None:
        snapshot = [line.model_dump(mode="json") for line in self._lines.values()]
        self._storage.set(self._storage_key, json.dumps(snapshot))
        self._notifier.notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the unsubscribe callable."""
        return self._notifier.subscribe(listener)

    @property
    def items(self) -> list[CartLine]:
        return list(self._lines.values())

    def get_line(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def __len__(self) -> int:
        return len(self._lines)

    def add_to_cart(self, product: Product, requested_qty: int = 1) -> None:
        """
        Add ``requested_qty`` units of ``product``.

        The resulting quantity is silently clamped to ``product.stock``; the
        line keeps the snapshot of the product passed here. A product with no
        stock leaves no line behind.
        """
        if requested_qty < 1:
            raise ValueError("The quantity must be a positive number.")

        existing = self._lines.get(product.product_id)
        current = existing.quantity if existing else 0
        quantity = min(current + requested_qty, product.stock)

        if quantity <= 0:
            self._lines.pop(product.product_id, None)
        else:
            self._lines[product.product_id] = CartLine(product=product, quantity=quantity)
        self._commit()

    def remove_from_cart(self, product_id: int) -> None:
        """Remove the line for ``product_id``; absent ids are a no-op."""
        self._lines.pop(product_id, None)
        self._commit()

    def update_quantity(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity, clamped to its stock; ``<= 0`` removes it."""
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return

        line = self._lines.get(product_id)
        if line is not None:
            clamped = min(quantity, line.product.stock)
            self._lines[product_id] = CartLine(product=line.product, quantity=clamped)
        self._commit()

    def clear_cart(self) -> None:
        self._lines.clear()
        self._commit()

    def checkout(self) -> Optional[CheckoutSummary]:
        """
        Simulated purchase: capture the totals and empty the cart.

        No payment is processed. Returns None and changes nothing when the
        cart is empty.
        """
        if not self._lines:
            return None
        summary = CheckoutSummary(count=self.get_cart_count(), total=self.get_cart_total())
        logger.info("Checked out %d items for %.2f", summary.count, summary.total)
        self.clear_cart()
        return summary

    def get_cart_total(self) -> float:
        return sum((line.line_total for line in self._lines.values()), 0.0)

    def get_cart_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())
