"""Client-side cart store."""

from typing import Any

import structlog

from storefront.client.storage import CART_KEY, SessionStorage
from storefront.domain.entities import CartLine, subtotal_of
from storefront.domain.value_objects import DEFAULT_CURRENCY, Money

logger = structlog.get_logger()


class CartStore:
    """The customer's cart, persisted in session storage.

    Lines are keyed by (product id, size, colour); adding a line that
    is already present raises its quantity.
    """

    def __init__(self, storage: SessionStorage, currency: str = DEFAULT_CURRENCY) -> None:
        self.storage = storage
        self.currency = currency

    @property
    def lines(self) -> list[CartLine]:
        return [CartLine.from_dict(data) for data in self.storage.get(CART_KEY, [])]

    def _save(self, lines: list[CartLine]) -> None:
        self.storage.set(CART_KEY, [line.to_dict() for line in lines])

    def add(self, line: CartLine) -> None:
        lines = self.lines
        for i, existing in enumerate(lines):
            if existing.key == line.key:
                lines[i] = existing.with_quantity(existing.quantity + line.quantity)
                break
        else:
            lines.append(line)
        self._save(lines)

    def update_quantity(self, key: tuple[str, str, str], quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        lines = self.lines
        if quantity <= 0:
            lines = [line for line in lines if line.key != key]
        else:
            lines = [line.with_quantity(quantity) if line.key == key else line for line in lines]
        self._save(lines)

    def remove(self, key: tuple[str, str, str]) -> None:
        self.update_quantity(key, 0)

    def is_empty(self) -> bool:
        return not self.lines

    @property
    def subtotal(self) -> Money:
        return subtotal_of(self.lines, self.currency)

    def signature(self) -> dict[str, Any]:
        """Line keys with quantities plus the subtotal; changes on any cart edit."""
        lines = self.lines
        return {
            "lines": sorted([*line.key, line.quantity] for line in lines),
            "subtotal_cents": subtotal_of(lines, self.currency).amount_cents,
        }

    def clear(self) -> None:
        """Empty the cart. Clearing an empty cart is a no-op."""
        if self.storage.contains(CART_KEY):
            self.storage.remove(CART_KEY)
            logger.info("Cart cleared", session_id=self.storage.session_id)
