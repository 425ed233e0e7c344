# Overview: In-memory cart owned by one checkout session.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app

from ..models import Product
from ..validation import (
    OutOfStockError,
    ProductNotFoundError,
    StockLimitExceededError,
    ValidationError,
)
from . import products_service


ProductLookup = Callable[[int], Optional[Product]]


@dataclass
class CartItem:
    product_id: int
    quantity: int = 1


@dataclass(frozen=True)
class ResolvedCartItem:
    """Cart line with name, price and cost captured at confirm time."""
    product_id: int
    product_name: str
    quantity: int
    unit_price_cents: int
    unit_cost_cents: int


class CartStore:
    """
    Items a user intends to buy, keyed by product id.

    Stock checks here are advisory: they use the live catalog at the time of
    the action, but another session may sell the same units before checkout.
    The sale processor re-reads stock when it commits.
    """

    def __init__(self, owner_id: str, lookup: ProductLookup | None = None):
        self.owner_id = owner_id
        self._lookup = lookup or (lambda product_id: products_service.get_product(product_id, owner_id))
        self._items: dict[int, CartItem] = {}

    def _product(self, product_id: int) -> Product:
        product = self._lookup(product_id)
        if product is None:
            raise ProductNotFoundError("Product not found", details={"product_id": product_id})
        return product

    def add_item(self, product_id: int) -> CartItem:
        product = self._product(product_id)
        if product.stock_quantity <= 0:
            raise OutOfStockError(
                f"{product.name} is out of stock",
                details={"product_id": product_id},
            )
        existing = self._items.get(product_id)
        if existing is not None:
            return existing
        item = CartItem(product_id=product_id, quantity=1)
        self._items[product_id] = item
        return item

    def increment_quantity(self, product_id: int) -> CartItem:
        item = self._require_item(product_id)
        product = self._product(product_id)
        if item.quantity + 1 > product.stock_quantity:
            raise StockLimitExceededError(
                f"Only {product.stock_quantity} units available in stock",
                details={"product_id": product_id, "available": product.stock_quantity},
            )
        item.quantity += 1
        return item

    def set_quantity(self, product_id: int, quantity: int) -> CartItem:
        """Set an item's quantity in one step, checked against live stock once."""
        item = self._require_item(product_id)
        product = self._product(product_id)
        if quantity > product.stock_quantity:
            raise StockLimitExceededError(
                f"Only {product.stock_quantity} units available in stock",
                details={"product_id": product_id, "available": product.stock_quantity},
            )
        item.quantity = quantity
        return item

    def decrement_quantity(self, product_id: int) -> bool:
        """Returns True when the cart ended up empty."""
        item = self._require_item(product_id)
        if item.quantity > 1:
            item.quantity -= 1
            return False
        return self.remove_item(product_id)

    def remove_item(self, product_id: int) -> bool:
        """
        Drop the item. Returns True when the cart is now empty, which is the
        caller's cue to offer abandoning checkout.
        """
        self._items.pop(product_id, None)
        return self.is_empty()

    def _require_item(self, product_id: int) -> CartItem:
        item = self._items.get(product_id)
        if item is None:
            raise ProductNotFoundError("Product is not in the cart", details={"product_id": product_id})
        return item

    def quantity_of(self, product_id: int) -> int:
        item = self._items.get(product_id)
        return item.quantity if item else 0

    def items(self) -> list[CartItem]:
        return list(self._items.values())

    def is_empty(self) -> bool:
        return not self._items

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def total(self) -> int:
        total = 0
        for item in self._items.values():
            product = self._lookup(item.product_id)
            if product is None:
                current_app.logger.warning(
                    "Cart references missing product %s; excluded from total", item.product_id
                )
                continue
            total += product.selling_price_cents * item.quantity
        return total

    def resolve(self) -> list[ResolvedCartItem]:
        resolved = []
        for item in self._items.values():
            product = self._product(item.product_id)
            resolved.append(
                ResolvedCartItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=item.quantity,
                    unit_price_cents=product.selling_price_cents,
                    unit_cost_cents=product.cost_price_cents,
                )
            )
        return resolved


def build_cart(owner_id: str, lines: list[dict], lookup: ProductLookup | None = None) -> CartStore:
    """
    Rebuild a cart from client-held lines ({"product_id", "quantity"}).

    Lines for the same product are added together. Each product then goes
    through add_item and set_quantity, so the out-of-stock and stock-limit
    checks match interactive edits.
    """
    quantities: dict[int, int] = {}
    for raw in lines or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each cart line must be an object")
        product_id = raw.get("product_id")
        quantity = raw.get("quantity", 1)
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be an integer >= 1", details={"product_id": product_id})
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    cart = CartStore(owner_id, lookup)
    for product_id, quantity in quantities.items():
        cart.add_item(product_id)
        if quantity > 1:
            cart.set_quantity(product_id, quantity)
    return cart
