"""
Shopping cart kept in the key-value store under ``buena_cart``.

The cart is re-read from storage on every call so separate service
instances sharing a store see the same cart.  Product snapshots are
refreshed from the catalog on load; a cart that belongs to another user
is discarded.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from auth import AuthService
from mock_db import MockDatabase
from models import Cart, CartItem
from storage import CART_KEY, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 0.08
FREE_SHIPPING_THRESHOLD = 50.0
FLAT_SHIPPING = 5.99


class CartError(Exception):
    """Raised for cart operations the catalog rules do not allow."""


class CartService:
    def __init__(self, db: MockDatabase, store: KeyValueStore, auth: AuthService) -> None:
        self.db = db
        self.store = store
        self.auth = auth

    # ---- persistence ----

    def get_cart(self) -> Cart:
        raw = self.store.get_item(CART_KEY)
        user = self.auth.get_current_user()
        if raw:
            try:
                cart = Cart.from_dict(json.loads(raw))
            except (ValueError, TypeError, KeyError) as e:
                logger.error(f"Error loading cart: {e}")
                return self._new_cart()
            if user is not None and cart.user_id != user.id:
                logger.info(
                    "Discarding cart owned by another user",
                    extra={"user_id": user.id, "extra": {"cart_id": cart.id}},
                )
                self.clear_cart()
                return self._new_cart()
            for item in cart.items:
                item.product = self.db.get_product_by_id(item.product_id) or item.product
            return cart
        return self._new_cart()

    def _new_cart(self) -> Cart:
        user = self.auth.get_current_user()
        now = self.db.now_iso()
        cart = Cart(id=f"cart_{self.db.next_id()}", user_id=user.id if user else None, created_at=now, updated_at=now)
        self._save(cart)
        return cart

    def _save(self, cart: Cart) -> None:
        if not self.store.set_item(CART_KEY, json.dumps(cart.to_dict())):
            logger.warning(f"Cart {cart.id} could not be saved")

    # ---- mutations ----

    def add_item(self, product_id: str, quantity: int = 1, variants: Optional[Dict[str, Any]] = None) -> Cart:
        cart = self.get_cart()
        product = self.db.get_product_by_id(product_id)
        if product is None:
            raise CartError("Product not found")
        if not product.is_in_stock:
            raise CartError("Product is out of stock")
        if quantity < product.min_order_quantity:
            raise CartError(f"Minimum order quantity is {product.min_order_quantity}")
        if product.max_order_quantity and quantity > product.max_order_quantity:
            raise CartError(f"Maximum order quantity is {product.max_order_quantity}")

        now = self.db.now_iso()
        existing = next((i for i in cart.items if i.product_id == product_id), None)
        if existing is not None:
            merged = existing.quantity + quantity
            if product.max_order_quantity and merged > product.max_order_quantity:
                raise CartError(f"Maximum order quantity is {product.max_order_quantity}")
            existing.quantity = merged
            existing.added_at = now
        else:
            cart.items.append(
                CartItem(
                    id=f"item_{self.db.next_id()}",
                    product_id=product_id,
                    product=product,
                    quantity=quantity,
                    selected_variants=variants,
                    added_at=now,
                )
            )
        cart.updated_at = now
        self._save(cart)
        return cart

    def update_item_quantity(self, item_id: str, quantity: int) -> Cart:
        cart = self.get_cart()
        item = next((i for i in cart.items if i.id == item_id), None)
        if item is None:
            raise CartError("Item not found in cart")
        if quantity <= 0:
            cart.items.remove(item)
        else:
            product = item.product
            if quantity < product.min_order_quantity:
                raise CartError(f"Minimum order quantity is {product.min_order_quantity}")
            if product.max_order_quantity and quantity > product.max_order_quantity:
                raise CartError(f"Maximum order quantity is {product.max_order_quantity}")
            item.quantity = quantity
        cart.updated_at = self.db.now_iso()
        self._save(cart)
        return cart

    def remove_item(self, item_id: str) -> Cart:
        cart = self.get_cart()
        cart.items = [i for i in cart.items if i.id != item_id]
        cart.updated_at = self.db.now_iso()
        self._save(cart)
        return cart

    def clear_cart(self) -> None:
        self.store.remove_item(CART_KEY)

    # ---- totals ----

    def get_cart_summary(self) -> Dict[str, float]:
        cart = self.get_cart()
        item_count = sum(i.quantity for i in cart.items)
        subtotal = sum(i.product.base_price * i.quantity for i in cart.items)
        return {"item_count": item_count, "subtotal": subtotal, "total": subtotal}

    def convert_to_order(self, tax_rate: float = DEFAULT_TAX_RATE) -> Dict[str, Any]:
        """Build an order draft from the cart.

        Raises:
            CartError: nobody is signed in, or the cart is empty.
        """
        cart = self.get_cart()
        user = self.auth.get_current_user()
        if user is None:
            raise CartError("User must be logged in to create order")
        if not cart.items:
            raise CartError("Cart is empty")

        items = []
        for item in cart.items:
            line = item.product.base_price * item.quantity
            items.append(
                {
                    "product_id": item.product_id,
                    "product_name": item.product.name,
                    "product_sku": item.product.sku,
                    "unit_price": item.product.base_price,
                    "quantity": item.quantity,
                    "discount_amount": 0.0,
                    "tax_amount": round(line * tax_rate, 2),
                    "total": round(line * (1 + tax_rate), 2),
                    "variant_data": item.selected_variants,
                }
            )
        subtotal = round(sum(i.product.base_price * i.quantity for i in cart.items), 2)
        tax_amount = round(subtotal * tax_rate, 2)
        shipping_amount = 0.0 if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING
        return {
            "customer_id": user.id,
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "discount_amount": 0.0,
            "shipping_amount": shipping_amount,
            "total": round(subtotal + tax_amount + shipping_amount, 2),
            "currency": "USD",
            "items": items,
        }
