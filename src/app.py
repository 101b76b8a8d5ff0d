# src/app.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from api_router import APIRouter
from auth import AuthService
from cart import CartError, CartService
from config import Settings
from inventory import InventoryService
from metrics import CHECKOUT_DURATION_SECONDS, CHECKOUT_ERROR_TOTAL, generate_metrics_text
from mock_db import MockDatabase, utc_now
from models import ORDER_STATUSES, Order
from notifications import NotificationService
from offline import PushSubscriptions, ResourceCache
from payment_service import PaymentMethod, PaymentService
from performance import PerformanceCache, PerformanceMonitor
from pricing import PricingError, PricingService
from storage import KeyValueStore, open_store
from tenant import TenantService

logger = logging.getLogger(__name__)

PRODUCTS_TAG = "products"


@dataclass
class CheckoutReceipt:
    order_id: str
    order_number: str
    total: float
    transaction_id: str


class RetailApp:
    """
    Storefront facade. Wires the services around one ``MockDatabase`` and
    one key-value store, and exposes the flows the CLI and tests drive:
    sign-in, catalog browsing, cart, quoting, checkout and order admin.
    Facade methods return ``(success, message)`` tuples.
    """

    def __init__(
        self,
        settings: Settings,
        db: MockDatabase,
        store: KeyValueStore,
        cache: PerformanceCache,
        auth: AuthService,
        cart: CartService,
        pricing: PricingService,
        inventory: InventoryService,
        tenant: TenantService,
        payments: PaymentService,
        notifications: NotificationService,
        api: APIRouter,
    ) -> None:
        self.settings = settings
        self.db = db
        self.store = store
        self.cache = cache
        self.auth = auth
        self.cart = cart
        self.pricing = pricing
        self.inventory = inventory
        self.tenant = tenant
        self.payments = payments
        self.notifications = notifications
        self.api = api
        self.monitor = PerformanceMonitor()
        self.push = PushSubscriptions(store)
        self.resources = ResourceCache(db, tenant_id=tenant.get_current_tenant().id)
        self.last_receipt: Optional[CheckoutReceipt] = None

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        store: Optional[KeyValueStore] = None,
    ) -> "RetailApp":
        """Construct every service from ``settings`` (environment when omitted)."""
        settings = settings or Settings.from_env()
        clock = clock or utc_now
        store = store if store is not None else open_store(settings.storage_path)
        db = MockDatabase(seed=True, clock=clock)
        auth = AuthService(db, store, auth_disabled=settings.auth_disabled)
        tenant = TenantService(db, tenant_id=settings.tenant_id)
        return cls(
            settings=settings,
            db=db,
            store=store,
            cache=PerformanceCache(
                store,
                max_size=settings.cache_max_bytes,
                default_ttl_ms=settings.cache_default_ttl_ms,
                clock=lambda: clock().timestamp() * 1000,
            ),
            auth=auth,
            cart=CartService(db, store, auth),
            pricing=PricingService(db),
            inventory=InventoryService(db),
            tenant=tenant,
            payments=PaymentService(db),
            notifications=NotificationService(db),
            api=APIRouter(db, tenant_id=tenant.get_current_tenant().id, auth_disabled=settings.auth_disabled),
        )

    # ---- Authentication ----

    def login(self, email: str) -> Tuple[bool, str]:
        result = self.auth.request_magic_link(email)
        if not result.success:
            return False, result.error or "Sign-in failed."
        return True, f"Signed in as {result.user.email}."

    def logout(self) -> Tuple[bool, str]:
        self.auth.sign_out()
        self.cart.clear_cart()
        return True, "Signed out."

    @property
    def current_user(self):
        return self.auth.get_current_user()

    def current_user_is_admin(self) -> bool:
        user = self.current_user
        return user is not None and user.role == "admin"

    # ---- Product catalogue ----

    def list_products(self, search: Optional[str] = None, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active products, optionally filtered; served from the cache when warm."""
        start = time.perf_counter()

        def load() -> List[Dict[str, Any]]:
            if search:
                products = self.db.search_products(search)
            else:
                products = [p for p in self.db.get_products() if p.is_active]
            if category:
                products = [p for p in products if p.category == category]
            return [p.to_dict() for p in products]

        key = f"products:{(search or '').lower()}:{category or ''}"
        products = self.cache.cached(key, load, tags=[PRODUCTS_TAG])
        self.monitor.record_request("/api/products", (time.perf_counter() - start) * 1000)
        return products

    # ---- Cart operations ----

    def add_to_cart(self, product_id: str, qty: int = 1) -> Tuple[bool, str]:
        try:
            cart = self.cart.add_item(product_id, qty)
        except CartError as e:
            return False, str(e)
        line = next(i for i in cart.items if i.product_id == product_id)
        return True, f"Added {qty} x {line.product.name} to cart"

    def update_cart_item(self, item_id: str, qty: int) -> Tuple[bool, str]:
        try:
            self.cart.update_item_quantity(item_id, qty)
        except CartError as e:
            return False, str(e)
        return True, "Cart updated." if qty > 0 else "Item removed."

    def view_cart(self) -> List[Tuple[str, str, int, float]]:
        """Cart lines as ``(item_id, product name, quantity, line total)``."""
        return [
            (item.id, item.product.name, item.quantity, item.product.base_price * item.quantity)
            for item in self.cart.get_cart().items
        ]

    def quote(self, product_id: str, qty: int, customer_type: Optional[str] = None) -> Tuple[bool, str]:
        if customer_type is None:
            user = self.current_user
            customer_type = user.customer_type if user else "individual"
        try:
            quote = self.pricing.calculate_price_with_discounts(product_id, qty, customer_type)
        except PricingError as e:
            return False, str(e)
        lines = [f"Original: ${quote.original_price:.2f}"]
        lines.extend(f" - {d.description}: -${d.amount:.2f}" for d in quote.discounts)
        lines.append(f"Final: ${quote.final_price:.2f}")
        return True, "\n".join(lines)

    # ---- Checkout ----

    def checkout(self, payment_method: PaymentMethod) -> Tuple[bool, str]:
        """Turn the cart into a paid, confirmed order.

        Steps: build the order draft from the cart, revalidate stock, create
        and process a payment intent, persist the order (refunding if that
        fails), decrement inventory, send the confirmation, invalidate the
        catalog cache and clear the cart.  Duration and failure type are
        recorded as metrics.
        """
        start_time = time.perf_counter()
        error_type: Optional[str] = None
        user = self.current_user
        try:
            if user is None:
                error_type = "not_logged_in"
                return False, "You must be logged in."
            try:
                draft = self.cart.convert_to_order(tax_rate=self.tenant.tax_rate())
            except CartError as e:
                error_type = "empty_cart"
                return False, str(e)

            for line in draft["items"]:
                product = self.db.get_product_by_id(line["product_id"])
                if product is None:
                    error_type = "product_missing"
                    return False, "A product in your cart no longer exists."
                if not product.is_in_stock:
                    error_type = "stock_insufficient"
                    return False, f"{product.name} is out of stock"
                bins = self.db.get_inventory_by_product(product.id)
                if product.track_inventory and bins:
                    available = sum(b.quantity_available for b in bins)
                    if line["quantity"] > available:
                        error_type = "stock_insufficient"
                        return False, f"Only {available} in stock for {product.name}"

            if self.payments.breaker_state()["is_open"]:
                error_type = "circuit_open"
                return False, "Payment service is temporarily unavailable. Please try again later."

            intent = self.payments.create_payment_intent(
                draft["total"], draft["currency"], metadata={"customer_id": user.id}
            )
            result = self.payments.process_payment(intent.id, payment_method)
            if not result.success:
                error_type = "payment_failure"
                return False, result.error or "Payment failed."

            try:
                order: Order = self.db.create_order(status="confirmed", payment_status="paid", **draft)
            except (TypeError, ValueError) as ex:
                error_type = "db_error"
                refund = self.payments.process_refund(result.transaction_id, intent.amount, reason="order_failed")
                logger.error(
                    f"Order persistence failed after payment: {ex}",
                    extra={"user_id": user.id, "extra": {"refund": refund}},
                )
                return False, "Order processing failed; your payment has been refunded."

            intent.metadata["order_id"] = order.order_number
            for line in order.items:
                self.inventory.decrement_for_order(line.product_id, line.quantity)

            sent = self.notifications.send_order_confirmation(order.id)
            if not sent.success:
                logger.warning(f"Order confirmation not sent for {order.order_number}: {sent.error}")

            self.cache.invalidate_by_tag(PRODUCTS_TAG)
            self.cart.clear_cart()
            self.db.trigger_webhook("order.created", {"order_id": order.id, "order_number": order.order_number})

            self.last_receipt = CheckoutReceipt(order.id, order.order_number, order.total, result.transaction_id)
            logger.info(
                "Checkout completed",
                extra={
                    "request_id": order.order_number,
                    "user_id": user.id,
                    "extra": {"total": order.total, "transaction_id": result.transaction_id},
                },
            )
            receipt_lines = [f"Order: {order.order_number}"]
            for line in order.items:
                receipt_lines.append(
                    f" - {line.product_name} x {line.quantity} @ {line.unit_price:.2f} = {line.unit_price * line.quantity:.2f}"
                )
            receipt_lines.append(f"Subtotal: {order.subtotal:.2f}")
            receipt_lines.append(f"Tax: {order.tax_amount:.2f}")
            receipt_lines.append(f"Shipping: {order.shipping_amount:.2f}")
            receipt_lines.append(f"Total: {order.total:.2f}")
            receipt_lines.append(f"Payment Method: {payment_method.type}")
            receipt_lines.append(f"Payment Ref: {result.transaction_id}")
            return True, "\n".join(receipt_lines)
        finally:
            duration = time.perf_counter() - start_time
            try:
                CHECKOUT_DURATION_SECONDS.observe(duration, payment_method=payment_method.type)
            except Exception:
                pass
            if error_type:
                try:
                    CHECKOUT_ERROR_TOTAL.inc(type=error_type)
                except Exception:
                    pass

    # ---- Admin ----

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Tuple[bool, str]:
        if not self.current_user_is_admin():
            return False, "Admin access required."
        product = self.db.update_product(product_id, updates)
        if product is None:
            return False, "Product not found."
        self.cache.invalidate_by_tag(PRODUCTS_TAG)
        return True, f"Updated {product.name}."

    def order_summary(self) -> Dict[str, Any]:
        orders = self.db.get_orders()
        by_status: Dict[str, int] = {}
        for order in orders:
            by_status[order.status] = by_status.get(order.status, 0) + 1
        revenue = sum(o.total for o in orders if o.status != "cancelled")
        return {
            "total_orders": len(orders),
            "revenue": round(revenue, 2),
            "average_order_value": round(revenue / len(orders), 2) if orders else 0.0,
            "by_status": by_status,
        }

    def set_order_status(self, order_id: str, status: str, tracking_number: Optional[str] = None) -> Tuple[bool, str]:
        if not self.current_user_is_admin():
            return False, "Admin access required."
        if status not in ORDER_STATUSES:
            return False, f"Unknown order status: {status}"
        order = self.db.update_order(order_id, {"status": status})
        if order is None:
            return False, "Order not found."
        if status == "shipped" and tracking_number:
            self.notifications.send_order_shipped(order.id, tracking_number)
        elif status == "delivered":
            self.notifications.send_delivery_notification(order.id)
        self.db.trigger_webhook(f"order.{status}", {"order_id": order.id, "order_number": order.order_number})
        return True, f"Order {order.order_number} is now {status}."

    def inventory_summary(self) -> Dict[str, Any]:
        return self.inventory.summary()

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def metrics_text(self) -> str:
        return generate_metrics_text().decode("utf-8")
