"""
In-memory data layer for the storefront.

``MockDatabase`` replaces a real database: every table is a Python list
of dataclass records, seeded from :mod:`seed_data`.  The application
entry point constructs exactly one instance and hands it to the services
that need it; nothing here is a module-level singleton.

Lookups return the stored objects themselves, so callers that mutate a
returned record mutate the store (the same aliasing the mock layer has
always had).  ``update_*`` helpers stamp ``updated_at``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import fields
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional

import seed_data
from models import (
    APILog,
    AnalyticsData,
    Cart,
    Category,
    Inventory,
    NotificationTemplate,
    Order,
    OrderItem,
    PaymentProvider,
    PricingTier,
    Product,
    Promotion,
    PWACacheRecord,
    RecurringOrder,
    TenantConfig,
    User,
    WebhookConfig,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_PROTECTED_FIELDS = {"id", "created_at"}


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO timestamp (``Z`` suffix allowed); naive values are UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _apply_updates(record: Any, updates: Dict[str, Any]) -> None:
    names = {f.name for f in fields(record)}
    for key, value in updates.items():
        if key in names and key not in _PROTECTED_FIELDS:
            setattr(record, key, value)


class MockDatabase:
    """Explicitly constructed in-memory store with CRUD helpers per table."""

    def __init__(self, seed: bool = True, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or utc_now
        self._ids = itertools.count(1000)
        self.users: List[User] = seed_data.users() if seed else []
        self.products: List[Product] = seed_data.products() if seed else []
        self.categories: List[Category] = seed_data.categories() if seed else []
        self.orders: List[Order] = seed_data.orders() if seed else []
        self.carts: List[Cart] = []
        self.inventory: List[Inventory] = seed_data.inventory() if seed else []
        self.pricing_tiers: List[PricingTier] = seed_data.pricing_tiers() if seed else []
        self.promotions: List[Promotion] = seed_data.promotions() if seed else []
        self.analytics: List[AnalyticsData] = seed_data.analytics() if seed else []
        self.recurring_orders: List[RecurringOrder] = seed_data.recurring_orders() if seed else []
        self.tenants: List[TenantConfig] = seed_data.tenants() if seed else []
        self.payment_providers: List[PaymentProvider] = seed_data.payment_providers() if seed else []
        self.notification_templates: List[NotificationTemplate] = seed_data.notification_templates() if seed else []
        self.webhooks: List[WebhookConfig] = seed_data.webhooks() if seed else []
        self.api_logs: List[APILog] = []
        self.pwa_cache: List[PWACacheRecord] = []
        # Webhook deliveries recorded by trigger_webhook, newest last
        self.webhook_deliveries: List[Dict[str, Any]] = []

    # ---- helpers ----

    def now(self) -> datetime:
        return self._clock()

    def now_iso(self) -> str:
        return to_iso(self._clock())

    def next_id(self) -> str:
        return str(next(self._ids))

    # ---- users ----

    def get_users(self) -> List[User]:
        return self.users

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    def get_user_by_email(self, email: str) -> Optional[User]:
        needle = email.strip().lower()
        return next((u for u in self.users if u.email.lower() == needle), None)

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        role: str = "customer",
        is_active: bool = True,
        customer_type: str = "individual",
    ) -> User:
        user = User(
            id=self.next_id(),
            email=email.strip(),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
            created_at=self.now_iso(),
            customer_type=customer_type,
        )
        self.users.append(user)
        return user

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        user = self.get_user_by_id(user_id)
        if user is None:
            return None
        _apply_updates(user, updates)
        return user

    # ---- products ----

    def get_products(self) -> List[Product]:
        return self.products

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def get_products_by_category(self, category: str) -> List[Product]:
        return [p for p in self.products if p.category == category and p.is_active]

    def search_products(self, query: str) -> List[Product]:
        q = query.lower()
        return [
            p
            for p in self.products
            if p.is_active
            and (q in p.name.lower() or q in p.description.lower() or any(q in t.lower() for t in p.tags))
        ]

    def create_product(self, **attrs: Any) -> Product:
        now = self.now_iso()
        attrs = {k: v for k, v in attrs.items() if k not in _PROTECTED_FIELDS and k != "updated_at"}
        product = Product(id=self.next_id(), created_at=now, updated_at=now, **attrs)
        self.products.append(product)
        return product

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Optional[Product]:
        product = self.get_product_by_id(product_id)
        if product is None:
            return None
        _apply_updates(product, updates)
        product.updated_at = self.now_iso()
        return product

    def delete_product(self, product_id: str) -> bool:
        product = self.get_product_by_id(product_id)
        if product is None:
            return False
        self.products.remove(product)
        return True

    # ---- categories ----

    def get_categories(self) -> List[Category]:
        return self.categories

    def get_category_by_id(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    # ---- inventory ----

    def get_inventory(self) -> List[Inventory]:
        return self.inventory

    def get_inventory_item(self, inventory_id: str) -> Optional[Inventory]:
        return next((i for i in self.inventory if i.id == inventory_id), None)

    def get_inventory_by_product(self, product_id: str) -> List[Inventory]:
        return [i for i in self.inventory if i.product_id == product_id]

    def get_low_stock_items(self) -> List[Inventory]:
        return [i for i in self.inventory if i.quantity_available <= i.min_stock_level]

    def update_inventory_quantity(self, inventory_id: str, quantity: int) -> Optional[Inventory]:
        item = self.get_inventory_item(inventory_id)
        if item is None:
            return None
        item.quantity_available = quantity
        item.updated_at = self.now_iso()
        return item

    # ---- pricing tiers ----

    def get_pricing_tiers(self) -> List[PricingTier]:
        return [t for t in self.pricing_tiers if t.is_active]

    def get_pricing_tier_by_id(self, tier_id: str) -> Optional[PricingTier]:
        return next((t for t in self.pricing_tiers if t.id == tier_id), None)

    def get_pricing_tier_for_customer(self, customer_type: str, quantity: int) -> Optional[PricingTier]:
        matches = [
            t
            for t in self.pricing_tiers
            if t.is_active and t.customer_type == customer_type and quantity >= t.min_quantity
        ]
        matches.sort(key=lambda t: t.discount_percentage, reverse=True)
        return matches[0] if matches else None

    def create_pricing_tier(self, **attrs: Any) -> PricingTier:
        attrs = {k: v for k, v in attrs.items() if k not in _PROTECTED_FIELDS}
        attrs.setdefault("valid_from", self.now_iso())
        tier = PricingTier(id=self.next_id(), created_at=self.now_iso(), **attrs)
        self.pricing_tiers.append(tier)
        return tier

    def update_pricing_tier(self, tier_id: str, updates: Dict[str, Any]) -> Optional[PricingTier]:
        tier = self.get_pricing_tier_by_id(tier_id)
        if tier is None:
            return None
        _apply_updates(tier, updates)
        return tier

    def delete_pricing_tier(self, tier_id: str) -> bool:
        tier = self.get_pricing_tier_by_id(tier_id)
        if tier is None:
            return False
        self.pricing_tiers.remove(tier)
        return True

    # ---- promotions ----

    def get_promotions(self) -> List[Promotion]:
        return [p for p in self.promotions if p.is_active]

    def get_promotion_by_id(self, promotion_id: str) -> Optional[Promotion]:
        return next((p for p in self.promotions if p.id == promotion_id), None)

    def get_active_promotions_for_product(
        self, product_id: str, category: str, now: Optional[datetime] = None
    ) -> List[Promotion]:
        moment = now or self.now()
        active: List[Promotion] = []
        for promo in self.promotions:
            if not promo.is_active:
                continue
            if promo.valid_from and parse_iso(promo.valid_from) > moment:
                continue
            if promo.valid_until and parse_iso(promo.valid_until) < moment:
                continue
            if product_id in promo.applicable_products or category in promo.applicable_categories:
                active.append(promo)
        return active

    def create_promotion(self, **attrs: Any) -> Promotion:
        attrs = {k: v for k, v in attrs.items() if k not in _PROTECTED_FIELDS}
        attrs.setdefault("valid_from", self.now_iso())
        promo = Promotion(id=self.next_id(), created_at=self.now_iso(), **attrs)
        self.promotions.append(promo)
        return promo

    def update_promotion(self, promotion_id: str, updates: Dict[str, Any]) -> Optional[Promotion]:
        promo = self.get_promotion_by_id(promotion_id)
        if promo is None:
            return None
        _apply_updates(promo, updates)
        return promo

    def set_promotion_active(self, promotion_id: str, is_active: bool) -> Optional[Promotion]:
        return self.update_promotion(promotion_id, {"is_active": is_active})

    def delete_promotion(self, promotion_id: str) -> bool:
        promo = self.get_promotion_by_id(promotion_id)
        if promo is None:
            return False
        self.promotions.remove(promo)
        return True

    # ---- analytics ----

    def get_analytics(self) -> List[AnalyticsData]:
        return self.analytics

    def get_analytics_for_date_range(self, start_date: str, end_date: str) -> List[AnalyticsData]:
        return [a for a in self.analytics if start_date <= a.date <= end_date]

    def add_analytics_data(self, **attrs: Any) -> AnalyticsData:
        attrs = {k: v for k, v in attrs.items() if k not in _PROTECTED_FIELDS}
        data = AnalyticsData(id=self.next_id(), created_at=self.now_iso(), **attrs)
        self.analytics.append(data)
        return data

    # ---- recurring orders ----

    def get_recurring_orders(self) -> List[RecurringOrder]:
        return self.recurring_orders

    def get_recurring_orders_by_customer(self, customer_id: str) -> List[RecurringOrder]:
        return [o for o in self.recurring_orders if o.customer_id == customer_id and o.is_active]

    def create_recurring_order(self, **attrs: Any) -> RecurringOrder:
        now = self.now_iso()
        attrs = {k: v for k, v in attrs.items() if k not in _PROTECTED_FIELDS and k != "updated_at"}
        order = RecurringOrder(id=self.next_id(), created_at=now, updated_at=now, **attrs)
        self.recurring_orders.append(order)
        return order

    # ---- tenants ----

    def get_tenants(self) -> List[TenantConfig]:
        return self.tenants

    def get_tenant_by_id(self, tenant_id: str) -> Optional[TenantConfig]:
        return next((t for t in self.tenants if t.id == tenant_id), None)

    # ---- payment providers ----

    def get_payment_providers(self) -> List[PaymentProvider]:
        return [p for p in self.payment_providers if p.is_active]

    # ---- notification templates ----

    def get_notification_templates(self) -> List[NotificationTemplate]:
        return [t for t in self.notification_templates if t.is_active]

    def get_notification_template(self, template_id: str) -> Optional[NotificationTemplate]:
        return next((t for t in self.get_notification_templates() if t.id == template_id), None)

    def save_notification_template(self, template: NotificationTemplate) -> NotificationTemplate:
        """Insert, or replace the template with the same id."""
        if not template.id:
            template.id = self.next_id()
        if not template.created_at:
            template.created_at = self.now_iso()
        self.notification_templates = [t for t in self.notification_templates if t.id != template.id]
        self.notification_templates.append(template)
        return template

    # ---- webhooks ----

    def get_webhooks(self) -> List[WebhookConfig]:
        return [w for w in self.webhooks if w.is_active]

    def trigger_webhook(self, event: str, data: Any) -> Dict[str, Any]:
        """Record a delivery for every active webhook subscribed to ``event``."""
        responses = []
        for hook in self.webhooks:
            if not hook.is_active or event not in hook.events:
                continue
            self.webhook_deliveries.append(
                {"webhook_id": hook.id, "url": hook.url, "event": event, "data": data, "sent_at": self.now_iso()}
            )
            logger.info(
                "Webhook triggered",
                extra={"tenant_id": hook.tenant_id, "extra": {"webhook_id": hook.id, "event": event}},
            )
            responses.append({"webhook_id": hook.id, "success": True})
        return {"success": True, "responses": responses}

    # ---- API logs ----

    def log_api_request(self, **attrs: Any) -> APILog:
        entry = APILog(id=self.next_id(), created_at=self.now_iso(), **attrs)
        self.api_logs.append(entry)
        return entry

    def get_api_logs(self, limit: int = 100) -> List[APILog]:
        return self.api_logs[-limit:] if limit > 0 else []

    # ---- PWA resource cache ----

    def cache_resource(
        self, tenant_id: str, resource_type: str, resource_id: str, data: Any, expires_at: str
    ) -> PWACacheRecord:
        self.pwa_cache = [
            c for c in self.pwa_cache if not (c.resource_type == resource_type and c.resource_id == resource_id)
        ]
        record = PWACacheRecord(
            id=self.next_id(),
            tenant_id=tenant_id,
            resource_type=resource_type,
            resource_id=resource_id,
            data=data,
            expires_at=expires_at,
            created_at=self.now_iso(),
        )
        self.pwa_cache.append(record)
        return record

    def get_cached_resource(self, resource_type: str, resource_id: str) -> Optional[PWACacheRecord]:
        now = self.now()
        return next(
            (
                c
                for c in self.pwa_cache
                if c.resource_type == resource_type and c.resource_id == resource_id and parse_iso(c.expires_at) > now
            ),
            None,
        )

    def clear_expired_cache(self) -> int:
        now = self.now()
        before = len(self.pwa_cache)
        self.pwa_cache = [c for c in self.pwa_cache if parse_iso(c.expires_at) > now]
        return before - len(self.pwa_cache)

    # ---- orders ----

    def get_orders(self) -> List[Order]:
        return self.orders

    def get_order_by_id(self, order_id: str) -> Optional[Order]:
        return next((o for o in self.orders if o.id == order_id), None)

    def get_orders_by_customer(self, customer_id: str) -> List[Order]:
        return [o for o in self.orders if o.customer_id == customer_id]

    def create_order(self, **attrs: Any) -> Order:
        """Insert an order, numbering it ``ORD-<yyyymmdd>-<seq>``."""
        moment = self.now()
        order_id = self.next_id()
        order_number = f"ORD-{moment.strftime('%Y%m%d')}-{len(self.orders) + 1:04d}"
        created = to_iso(moment)
        items = []
        for raw in attrs.pop("items", []):
            item = raw if isinstance(raw, OrderItem) else OrderItem(
                id=self.next_id(), order_id=order_id, created_at=created, **{
                    k: v for k, v in raw.items() if k not in ("id", "order_id", "created_at")
                }
            )
            item.order_id = order_id
            items.append(item)
        attrs = {k: v for k, v in attrs.items() if k not in ("id", "order_number", "created_at", "updated_at")}
        order = Order(
            id=order_id,
            order_number=order_number,
            items=items,
            created_at=created,
            updated_at=created,
            **attrs,
        )
        self.orders.append(order)
        return order

    def update_order(self, order_id: str, updates: Dict[str, Any]) -> Optional[Order]:
        order = self.get_order_by_id(order_id)
        if order is None:
            return None
        _apply_updates(order, {k: v for k, v in updates.items() if k not in ("order_number", "items")})
        order.updated_at = self.now_iso()
        return order

    # ---- server-side carts ----

    def get_cart(self, user_id: Optional[str]) -> Optional[Cart]:
        return next((c for c in self.carts if c.user_id == user_id), None)

    def create_or_update_cart(self, cart: Cart) -> Cart:
        cart.updated_at = self.now_iso()
        self.carts = [c for c in self.carts if c.id != cart.id]
        self.carts.append(cart)
        return cart

    def clear_cart(self, cart_id: str) -> bool:
        before = len(self.carts)
        self.carts = [c for c in self.carts if c.id != cart_id]
        return len(self.carts) < before
