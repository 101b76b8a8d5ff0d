"""
Pricing: customer tiers, promotions and the discount stack.

A quote starts from ``base_price * quantity``.  The best matching tier
(highest percentage for the customer type and quantity) comes off the
original price, then each active promotion applies to the running price
in catalog order: percentages of what is left, fixed amounts capped at
what is left.  The final price never goes below zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from mock_db import MockDatabase
from models import CUSTOMER_TYPES, PROMOTION_TYPES, PricingTier, Promotion

logger = logging.getLogger(__name__)


class PricingError(Exception):
    """Raised for unknown products and invalid tier/promotion definitions."""


@dataclass
class Discount:
    type: str  # "tier" | "promotion"
    amount: float
    description: str


@dataclass
class PriceQuote:
    original_price: float
    final_price: float
    discounts: List[Discount] = field(default_factory=list)

    @property
    def total_discount(self) -> float:
        return sum(d.amount for d in self.discounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_price": self.original_price,
            "final_price": self.final_price,
            "discounts": [vars(d).copy() for d in self.discounts],
        }


class PricingService:
    def __init__(self, db: MockDatabase, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.db = db
        self._clock = clock or db.now

    # ---- lookups ----

    def get_pricing_tier_for_customer(self, customer_type: str, quantity: int) -> Optional[PricingTier]:
        return self.db.get_pricing_tier_for_customer(customer_type, quantity)

    def get_active_promotions_for_product(
        self, product_id: str, category: str, now: Optional[datetime] = None
    ) -> List[Promotion]:
        return self.db.get_active_promotions_for_product(product_id, category, now or self._clock())

    # ---- quoting ----

    def calculate_price_with_discounts(
        self,
        product_id: str,
        quantity: int,
        customer_type: str = "individual",
        now: Optional[datetime] = None,
    ) -> PriceQuote:
        product = self.db.get_product_by_id(product_id)
        if product is None:
            raise PricingError("Product not found")

        original = product.base_price * quantity
        final = original
        discounts: List[Discount] = []

        tier = self.get_pricing_tier_for_customer(customer_type, quantity)
        if tier is not None:
            amount = original * tier.discount_percentage / 100
            final -= amount
            discounts.append(Discount("tier", amount, f"{tier.name} ({tier.discount_percentage:g}% off)"))

        for promo in self.get_active_promotions_for_product(product_id, product.category, now):
            if promo.type == "percentage":
                amount = final * promo.discount_value / 100
            elif promo.type == "fixed":
                amount = min(promo.discount_value, final)
            else:
                # buy_x_get_y and free_shipping do not change the line price
                amount = 0.0
            if amount > 0:
                final -= amount
                discounts.append(Discount("promotion", amount, promo.name))

        return PriceQuote(original_price=original, final_price=max(0.0, final), discounts=discounts)

    # ---- admin: tiers ----

    def list_tiers(self) -> List[PricingTier]:
        return self.db.get_pricing_tiers()

    def create_tier(
        self,
        name: str,
        customer_type: str,
        min_quantity: int,
        discount_percentage: float,
        **extra: Any,
    ) -> PricingTier:
        self._validate_tier(customer_type, min_quantity, discount_percentage)
        tier = self.db.create_pricing_tier(
            name=name,
            customer_type=customer_type,
            min_quantity=min_quantity,
            discount_percentage=discount_percentage,
            **extra,
        )
        logger.info(f"Pricing tier created: {name}", extra={"extra": {"tier_id": tier.id}})
        return tier

    def update_tier(self, tier_id: str, updates: Dict[str, Any]) -> PricingTier:
        tier = self.db.get_pricing_tier_by_id(tier_id)
        if tier is None:
            raise PricingError("Pricing tier not found")
        self._validate_tier(
            updates.get("customer_type", tier.customer_type),
            updates.get("min_quantity", tier.min_quantity),
            updates.get("discount_percentage", tier.discount_percentage),
        )
        return self.db.update_pricing_tier(tier_id, updates)

    def delete_tier(self, tier_id: str) -> None:
        if not self.db.delete_pricing_tier(tier_id):
            raise PricingError("Pricing tier not found")
        logger.info(f"Pricing tier deleted: {tier_id}")

    @staticmethod
    def _validate_tier(customer_type: str, min_quantity: int, discount_percentage: float) -> None:
        if customer_type not in CUSTOMER_TYPES:
            raise PricingError(f"Unknown customer type: {customer_type}")
        if min_quantity < 1:
            raise PricingError("Minimum quantity must be at least 1")
        if not 0 <= discount_percentage <= 100:
            raise PricingError("Discount percentage must be between 0 and 100")

    # ---- admin: promotions ----

    def list_promotions(self) -> List[Promotion]:
        return self.db.get_promotions()

    def create_promotion(self, name: str, description: str, type: str, discount_value: float, **extra: Any) -> Promotion:
        self._validate_promotion(type, discount_value)
        promo = self.db.create_promotion(
            name=name, description=description, type=type, discount_value=discount_value, **extra
        )
        logger.info(f"Promotion created: {name}", extra={"extra": {"promotion_id": promo.id}})
        return promo

    def update_promotion(self, promotion_id: str, updates: Dict[str, Any]) -> Promotion:
        promo = self.db.get_promotion_by_id(promotion_id)
        if promo is None:
            raise PricingError("Promotion not found")
        self._validate_promotion(updates.get("type", promo.type), updates.get("discount_value", promo.discount_value))
        return self.db.update_promotion(promotion_id, updates)

    def toggle_promotion(self, promotion_id: str, is_active: bool) -> Promotion:
        promo = self.db.set_promotion_active(promotion_id, is_active)
        if promo is None:
            raise PricingError("Promotion not found")
        logger.info(f"Promotion {'activated' if is_active else 'deactivated'}: {promo.name}")
        return promo

    def delete_promotion(self, promotion_id: str) -> None:
        if not self.db.delete_promotion(promotion_id):
            raise PricingError("Promotion not found")

    @staticmethod
    def _validate_promotion(type: str, discount_value: float) -> None:
        if type not in PROMOTION_TYPES:
            raise PricingError(f"Unknown promotion type: {type}")
        if discount_value < 0:
            raise PricingError("Discount value cannot be negative")
        if type == "percentage" and discount_value > 100:
            raise PricingError("Percentage discounts cannot exceed 100")

    def pricing_overview(self) -> Dict[str, Any]:
        active = [p for p in self.db.promotions if p.is_active]
        return {
            "tier_count": len(self.db.get_pricing_tiers()),
            "active_promotions": len(active),
            # Rough figure: nominal value times redemptions
            "total_discount_value": sum(p.discount_value * p.usage_count for p in active),
        }
