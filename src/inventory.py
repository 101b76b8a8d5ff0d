"""Inventory administration views over the mock store."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from mock_db import MockDatabase, parse_iso
from models import Inventory

logger = logging.getLogger(__name__)

EXPIRY_WINDOW_DAYS = 90
_DAY_SECONDS = 24 * 60 * 60


class InventoryService:
    def __init__(self, db: MockDatabase, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.db = db
        self._clock = clock or db.now

    @staticmethod
    def stock_status(item: Inventory) -> str:
        if item.quantity_available == 0:
            return "Out of Stock"
        if item.quantity_available <= item.min_stock_level:
            return "Low Stock"
        if item.max_stock_level is not None and item.quantity_available >= item.max_stock_level:
            return "Overstock"
        return "In Stock"

    def expiry_status(self, item: Inventory, now: Optional[datetime] = None) -> Optional[str]:
        """"Expired", "Expires in N days" inside the window, else None."""
        if not item.expiry_date:
            return None
        moment = now or self._clock()
        days = math.ceil((parse_iso(item.expiry_date) - moment).total_seconds() / _DAY_SECONDS)
        if days <= 0:
            return "Expired"
        if days <= EXPIRY_WINDOW_DAYS:
            return f"Expires in {days} days"
        return None

    def locations(self) -> List[str]:
        seen: Dict[str, None] = {}
        for item in self.db.get_inventory():
            seen.setdefault(item.warehouse_name, None)
        return list(seen)

    def search(self, term: str = "", location: str = "all") -> List[Inventory]:
        """Filter by product name or bin location, and by warehouse."""
        needle = term.lower()
        results = []
        for item in self.db.get_inventory():
            product = self.db.get_product_by_id(item.product_id)
            matches_term = (
                not needle
                or (product is not None and needle in product.name.lower())
                or needle in item.location.lower()
            )
            matches_location = location == "all" or item.warehouse_name == location
            if matches_term and matches_location:
                results.append(item)
        return results

    def _retail_value(self, item: Inventory) -> float:
        product = self.db.get_product_by_id(item.product_id)
        return item.quantity_available * (product.base_price if product else 0.0)

    def summary(self) -> Dict[str, Any]:
        items = self.db.get_inventory()
        return {
            "total_items": sum(i.quantity_available for i in items),
            "total_value": round(sum(self._retail_value(i) for i in items), 2),
            "low_stock_count": len(self.db.get_low_stock_items()),
            "out_of_stock_count": sum(1 for i in items if i.quantity_available == 0),
        }

    def by_location(self) -> Dict[str, Dict[str, float]]:
        breakdown: Dict[str, Dict[str, float]] = defaultdict(lambda: {"items": 0, "units": 0, "value": 0.0})
        for item in self.db.get_inventory():
            row = breakdown[item.warehouse_name]
            row["items"] += 1
            row["units"] += item.quantity_available
            row["value"] = round(row["value"] + self._retail_value(item), 2)
        return dict(breakdown)

    def reorder_suggestions(self) -> List[Dict[str, Any]]:
        suggestions = []
        for item in self.db.get_inventory():
            if item.reorder_point is None or item.quantity_available > item.reorder_point:
                continue
            product = self.db.get_product_by_id(item.product_id)
            suggestions.append(
                {
                    "inventory_id": item.id,
                    "product_id": item.product_id,
                    "product_name": product.name if product else item.product_id,
                    "quantity_available": item.quantity_available,
                    "quantity_on_order": item.quantity_on_order,
                    "suggested_quantity": item.reorder_quantity or 0,
                    "supplier": item.supplier_name,
                }
            )
        return suggestions

    def update_stock(self, inventory_id: str, quantity: int) -> Inventory:
        if quantity < 0:
            raise ValueError("Quantity cannot be negative")
        item = self.db.update_inventory_quantity(inventory_id, quantity)
        if item is None:
            raise ValueError("Inventory item not found")
        logger.info(
            f"Stock updated for inventory {inventory_id}",
            extra={"extra": {"inventory_id": inventory_id, "quantity": quantity}},
        )
        return item

    def decrement_for_order(self, product_id: str, quantity: int) -> int:
        """Take ``quantity`` units out of the product's bins; returns units removed."""
        remaining = quantity
        for item in self.db.get_inventory_by_product(product_id):
            if remaining <= 0:
                break
            take = min(item.quantity_available, remaining)
            if take:
                self.db.update_inventory_quantity(item.id, item.quantity_available - take)
                remaining -= take
        if remaining > 0:
            logger.warning(f"Insufficient tracked stock for product {product_id}: short by {remaining}")
        return quantity - remaining
