import support  # noqa: F401  (path bootstrap)

import unittest
from datetime import datetime, UTC

from inventory import InventoryService
from mock_db import MockDatabase
from pricing import PricingError, PricingService
from support import FakeClock
from tenant import TenantService

JANUARY = datetime(2024, 1, 20, tzinfo=UTC)


class TestPricingService(unittest.TestCase):
    def setUp(self):
        self.db = MockDatabase(clock=FakeClock())
        self.pricing = PricingService(self.db)

    def test_no_discounts_outside_promotion_window(self):
        quote = self.pricing.calculate_price_with_discounts("1", 2, "individual")
        self.assertAlmostEqual(quote.original_price, 49.98)
        self.assertAlmostEqual(quote.final_price, 49.98)
        self.assertEqual(quote.discounts, [])

    def test_percentage_promotion(self):
        quote = self.pricing.calculate_price_with_discounts("1", 2, "individual", now=JANUARY)
        self.assertEqual(len(quote.discounts), 1)
        self.assertEqual(quote.discounts[0].type, "promotion")
        self.assertEqual(quote.discounts[0].description, "New Year Coffee Special")
        self.assertAlmostEqual(quote.final_price, 39.984)

    def test_tier_applies_before_promotions(self):
        quote = self.pricing.calculate_price_with_discounts("1", 1, "vip", now=JANUARY)
        self.assertEqual([d.type for d in quote.discounts], ["tier", "promotion"])
        self.assertEqual(quote.discounts[0].description, "VIP Member Pricing (15% off)")
        self.assertAlmostEqual(quote.discounts[0].amount, 3.7485)
        self.assertAlmostEqual(quote.discounts[1].amount, 4.2483)
        self.assertAlmostEqual(quote.final_price, 16.9932)
        self.assertAlmostEqual(quote.total_discount, 7.9968)

    def test_business_tier_needs_minimum_quantity(self):
        small = self.pricing.calculate_price_with_discounts("2", 9, "business")
        large = self.pricing.calculate_price_with_discounts("2", 10, "business")
        self.assertEqual(small.discounts, [])
        self.assertAlmostEqual(large.final_price, 12.99 * 10 * 0.9)

    def test_buy_x_get_y_leaves_line_price(self):
        quote = self.pricing.calculate_price_with_discounts("5", 2, "individual", now=JANUARY)
        self.assertEqual(quote.discounts, [])
        self.assertAlmostEqual(quote.final_price, 15.98)

    def test_fixed_promotion_never_goes_negative(self):
        self.pricing.create_promotion("Eggs on us", "", "fixed", 100, applicable_products=["5"])
        quote = self.pricing.calculate_price_with_discounts("5", 1)
        self.assertEqual(quote.final_price, 0.0)
        self.assertAlmostEqual(quote.discounts[0].amount, 7.99)
        self.assertEqual(quote.to_dict()["discounts"][0]["type"], "promotion")

    def test_unknown_product(self):
        with self.assertRaisesRegex(PricingError, "Product not found"):
            self.pricing.calculate_price_with_discounts("999", 1)

    def test_tier_admin(self):
        tier = self.pricing.create_tier("Bulk Lite", "bulk", 5, 5)
        self.assertIn(tier, self.pricing.list_tiers())
        self.assertEqual(self.pricing.update_tier(tier.id, {"discount_percentage": 7}).discount_percentage, 7)
        with self.assertRaises(PricingError):
            self.pricing.create_tier("Bad", "wholesale", 1, 5)
        with self.assertRaises(PricingError):
            self.pricing.update_tier(tier.id, {"discount_percentage": 150})
        self.pricing.delete_tier(tier.id)
        with self.assertRaisesRegex(PricingError, "Pricing tier not found"):
            self.pricing.delete_tier(tier.id)

    def test_promotion_admin(self):
        with self.assertRaises(PricingError):
            self.pricing.create_promotion("Bad", "", "percentage", 120)
        with self.assertRaises(PricingError):
            self.pricing.create_promotion("Bad", "", "mystery", 1)
        promo = self.pricing.toggle_promotion("2", False)
        self.assertFalse(promo.is_active)
        self.assertEqual(len(self.pricing.list_promotions()), 2)
        self.assertEqual(self.pricing.update_promotion("1", {"discount_value": 25}).discount_value, 25)
        self.pricing.delete_promotion("3")
        with self.assertRaisesRegex(PricingError, "Promotion not found"):
            self.pricing.toggle_promotion("3", True)

    def test_pricing_overview(self):
        overview = self.pricing.pricing_overview()
        self.assertEqual(overview["tier_count"], 3)
        self.assertEqual(overview["active_promotions"], 3)
        self.assertEqual(overview["total_discount_value"], 20 * 23 + 0 * 145 + 1 * 12)


class TestInventoryService(unittest.TestCase):
    def setUp(self):
        self.db = MockDatabase(clock=FakeClock())
        self.inventory = InventoryService(self.db)

    def test_stock_status(self):
        item = self.db.get_inventory_item("1")
        self.assertEqual(InventoryService.stock_status(item), "In Stock")
        self.assertEqual(InventoryService.stock_status(self.db.get_inventory_item("3")), "Out of Stock")
        item.quantity_available = 10
        self.assertEqual(InventoryService.stock_status(item), "Low Stock")
        item.quantity_available = 100
        self.assertEqual(InventoryService.stock_status(item), "Overstock")

    def test_expiry_status(self):
        tea = self.db.get_inventory_item("2")
        self.assertIsNone(self.inventory.expiry_status(tea))
        self.assertEqual(self.inventory.expiry_status(tea, datetime(2024, 6, 1, tzinfo=UTC)), "Expires in 14 days")
        self.assertEqual(self.inventory.expiry_status(tea, datetime(2024, 6, 16, tzinfo=UTC)), "Expired")
        self.assertIsNone(self.inventory.expiry_status(self.db.get_inventory_item("1")))

    def test_summary(self):
        summary = self.inventory.summary()
        self.assertEqual(summary["total_items"], 73)
        self.assertAlmostEqual(summary["total_value"], 1488.27)
        self.assertEqual(summary["low_stock_count"], 1)
        self.assertEqual(summary["out_of_stock_count"], 1)

    def test_search_and_locations(self):
        self.assertEqual(self.inventory.locations(), ["Main Warehouse"])
        self.assertEqual([i.id for i in self.inventory.search("coffee")], ["1"])
        self.assertEqual([i.id for i in self.inventory.search("wh-001-c1")], ["3"])
        self.assertEqual(len(self.inventory.search()), 3)
        self.assertEqual(self.inventory.search("", location="Overflow"), [])

    def test_by_location(self):
        row = self.inventory.by_location()["Main Warehouse"]
        self.assertEqual(row["items"], 3)
        self.assertEqual(row["units"], 73)

    def test_reorder_suggestions(self):
        suggestions = self.inventory.reorder_suggestions()
        self.assertEqual(len(suggestions), 1)
        self.assertEqual(suggestions[0]["product_name"], "Artisan Sourdough Bread")
        self.assertEqual(suggestions[0]["suggested_quantity"], 20)
        self.assertEqual(suggestions[0]["supplier"], "Artisan Bakery")

    def test_update_stock(self):
        self.assertEqual(self.inventory.update_stock("3", 12).quantity_available, 12)
        with self.assertRaisesRegex(ValueError, "negative"):
            self.inventory.update_stock("3", -1)
        with self.assertRaisesRegex(ValueError, "not found"):
            self.inventory.update_stock("99", 1)

    def test_decrement_for_order(self):
        self.assertEqual(self.inventory.decrement_for_order("1", 5), 5)
        self.assertEqual(self.db.get_inventory_item("1").quantity_available, 40)
        self.assertEqual(self.inventory.decrement_for_order("3", 2), 0)


class TestTenantService(unittest.TestCase):
    def setUp(self):
        self.db = MockDatabase(clock=FakeClock())
        self.tenant = TenantService(self.db)

    def test_resolves_first_tenant(self):
        self.assertEqual(self.tenant.get_current_tenant().id, "1")
        self.assertEqual(TenantService(self.db, tenant_id="99").get_current_tenant().id, "1")

    def test_default_tenant_when_none_stored(self):
        tenant = TenantService(MockDatabase(seed=False)).get_current_tenant()
        self.assertEqual(tenant.id, "default")
        self.assertFalse(TenantService(MockDatabase(seed=False)).is_feature_enabled("white_label"))

    def test_features_and_integrations(self):
        self.assertTrue(self.tenant.is_feature_enabled("recurring_orders"))
        self.assertFalse(self.tenant.is_feature_enabled("teleportation"))
        self.assertTrue(self.tenant.has_integration("payment_providers", "stripe"))
        self.assertFalse(self.tenant.has_integration("payment_providers", "square"))
        self.assertTrue(self.tenant.has_integration("email_service"))
        self.assertAlmostEqual(self.tenant.tax_rate(), 0.08)

    def test_branding_variables(self):
        variables = self.tenant.branding_variables()
        self.assertEqual(variables["css_variables"]["--primary"], "#2563eb")
        self.assertEqual(variables["css_variables"]["--font-heading"], "Inter")
        self.assertEqual(variables["title"], "Buena Default - Retail Platform")

    def test_api_endpoints(self):
        self.assertEqual(self.tenant.get_api_endpoints()["products"], "/api/1/products")

    def test_validate_limits(self):
        self.assertEqual(self.tenant.validate_limits("max_users", 99), {"valid": True, "limit": 100, "remaining": 1})
        self.assertFalse(self.tenant.validate_limits("max_users", 100)["valid"])
        with self.assertRaises(ValueError):
            self.tenant.validate_limits("max_widgets", 1)

    def test_update_tenant(self):
        updated = self.tenant.update_tenant({"name": "Buena West", "limits": {"max_users": 5}})
        self.assertEqual(updated.limits.max_users, 5)
        self.assertEqual(self.tenant.get_limits().max_users, 5)
        self.assertEqual(self.db.get_tenant_by_id("1").name, "Buena West")
        self.assertEqual(updated.updated_at, "2024-03-01T12:00:00Z")


if __name__ == "__main__":
    unittest.main(verbosity=2)
