import support  # noqa: F401  (path bootstrap)

import unittest

import metrics
from api_router import APIRequest, APIRouter
from mock_db import MockDatabase
from support import FakeClock

AUTH = {"X-API-Key": "test-key"}


class TestAPIRouter(unittest.TestCase):
    def setUp(self):
        metrics.reset_all()
        self.db = MockDatabase(clock=FakeClock())
        self.router = APIRouter(self.db)

    def call(self, method, path, body=None, headers=None):
        return self.router.handle_request(APIRequest(method, path, headers=dict(AUTH if headers is None else headers), body=body))

    def test_health_needs_no_credentials(self):
        response = self.call("GET", "/api/health", headers={})
        self.assertEqual(response.status, 200)
        self.assertEqual(response.body["status"], "healthy")
        self.assertEqual(response.body["timestamp"], "2024-03-01T12:00:00Z")

    def test_missing_credentials_is_401_and_not_logged(self):
        response = self.call("GET", "/api/products", headers={})
        self.assertEqual(response.status, 401)
        self.assertEqual(self.db.get_api_logs(), [])
        self.assertEqual(metrics.API_REQUESTS_TOTAL.value(endpoint="/api/products", method="GET", status="401"), 1)

    def test_bearer_token_accepted(self):
        response = self.call("GET", "/api/categories", headers={"Authorization": "Bearer abc"})
        self.assertEqual(response.status, 200)
        self.assertEqual(len(response.body["data"]), 6)

    def test_unknown_route_is_404(self):
        self.assertEqual(self.call("GET", "/api/unknown").status, 404)
        self.assertEqual(self.call("PATCH", "/api/products/1").status, 404)
        self.assertEqual(self.call("DELETE", "/api/orders/1").status, 404)

    def test_list_products_with_pagination_and_filters(self):
        response = self.call("GET", "/api/products?limit=2&offset=1")
        self.assertEqual(response.status, 200)
        self.assertEqual([p["id"] for p in response.body["data"]], ["2", "3"])
        self.assertEqual(response.body["pagination"], {"total": 6, "limit": 2, "offset": 1, "has_more": True})

        beverages = self.call("GET", "/api/products?category=Beverages").body["data"]
        self.assertEqual([p["id"] for p in beverages], ["1", "2"])
        tea = self.call("GET", "/api/products?search=green").body["data"]
        self.assertEqual([p["id"] for p in tea], ["2"])

    def test_id_routes_resolve_per_resource(self):
        self.assertEqual(self.call("GET", "/api/products/4").body["data"]["name"], "Grass-Fed Beef Ribeye Steak")
        self.assertEqual(self.call("GET", "/api/orders/1").body["data"]["order_number"], "ORD-20240115-0001")
        self.assertEqual(self.call("GET", "/api/customers/4").body["data"]["email"], "customer@buena.com")
        self.assertEqual(self.call("GET", "/api/categories/2").body["data"]["name"], "Bakery")
        self.assertEqual(self.call("GET", "/api/customers/1").status, 404)
        self.assertEqual(self.call("GET", "/api/products/999").status, 404)

    def test_product_crud(self):
        self.assertEqual(self.call("POST", "/api/products", body={"name": "Oat Milk"}).status, 400)
        created = self.call("POST", "/api/products", body={"name": "Oat Milk", "base_price": 3.49, "bogus": 1})
        self.assertEqual(created.status, 201)
        product_id = created.body["data"]["id"]

        updated = self.call("PUT", f"/api/products/{product_id}", body={"base_price": 3.99})
        self.assertEqual(updated.body["data"]["base_price"], 3.99)
        self.assertEqual(self.db.get_product_by_id(product_id).base_price, 3.99)

        self.assertEqual(self.call("DELETE", f"/api/products/{product_id}").status, 204)
        self.assertEqual(self.call("DELETE", f"/api/products/{product_id}").status, 404)

    def test_create_and_update_order(self):
        self.assertEqual(self.call("POST", "/api/orders", body={"customer_id": "4"}).status, 400)
        created = self.call(
            "POST",
            "/api/orders",
            body={"customer_id": "4", "items": [{"product_id": "2", "product_name": "Tea", "unit_price": 12.99, "quantity": 2}]},
        )
        self.assertEqual(created.status, 201)
        order = created.body["data"]
        self.assertEqual(order["status"], "pending")
        self.assertAlmostEqual(order["subtotal"], 25.98)
        self.assertEqual(order["order_number"], "ORD-20240301-0002")

        updated = self.call("PUT", f"/api/orders/{order['id']}", body={"status": "shipped"})
        self.assertEqual(updated.body["data"]["status"], "shipped")
        self.assertEqual(self.db.get_order_by_id(order["id"]).status, "shipped")

        mine = self.call("GET", "/api/orders?customer_id=4&status=shipped").body
        self.assertEqual(mine["pagination"]["total"], 1)

    def test_update_customer_cannot_change_role(self):
        response = self.call("PUT", "/api/customers/4", body={"first_name": "Johnny", "role": "admin"})
        self.assertEqual(response.body["data"]["first_name"], "Johnny")
        self.assertEqual(self.db.get_user_by_id("4").role, "customer")

    def test_customers_list_only_customers(self):
        ids = [c["id"] for c in self.call("GET", "/api/customers").body["data"]]
        self.assertEqual(ids, ["4", "5", "6"])

    def test_inventory_update(self):
        self.assertEqual(self.call("PUT", "/api/inventory/3", body={"quantity_available": 12}).status, 200)
        self.assertEqual(self.db.get_inventory_item("3").quantity_available, 12)
        self.assertEqual(self.call("PUT", "/api/inventory/99", body={"quantity_available": 1}).status, 404)
        self.assertEqual(len(self.call("GET", "/api/inventory").body["data"]), 3)

    def test_analytics(self):
        summary = self.call("GET", "/api/analytics/summary").body["data"]
        self.assertAlmostEqual(summary["total_revenue"], 5971.25)
        self.assertEqual(summary["total_orders"], 51)
        self.assertEqual(summary["period_days"], 2)

        top_product = self.call("GET", "/api/analytics/products").body["data"][0]
        self.assertEqual(top_product["product_id"], "1")
        self.assertEqual(top_product["sales"], 18)
        self.assertAlmostEqual(top_product["revenue"], 449.82)

        top_customer = self.call("GET", "/api/analytics/customers").body["data"][0]
        self.assertEqual(top_customer["customer_id"], "4")
        self.assertEqual(top_customer["orders"], 2)
        self.assertAlmostEqual(top_customer["spend"], 970.5)

    def test_webhooks(self):
        response = self.call("POST", "/api/webhooks/1", body={"event": "ping"})
        self.assertEqual(response.body, {"received": True, "webhook_id": "1"})
        self.assertEqual(len(self.call("GET", "/api/webhooks").body["data"]), 1)

    def test_successful_requests_are_logged(self):
        self.call("GET", "/api/products/1", headers={"X-API-Key": "k", "User-Agent": "tests"})
        log = self.db.get_api_logs()[-1]
        self.assertEqual(log.endpoint, "/api/products/1")
        self.assertEqual(log.response_status, 200)
        self.assertEqual(log.user_agent, "tests")
        self.assertEqual(log.tenant_id, "1")

    def test_bad_paging_parameters_fall_back_to_defaults(self):
        total = len(self.db.get_products())
        response = self.call("GET", "/api/products?limit=abc&offset=-3")
        self.assertEqual(response.status, 200)
        self.assertEqual(response.body["pagination"], {"total": total, "limit": 50, "offset": 0, "has_more": total > 50})
        self.assertEqual(len(response.body["data"]), min(total, 50))

        response = self.call("GET", "/api/products?limit=-1&offset=x")
        self.assertEqual(response.status, 200)
        self.assertEqual(response.body["pagination"]["limit"], 0)
        self.assertEqual(response.body["data"], [])

    def test_handler_errors_become_500(self):
        def broken():
            raise RuntimeError("store unavailable")

        self.db.get_products = broken
        with self.assertLogs("api_router", level="ERROR"):
            response = self.call("GET", "/api/products")
        self.assertEqual(response.status, 500)
        self.assertEqual(response.body, {"error": "Internal server error"})

    def test_auth_disabled(self):
        router = APIRouter(self.db, auth_disabled=True)
        self.assertEqual(router.handle_request(APIRequest("GET", "/api/orders")).status, 200)


if __name__ == "__main__":
    unittest.main(verbosity=2)
