"""
In-process REST-style API over the mock store.

Requests are plain ``APIRequest`` objects; nothing listens on a socket.
Routes are kept per method and path template.  A path matches its exact
template first; otherwise ``/api/<resource>/<digits>`` matches the
``/api/<resource>/:id`` template of the same resource, with the trailing
digits bound to ``params["id"]``.
"""

from __future__ import annotations

import logging
import re
import time
import urllib.parse
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from metrics import API_REQUEST_LATENCY_SECONDS, API_REQUESTS_TOTAL
from mock_db import MockDatabase

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
JSON_HEADERS = {"Content-Type": "application/json"}
_ID_PATH = re.compile(r"^/api/([^/]+)/(\d+)$")


@dataclass
class APIRequest:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class APIResponse:
    status: int
    headers: Dict[str, str]
    body: Any


Handler = Callable[[APIRequest], APIResponse]


def _json(status: int, body: Any) -> APIResponse:
    return APIResponse(status=status, headers=dict(JSON_HEADERS), body=body)


def _error(status: int, message: str) -> APIResponse:
    return _json(status, {"error": message})


def _dump(records: Any) -> Any:
    if isinstance(records, list):
        return [_dump(r) for r in records]
    return records.to_dict() if hasattr(records, "to_dict") else records


def _query_int(query: Dict[str, str], name: str, default: int) -> int:
    """Non-negative integer query parameter; anything unparseable gets ``default``."""
    try:
        return max(int(query.get(name, default)), 0)
    except (TypeError, ValueError):
        return default


def _paginate(items: List[Any], query: Dict[str, str]) -> Dict[str, Any]:
    limit = _query_int(query, "limit", 50)
    offset = _query_int(query, "offset", 0)
    end = offset + limit
    return {
        "data": _dump(items[offset:end]),
        "pagination": {"total": len(items), "limit": limit, "offset": offset, "has_more": end < len(items)},
    }


class APIRouter:
    def __init__(self, db: MockDatabase, tenant_id: str = "1", auth_disabled: bool = False) -> None:
        self.db = db
        self.tenant_id = tenant_id
        self.auth_disabled = auth_disabled
        self.routes: Dict[str, Dict[str, Handler]] = defaultdict(dict)
        self._setup_routes()

    def _setup_routes(self) -> None:
        # Products
        self.add_route("GET", "/api/products", self.get_products)
        self.add_route("GET", "/api/products/:id", self.get_product)
        self.add_route("POST", "/api/products", self.create_product)
        self.add_route("PUT", "/api/products/:id", self.update_product)
        self.add_route("DELETE", "/api/products/:id", self.delete_product)
        # Categories
        self.add_route("GET", "/api/categories", self.get_categories)
        self.add_route("GET", "/api/categories/:id", self.get_category)
        # Orders
        self.add_route("GET", "/api/orders", self.get_orders)
        self.add_route("GET", "/api/orders/:id", self.get_order)
        self.add_route("POST", "/api/orders", self.create_order)
        self.add_route("PUT", "/api/orders/:id", self.update_order)
        # Customers
        self.add_route("GET", "/api/customers", self.get_customers)
        self.add_route("GET", "/api/customers/:id", self.get_customer)
        self.add_route("PUT", "/api/customers/:id", self.update_customer)
        # Inventory
        self.add_route("GET", "/api/inventory", self.get_inventory)
        self.add_route("PUT", "/api/inventory/:id", self.update_inventory)
        # Analytics
        self.add_route("GET", "/api/analytics/summary", self.analytics_summary)
        self.add_route("GET", "/api/analytics/products", self.product_analytics)
        self.add_route("GET", "/api/analytics/customers", self.customer_analytics)
        # Webhooks
        self.add_route("POST", "/api/webhooks/:id", self.handle_webhook)
        self.add_route("GET", "/api/webhooks", self.get_webhooks)
        # Health
        self.add_route("GET", "/api/health", self.health_check)

    def add_route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[method.upper()][path] = handler

    # ---- dispatch ----

    def _resolve(self, request: APIRequest) -> Optional[Handler]:
        method_routes = self.routes.get(request.method.upper())
        if not method_routes:
            return None
        handler = method_routes.get(request.path)
        if handler is not None:
            return handler
        match = _ID_PATH.match(request.path)
        if match:
            handler = method_routes.get(f"/api/{match.group(1)}/:id")
            if handler is not None:
                request.params["id"] = match.group(2)
        return handler

    def _is_authenticated(self, request: APIRequest) -> bool:
        if self.auth_disabled or request.path == "/api/health":
            return True
        headers = {k.lower(): v for k, v in request.headers.items()}
        return bool(headers.get("x-api-key") or headers.get("authorization"))

    def handle_request(self, request: APIRequest) -> APIResponse:
        start = time.perf_counter()
        path, _, raw_query = request.path.partition("?")
        request.path = path
        if raw_query:
            request.query = {**dict(urllib.parse.parse_qsl(raw_query)), **request.query}

        try:
            if not self._is_authenticated(request):
                response = _error(401, "Unauthorized")
            else:
                handler = self._resolve(request)
                if handler is None:
                    response = _error(404, "Not found")
                else:
                    response = handler(request)
                    self._log_request(request, response, start)
        except Exception:
            logger.exception(f"API error on {request.method} {request.path}")
            response = _error(500, "Internal server error")

        self._record_metrics(request, response.status, start)
        return response

    def _log_request(self, request: APIRequest, response: APIResponse, start: float) -> None:
        headers = {k.lower(): v for k, v in request.headers.items()}
        self.db.log_api_request(
            tenant_id=self.tenant_id,
            endpoint=request.path,
            method=request.method.upper(),
            request_body=request.body,
            response_status=response.status,
            response_body=response.body,
            duration_ms=(time.perf_counter() - start) * 1000,
            ip_address=headers.get("x-forwarded-for", "127.0.0.1"),
            user_agent=headers.get("user-agent", "API Client"),
        )

    @staticmethod
    def _record_metrics(request: APIRequest, status: int, start: float) -> None:
        try:
            API_REQUESTS_TOTAL.inc(endpoint=request.path, method=request.method.upper(), status=str(status))
            API_REQUEST_LATENCY_SECONDS.observe(time.perf_counter() - start, endpoint=request.path)
        except Exception:
            pass

    # ---- products ----

    def get_products(self, request: APIRequest) -> APIResponse:
        products = self.db.get_products()
        search = request.query.get("search")
        category = request.query.get("category")
        if search:
            needle = search.lower()
            products = [p for p in products if needle in p.name.lower() or needle in p.description.lower()]
        if category:
            products = [p for p in products if p.category == category]
        return _json(200, _paginate(products, request.query))

    def get_product(self, request: APIRequest) -> APIResponse:
        product = self.db.get_product_by_id(request.params.get("id", ""))
        if product is None:
            return _error(404, "Product not found")
        return _json(200, {"data": product.to_dict()})

    def create_product(self, request: APIRequest) -> APIResponse:
        data = dict(request.body or {})
        if not data.get("name") or not data.get("base_price"):
            return _error(400, "Name and base price are required")
        data.setdefault("description", "")
        data.setdefault("short_description", "")
        data.setdefault("sku", "")
        data.setdefault("category", "")
        product = self.db.create_product(**{k: v for k, v in data.items() if k in _PRODUCT_FIELDS})
        return _json(201, {"data": product.to_dict()})

    def update_product(self, request: APIRequest) -> APIResponse:
        product = self.db.update_product(request.params.get("id", ""), dict(request.body or {}))
        if product is None:
            return _error(404, "Product not found")
        return _json(200, {"data": product.to_dict()})

    def delete_product(self, request: APIRequest) -> APIResponse:
        if not self.db.delete_product(request.params.get("id", "")):
            return _error(404, "Product not found")
        return APIResponse(status=204, headers={}, body=None)

    # ---- categories ----

    def get_categories(self, request: APIRequest) -> APIResponse:
        return _json(200, {"data": _dump(self.db.get_categories())})

    def get_category(self, request: APIRequest) -> APIResponse:
        category = self.db.get_category_by_id(request.params.get("id", ""))
        if category is None:
            return _error(404, "Category not found")
        return _json(200, {"data": category.to_dict()})

    # ---- orders ----

    def get_orders(self, request: APIRequest) -> APIResponse:
        orders = self.db.get_orders()
        customer_id = request.query.get("customer_id")
        status = request.query.get("status")
        if customer_id:
            orders = [o for o in orders if o.customer_id == customer_id]
        if status:
            orders = [o for o in orders if o.status == status]
        return _json(200, _paginate(orders, request.query))

    def get_order(self, request: APIRequest) -> APIResponse:
        order = self.db.get_order_by_id(request.params.get("id", ""))
        if order is None:
            return _error(404, "Order not found")
        return _json(200, {"data": order.to_dict()})

    def create_order(self, request: APIRequest) -> APIResponse:
        data = dict(request.body or {})
        if not data.get("customer_id") or not data.get("items"):
            return _error(400, "Customer ID and items are required")
        items = data["items"]
        subtotal = sum(float(i.get("unit_price", 0)) * int(i.get("quantity", 0)) for i in items)
        order = self.db.create_order(
            customer_id=data["customer_id"],
            status=data.get("status") or "pending",
            subtotal=data.get("subtotal", subtotal),
            tax_amount=data.get("tax_amount", 0.0),
            discount_amount=data.get("discount_amount", 0.0),
            shipping_amount=data.get("shipping_amount", 0.0),
            total=data.get("total", subtotal),
            currency=data.get("currency", "USD"),
            shipping_address=data.get("shipping_address"),
            items=[
                {
                    "product_id": i.get("product_id", ""),
                    "product_name": i.get("product_name", ""),
                    "product_sku": i.get("product_sku", ""),
                    "unit_price": float(i.get("unit_price", 0)),
                    "quantity": int(i.get("quantity", 0)),
                    "total": float(i.get("total", float(i.get("unit_price", 0)) * int(i.get("quantity", 0)))),
                }
                for i in items
            ],
        )
        return _json(201, {"data": order.to_dict()})

    def update_order(self, request: APIRequest) -> APIResponse:
        order = self.db.update_order(request.params.get("id", ""), dict(request.body or {}))
        if order is None:
            return _error(404, "Order not found")
        return _json(200, {"data": order.to_dict()})

    # ---- customers ----

    def get_customers(self, request: APIRequest) -> APIResponse:
        return _json(200, {"data": _dump([u for u in self.db.get_users() if u.role == "customer"])})

    def get_customer(self, request: APIRequest) -> APIResponse:
        customer = self.db.get_user_by_id(request.params.get("id", ""))
        if customer is None or customer.role != "customer":
            return _error(404, "Customer not found")
        return _json(200, {"data": customer.to_dict()})

    def update_customer(self, request: APIRequest) -> APIResponse:
        updates = {k: v for k, v in dict(request.body or {}).items() if k != "role"}
        customer = self.db.update_user(request.params.get("id", ""), updates)
        if customer is None:
            return _error(404, "Customer not found")
        return _json(200, {"data": customer.to_dict()})

    # ---- inventory ----

    def get_inventory(self, request: APIRequest) -> APIResponse:
        return _json(200, {"data": _dump(self.db.get_inventory())})

    def update_inventory(self, request: APIRequest) -> APIResponse:
        updates = dict(request.body or {})
        if "quantity_available" in updates:
            item = self.db.update_inventory_quantity(request.params.get("id", ""), int(updates["quantity_available"]))
            if item is None:
                return _error(404, "Inventory item not found")
        return _json(200, {"data": {"success": True}})

    # ---- analytics ----

    def analytics_summary(self, request: APIRequest) -> APIResponse:
        analytics = self.db.get_analytics()
        revenue = sum(day.revenue for day in analytics)
        orders = sum(day.orders_count for day in analytics)
        customers = sum(day.customers_count for day in analytics)
        return _json(
            200,
            {
                "data": {
                    "total_revenue": revenue,
                    "total_orders": orders,
                    "total_customers": customers,
                    "avg_order_value": revenue / orders if orders else 0.0,
                    "period_days": len(analytics),
                }
            },
        )

    def product_analytics(self, request: APIRequest) -> APIResponse:
        sales: Dict[str, Dict[str, Any]] = {}
        for day in self.db.get_analytics():
            for row in day.top_products:
                entry = sales.setdefault(row["product_id"], {"product_id": row["product_id"], "name": row["name"], "sales": 0})
                entry["sales"] += row["sales"]
        for entry in sales.values():
            product = self.db.get_product_by_id(entry["product_id"])
            entry["revenue"] = round(entry["sales"] * product.base_price, 2) if product else 0.0
        top = sorted(sales.values(), key=lambda e: e["sales"], reverse=True)[:10]
        return _json(200, {"data": top})

    def customer_analytics(self, request: APIRequest) -> APIResponse:
        spend: Dict[str, Dict[str, Any]] = {}
        for day in self.db.get_analytics():
            for row in day.top_customers:
                entry = spend.setdefault(
                    row["customer_id"], {"customer_id": row["customer_id"], "name": row["name"], "spend": 0.0, "orders": 0}
                )
                entry["spend"] += row["spend"]
                entry["orders"] += 1
        top = sorted(spend.values(), key=lambda e: e["spend"], reverse=True)[:10]
        return _json(200, {"data": top})

    # ---- webhooks ----

    def handle_webhook(self, request: APIRequest) -> APIResponse:
        webhook_id = request.params.get("id", "")
        self.db.trigger_webhook(
            "webhook.received",
            {"webhook_id": webhook_id, "payload": request.body, "received_at": self.db.now_iso()},
        )
        return _json(200, {"received": True, "webhook_id": webhook_id})

    def get_webhooks(self, request: APIRequest) -> APIResponse:
        return _json(200, {"data": _dump(self.db.get_webhooks())})

    # ---- health ----

    def health_check(self, request: APIRequest) -> APIResponse:
        return _json(
            200,
            {
                "status": "healthy",
                "timestamp": self.db.now_iso(),
                "version": API_VERSION,
                "services": {"database": "connected", "cache": "available", "notifications": "operational"},
            },
        )


_PRODUCT_FIELDS = {
    "name", "description", "short_description", "sku", "category", "base_price", "compare_at_price",
    "is_active", "is_featured", "track_inventory", "min_order_quantity", "max_order_quantity", "tags",
    "images", "variants", "seo_title", "seo_description", "rating", "review_count", "is_in_stock",
}
