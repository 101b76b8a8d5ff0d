"""
Demo fixtures loaded into a fresh :class:`mock_db.MockDatabase`.

Every function returns new objects so databases never share state.
"""

from __future__ import annotations

from typing import List

from models import (
    AnalyticsData,
    Branding,
    Category,
    Inventory,
    NotificationTemplate,
    Order,
    OrderItem,
    PaymentProvider,
    PricingTier,
    Product,
    Promotion,
    RecurringOrder,
    TenantConfig,
    TenantFeatures,
    TenantIntegrations,
    TenantLimits,
    TenantSettings,
    User,
    WebhookConfig,
)

_EPOCH = "2024-01-01T00:00:00Z"


def users() -> List[User]:
    return [
        User("1", "admin@buena.com", "Admin", "User", "admin", True, _EPOCH),
        User("2", "manager@buena.com", "Store", "Manager", "admin", True, _EPOCH),
        User("3", "warehouse@buena.com", "Warehouse", "Staff", "admin", True, _EPOCH),
        User("4", "customer@buena.com", "John", "Customer", "customer", True, _EPOCH, phone="+1234567890"),
        User("5", "demo1@buena.com", "Demo", "User One", "customer", True, _EPOCH, customer_type="vip"),
        User("6", "user2@buena.com", "Demo", "User Two", "customer", True, _EPOCH, customer_type="business"),
    ]


def categories() -> List[Category]:
    return [
        Category("1", "Beverages", "Coffee, tea, and other beverages", display_order=1),
        Category("2", "Bakery", "Fresh baked goods", display_order=2),
        Category("3", "Dairy", "Milk, cheese, and dairy products", display_order=3),
        Category("4", "Meat & Seafood", "Fresh meat and seafood", display_order=4),
        Category("5", "Produce", "Fresh fruits and vegetables", display_order=5),
        Category("6", "Pantry", "Canned goods and pantry staples", display_order=6),
    ]


def products() -> List[Product]:
    return [
        Product(
            id="1",
            name="Premium Ethiopian Coffee Beans",
            description=(
                "Single-origin Ethiopian coffee beans with notes of blueberry and chocolate. "
                "Carefully roasted to bring out the unique flavor profile of this exceptional coffee."
            ),
            short_description="Single-origin Ethiopian coffee with blueberry and chocolate notes",
            sku="CFB-001",
            category="Beverages",
            base_price=24.99,
            compare_at_price=29.99,
            is_featured=True,
            max_order_quantity=10,
            tags=["organic", "fair-trade", "single-origin"],
            images=["/placeholder.svg"],
            seo_title="Premium Ethiopian Coffee Beans - Buena Retailing",
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.8,
            review_count=127,
        ),
        Product(
            id="2",
            name="Organic Green Tea Leaves",
            description=(
                "Premium organic green tea leaves with antioxidant properties. "
                "Sourced from sustainable farms and packaged fresh."
            ),
            short_description="Premium organic green tea leaves with antioxidants",
            sku="TEA-002",
            category="Beverages",
            base_price=12.99,
            max_order_quantity=20,
            tags=["organic", "caffeine-free", "antioxidants"],
            images=["/placeholder.svg"],
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.6,
            review_count=89,
        ),
        Product(
            id="3",
            name="Artisan Sourdough Bread",
            description=(
                "Handcrafted sourdough bread made with organic flour and natural starters. "
                "Baked fresh daily in our artisan bakery."
            ),
            short_description="Handcrafted sourdough bread with organic ingredients",
            sku="BRD-003",
            category="Bakery",
            base_price=8.99,
            is_featured=True,
            max_order_quantity=5,
            tags=["artisan", "fresh", "organic"],
            images=["/placeholder.svg"],
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.9,
            review_count=203,
            is_in_stock=False,
        ),
        Product(
            id="4",
            name="Grass-Fed Beef Ribeye Steak",
            description=(
                "Premium grass-fed beef ribeye steak, aged for 21 days for maximum flavor. "
                "Sourced from local sustainable farms."
            ),
            short_description="Premium grass-fed beef ribeye steak, aged 21 days",
            sku="BEEF-004",
            category="Meat & Seafood",
            base_price=32.99,
            max_order_quantity=3,
            tags=["grass-fed", "premium", "aged"],
            images=["/placeholder.svg"],
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.7,
            review_count=156,
        ),
        Product(
            id="5",
            name="Organic Free-Range Eggs",
            description="Dozen organic free-range eggs from pasture-raised hens. No hormones or antibiotics used.",
            short_description="Organic free-range eggs from pasture-raised hens",
            sku="EGGS-005",
            category="Dairy",
            base_price=7.99,
            max_order_quantity=10,
            tags=["organic", "free-range", "pasture-raised"],
            images=["/placeholder.svg"],
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.5,
            review_count=78,
        ),
        Product(
            id="6",
            name="Seasonal Mixed Vegetables",
            description=(
                "Fresh seasonal mixed vegetables from local organic farms. "
                "Includes carrots, broccoli, cauliflower, and more."
            ),
            short_description="Fresh seasonal mixed vegetables from local organic farms",
            sku="VEG-006",
            category="Produce",
            base_price=18.99,
            max_order_quantity=5,
            tags=["seasonal", "local", "organic"],
            images=["/placeholder.svg"],
            created_at=_EPOCH,
            updated_at=_EPOCH,
            rating=4.4,
            review_count=92,
        ),
    ]


def orders() -> List[Order]:
    return [
        Order(
            id="1",
            order_number="ORD-20240115-0001",
            customer_id="4",
            status="confirmed",
            subtotal=125.99,
            tax_amount=10.08,
            discount_amount=0.0,
            shipping_amount=5.99,
            total=141.06,
            payment_status="paid",
            items=[
                OrderItem("1", "1", "1", "Premium Ethiopian Coffee Beans", "CFB-001", 24.99, 2,
                          tax_amount=4.00, total=49.98, created_at="2024-01-15T10:00:00Z"),
                OrderItem("2", "1", "5", "Organic Free-Range Eggs", "EGGS-005", 7.99, 1,
                          tax_amount=0.64, total=7.99, created_at="2024-01-15T10:00:00Z"),
            ],
            created_at="2024-01-15T10:00:00Z",
            updated_at="2024-01-15T10:30:00Z",
        )
    ]


def inventory() -> List[Inventory]:
    return [
        Inventory(
            id="1", product_id="1", location="WH-001-A1-S3", warehouse_name="Main Warehouse",
            aisle="A1", shelf="S3", quantity_available=45, quantity_reserved=5, quantity_on_order=20,
            reorder_point=20, reorder_quantity=50, batch_number="CFB-2024-001",
            supplier_info={"supplier_id": "SUP-001", "supplier_name": "Ethiopian Coffee Co."},
            last_counted_at="2024-01-10T09:00:00Z", cost_price=15.99, supplier_name="Ethiopian Coffee Co.",
            min_stock_level=10, max_stock_level=100, created_at=_EPOCH, updated_at="2024-01-10T09:00:00Z",
        ),
        Inventory(
            id="2", product_id="2", location="WH-001-B2-S1", warehouse_name="Main Warehouse",
            aisle="B2", shelf="S1", quantity_available=28, quantity_reserved=2, quantity_on_order=0,
            reorder_point=15, reorder_quantity=30, expiry_date="2024-06-15T00:00:00Z", batch_number="TEA-2024-002",
            supplier_info={"supplier_id": "SUP-002", "supplier_name": "Green Tea Farms"},
            last_counted_at="2024-01-08T14:30:00Z", cost_price=8.99, supplier_name="Green Tea Farms",
            min_stock_level=5, max_stock_level=50, created_at=_EPOCH, updated_at="2024-01-08T14:30:00Z",
        ),
        Inventory(
            id="3", product_id="3", location="WH-001-C1-S2", warehouse_name="Main Warehouse",
            aisle="C1", shelf="S2", quantity_available=0, quantity_reserved=0, quantity_on_order=25,
            reorder_point=8, reorder_quantity=20, batch_number="BRD-2024-003",
            supplier_info={"supplier_id": "SUP-003", "supplier_name": "Artisan Bakery"},
            last_counted_at="2024-01-12T11:15:00Z", cost_price=4.99, supplier_name="Artisan Bakery",
            min_stock_level=3, max_stock_level=25, created_at=_EPOCH, updated_at="2024-01-12T11:15:00Z",
        ),
    ]


def pricing_tiers() -> List[PricingTier]:
    return [
        PricingTier("1", "Business Bulk Discount", "business", 10, 10, valid_from=_EPOCH, created_at=_EPOCH),
        PricingTier("2", "VIP Member Pricing", "vip", 1, 15, valid_from=_EPOCH, created_at=_EPOCH),
        PricingTier("3", "Bulk Purchase Deal", "bulk", 25, 20, valid_from=_EPOCH,
                    valid_until="2024-12-31T23:59:59Z", created_at=_EPOCH),
    ]


def promotions() -> List[Promotion]:
    return [
        Promotion(
            "1", "New Year Coffee Special", "20% off all coffee products for the first month of the year",
            "percentage", 20, applicable_products=["1"], applicable_categories=["Beverages"],
            customer_types=["individual", "business"], valid_from=_EPOCH, valid_until="2024-01-31T23:59:59Z",
            usage_limit=100, usage_count=23, created_at=_EPOCH,
        ),
        Promotion(
            "2", "Free Shipping Over $50", "Free shipping on orders over $50", "free_shipping", 0,
            min_purchase_amount=50, customer_types=["individual", "business", "vip"], valid_from=_EPOCH,
            usage_count=145, created_at=_EPOCH,
        ),
        Promotion(
            "3", "Buy 2 Get 1 Free - Eggs", "Buy 2 dozen eggs, get 1 free", "buy_x_get_y", 1,
            applicable_products=["5"], customer_types=["individual", "business"],
            valid_from="2024-01-15T00:00:00Z", valid_until="2024-02-15T23:59:59Z",
            usage_limit=50, usage_count=12, created_at="2024-01-15T00:00:00Z",
        ),
    ]


def analytics() -> List[AnalyticsData]:
    return [
        AnalyticsData(
            "1", "2024-01-01", 2850.50, 23, 18,
            top_products=[
                {"product_id": "1", "name": "Premium Ethiopian Coffee Beans", "sales": 8},
                {"product_id": "2", "name": "Organic Green Tea Leaves", "sales": 6},
                {"product_id": "5", "name": "Organic Free-Range Eggs", "sales": 5},
            ],
            top_customers=[
                {"customer_id": "4", "name": "John Customer", "spend": 450.25},
                {"customer_id": "5", "name": "Demo User One", "spend": 320.80},
                {"customer_id": "6", "name": "Demo User Two", "spend": 285.60},
            ],
            category_performance=[
                {"category": "Beverages", "revenue": 1450.25, "orders": 12},
                {"category": "Dairy", "revenue": 890.75, "orders": 6},
                {"category": "Bakery", "revenue": 509.50, "orders": 5},
            ],
            created_at="2024-01-02T00:00:00Z",
        ),
        AnalyticsData(
            "2", "2024-01-02", 3120.75, 28, 22,
            top_products=[
                {"product_id": "1", "name": "Premium Ethiopian Coffee Beans", "sales": 10},
                {"product_id": "5", "name": "Organic Free-Range Eggs", "sales": 7},
                {"product_id": "4", "name": "Grass-Fed Beef Ribeye Steak", "sales": 4},
            ],
            top_customers=[
                {"customer_id": "4", "name": "John Customer", "spend": 520.25},
                {"customer_id": "5", "name": "Demo User One", "spend": 420.80},
                {"customer_id": "6", "name": "Demo User Two", "spend": 385.60},
            ],
            category_performance=[
                {"category": "Beverages", "revenue": 1650.25, "orders": 15},
                {"category": "Meat & Seafood", "revenue": 1200.75, "orders": 8},
                {"category": "Dairy", "revenue": 269.75, "orders": 5},
            ],
            created_at="2024-01-03T00:00:00Z",
        ),
    ]


def recurring_orders() -> List[RecurringOrder]:
    return [
        RecurringOrder(
            "1", "4", "Weekly Coffee & Eggs", "weekly", "2024-01-22T00:00:00Z",
            items=[{"product_id": "1", "quantity": 1}, {"product_id": "5", "quantity": 2}],
            delivery_address={"street": "123 Main St", "city": "Anytown", "state": "CA", "zip_code": "12345"},
            delivery_instructions="Leave at front door",
            payment_method="Credit Card ****1234",
            last_processed="2024-01-15T00:00:00Z",
            created_at=_EPOCH,
            updated_at="2024-01-15T00:00:00Z",
        )
    ]


def tenants() -> List[TenantConfig]:
    return [
        TenantConfig(
            id="1",
            name="Buena Default",
            domain="buena.app",
            branding=Branding(
                colors={
                    "primary": "#2563eb",
                    "secondary": "#64748b",
                    "accent": "#f59e0b",
                    "background": "#ffffff",
                    "foreground": "#1f2937",
                },
                fonts={"heading": "Inter", "body": "Inter"},
            ),
            features=TenantFeatures(True, True, True, True, True, True),
            integrations=TenantIntegrations(
                payment_providers=["stripe", "paypal"],
                email_service="sendgrid",
                sms_service="twilio",
                shipping_providers=["fedex", "ups"],
                pos_systems=["square", "clover"],
            ),
            limits=TenantLimits(max_users=100, max_products=10000, max_orders_per_month=10000, storage_gb=100),
            settings=TenantSettings(tax_settings={"default_rate": 0.08, "tax_inclusive": False}),
            created_at=_EPOCH,
            updated_at=_EPOCH,
        )
    ]


def payment_providers() -> List[PaymentProvider]:
    return [
        PaymentProvider("1", "Stripe", "stripe", {"test_mode": True}, ["card", "apple_pay", "google_pay"],
                        {"percentage": 0.029, "fixed_amount": 0.30}),
        PaymentProvider("2", "PayPal", "paypal", {"test_mode": True}, ["paypal", "card"],
                        {"percentage": 0.034, "fixed_amount": 0.49}),
    ]


def notification_templates() -> List[NotificationTemplate]:
    return [
        NotificationTemplate(
            "1", "Order Confirmation", "email",
            content=(
                "<h1>Thank you for your order!</h1>\n"
                "<p>Dear {{customer_name}},</p>\n"
                "<p>Your order #{{order_number}} has been received and is being processed.</p>\n"
                "<p>Order Details:</p>\n"
                "<p>{{items}}</p>\n"
                "<p>Total: {{total}}</p>\n"
                "<p>We'll send you another email when your order ships.</p>"
            ),
            subject="Order Confirmation - Order #{{order_number}}",
            variables=["customer_name", "order_number", "items", "total"],
            created_at=_EPOCH,
        ),
        NotificationTemplate(
            "2", "Order Shipped", "email",
            content=(
                "<h1>Your order is on the way!</h1>\n"
                "<p>Dear {{customer_name}},</p>\n"
                "<p>Great news! Your order #{{order_number}} has been shipped.</p>\n"
                "<p>Tracking Number: {{tracking_number}}</p>\n"
                "<p>Expected Delivery: {{delivery_date}}</p>"
            ),
            subject="Your order has shipped! - Order #{{order_number}}",
            variables=["customer_name", "order_number", "tracking_number", "delivery_date"],
            created_at=_EPOCH,
        ),
        NotificationTemplate(
            "3", "Order Delivered", "sms",
            content="Hi {{customer_name}}! Your order #{{order_number}} has been delivered. Thank you for shopping with us!",
            variables=["customer_name", "order_number"],
            created_at=_EPOCH,
        ),
    ]


def webhooks() -> List[WebhookConfig]:
    return [
        WebhookConfig(
            "1", "1", "https://api.example.com/webhooks/buena",
            events=["order.created", "order.updated", "inventory.low_stock"],
            secret="whsec_test_secret_key",
            retry_policy={"max_attempts": 3, "backoff_multiplier": 2},
            created_at=_EPOCH,
        )
    ]
