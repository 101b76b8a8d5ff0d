"""
Domain records for the storefront.

Plain dataclasses mirroring what the mock data layer stores.  Fields that
hold open-ended data (product variants, supplier info, addresses, tax
settings, metadata) are ``Dict[str, Any]`` maps; the keys the code reads
are listed on each class.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class Record:
    """Mixin giving dataclasses ``to_dict`` / ``from_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**_known(cls, data))


# ------------------------------------------------------------------------------
# Catalog and customers
# ------------------------------------------------------------------------------

@dataclass
class User(Record):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str  # "admin" | "customer"
    is_active: bool = True
    created_at: str = ""
    # Used by pricing: "individual" | "business" | "vip" | "bulk"
    customer_type: str = "individual"
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Product(Record):
    id: str
    name: str
    description: str
    short_description: str
    sku: str
    category: str
    base_price: float
    compare_at_price: Optional[float] = None
    is_active: bool = True
    is_featured: bool = False
    track_inventory: bool = True
    min_order_quantity: int = 1
    max_order_quantity: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    # Each variant: {"name": str, "options": [str], "price_delta": float?}
    variants: List[Dict[str, Any]] = field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    rating: Optional[float] = None
    review_count: Optional[int] = None
    is_in_stock: bool = True


@dataclass
class Category(Record):
    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    display_order: int = 0
    is_active: bool = True
    image_url: Optional[str] = None


@dataclass
class CartItem(Record):
    id: str
    product_id: str
    product: Product
    quantity: int
    selected_variants: Optional[Dict[str, Any]] = None
    added_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        values = _known(cls, data)
        values["product"] = Product.from_dict(values["product"])
        return cls(**values)


@dataclass
class Cart(Record):
    id: str
    user_id: Optional[str]
    items: List[CartItem] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cart":
        values = _known(cls, data)
        values["items"] = [CartItem.from_dict(i) for i in values.get("items", [])]
        return cls(**values)


# ------------------------------------------------------------------------------
# Orders
# ------------------------------------------------------------------------------

@dataclass
class OrderItem(Record):
    id: str
    order_id: str
    product_id: str
    product_name: str
    product_sku: str
    unit_price: float
    quantity: int
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0
    variant_data: Optional[Dict[str, Any]] = None
    created_at: str = ""


ORDER_STATUSES = ("draft", "pending", "confirmed", "processing", "shipped", "delivered", "cancelled")


@dataclass
class Order(Record):
    id: str
    order_number: str
    customer_id: str
    status: str
    subtotal: float
    tax_amount: float
    discount_amount: float
    shipping_amount: float
    total: float
    currency: str = "USD"
    payment_status: Optional[str] = None
    # Address keys: street, city, state, zip_code
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    delivery_date: Optional[str] = None
    delivery_time_slot: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        values = _known(cls, data)
        values["items"] = [i if isinstance(i, OrderItem) else OrderItem.from_dict(i) for i in values.get("items", [])]
        return cls(**values)


# ------------------------------------------------------------------------------
# Inventory, pricing, analytics
# ------------------------------------------------------------------------------

@dataclass
class Inventory(Record):
    id: str
    product_id: str
    location: str
    warehouse_name: str
    aisle: str
    shelf: str
    quantity_available: int
    quantity_reserved: int = 0
    quantity_on_order: int = 0
    reorder_point: Optional[int] = None
    reorder_quantity: Optional[int] = None
    expiry_date: Optional[str] = None
    batch_number: Optional[str] = None
    # Keys: supplier_id, supplier_name
    supplier_info: Optional[Dict[str, Any]] = None
    last_counted_at: Optional[str] = None
    cost_price: Optional[float] = None
    supplier_name: Optional[str] = None
    min_stock_level: int = 0
    max_stock_level: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


CUSTOMER_TYPES = ("individual", "business", "vip", "bulk")


@dataclass
class PricingTier(Record):
    id: str
    name: str
    customer_type: str
    min_quantity: int
    discount_percentage: float
    discount_amount: Optional[float] = None
    valid_from: str = ""
    valid_until: Optional[str] = None
    is_active: bool = True
    created_at: str = ""


PROMOTION_TYPES = ("percentage", "fixed", "buy_x_get_y", "free_shipping")


@dataclass
class Promotion(Record):
    id: str
    name: str
    description: str
    type: str
    discount_value: float
    min_purchase_amount: Optional[float] = None
    applicable_products: List[str] = field(default_factory=list)
    applicable_categories: List[str] = field(default_factory=list)
    customer_types: List[str] = field(default_factory=list)
    valid_from: str = ""
    valid_until: Optional[str] = None
    is_active: bool = True
    usage_limit: Optional[int] = None
    usage_count: int = 0
    created_at: str = ""


@dataclass
class AnalyticsData(Record):
    id: str
    date: str
    revenue: float
    orders_count: int
    customers_count: int
    # [{"product_id", "name", "sales"}]
    top_products: List[Dict[str, Any]] = field(default_factory=list)
    # [{"customer_id", "name", "spend"}]
    top_customers: List[Dict[str, Any]] = field(default_factory=list)
    # [{"category", "revenue", "orders"}]
    category_performance: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = ""


@dataclass
class RecurringOrder(Record):
    id: str
    customer_id: str
    template_name: str
    frequency: str  # "weekly" | "biweekly" | "monthly"
    next_delivery_date: str
    # [{"product_id", "quantity", "customizations"?}]
    items: List[Dict[str, Any]] = field(default_factory=list)
    delivery_address: Dict[str, Any] = field(default_factory=dict)
    delivery_instructions: Optional[str] = None
    payment_method: str = ""
    is_active: bool = True
    last_processed: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


# ------------------------------------------------------------------------------
# Tenants and integrations
# ------------------------------------------------------------------------------

@dataclass
class Branding(Record):
    logo: str = "/logo.svg"
    favicon: str = "/favicon.ico"
    # Keys: primary, secondary, accent, background, foreground
    colors: Dict[str, str] = field(default_factory=dict)
    # Keys: heading, body
    fonts: Dict[str, str] = field(default_factory=dict)


@dataclass
class TenantFeatures(Record):
    recurring_orders: bool = False
    advanced_analytics: bool = False
    white_label: bool = False
    api_access: bool = False
    multi_location: bool = False
    custom_integrations: bool = False


@dataclass
class TenantIntegrations(Record):
    payment_providers: List[str] = field(default_factory=list)
    email_service: str = ""
    sms_service: str = ""
    shipping_providers: List[str] = field(default_factory=list)
    pos_systems: List[str] = field(default_factory=list)


@dataclass
class TenantLimits(Record):
    max_users: int = 10
    max_products: int = 100
    max_orders_per_month: int = 100
    storage_gb: int = 1


@dataclass
class TenantSettings(Record):
    timezone: str = "America/New_York"
    currency: str = "USD"
    language: str = "en"
    # Keys: default_rate (float), tax_inclusive (bool)
    tax_settings: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TenantConfig(Record):
    id: str
    name: str
    domain: str
    branding: Branding = field(default_factory=Branding)
    features: TenantFeatures = field(default_factory=TenantFeatures)
    integrations: TenantIntegrations = field(default_factory=TenantIntegrations)
    limits: TenantLimits = field(default_factory=TenantLimits)
    settings: TenantSettings = field(default_factory=TenantSettings)
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TenantConfig":
        values = _known(cls, data)
        for name, section in _TENANT_SECTIONS.items():
            if isinstance(values.get(name), dict):
                values[name] = section.from_dict(values[name])
        return cls(**values)


_TENANT_SECTIONS = {
    "branding": Branding,
    "features": TenantFeatures,
    "integrations": TenantIntegrations,
    "limits": TenantLimits,
    "settings": TenantSettings,
}


@dataclass
class PaymentProvider(Record):
    id: str
    name: str
    type: str  # "stripe" | "paypal" | "square" | "mock"
    # Keys: api_key?, webhook_secret?, test_mode
    config: Dict[str, Any] = field(default_factory=dict)
    supported_methods: List[str] = field(default_factory=list)
    # Keys: percentage, fixed_amount
    fee_structure: Dict[str, float] = field(default_factory=dict)
    is_active: bool = True


@dataclass
class NotificationTemplate(Record):
    id: str
    name: str
    type: str  # "email" | "sms" | "push"
    content: str
    subject: Optional[str] = None
    variables: List[str] = field(default_factory=list)
    is_active: bool = True
    created_at: str = ""


@dataclass
class WebhookConfig(Record):
    id: str
    tenant_id: str
    url: str
    events: List[str] = field(default_factory=list)
    secret: str = ""
    is_active: bool = True
    # Keys: max_attempts, backoff_multiplier
    retry_policy: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""


@dataclass
class APILog(Record):
    id: str
    tenant_id: str
    endpoint: str
    method: str
    request_body: Any
    response_status: int
    response_body: Any
    duration_ms: float
    ip_address: str
    user_agent: str
    created_at: str = ""


@dataclass
class PWACacheRecord(Record):
    id: str
    tenant_id: str
    resource_type: str  # "product" | "category" | "user" | "order"
    resource_id: str
    data: Any
    expires_at: str
    created_at: str = ""
