# payment_service.py
"""
Payment service for the storefront.

- Gateway strategies per payment method (card/paypal/apple_pay/google_pay).
- Payment intents, processing, refunds and a per-service payment history.
- Saved payment methods and subscription plans.
- Optional retries with exponential backoff (off by default: one attempt).
- Simple circuit breaker (threshold + cooldown) with a status API.

NOTE: No real gateway is called; ``MockGateway`` approves every charge
unless it is configured to decline.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from metrics import CIRCUIT_BREAKER_OPEN, PAYMENTS_TOTAL
from mock_db import MockDatabase, to_iso

logger = logging.getLogger(__name__)

PAYMENT_METHOD_TYPES = ("card", "paypal", "apple_pay", "google_pay")


# ---------- Records ----------

@dataclass
class PaymentMethod:
    type: str
    id: str = ""
    last4: Optional[str] = None
    brand: Optional[str] = None
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    is_default: bool = False


@dataclass
class PaymentIntent:
    id: str
    amount: float
    currency: str
    status: str  # pending | processing | succeeded | failed | cancelled
    client_secret: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    payment_method: Optional[PaymentMethod] = None
    created_at: str = ""
    processed_at: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    payment_intent: Optional[PaymentIntent] = None


@dataclass
class SubscriptionPlan:
    id: str
    name: str
    description: str
    amount: float
    currency: str
    interval: str
    interval_count: int
    features: List[str]
    is_active: bool = True


SUBSCRIPTION_PLANS = (
    SubscriptionPlan(
        "plan_basic", "Basic", "Perfect for small businesses", 29, "USD", "month", 1,
        ["Up to 100 products", "Basic analytics", "Email support", "Mobile app"],
    ),
    SubscriptionPlan(
        "plan_pro", "Professional", "For growing retail operations", 79, "USD", "month", 1,
        ["Unlimited products", "Advanced analytics", "Priority support", "API access",
         "White-label options", "Multi-location support"],
    ),
    SubscriptionPlan(
        "plan_enterprise", "Enterprise", "Full-featured enterprise solution", 199, "USD", "month", 1,
        ["Everything in Professional", "Custom integrations", "Dedicated account manager",
         "SLA guarantee", "Advanced security", "Custom development"],
    ),
)


# ---------- Gateway strategies ----------

class PaymentGateway:
    """Abstract base for payment gateways."""
    def charge(self, intent: PaymentIntent, method: PaymentMethod) -> Tuple[bool, str]:  # (approved, ref_or_reason)
        raise NotImplementedError

    def refund(self, transaction_id: str, amount: float) -> Tuple[bool, str]:
        raise NotImplementedError


class MockGateway(PaymentGateway):
    """Deterministic gateway: approves unless ``decline`` is set."""
    def __init__(self, decline: bool = False, reason: str = "Payment was declined by the card issuer") -> None:
        self.decline = decline
        self.reason = reason
        self.refund_decline = False
        self._seq = itertools.count(1)
        self.charges: List[Tuple[str, float]] = []

    def charge(self, intent: PaymentIntent, method: PaymentMethod) -> Tuple[bool, str]:
        if self.decline:
            return False, self.reason
        ref = f"txn_{intent.id[3:]}_{next(self._seq)}"
        self.charges.append((ref, intent.amount))
        return True, ref

    def refund(self, transaction_id: str, amount: float) -> Tuple[bool, str]:
        if self.refund_decline:
            return False, "Refund processing failed"
        return True, f"ref_{transaction_id[4:]}"


# ---------- Payment service with retry + CB + refund ----------

class PaymentService:
    """
    Gateway-driven payment service with:
      - Optional retries (exponential backoff, ``max_attempts`` defaults to 1)
      - Circuit breaker (failure threshold + cooldown)
      - Refunds against recorded transactions
    """

    def __init__(
        self,
        db: MockDatabase,
        failure_threshold: int = 3,
        cooldown_seconds: int = 30,
        max_attempts: int = 1,
        backoff_base: float = 0.25,   # seconds
        backoff_max: float = 2.0,     # cap per attempt
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self._clock = clock or db.now
        self._sleep = sleep
        self._ids = itertools.count(1)

        # Gateway registry
        self.gateways: Dict[str, PaymentGateway] = {}
        for method in PAYMENT_METHOD_TYPES:
            self.register_gateway(method, MockGateway())

        # Circuit breaker state
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._failure_count = 0
        self._circuit_open_until: Optional[datetime] = None

        # Retry/backoff tuning
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self._intents: Dict[str, PaymentIntent] = {}
        self._transactions: Dict[str, Tuple[str, float]] = {}  # txn -> (method, amount)
        self._refunded: Dict[str, float] = {}
        self._methods: Dict[str, List[PaymentMethod]] = {}
        self._subscriptions: Dict[str, Dict[str, Any]] = {}

    def _new_id(self, prefix: str) -> str:
        ms = int(self._clock().timestamp() * 1000)
        return f"{prefix}_{ms}_{next(self._ids)}"

    # ----- gateway registry -----
    def register_gateway(self, method: str, gateway: PaymentGateway) -> None:
        self.gateways[method.strip().lower()] = gateway

    # ----- circuit breaker helpers -----
    def _is_circuit_open(self) -> bool:
        if self._circuit_open_until is None:
            return False
        if self._clock() >= self._circuit_open_until:
            # cooldown elapsed -> close breaker
            self._circuit_open_until = None
            self._failure_count = 0
            self._set_breaker_gauge(False)
            return False
        return True

    def _trip_breaker(self) -> None:
        self._circuit_open_until = self._clock() + timedelta(seconds=self.cooldown_seconds)
        self._set_breaker_gauge(True)
        logger.warning(f"Payment circuit breaker opened for {self.cooldown_seconds}s")

    @staticmethod
    def _set_breaker_gauge(is_open: bool) -> None:
        try:
            CIRCUIT_BREAKER_OPEN.set(1.0 if is_open else 0.0)
        except Exception:
            pass

    def breaker_state(self) -> Dict[str, object]:
        """Expose breaker state for dashboards/logging."""
        return {
            "is_open": self._is_circuit_open(),
            "failure_count": self._failure_count,
            "open_until": self._circuit_open_until.isoformat() if self._circuit_open_until else None,
            "failure_threshold": self.failure_threshold,
            "cooldown_seconds": self.cooldown_seconds,
        }

    def _backoff_sleep(self, attempt_index: int) -> None:
        # attempt_index is 0-based; delay grows 0.25, 0.5, 1.0, ... up to cap
        self._sleep(min(self.backoff_base * (2 ** attempt_index), self.backoff_max))

    # ----- intents and processing -----
    def create_payment_intent(
        self, amount: float, currency: str = "USD", metadata: Optional[Dict[str, Any]] = None
    ) -> PaymentIntent:
        if amount <= 0:
            raise ValueError("Payment amount must be positive")
        intent_id = self._new_id("pi")
        intent = PaymentIntent(
            id=intent_id,
            amount=round(amount, 2),
            currency=currency,
            status="pending",
            client_secret=f"{intent_id}_secret",
            metadata=dict(metadata or {}),
            created_at=to_iso(self._clock()),
        )
        self._intents[intent.id] = intent
        return intent

    def process_payment(self, intent_id: str, payment_method: PaymentMethod) -> PaymentResult:
        """Charge an intent through the method's gateway, honouring the breaker."""
        intent = self._intents.get(intent_id)
        if intent is None:
            return PaymentResult(False, error="Payment intent not found")
        if intent.status == "succeeded":
            return PaymentResult(False, error="Payment intent already processed", payment_intent=intent)

        # Circuit open? Hard-fail fast.
        if self._is_circuit_open():
            self._count(payment_method.type, "breaker_open")
            return PaymentResult(False, error="Payment service unavailable (circuit breaker open)")

        check = self.validate_payment_method(payment_method)
        if not check["valid"]:
            return PaymentResult(False, error="; ".join(check["errors"]))

        gateway = self.gateways.get(payment_method.type.strip().lower())
        if gateway is None or payment_method.type not in self.get_supported_methods():
            self._count(payment_method.type, "unsupported")
            return PaymentResult(False, error=f"Unsupported payment method: {payment_method.type}")

        intent.status = "processing"
        intent.payment_method = payment_method
        reason = "Unknown error"
        for attempt in range(self.max_attempts):
            approved, ref_or_reason = gateway.charge(intent, payment_method)
            if approved:
                self._failure_count = 0
                intent.status = "succeeded"
                intent.processed_at = to_iso(self._clock())
                intent.transaction_id = ref_or_reason
                self._transactions[ref_or_reason] = (payment_method.type, intent.amount)
                self._count(payment_method.type, "approved")
                logger.info(
                    f"Payment approved for intent {intent.id}",
                    extra={"extra": {"transaction_id": ref_or_reason, "amount": intent.amount}},
                )
                return PaymentResult(True, transaction_id=ref_or_reason, payment_intent=intent)

            reason = ref_or_reason
            self._failure_count += 1
            self._count(payment_method.type, "declined")
            logger.warning(f"Payment declined for intent {intent.id}: {reason}")

            # trip breaker once threshold reached
            if self._failure_count >= self.failure_threshold:
                self._trip_breaker()
                break

            if attempt < self.max_attempts - 1:
                self._backoff_sleep(attempt)

        intent.status = "failed"
        return PaymentResult(False, error=reason, payment_intent=intent)

    @staticmethod
    def _count(method: str, outcome: str) -> None:
        try:
            PAYMENTS_TOTAL.inc(method=method, outcome=outcome)
        except Exception:
            pass

    def process_refund(self, transaction_id: str, amount: float, reason: str = "customer_request") -> Dict[str, Any]:
        """Refund part or all of a recorded transaction."""
        record = self._transactions.get(transaction_id)
        if record is None:
            return {"success": False, "error": "Transaction not found"}
        method, charged = record
        already = self._refunded.get(transaction_id, 0.0)
        if amount <= 0 or amount > round(charged - already, 2):
            return {"success": False, "error": "Refund amount exceeds the refundable balance"}
        ok, ref_or_reason = self.gateways[method].refund(transaction_id, amount)
        if not ok:
            return {"success": False, "error": ref_or_reason}
        self._refunded[transaction_id] = already + amount
        logger.info(f"Refund {ref_or_reason} issued for {transaction_id}", extra={"extra": {"reason": reason}})
        return {"success": True, "refund_id": ref_or_reason}

    def get_payment_history(self, customer_id: str) -> List[PaymentIntent]:
        return [i for i in self._intents.values() if i.metadata.get("customer_id") == customer_id]

    # ----- saved methods -----
    def save_payment_method(self, customer_id: str, payment_method: PaymentMethod) -> PaymentMethod:
        check = self.validate_payment_method(payment_method)
        if not check["valid"]:
            raise ValueError("; ".join(check["errors"]))
        payment_method.id = self._new_id("pm")
        saved = self._methods.setdefault(customer_id, [])
        if payment_method.is_default or not saved:
            for existing in saved:
                existing.is_default = False
            payment_method.is_default = True
        saved.append(payment_method)
        logger.info(f"Saved {payment_method.type} payment method", extra={"user_id": customer_id})
        return payment_method

    def get_payment_methods(self, customer_id: str) -> List[PaymentMethod]:
        return list(self._methods.get(customer_id, []))

    # ----- subscriptions -----
    def get_subscription_plans(self) -> List[SubscriptionPlan]:
        return [p for p in SUBSCRIPTION_PLANS if p.is_active]

    def create_subscription(self, customer_id: str, plan_id: str, payment_method_id: str) -> Dict[str, Any]:
        plan = next((p for p in self.get_subscription_plans() if p.id == plan_id), None)
        if plan is None:
            return {"success": False, "error": "Subscription plan not found"}
        if not any(m.id == payment_method_id for m in self._methods.get(customer_id, [])):
            return {"success": False, "error": "Payment method not found"}
        sub_id = self._new_id("sub")
        self._subscriptions[sub_id] = {
            "id": sub_id,
            "customer_id": customer_id,
            "plan_id": plan.id,
            "payment_method_id": payment_method_id,
            "status": "active",
            "created_at": to_iso(self._clock()),
        }
        return {"success": True, "subscription_id": sub_id}

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        sub = self._subscriptions.get(subscription_id)
        if sub is None:
            return {"success": False, "error": "Subscription not found"}
        sub["status"] = "cancelled"
        return {"success": True}

    # ----- validation -----
    @staticmethod
    def validate_payment_method(payment_method: PaymentMethod) -> Dict[str, Any]:
        errors = []
        if not payment_method.type:
            errors.append("Payment method type is required")
        if payment_method.type == "card":
            if not payment_method.last4 or len(payment_method.last4) != 4:
                errors.append("Card last 4 digits are required")
            if not payment_method.brand:
                errors.append("Card brand is required")
            if not payment_method.expiry_month or not payment_method.expiry_year:
                errors.append("Card expiry date is required")
        return {"valid": not errors, "errors": errors}

    def get_supported_methods(self) -> List[str]:
        methods: Dict[str, None] = {}
        for provider in self.db.get_payment_providers():
            for method in provider.supported_methods:
                methods.setdefault(method, None)
        return list(methods)
