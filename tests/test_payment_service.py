import support  # noqa: F401  (path bootstrap)

import unittest

import metrics
from mock_db import MockDatabase
from payment_service import MockGateway, PaymentMethod, PaymentService
from support import FakeClock


def card(**overrides):
    values = dict(type="card", last4="4242", brand="Visa", expiry_month=12, expiry_year=2030)
    values.update(overrides)
    return PaymentMethod(**values)


class TestPaymentService(unittest.TestCase):
    def setUp(self):
        metrics.reset_all()
        self.clock = FakeClock()
        self.db = MockDatabase(clock=self.clock)
        self.sleeps = []
        self.payments = PaymentService(self.db, sleep=self.sleeps.append)

    def decline_cards(self, **kwargs):
        gateway = MockGateway(decline=True, **kwargs)
        self.payments.register_gateway("card", gateway)
        return gateway

    def test_intent_creation(self):
        intent = self.payments.create_payment_intent(10.005, metadata={"customer_id": "4"})
        self.assertEqual(intent.status, "pending")
        self.assertTrue(intent.id.startswith("pi_"))
        self.assertEqual(intent.client_secret, f"{intent.id}_secret")
        with self.assertRaises(ValueError):
            self.payments.create_payment_intent(0)

    def test_successful_card_payment(self):
        intent = self.payments.create_payment_intent(25.0)
        result = self.payments.process_payment(intent.id, card())
        self.assertTrue(result.success, result.error)
        self.assertTrue(result.transaction_id.startswith("txn_"))
        self.assertEqual(intent.status, "succeeded")
        self.assertEqual(intent.processed_at, "2024-03-01T12:00:00Z")
        self.assertEqual(metrics.PAYMENTS_TOTAL.value(method="card", outcome="approved"), 1)

    def test_intent_cannot_be_charged_twice(self):
        intent = self.payments.create_payment_intent(25.0)
        self.payments.process_payment(intent.id, card())
        result = self.payments.process_payment(intent.id, card())
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Payment intent already processed")

    def test_unknown_intent(self):
        self.assertEqual(self.payments.process_payment("pi_missing", card()).error, "Payment intent not found")

    def test_card_validation_errors_are_joined(self):
        intent = self.payments.create_payment_intent(5.0)
        result = self.payments.process_payment(intent.id, PaymentMethod(type="card"))
        self.assertFalse(result.success)
        self.assertEqual(
            result.error,
            "Card last 4 digits are required; Card brand is required; Card expiry date is required",
        )

    def test_unsupported_method(self):
        intent = self.payments.create_payment_intent(5.0)
        result = self.payments.process_payment(intent.id, PaymentMethod(type="cash"))
        self.assertEqual(result.error, "Unsupported payment method: cash")

    def test_wallet_methods_need_no_card_details(self):
        intent = self.payments.create_payment_intent(5.0)
        self.assertTrue(self.payments.process_payment(intent.id, PaymentMethod(type="paypal")).success)

    def test_decline_reports_gateway_reason(self):
        self.decline_cards()
        intent = self.payments.create_payment_intent(5.0)
        result = self.payments.process_payment(intent.id, card())
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Payment was declined by the card issuer")
        self.assertEqual(intent.status, "failed")
        self.assertEqual(self.sleeps, [])

    def test_retries_with_backoff_when_enabled(self):
        payments = PaymentService(self.db, max_attempts=3, failure_threshold=10, sleep=self.sleeps.append)
        gateway = MockGateway(decline=True)
        payments.register_gateway("card", gateway)
        intent = payments.create_payment_intent(5.0)
        self.assertFalse(payments.process_payment(intent.id, card()).success)
        self.assertEqual(self.sleeps, [0.25, 0.5])

    def test_breaker_opens_after_threshold_and_recovers(self):
        gateway = self.decline_cards()
        for _ in range(3):
            intent = self.payments.create_payment_intent(5.0)
            self.payments.process_payment(intent.id, card())
        self.assertTrue(self.payments.breaker_state()["is_open"])
        self.assertEqual(metrics.CIRCUIT_BREAKER_OPEN.value(), 1.0)

        gateway.decline = False
        intent = self.payments.create_payment_intent(5.0)
        result = self.payments.process_payment(intent.id, card())
        self.assertEqual(result.error, "Payment service unavailable (circuit breaker open)")

        self.clock.advance(seconds=30)
        self.assertFalse(self.payments.breaker_state()["is_open"])
        self.assertTrue(self.payments.process_payment(intent.id, card()).success)
        self.assertEqual(self.payments.breaker_state()["failure_count"], 0)

    def test_refunds(self):
        intent = self.payments.create_payment_intent(20.0)
        txn = self.payments.process_payment(intent.id, card()).transaction_id
        self.assertTrue(self.payments.process_refund(txn, 5.0)["success"])
        self.assertTrue(self.payments.process_refund(txn, 15.0)["success"])
        over = self.payments.process_refund(txn, 0.01)
        self.assertFalse(over["success"])
        self.assertEqual(self.payments.process_refund("txn_unknown", 1.0)["error"], "Transaction not found")

    def test_refund_declined_by_gateway(self):
        gateway = MockGateway()
        gateway.refund_decline = True
        self.payments.register_gateway("card", gateway)
        intent = self.payments.create_payment_intent(20.0)
        txn = self.payments.process_payment(intent.id, card()).transaction_id
        self.assertEqual(self.payments.process_refund(txn, 5.0)["error"], "Refund processing failed")

    def test_payment_history_by_customer(self):
        self.payments.create_payment_intent(5.0, metadata={"customer_id": "4"})
        self.payments.create_payment_intent(6.0, metadata={"customer_id": "5"})
        self.assertEqual([i.amount for i in self.payments.get_payment_history("4")], [5.0])

    def test_saved_methods_and_default(self):
        first = self.payments.save_payment_method("4", card())
        second = self.payments.save_payment_method("4", PaymentMethod(type="paypal", is_default=True))
        self.assertTrue(first.id.startswith("pm_"))
        methods = self.payments.get_payment_methods("4")
        self.assertEqual([m.is_default for m in methods], [False, True])
        self.assertIs(methods[1], second)
        with self.assertRaises(ValueError):
            self.payments.save_payment_method("4", PaymentMethod(type="card"))

    def test_subscriptions(self):
        plans = self.payments.get_subscription_plans()
        self.assertEqual([p.id for p in plans], ["plan_basic", "plan_pro", "plan_enterprise"])
        method = self.payments.save_payment_method("4", card())
        created = self.payments.create_subscription("4", "plan_pro", method.id)
        self.assertTrue(created["success"])
        self.assertEqual(self.payments.create_subscription("4", "plan_gold", method.id)["error"],
                         "Subscription plan not found")
        self.assertEqual(self.payments.create_subscription("4", "plan_pro", "pm_x")["error"],
                         "Payment method not found")
        self.assertTrue(self.payments.cancel_subscription(created["subscription_id"])["success"])
        self.assertFalse(self.payments.cancel_subscription("sub_missing")["success"])

    def test_supported_methods_come_from_providers(self):
        self.assertEqual(self.payments.get_supported_methods(), ["card", "apple_pay", "google_pay", "paypal"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
