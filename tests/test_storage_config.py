import support  # noqa: F401  (path bootstrap)

import json
import logging
import os
import shutil
import tempfile
import unittest
from unittest import mock

import metrics
from config import DEFAULT_CACHE_MAX_BYTES, Settings
from logging_config import JsonFormatter
from storage import CART_KEY, MemoryStore, SQLiteStore, open_store


class TestMemoryStore(unittest.TestCase):
    def test_set_get_remove(self):
        store = MemoryStore({"a": "1"})
        self.assertEqual(store.get_item("a"), "1")
        self.assertTrue(store.set_item("b", "2"))
        self.assertEqual(sorted(store.keys()), ["a", "b"])
        store.remove_item("a")
        store.remove_item("missing")
        self.assertIsNone(store.get_item("a"))


class TestSQLiteStore(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "nested", "store.db")

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_values_survive_reopen(self):
        store = SQLiteStore(self.path)
        store.set_item(CART_KEY, json.dumps({"items": []}))
        store.set_item(CART_KEY, json.dumps({"items": [1]}))
        store.close()

        reopened = SQLiteStore(self.path)
        try:
            self.assertEqual(json.loads(reopened.get_item(CART_KEY)), {"items": [1]})
            self.assertEqual(reopened.keys(), [CART_KEY])
            reopened.remove_item(CART_KEY)
            self.assertIsNone(reopened.get_item(CART_KEY))
        finally:
            reopened.close()

    def test_open_store(self):
        self.assertIsInstance(open_store(None), MemoryStore)
        store = open_store(self.path)
        try:
            self.assertIsInstance(store, SQLiteStore)
        finally:
            store.close()


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertIsNone(settings.storage_path)
        self.assertEqual(settings.cache_max_bytes, DEFAULT_CACHE_MAX_BYTES)
        self.assertFalse(settings.auth_disabled)
        self.assertEqual(settings.log_level_value, logging.INFO)

    def test_environment_overrides(self):
        env = {
            "BUENA_STORAGE_PATH": "/tmp/buena.db",
            "BUENA_CACHE_MAX_BYTES": "2048",
            "BUENA_CACHE_DEFAULT_TTL_MS": "abc",
            "BUENA_AUTH_DISABLED": "yes",
            "BUENA_LOG_LEVEL": "debug",
            "BUENA_TENANT_ID": "7",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.storage_path, "/tmp/buena.db")
        self.assertEqual(settings.cache_max_bytes, 2048)
        self.assertEqual(settings.cache_default_ttl_ms, 300_000)
        self.assertTrue(settings.auth_disabled)
        self.assertEqual(settings.log_level_value, logging.DEBUG)
        self.assertEqual(settings.tenant_id, "7")

    def test_unknown_log_level_falls_back(self):
        with mock.patch.dict(os.environ, {"BUENA_LOG_LEVEL": "LOUD"}, clear=True):
            self.assertEqual(Settings.from_env().log_level, "INFO")


class TestJsonFormatter(unittest.TestCase):
    def test_context_and_extra_are_merged(self):
        record = logging.LogRecord("cart", logging.INFO, __file__, 10, "Item added", None, None)
        record.user_id = "4"
        record.extra = {"product_id": "1", "message": "ignored"}
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["message"], "Item added")
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["user_id"], "4")
        self.assertEqual(payload["product_id"], "1")
        self.assertTrue(payload["timestamp"].endswith("Z"))


class TestMetrics(unittest.TestCase):
    def setUp(self):
        metrics.reset_all()

    def test_counter_labels_and_export(self):
        metrics.NOTIFICATIONS_TOTAL.inc(channel="email", status="sent")
        metrics.NOTIFICATIONS_TOTAL.inc(channel="email", status="sent")
        self.assertEqual(metrics.NOTIFICATIONS_TOTAL.value(channel="email", status="sent"), 2)
        self.assertEqual(metrics.NOTIFICATIONS_TOTAL.value(channel="sms", status="sent"), 0)
        text = metrics.generate_metrics_text().decode("utf-8")
        self.assertIn('notifications_total{channel="email",status="sent"} 2.0', text)
        with self.assertRaises(ValueError):
            metrics.NOTIFICATIONS_TOTAL.inc(-1)

    def test_histogram_buckets_are_cumulative(self):
        metrics.CHECKOUT_DURATION_SECONDS.observe(0.02, payment_method="card")
        metrics.CHECKOUT_DURATION_SECONDS.observe(0.3, payment_method="card")
        self.assertEqual(metrics.CHECKOUT_DURATION_SECONDS.count(payment_method="card"), 2)
        text = metrics.generate_metrics_text().decode("utf-8")
        self.assertIn('checkout_duration_seconds_bucket{payment_method="card",le="0.05"} 1', text)
        self.assertIn('checkout_duration_seconds_bucket{payment_method="card",le="+Inf"} 2', text)

    def test_gauge(self):
        metrics.CIRCUIT_BREAKER_OPEN.set(1)
        metrics.CIRCUIT_BREAKER_OPEN.dec()
        self.assertEqual(metrics.CIRCUIT_BREAKER_OPEN.value(), 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
