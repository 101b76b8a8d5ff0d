import support  # noqa: F401  (path bootstrap)

import unittest

from mock_db import MockDatabase
from offline import (
    API_CACHE_NAME,
    OFFLINE_PAGE,
    PRECACHE_URLS,
    STATIC_CACHE_NAME,
    CacheStorage,
    NetworkError,
    PushSubscriptions,
    Request,
    ResourceCache,
    Response,
    ServiceWorker,
    json_response,
)
from storage import PUSH_SUBSCRIPTION_KEY, MemoryStore
from support import FakeClock


class FakeNetwork:
    """Serves canned responses; raises NetworkError while ``online`` is False."""

    def __init__(self):
        self.online = True
        self.routes = {}
        self.calls = []

    def __call__(self, request):
        self.calls.append(request.url)
        if not self.online:
            raise NetworkError("offline")
        return self.routes.get(request.cache_key, Response(status=200, body=f"body of {request.cache_key}"))


class TestServiceWorker(unittest.TestCase):
    def setUp(self):
        self.network = FakeNetwork()
        self.worker = ServiceWorker(self.network)

    def test_install_precaches_shell(self):
        self.assertTrue(self.worker.install())
        cache = self.worker.caches.open(STATIC_CACHE_NAME)
        self.assertEqual(sorted(cache.keys()), sorted(PRECACHE_URLS))
        self.assertTrue(self.worker.skip_waiting_requested)

    def test_install_is_all_or_nothing(self):
        self.network.routes["/favicon.ico"] = Response(status=404)
        self.assertFalse(self.worker.install())
        self.assertNotIn(STATIC_CACHE_NAME, self.worker.caches.keys())

    def test_activate_removes_old_versions(self):
        self.worker.caches.open("buena-retail-v0")
        self.worker.caches.open(STATIC_CACHE_NAME)
        self.assertEqual(self.worker.activate(), ["buena-retail-v0"])
        self.assertEqual(self.worker.caches.keys(), [STATIC_CACHE_NAME])

    def test_api_is_network_first_with_cache_fallback(self):
        self.network.routes["/api/products"] = json_response([{"id": "1"}])
        first = self.worker.fetch(Request("https://shop.example/api/products"))
        self.assertEqual(first.json(), [{"id": "1"}])
        self.assertIn("/api/products", self.worker.caches.open(API_CACHE_NAME).keys())

        self.network.online = False
        fallback = self.worker.fetch(Request("https://shop.example/api/products"))
        self.assertEqual(fallback.json(), [{"id": "1"}])

    def test_api_offline_without_cache(self):
        self.network.online = False
        response = self.worker.fetch(Request("/api/orders"))
        self.assertEqual(response.status, 503)
        self.assertEqual(response.json()["error"], "Network unavailable")
        profile = self.worker.fetch(Request("/api/user/profile"))
        self.assertEqual(profile.status, 200)
        self.assertTrue(profile.json()["offline"])

    def test_api_posts_are_not_cached(self):
        self.worker.fetch(Request("/api/orders", method="POST"))
        self.assertEqual(self.worker.caches.open(API_CACHE_NAME).keys(), [])

    def test_static_is_cache_first(self):
        request = Request("/static/logo.png", destination="image")
        self.worker.fetch(request)
        self.worker.fetch(request)
        self.assertEqual(self.network.calls, ["/static/logo.png"])
        self.network.online = False
        self.assertEqual(self.worker.fetch(request).body, "body of /static/logo.png")
        self.assertEqual(self.worker.fetch(Request("/static/other.css", destination="style")).status, 404)

    def test_navigation_falls_back_to_shell_then_offline_page(self):
        self.network.online = False
        page = self.worker.fetch(Request("/checkout", mode="navigate"))
        self.assertEqual(page.body, OFFLINE_PAGE)

        self.network.online = True
        self.worker.install()
        self.network.online = False
        shell = self.worker.fetch(Request("/account", mode="navigate"))
        self.assertEqual(shell.body, "body of /")

    def test_control_messages(self):
        self.worker.handle_message("CACHE_PRODUCT", {"id": "1"})
        self.assertEqual(self.worker.caches.match("/api/products").json(), {"id": "1"})
        self.worker.handle_message("SKIP_WAITING")
        self.assertTrue(self.worker.skip_waiting_requested)
        self.worker.handle_message("CLEAR_CACHE")
        self.assertEqual(self.worker.caches.keys(), [])
        self.worker.handle_message("REBOOT")

    def test_cached_responses_are_copies(self):
        caches = CacheStorage()
        caches.open("c").put("/x", Response(body="original"))
        copy = caches.match("/x")
        copy.body = "changed"
        self.assertEqual(caches.match("/x").body, "original")


class TestPushSubscriptions(unittest.TestCase):
    def test_subscribe_round_trip(self):
        store = MemoryStore()
        push = PushSubscriptions(store)
        self.assertIsNone(push.get())
        push.subscribe("https://push.example/abc", "key", "secret")
        self.assertEqual(push.get()["keys"], {"p256dh": "key", "auth": "secret"})
        self.assertTrue(push.unsubscribe())
        self.assertFalse(push.unsubscribe())
        store.set_item(PUSH_SUBSCRIPTION_KEY, "garbage")
        self.assertIsNone(push.get())


class TestResourceCache(unittest.TestCase):
    def test_resources_expire_after_a_day(self):
        clock = FakeClock()
        db = MockDatabase(clock=clock)
        worker = ServiceWorker(FakeNetwork())
        resources = ResourceCache(db, worker=worker)
        resources.cache_data("product", "1", {"id": "1"})
        self.assertEqual(resources.get_cached_data("product", "1"), {"id": "1"})
        self.assertIn(API_CACHE_NAME, worker.caches.keys())

        clock.advance(hours=25)
        self.assertIsNone(resources.get_cached_data("product", "1"))
        self.assertEqual(resources.clear_expired(), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
