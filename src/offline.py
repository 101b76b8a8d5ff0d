"""
Offline support: a service-worker style fetch router and its caches.

``ServiceWorker.fetch`` decides per request whether to go to the network
or to a named cache first:

- ``/api/*``: network first; successful GETs are cached, failures fall back
  to the cache, then to an offline payload.
- images, styles, scripts, fonts: cache first, then network.
- navigations: cache first, then network, then the cached shell ``/``,
  then a built-in offline page.
- anything else: cache, then network.

The network is any callable taking a ``Request`` and returning a
``Response``; it signals an unreachable network by raising ``OSError``
(``NetworkError`` or the stdlib connection errors).
"""

from __future__ import annotations

import copy
import json
import logging
import urllib.parse
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from mock_db import MockDatabase, to_iso
from storage import PUSH_SUBSCRIPTION_KEY, KeyValueStore

logger = logging.getLogger(__name__)

STATIC_CACHE_NAME = "buena-retail-v1"
API_CACHE_NAME = "buena-api-v1"
PRECACHE_URLS = ("/", "/manifest.json", "/favicon.ico", "/icon-192.png", "/icon-512.png")
STATIC_DESTINATIONS = ("image", "style", "script", "font")
RESOURCE_TTL = timedelta(hours=24)

OFFLINE_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title>Buena - Offline</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
  </head>
  <body>
    <div class="container">
      <h1>You're Offline</h1>
      <p>Some features may be limited while you're offline. Please check your internet connection.</p>
      <button onclick="window.location.reload()">Try Again</button>
    </div>
  </body>
</html>
"""


class NetworkError(ConnectionError):
    """The network callable could not reach the origin."""


@dataclass
class Request:
    url: str
    method: str = "GET"
    destination: str = ""  # "image" | "style" | "script" | "font" | "document" | ""
    mode: str = ""  # "navigate" for page loads

    @property
    def path(self) -> str:
        return urllib.parse.urlsplit(self.url).path or "/"

    @property
    def cache_key(self) -> str:
        parts = urllib.parse.urlsplit(self.url)
        return (parts.path or "/") + (f"?{parts.query}" if parts.query else "")


@dataclass
class Response:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> "Response":
        return copy.deepcopy(self)

    def json(self) -> Any:
        return json.loads(self.body)


def json_response(payload: Any, status: int = 200) -> Response:
    return Response(status=status, headers={"Content-Type": "application/json"}, body=json.dumps(payload))


Network = Callable[[Request], Response]


class NamedCache:
    """One named cache: request key to stored response."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: Dict[str, Response] = {}

    def put(self, key: str, response: Response) -> None:
        self._entries[key] = response.clone()

    def match(self, key: str) -> Optional[Response]:
        response = self._entries.get(key)
        return response.clone() if response is not None else None

    def keys(self) -> List[str]:
        return list(self._entries)


class CacheStorage:
    def __init__(self) -> None:
        self._caches: Dict[str, NamedCache] = {}

    def open(self, name: str) -> NamedCache:
        return self._caches.setdefault(name, NamedCache(name))

    def match(self, key: str) -> Optional[Response]:
        for cache in self._caches.values():
            response = cache.match(key)
            if response is not None:
                return response
        return None

    def keys(self) -> List[str]:
        return list(self._caches)

    def delete(self, name: str) -> bool:
        return self._caches.pop(name, None) is not None


class ServiceWorker:
    def __init__(self, network: Network, caches: Optional[CacheStorage] = None) -> None:
        self.network = network
        self.caches = caches or CacheStorage()
        self.skip_waiting_requested = False

    # ---- lifecycle ----

    def install(self) -> bool:
        """Precache the app shell; all-or-nothing, like ``cache.addAll``."""
        fetched = {}
        try:
            for url in PRECACHE_URLS:
                response = self.network(Request(url))
                if not response.ok:
                    raise NetworkError(f"{url} returned {response.status}")
                fetched[url] = response
        except OSError as e:
            logger.error(f"Service worker cache installation failed: {e}")
            return False
        cache = self.caches.open(STATIC_CACHE_NAME)
        for url, response in fetched.items():
            cache.put(url, response)
        self.skip_waiting_requested = True
        return True

    def activate(self) -> List[str]:
        """Delete caches from older versions; returns the deleted names."""
        stale = [name for name in self.caches.keys() if name not in (STATIC_CACHE_NAME, API_CACHE_NAME)]
        for name in stale:
            logger.info(f"Service worker deleting old cache {name}")
            self.caches.delete(name)
        return stale

    # ---- fetch routing ----

    def fetch(self, request: Request) -> Response:
        if request.path.startswith("/api/"):
            return self._handle_api(request)
        if request.destination in STATIC_DESTINATIONS:
            return self._handle_static(request)
        if request.mode == "navigate":
            return self._handle_navigation(request)
        cached = self.caches.match(request.cache_key)
        return cached if cached is not None else self.network(request)

    def _handle_api(self, request: Request) -> Response:
        try:
            response = self.network(request)
        except OSError:
            logger.info(f"API request failed, trying cache: {request.url}")
            cached = self.caches.match(request.cache_key)
            if cached is not None:
                return cached
            if "/api/user/profile" in request.url:
                return json_response(
                    {"offline": True, "message": "You are currently offline. Some features may be limited."}
                )
            return json_response(
                {"error": "Network unavailable", "message": "Please check your internet connection."}, status=503
            )
        if request.method.upper() == "GET" and response.ok:
            self.caches.open(API_CACHE_NAME).put(request.cache_key, response)
        return response

    def _handle_static(self, request: Request) -> Response:
        cached = self.caches.match(request.cache_key)
        if cached is not None:
            return cached
        try:
            response = self.network(request)
        except OSError:
            logger.info(f"Static resource fetch failed: {request.url}")
            return Response(status=404)
        if response.ok:
            self.caches.open(STATIC_CACHE_NAME).put(request.cache_key, response)
        return response

    def _handle_navigation(self, request: Request) -> Response:
        cached = self.caches.match(request.cache_key)
        if cached is not None:
            return cached
        try:
            response = self.network(request)
        except OSError:
            shell = self.caches.match("/")
            if shell is not None:
                return shell
            return Response(status=200, headers={"Content-Type": "text/html"}, body=OFFLINE_PAGE)
        if response.ok:
            self.caches.open(STATIC_CACHE_NAME).put(request.cache_key, response)
        return response

    # ---- control channel ----

    def handle_message(self, type: str, data: Any = None) -> None:
        if type == "SKIP_WAITING":
            self.skip_waiting_requested = True
        elif type == "CACHE_PRODUCT":
            self.caches.open(API_CACHE_NAME).put("/api/products", json_response(data))
            logger.debug("Product data cached")
        elif type == "CLEAR_CACHE":
            for name in self.caches.keys():
                self.caches.delete(name)
            logger.info("Application cache cleared")
        else:
            logger.warning(f"Unknown service worker message type: {type}")


class PushSubscriptions:
    """Push subscription descriptor persisted under ``pwa-push-subscription``."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def subscribe(self, endpoint: str, p256dh: str, auth: str) -> Dict[str, Any]:
        data = {"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}}
        self.store.set_item(PUSH_SUBSCRIPTION_KEY, json.dumps(data))
        return data

    def get(self) -> Optional[Dict[str, Any]]:
        raw = self.store.get_item(PUSH_SUBSCRIPTION_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def unsubscribe(self) -> bool:
        if self.store.get_item(PUSH_SUBSCRIPTION_KEY) is None:
            return False
        self.store.remove_item(PUSH_SUBSCRIPTION_KEY)
        return True


class ResourceCache:
    """Offline copies of catalog resources kept in the mock store for 24 hours."""

    def __init__(self, db: MockDatabase, tenant_id: str = "1", worker: Optional[ServiceWorker] = None) -> None:
        self.db = db
        self.tenant_id = tenant_id
        self.worker = worker

    def cache_data(self, resource_type: str, resource_id: str, data: Any) -> None:
        self.db.cache_resource(
            tenant_id=self.tenant_id,
            resource_type=resource_type,
            resource_id=resource_id,
            data=data,
            expires_at=to_iso(self.db.now() + RESOURCE_TTL),
        )
        if self.worker is not None:
            self.worker.handle_message("CACHE_PRODUCT", data)

    def get_cached_data(self, resource_type: str, resource_id: str) -> Any:
        record = self.db.get_cached_resource(resource_type, resource_id)
        return record.data if record is not None else None

    def clear_expired(self) -> int:
        return self.db.clear_expired_cache()

    def clear_all(self) -> int:
        if self.worker is not None:
            self.worker.handle_message("CLEAR_CACHE")
        return self.db.clear_expired_cache()
