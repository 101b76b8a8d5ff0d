"""
Key-value persistence for session state.

The storefront keeps a handful of JSON snapshots between sessions (the
signed-in user, the cart, the performance cache, the push subscription).
``MemoryStore`` holds them for the lifetime of the process; ``SQLiteStore``
writes them to a single-table SQLite file so a fresh process can rehydrate.

Both are best effort: write failures are logged and reported as False,
never raised.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Storage keys
AUTH_TOKEN_KEY = "buena_auth_token"
CURRENT_USER_KEY = "buena_current_user"
CART_KEY = "buena_cart"
PERFORMANCE_CACHE_KEY = "buena_performance_cache"
PUSH_SUBSCRIPTION_KEY = "pwa-push-subscription"


class KeyValueStore:
    """Abstract string-to-string store."""

    def get_item(self, key: str) -> Optional[str]:  # pragma: no cover
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    def remove_item(self, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def keys(self) -> List[str]:  # pragma: no cover
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> bool:
        self._items[key] = str(value)
        return True

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)


class SQLiteStore(KeyValueStore):
    """Key-value store in a SQLite file (``KeyValue`` table)."""

    def __init__(self, path: str) -> None:
        self.path = path
        _ensure_parent_dir(path)
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False, timeout=10.0)
        try:
            conn.execute("PRAGMA busy_timeout = 10000;")
            conn.execute("PRAGMA journal_mode = WAL;")
        except sqlite3.OperationalError:
            # e.g. filesystems without WAL support; the store still works
            pass
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS KeyValue (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
        return conn

    def get_item(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute("SELECT value FROM KeyValue WHERE key = ?;", (key,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Storage read failed for {key}: {e}")
            return None
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> bool:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO KeyValue (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value;",
                    (key, str(value)),
                )
            return True
        except sqlite3.Error as e:
            logger.error(f"Storage write failed for {key}: {e}")
            return False

    def remove_item(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM KeyValue WHERE key = ?;", (key,))
        except sqlite3.Error as e:
            logger.error(f"Storage delete failed for {key}: {e}")

    def keys(self) -> List[str]:
        try:
            return [r[0] for r in self._conn.execute("SELECT key FROM KeyValue ORDER BY key;")]
        except sqlite3.Error as e:
            logger.error(f"Storage key listing failed: {e}")
            return []

    def close(self) -> None:
        self._conn.close()


def open_store(path: Optional[str]) -> KeyValueStore:
    """Return a SQLite-backed store for ``path``, or a memory store when None."""
    if not path:
        return MemoryStore()
    try:
        return SQLiteStore(path)
    except sqlite3.OperationalError as e:
        logger.error(f"Cannot open storage at {path} ({e}); falling back to memory")
        return MemoryStore()
