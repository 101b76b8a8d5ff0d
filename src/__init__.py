"""Top-level package for the Buena storefront.

The modules are imported flat (``from app import RetailApp``).  The facade
lives in :mod:`app`, the in-memory data layer in :mod:`mock_db`, the
bounded TTL cache in :mod:`performance` and the service-worker fetch
router in :mod:`offline`.
"""
