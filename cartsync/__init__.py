"""
cartsync - storefront checkout synchronization

This package contains:
- cart: cart state, persistence adapters and the checkout synchronizer
- services: Storefront GraphQL checkout client
- routers: FastAPI cart endpoints
- db: Upstash Redis client

Note: Imports are lazy to keep serverless cold starts cheap.
"""

__all__ = [
    "CheckoutSynchronizer",
    "StorefrontClient",
    "get_redis",
]


def __getattr__(name):
    """Lazy attribute access for clean serverless loading."""
    if name == "CheckoutSynchronizer":
        from cartsync.cart import CheckoutSynchronizer
        return CheckoutSynchronizer
    elif name == "StorefrontClient":
        from cartsync.services import StorefrontClient
        return StorefrontClient
    elif name == "get_redis":
        from cartsync.db import get_redis
        return get_redis
    raise AttributeError(f"module 'cartsync' has no attribute '{name}'")
