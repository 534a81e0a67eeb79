"""
Shared Dependencies for Routers

Lazy-loaded singletons; the Storefront client and Redis are only touched
when the first cart request arrives.
"""

from typing import Optional, TYPE_CHECKING

from fastapi import Header, HTTPException

from cartsync.errors import ERROR_SESSION_REQUIRED

if TYPE_CHECKING:
    from cartsync.cart import CheckoutSynchronizer, SessionRegistry


_session_registry: Optional["SessionRegistry"] = None


def get_session_registry() -> "SessionRegistry":
    """Get or create the SessionRegistry singleton (lazy loaded)"""
    global _session_registry
    if _session_registry is None:
        from cartsync.cart import SessionRegistry
        from cartsync.services import StorefrontClient
        _session_registry = SessionRegistry(StorefrontClient())
    return _session_registry


async def close_session_registry() -> None:
    """Release the shared HTTP client on shutdown."""
    global _session_registry
    if _session_registry is not None:
        client = _session_registry.client
        if hasattr(client, "aclose"):
            await client.aclose()
        _session_registry = None


async def get_synchronizer(
    x_cart_session: Optional[str] = Header(default=None),
) -> "CheckoutSynchronizer":
    """Resolve the caller's cart from the X-Cart-Session header."""
    if not x_cart_session or not x_cart_session.strip():
        raise HTTPException(status_code=400, detail=ERROR_SESSION_REQUIRED)
    return await get_session_registry().get(x_cart_session.strip())
