"""Remote service clients."""
from .storefront import StorefrontClient

__all__ = ["StorefrontClient"]
