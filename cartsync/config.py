"""
Configuration constants.

Values that depend on the deployment are read from the environment by the
component that needs them; this module only names the variables and holds
the defaults.
"""

# Storefront API
ENV_STORE_DOMAIN = "SHOPIFY_STORE_DOMAIN"
ENV_STOREFRONT_TOKEN = "SHOPIFY_STOREFRONT_TOKEN"
ENV_API_VERSION = "SHOPIFY_API_VERSION"
DEFAULT_API_VERSION = "2023-10"

# Line items requested per checkout; Storefront caps connections at 250.
# Larger checkouts are truncated to this many items (logged as a warning).
LINE_ITEMS_PAGE_SIZE = 250

# Persistence
CHECKOUT_ID_KEY = "shopify_checkout_id"
ENV_CHECKOUT_ID_TTL = "CHECKOUT_ID_TTL"
DEFAULT_CHECKOUT_ID_TTL = 60 * 60 * 24 * 30  # 30 days

# Session registry
ENV_SESSION_MAX_ENTRIES = "CART_SESSION_MAX_ENTRIES"
DEFAULT_SESSION_MAX_ENTRIES = 10_000
ENV_SESSION_IDLE_TTL = "CART_SESSION_IDLE_TTL"
DEFAULT_SESSION_IDLE_TTL = 60 * 60  # 1 hour
