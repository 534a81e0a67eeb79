"""
Checkout Errors

Centralized error messages and the exception raised by the Storefront
client when a remote checkout call fails.
"""

from typing import Any

# Remote errors
ERROR_REMOTE_UNAVAILABLE = "Checkout service unavailable"
ERROR_REMOTE_REJECTED = "Checkout service rejected the request"
ERROR_CHECKOUT_NOT_FOUND = "Checkout not found"
ERROR_EMPTY_RESPONSE = "Checkout service returned no checkout"

# Intent errors
ERROR_INVALID_QUANTITY = "quantity must be a positive integer"
ERROR_SESSION_REQUIRED = "X-Cart-Session header is required"

# Configuration errors
ERROR_STOREFRONT_NOT_CONFIGURED = "SHOPIFY_STORE_DOMAIN and SHOPIFY_STOREFRONT_TOKEN must be set"


class CheckoutError(Exception):
    """Error from the remote checkout service."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = False,
        raw_error: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.raw_error = raw_error


class RemoteCallFailed(CheckoutError):
    """The remote call did not produce a usable checkout."""


class CheckoutNotFound(RemoteCallFailed):
    """The checkout id no longer resolves to a checkout."""

    def __init__(self, message: str = ERROR_CHECKOUT_NOT_FOUND) -> None:
        super().__init__(message, code="CHECKOUT_NOT_FOUND", retryable=False)
