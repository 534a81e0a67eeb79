"""Storefront Client - Shopify Storefront GraphQL checkout API.

Each operation is one async call: it returns the normalized checkout on
success and raises ``RemoteCallFailed`` on any failure.
"""

import os
from typing import Any, Optional

import httpx

from cartsync.cart.models import CheckoutPayload
from cartsync.config import (
    DEFAULT_API_VERSION,
    ENV_API_VERSION,
    ENV_STORE_DOMAIN,
    ENV_STOREFRONT_TOKEN,
    LINE_ITEMS_PAGE_SIZE,
)
from cartsync.errors import (
    ERROR_EMPTY_RESPONSE,
    ERROR_REMOTE_REJECTED,
    ERROR_REMOTE_UNAVAILABLE,
    ERROR_STOREFRONT_NOT_CONFIGURED,
    CheckoutNotFound,
    RemoteCallFailed,
)
from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


CHECKOUT_FIELDS = f"""
fragment CheckoutFields on Checkout {{
  id
  webUrl
  subtotalPrice {{ amount currencyCode }}
  totalTax {{ amount currencyCode }}
  totalPrice {{ amount currencyCode }}
  lineItems(first: {LINE_ITEMS_PAGE_SIZE}) {{
    pageInfo {{ hasNextPage }}
    edges {{
      node {{
        id
        title
        quantity
        variant {{ id }}
      }}
    }}
  }}
}}
"""

USER_ERRORS = "checkoutUserErrors { code field message }"

CREATE_CHECKOUT = CHECKOUT_FIELDS + f"""
mutation checkoutCreate($input: CheckoutCreateInput!) {{
  checkoutCreate(input: $input) {{
    checkout {{ ...CheckoutFields }}
    {USER_ERRORS}
  }}
}}
"""

FETCH_CHECKOUT = CHECKOUT_FIELDS + """
query fetchCheckout($checkoutId: ID!) {
  node(id: $checkoutId) {
    ... on Checkout { ...CheckoutFields }
  }
}
"""

ADD_LINE_ITEMS = CHECKOUT_FIELDS + f"""
mutation checkoutLineItemsAdd($checkoutId: ID!, $lineItems: [CheckoutLineItemInput!]!) {{
  checkoutLineItemsAdd(checkoutId: $checkoutId, lineItems: $lineItems) {{
    checkout {{ ...CheckoutFields }}
    {USER_ERRORS}
  }}
}}
"""

REMOVE_LINE_ITEMS = CHECKOUT_FIELDS + f"""
mutation checkoutLineItemsRemove($checkoutId: ID!, $lineItemIds: [ID!]!) {{
  checkoutLineItemsRemove(checkoutId: $checkoutId, lineItemIds: $lineItemIds) {{
    checkout {{ ...CheckoutFields }}
    {USER_ERRORS}
  }}
}}
"""

UPDATE_LINE_ITEMS = CHECKOUT_FIELDS + f"""
mutation checkoutLineItemsUpdate($checkoutId: ID!, $lineItems: [CheckoutLineItemUpdateInput!]!) {{
  checkoutLineItemsUpdate(checkoutId: $checkoutId, lineItems: $lineItems) {{
    checkout {{ ...CheckoutFields }}
    {USER_ERRORS}
  }}
}}
"""


def _to_payload(checkout: dict[str, Any]) -> CheckoutPayload:
    """Normalize a checkout, warning when its line items did not fit in one page."""
    page_info = (checkout.get("lineItems") or {}).get("pageInfo") or {}
    if page_info.get("hasNextPage"):
        logger.warning(
            f"Checkout {sanitize_id_for_logging(checkout.get('id'))} has more than "
            f"{LINE_ITEMS_PAGE_SIZE} line items; only the first {LINE_ITEMS_PAGE_SIZE} are mirrored"
        )
    return CheckoutPayload.from_storefront(checkout)


class StorefrontClient:
    """Checkout service client for the Shopify Storefront API"""

    def __init__(
        self,
        store_domain: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.store_domain = store_domain if store_domain is not None else os.environ.get(ENV_STORE_DOMAIN, "")
        self.access_token = access_token if access_token is not None else os.environ.get(ENV_STOREFRONT_TOKEN, "")
        self.api_version = api_version or os.environ.get(ENV_API_VERSION, DEFAULT_API_VERSION)

        # HTTP client (lazy init)
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=10.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _endpoint(self) -> str:
        if not self.store_domain or not self.access_token:
            raise ValueError(ERROR_STOREFRONT_NOT_CONFIGURED)
        domain = self.store_domain.removeprefix("https://").rstrip("/")
        return f"https://{domain}/api/{self.api_version}/graphql.json"

    async def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL document and return its ``data`` object."""
        url = self._endpoint()
        client = await self._get_http_client()
        headers = {
            "X-Shopify-Storefront-Access-Token": self.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            response = await client.post(
                url, json={"query": query, "variables": variables}, headers=headers
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Storefront HTTP error {status}: {e.response.text[:200]}")
            raise RemoteCallFailed(
                ERROR_REMOTE_UNAVAILABLE,
                code=f"HTTP_{status}",
                retryable=status >= 500 or status == 429,
                raw_error=e,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Storefront request failed: {e}")
            raise RemoteCallFailed(
                ERROR_REMOTE_UNAVAILABLE, code="NETWORK", retryable=True, raw_error=e
            ) from e
        except ValueError as e:
            raise RemoteCallFailed(ERROR_REMOTE_UNAVAILABLE, code="INVALID_JSON", raw_error=e) from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            message = errors[0].get("message", ERROR_REMOTE_REJECTED) if isinstance(errors[0], dict) else ERROR_REMOTE_REJECTED
            raise RemoteCallFailed(message, code="GRAPHQL_ERROR", raw_error=errors)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise RemoteCallFailed(ERROR_EMPTY_RESPONSE, code="EMPTY_RESPONSE", raw_error=body)
        return data

    @staticmethod
    def _checkout_from_mutation(data: dict[str, Any], root: str) -> CheckoutPayload:
        result = data.get(root) or {}
        user_errors = result.get("checkoutUserErrors") or []
        if user_errors:
            first = user_errors[0]
            raise RemoteCallFailed(
                first.get("message") or ERROR_REMOTE_REJECTED,
                code=first.get("code") or "USER_ERROR",
                raw_error=user_errors,
            )

        checkout = result.get("checkout")
        if not isinstance(checkout, dict):
            raise RemoteCallFailed(ERROR_EMPTY_RESPONSE, code="EMPTY_RESPONSE", raw_error=result)
        return _to_payload(checkout)

    # ==================== CHECKOUT OPERATIONS ====================

    async def create_checkout(self) -> CheckoutPayload:
        """Provision a new, empty checkout."""
        data = await self._execute(CREATE_CHECKOUT, {"input": {}})
        return self._checkout_from_mutation(data, "checkoutCreate")

    async def fetch_existing_cart(self, checkout_id: str) -> CheckoutPayload:
        """Fetch an existing checkout by id."""
        data = await self._execute(FETCH_CHECKOUT, {"checkoutId": checkout_id})
        node = data.get("node")
        if not isinstance(node, dict) or not node.get("id"):
            logger.warning(f"Checkout {sanitize_id_for_logging(checkout_id)} not found")
            raise CheckoutNotFound()
        return _to_payload(node)

    async def add_variant_to_cart(self, checkout_id: str, variant_id: str, quantity: int) -> CheckoutPayload:
        data = await self._execute(
            ADD_LINE_ITEMS,
            {
                "checkoutId": checkout_id,
                "lineItems": [{"variantId": variant_id, "quantity": quantity}],
            },
        )
        return self._checkout_from_mutation(data, "checkoutLineItemsAdd")

    async def remove_checkout_line_item(self, checkout_id: str, line_item_id: str) -> CheckoutPayload:
        data = await self._execute(
            REMOVE_LINE_ITEMS,
            {"checkoutId": checkout_id, "lineItemIds": [line_item_id]},
        )
        return self._checkout_from_mutation(data, "checkoutLineItemsRemove")

    async def update_checkout_line_item(self, checkout_id: str, line_item: dict[str, Any]) -> CheckoutPayload:
        """
        Set a line item to an absolute quantity.

        Args:
            checkout_id: Checkout to update
            line_item: ``{"id", "variantId", "quantity"}``; quantity is absolute
        """
        data = await self._execute(
            UPDATE_LINE_ITEMS,
            {"checkoutId": checkout_id, "lineItems": [line_item]},
        )
        return self._checkout_from_mutation(data, "checkoutLineItemsUpdate")
