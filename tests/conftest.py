"""Pytest configuration and fixtures"""
import asyncio
import os
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from cartsync.cart import CheckoutPayload, CheckoutSynchronizer, LineItem, MemoryPersistence
from cartsync.config import CHECKOUT_ID_KEY
from cartsync.errors import RemoteCallFailed

# Set test environment variables
os.environ.setdefault("SHOPIFY_STORE_DOMAIN", "test-shop.myshopify.com")
os.environ.setdefault("SHOPIFY_STOREFRONT_TOKEN", "test_storefront_token")


class FakeCheckoutClient:
    """
    In-memory checkout service.

    Responses are queued per operation; an exception instance in the queue
    is raised instead of returned. ``gates`` lets a test hold a call open
    until it sets the event.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.responses: Dict[str, List] = {}
        self.gates: Dict[str, List[asyncio.Event]] = {}

    def queue(self, operation: str, response) -> None:
        self.responses.setdefault(operation, []).append(response)

    def gate(self, operation: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates.setdefault(operation, []).append(event)
        return event

    async def _respond(self, operation: str, *args) -> CheckoutPayload:
        self.calls.append((operation, *args))
        pending = self.responses.get(operation) or []
        if not pending:
            raise AssertionError(f"No response queued for {operation}")
        response = pending.pop(0)
        gates = self.gates.get(operation) or []
        if gates:
            await gates.pop(0).wait()
        if isinstance(response, Exception):
            raise response
        return response

    async def create_checkout(self) -> CheckoutPayload:
        return await self._respond("create_checkout")

    async def fetch_existing_cart(self, checkout_id: str) -> CheckoutPayload:
        return await self._respond("fetch_existing_cart", checkout_id)

    async def add_variant_to_cart(self, checkout_id: str, variant_id: str, quantity: int) -> CheckoutPayload:
        return await self._respond("add_variant_to_cart", checkout_id, variant_id, quantity)

    async def remove_checkout_line_item(self, checkout_id: str, line_item_id: str) -> CheckoutPayload:
        return await self._respond("remove_checkout_line_item", checkout_id, line_item_id)

    async def update_checkout_line_item(self, checkout_id: str, line_item: dict) -> CheckoutPayload:
        return await self._respond("update_checkout_line_item", checkout_id, line_item)


def make_payload(
    checkout_id: str = "",
    web_url: str = "",
    subtotal: Optional[str] = "10.00",
    tax: Optional[str] = "1.00",
    total: Optional[str] = "11.00",
    line_items: Optional[List[LineItem]] = None,
) -> CheckoutPayload:
    """Build a normalized remote response."""
    return CheckoutPayload(
        id=checkout_id,
        web_url=web_url,
        subtotal_price=subtotal,
        total_tax=tax,
        total_price=total,
        line_items=line_items,
    )


def remote_failure(message: str = "Checkout service unavailable") -> RemoteCallFailed:
    return RemoteCallFailed(message, code="NETWORK", retryable=True)


@pytest.fixture
def fake_client():
    return FakeCheckoutClient()


@pytest.fixture
def memory_storage():
    return MemoryPersistence()


@pytest.fixture
def sync(fake_client, memory_storage):
    """Synchronizer with no checkout yet"""
    return CheckoutSynchronizer(fake_client, memory_storage)


@pytest_asyncio.fixture
async def ready_sync(sync, fake_client, memory_storage):
    """Synchronizer resumed onto checkout c1 holding one line item (v1 x2)"""
    memory_storage.data[CHECKOUT_ID_KEY] = "c1"
    fake_client.queue(
        "fetch_existing_cart",
        make_payload(
            checkout_id="c1",
            web_url="https://x/c1",
            line_items=[LineItem(id="li1", variant_id="v1", quantity=2)],
        ),
    )
    await sync.initialize()
    fake_client.calls.clear()
    return sync
