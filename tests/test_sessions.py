"""Tests for the per-session synchronizer registry"""
import asyncio

import pytest

from cartsync.cart import InitState, MemoryPersistence, SessionRegistry
from cartsync.config import CHECKOUT_ID_KEY
from conftest import make_payload, remote_failure


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def storages():
    return {}


@pytest.fixture
def registry(fake_client, storages):
    def _storage(session_id):
        return storages.setdefault(session_id, MemoryPersistence())

    return SessionRegistry(fake_client, _storage, max_sessions=100, idle_ttl=60)


@pytest.mark.asyncio
async def test_concurrent_requests_wait_for_initialization(registry, fake_client):
    gate = fake_client.gate("create_checkout")
    fake_client.queue("create_checkout", make_payload(checkout_id="c1", web_url="https://x/c1"))

    first = asyncio.create_task(registry.get("s1"))
    await asyncio.sleep(0)
    second = asyncio.create_task(registry.get("s1"))
    await asyncio.sleep(0)
    assert not second.done()

    gate.set()
    first_sync, second_sync = await asyncio.gather(first, second)

    assert first_sync is second_sync
    assert second_sync.state.id == "c1"
    assert second_sync.init_state is InitState.CREATED
    assert fake_client.calls == [("create_checkout",)]


@pytest.mark.asyncio
async def test_slow_session_does_not_block_others(registry, fake_client):
    gate = fake_client.gate("create_checkout")
    fake_client.queue("create_checkout", make_payload(checkout_id="ca", web_url="https://x/ca"))
    fake_client.queue("create_checkout", make_payload(checkout_id="cb", web_url="https://x/cb"))

    slow = asyncio.create_task(registry.get("a"))
    await asyncio.sleep(0)

    other = await asyncio.wait_for(registry.get("b"), timeout=1)
    assert other.state.id == "cb"
    assert not slow.done()

    gate.set()
    assert (await slow).state.id == "ca"


@pytest.mark.asyncio
async def test_failed_initialization_retried_on_next_request(registry, fake_client):
    fake_client.queue("create_checkout", remote_failure())
    fake_client.queue("create_checkout", make_payload(checkout_id="c1", web_url="https://x/c1"))

    first = await registry.get("s1")
    assert first.init_state is InitState.FAILED

    second = await registry.get("s1")
    assert second is first
    assert second.init_state is InitState.CREATED


@pytest.mark.asyncio
async def test_least_recently_used_session_is_evicted(fake_client, storages):
    def _storage(session_id):
        return storages.setdefault(session_id, MemoryPersistence())

    registry = SessionRegistry(fake_client, _storage, max_sessions=2, idle_ttl=3600)
    for checkout_id in ("c1", "c2", "c3"):
        fake_client.queue("create_checkout", make_payload(checkout_id=checkout_id, web_url=f"https://x/{checkout_id}"))

    s1 = await registry.get("s1")
    s2 = await registry.get("s2")
    assert await registry.get("s1") is s1
    await registry.get("s3")

    # s2 was least recently used; s1 is still held
    assert await registry.get("s1") is s1
    fake_client.queue("fetch_existing_cart", make_payload(checkout_id="c2", web_url="https://x/c2", line_items=[]))
    resumed = await registry.get("s2")

    assert resumed is not s2
    assert resumed.state.id == "c2"
    assert resumed.init_state is InitState.FETCHED
    assert fake_client.calls[-1] == ("fetch_existing_cart", "c2")


@pytest.mark.asyncio
async def test_idle_session_is_evicted_and_resumed(fake_client, storages):
    clock = _Clock()

    def _storage(session_id):
        return storages.setdefault(session_id, MemoryPersistence())

    registry = SessionRegistry(fake_client, _storage, max_sessions=100, idle_ttl=60, clock=clock)
    fake_client.queue("create_checkout", make_payload(checkout_id="c1", web_url="https://x/c1"))
    first = await registry.get("s1")
    assert storages["s1"].data[CHECKOUT_ID_KEY] == "c1"

    clock.now = 30
    assert await registry.get("s1") is first

    clock.now = 120
    fake_client.queue("fetch_existing_cart", make_payload(checkout_id="c1", web_url="https://x/c1", line_items=[]))
    resumed = await registry.get("s1")

    assert resumed is not first
    assert resumed.init_state is InitState.FETCHED
    assert [call[0] for call in fake_client.calls] == ["create_checkout", "fetch_existing_cart"]


@pytest.mark.asyncio
async def test_initializing_session_is_not_evicted(fake_client, storages):
    def _storage(session_id):
        return storages.setdefault(session_id, MemoryPersistence())

    registry = SessionRegistry(fake_client, _storage, max_sessions=1, idle_ttl=3600)
    gate = fake_client.gate("create_checkout")
    fake_client.queue("create_checkout", make_payload(checkout_id="c1", web_url="https://x/c1"))
    fake_client.queue("create_checkout", make_payload(checkout_id="c2", web_url="https://x/c2"))

    pending = asyncio.create_task(registry.get("s1"))
    await asyncio.sleep(0)
    await registry.get("s2")
    gate.set()
    s1 = await pending

    assert await registry.get("s1") is s1
    assert [call[0] for call in fake_client.calls] == ["create_checkout", "create_checkout"]


def test_limits_from_environment(monkeypatch, fake_client):
    monkeypatch.setenv("CART_SESSION_MAX_ENTRIES", "5")
    monkeypatch.setenv("CART_SESSION_IDLE_TTL", "90")

    registry = SessionRegistry(fake_client, lambda session_id: MemoryPersistence())

    assert registry.max_sessions == 5
    assert registry.idle_ttl == 90.0
