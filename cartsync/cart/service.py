"""Checkout synchronizer: keeps the local cart in step with the remote checkout."""
import asyncio
from enum import Enum
from typing import Awaitable, Optional, Protocol, Set, Tuple

from cartsync.config import CHECKOUT_ID_KEY
from cartsync.errors import ERROR_INVALID_QUANTITY, RemoteCallFailed
from cartsync.logging import get_logger, sanitize_id_for_logging
from .models import CartState, CheckoutPayload, LineItem
from .state import CartStore
from .storage import NullPersistence, PersistenceAdapter

logger = get_logger(__name__)


class CheckoutClient(Protocol):
    """Remote checkout operations consumed by the synchronizer."""

    async def create_checkout(self) -> CheckoutPayload: ...

    async def fetch_existing_cart(self, checkout_id: str) -> CheckoutPayload: ...

    async def add_variant_to_cart(self, checkout_id: str, variant_id: str, quantity: int) -> CheckoutPayload: ...

    async def remove_checkout_line_item(self, checkout_id: str, line_item_id: str) -> CheckoutPayload: ...

    async def update_checkout_line_item(self, checkout_id: str, line_item: dict) -> CheckoutPayload: ...


class InitState(str, Enum):
    """Checkout identity resolution progress."""
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    FETCHED = "fetched"  # Resumed a remembered checkout
    CREATED = "created"  # Provisioned a fresh checkout
    FAILED = "failed"  # Remote call failed; initialize() may be called again


# Intents that may be scheduled with dispatch()
DISPATCHABLE_INTENTS = frozenset({
    "initialize",
    "create_new_checkout",
    "fetch_checkout",
    "add_line_item",
    "remove_line_item",
    "update_line_item_quantity",
})


class CheckoutSynchronizer:
    """
    Owns the cart state and reconciles it with the remote checkout service.

    Every mutation is one remote round trip followed by one atomic apply of
    the confirmed checkout; nothing is changed locally before the remote
    answers. Failures are logged and leave the cart untouched.

    Each remote request takes a sequence number. A response older than the
    last applied one is discarded, so overlapping intents cannot roll the
    cart back to an earlier remote snapshot.
    """

    def __init__(
        self,
        client: CheckoutClient,
        persistence: Optional[PersistenceAdapter] = None,
        store: Optional[CartStore] = None,
        checkout_id_key: str = CHECKOUT_ID_KEY,
    ):
        self.client = client
        self.persistence = persistence if persistence is not None else NullPersistence()
        self.store = store if store is not None else CartStore()
        self.checkout_id_key = checkout_id_key
        self.init_state = InitState.UNINITIALIZED

        self._issued_seq = 0
        self._applied_seq = 0
        self._tasks: Set[asyncio.Task] = set()

    # ==================== READ PROJECTIONS ====================

    @property
    def state(self) -> CartState:
        return self.store.state

    @property
    def visibility(self) -> bool:
        return self.store.state.visibility

    @property
    def items(self) -> Tuple[LineItem, ...]:
        return self.store.state.items

    @property
    def item_count(self) -> int:
        return self.store.state.item_count

    @property
    def subtotal_price(self) -> str:
        return self.store.state.subtotal_price

    @property
    def total_price(self) -> str:
        return self.store.state.total_price

    @property
    def total_tax(self) -> str:
        return self.store.state.total_tax

    @property
    def web_url(self) -> str:
        return self.store.state.web_url

    # ==================== INTENTS ====================

    def toggle_visibility(self) -> CartState:
        """Open or close the cart; purely local."""
        return self.store.toggle_visibility()

    async def initialize(self) -> InitState:
        """
        Resume the remembered checkout or provision a new one.

        A failed fetch does not fall back to creating a checkout: the
        remembered checkout may still exist and is kept for the next attempt.
        """
        self.init_state = InitState.RESOLVING

        checkout_id: Optional[str] = None
        if await self.persistence.is_available():
            checkout_id = await self.persistence.get(self.checkout_id_key)

        if not checkout_id:
            state = await self.create_new_checkout()
            self.init_state = InitState.CREATED if state is not None else InitState.FAILED
        else:
            state = await self.fetch_checkout(checkout_id)
            self.init_state = InitState.FETCHED if state is not None else InitState.FAILED

        logger.info(
            f"Checkout {sanitize_id_for_logging(self.state.id)} initialization: {self.init_state.value}"
        )
        return self.init_state

    async def create_new_checkout(self) -> Optional[CartState]:
        """Provision a new remote checkout and remember its id."""
        payload = await self._call("create_new_checkout", self.client.create_checkout())
        if payload is None:
            return None

        state = self.store.apply(payload, identity=True)

        if payload.id and await self.persistence.is_available():
            await self.persistence.set(self.checkout_id_key, payload.id)
        return state

    async def fetch_checkout(self, checkout_id: str) -> Optional[CartState]:
        """Load an existing remote checkout, replacing identity, totals and items."""
        if not checkout_id:
            logger.info("Ignoring fetch_checkout: empty checkout id")
            return None

        payload = await self._call("fetch_checkout", self.client.fetch_existing_cart(checkout_id))
        if payload is None:
            return None
        return self.store.apply(payload, identity=True)

    async def add_line_item(self, variant_id: str, quantity: int) -> Optional[CartState]:
        """Add ``quantity`` units of a variant to the checkout."""
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValueError(ERROR_INVALID_QUANTITY)

        checkout_id = self.state.id
        if not checkout_id:
            logger.info(f"Ignoring add_line_item for {sanitize_id_for_logging(variant_id)}: no checkout yet")
            return None

        payload = await self._call(
            "add_line_item",
            self.client.add_variant_to_cart(checkout_id, variant_id, quantity),
        )
        if payload is None:
            return None
        return self.store.apply(payload)

    async def remove_line_item(self, line_item_id: str) -> Optional[CartState]:
        """Remove a confirmed line item from the checkout."""
        if self.state.find_line_item(line_item_id) is None:
            logger.info(f"Ignoring remove_line_item: unknown line item {sanitize_id_for_logging(line_item_id)}")
            return None

        payload = await self._call(
            "remove_line_item",
            self.client.remove_checkout_line_item(self.state.id, line_item_id),
        )
        if payload is None:
            return None
        return self.store.apply(payload)

    async def update_line_item_quantity(
        self,
        line_item_id: str,
        variant_id: str,
        quantity_delta: int,
    ) -> Optional[CartState]:
        """
        Change a line item's quantity by ``quantity_delta``.

        The remote only accepts absolute quantities, so the delta is added to
        the last confirmed quantity. Results of zero or below are still sent;
        the remote decides what they mean.
        """
        line_item = self.state.find_line_item(line_item_id)
        if line_item is None:
            logger.info(
                f"Ignoring update_line_item_quantity: unknown line item {sanitize_id_for_logging(line_item_id)}"
            )
            return None

        new_quantity = line_item.quantity + quantity_delta
        payload = await self._call(
            "update_line_item_quantity",
            self.client.update_checkout_line_item(
                self.state.id,
                {"id": line_item_id, "variantId": variant_id, "quantity": new_quantity},
            ),
        )
        if payload is None:
            return None
        return self.store.apply(payload)

    # ==================== SCHEDULING ====================

    def dispatch(self, intent: str, *args) -> asyncio.Task:
        """
        Schedule an intent on the running loop and return immediately.

        Example:
            sync.dispatch("add_line_item", variant_id, 2)
        """
        if intent not in DISPATCHABLE_INTENTS:
            raise ValueError(f"Unknown cart intent: {intent}")

        task = asyncio.create_task(getattr(self, intent)(*args))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def wait_idle(self) -> None:
        """Wait until every dispatched intent has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Dispatched cart intent failed: {exc}", exc_info=exc)

    # ==================== INTERNALS ====================

    async def _call(self, intent: str, call: Awaitable[CheckoutPayload]) -> Optional[CheckoutPayload]:
        """
        Await one remote call and decide whether its result may be applied.

        Returns None when the call failed or a newer response was already
        applied. The caller must apply the payload without awaiting first.
        """
        self._issued_seq += 1
        seq = self._issued_seq

        try:
            payload = await call
        except RemoteCallFailed as e:
            logger.error(f"Checkout intent {intent} failed ({e.code or 'unknown'}): {e}")
            return None

        if seq < self._applied_seq:
            logger.warning(
                f"Discarding stale {intent} response #{seq}; #{self._applied_seq} already applied"
            )
            return None

        self._applied_seq = seq
        return payload
