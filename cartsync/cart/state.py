"""
Cart state holder.

The store owns the only mutable reference to the cart. Every write builds a
new frozen ``CartState`` and swaps it in at once, so readers and subscribers
never observe a half-applied response.
"""
import dataclasses
from typing import Callable, List, Optional

from cartsync.logging import get_logger, sanitize_id_for_logging
from .models import CartState, CheckoutPayload

logger = get_logger(__name__)

CartListener = Callable[[CartState], None]


class CartStore:
    """Observable owner of the current ``CartState``."""

    def __init__(self, state: Optional[CartState] = None):
        self._state = state if state is not None else CartState()
        self._listeners: List[CartListener] = []

    @property
    def state(self) -> CartState:
        return self._state

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Register a listener called with every new snapshot.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def toggle_visibility(self) -> CartState:
        return self._replace(visibility=not self._state.visibility)

    def apply(self, payload: CheckoutPayload, identity: bool = False) -> CartState:
        """
        Apply a remote-confirmed checkout as the new ground truth.

        Prices are taken only as a complete triple. Line items replace the
        current items wholesale whenever the payload carries a collection.
        Identity is taken only when ``identity`` is set (create/fetch).
        """
        changes = {}

        if identity:
            if payload.id:
                changes["id"] = payload.id
            if payload.web_url:
                changes["web_url"] = payload.web_url

        if payload.has_complete_prices:
            changes["subtotal_price"] = payload.subtotal_price
            changes["total_tax"] = payload.total_tax
            changes["total_price"] = payload.total_price
        else:
            logger.warning(
                f"Incomplete totals in response for checkout "
                f"{sanitize_id_for_logging(payload.id or self._state.id)}, keeping previous prices"
            )

        if payload.line_items is not None:
            changes["items"] = tuple(payload.line_items)

        return self._replace(**changes)

    def _replace(self, **changes) -> CartState:
        if not changes:
            return self._state

        new_state = dataclasses.replace(self._state, **changes)
        if new_state == self._state:
            return self._state

        self._state = new_state
        self._notify(new_state)
        return new_state

    def _notify(self, state: CartState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"Cart listener failed: {e}", exc_info=True)
