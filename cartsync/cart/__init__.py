"""Cart package: models, state store, persistence and synchronizer."""
from .models import CartState, CheckoutPayload, LineItem
from .service import CheckoutSynchronizer, InitState
from .sessions import SessionRegistry
from .state import CartStore
from .storage import MemoryPersistence, NullPersistence, RedisPersistence

__all__ = [
    "CartState",
    "CheckoutPayload",
    "LineItem",
    "CartStore",
    "CheckoutSynchronizer",
    "InitState",
    "MemoryPersistence",
    "NullPersistence",
    "RedisPersistence",
    "SessionRegistry",
]
