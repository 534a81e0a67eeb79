"""
Cart Router

HTTP surface over one session's checkout synchronizer.

Response format:
- cart: read projections (items, item_count, totals, web_url, visibility)
- synced: whether the intent reached the remote and was applied
- init_state: checkout identity resolution progress
"""
from fastapi import APIRouter, Depends, HTTPException

from cartsync.cart import CheckoutSynchronizer
from cartsync.logging import get_logger
from .deps import get_synchronizer
from .models import AddLineItemRequest, FetchCheckoutRequest, UpdateLineItemRequest

logger = get_logger(__name__)

router = APIRouter(tags=["cart"])


def _cart_response(sync: CheckoutSynchronizer, synced: bool = True) -> dict:
    """Build the cart response from the synchronizer's current state."""
    return {
        "cart": sync.state.to_dict(),
        "synced": synced,
        "init_state": sync.init_state.value,
    }


@router.get("/cart")
async def get_cart(sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Get the session's cart."""
    return _cart_response(sync)


@router.post("/cart/visibility/toggle")
async def toggle_cart_visibility(sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Open or close the cart."""
    sync.toggle_visibility()
    return _cart_response(sync)


@router.post("/cart/items")
async def add_line_item(request: AddLineItemRequest, sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Add a variant to the checkout."""
    try:
        result = await sync.add_line_item(request.variant_id, request.quantity)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.error(f"Failed to add line item: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to add item to cart")
    return _cart_response(sync, synced=result is not None)


@router.patch("/cart/items/{line_item_id:path}")
async def update_line_item(
    line_item_id: str,
    request: UpdateLineItemRequest,
    sync: CheckoutSynchronizer = Depends(get_synchronizer),
):
    """Change a line item's quantity by a signed delta."""
    try:
        result = await sync.update_line_item_quantity(line_item_id, request.variant_id, request.quantity_change)
    except Exception as e:
        logger.error(f"Failed to update line item: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update cart item")
    return _cart_response(sync, synced=result is not None)


@router.delete("/cart/items/{line_item_id:path}")
async def remove_line_item(line_item_id: str, sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Remove a line item from the checkout."""
    try:
        result = await sync.remove_line_item(line_item_id)
    except Exception as e:
        logger.error(f"Failed to remove line item: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to remove cart item")
    return _cart_response(sync, synced=result is not None)


@router.post("/cart/checkout")
async def create_checkout(sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Start over with a new, empty checkout."""
    try:
        result = await sync.create_new_checkout()
    except Exception as e:
        logger.error(f"Failed to create checkout: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create checkout")
    return _cart_response(sync, synced=result is not None)


@router.post("/cart/checkout/fetch")
async def fetch_checkout(request: FetchCheckoutRequest, sync: CheckoutSynchronizer = Depends(get_synchronizer)):
    """Load an existing checkout by id."""
    try:
        result = await sync.fetch_checkout(request.checkout_id)
    except Exception as e:
        logger.error(f"Failed to fetch checkout: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch checkout")
    return _cart_response(sync, synced=result is not None)
