"""Request models for the cart router."""
from pydantic import BaseModel


class AddLineItemRequest(BaseModel):
    variant_id: str
    quantity: int = 1


class UpdateLineItemRequest(BaseModel):
    variant_id: str
    quantity_change: int  # signed delta, not the new quantity


class FetchCheckoutRequest(BaseModel):
    checkout_id: str
