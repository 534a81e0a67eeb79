"""Cart models: remote checkout payloads and the local cart snapshot."""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator


class LineItem(BaseModel):
    """One product variant in the checkout, as confirmed by the remote."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    variant_id: str
    quantity: int
    title: str = ""

    @classmethod
    def from_storefront(cls, node: dict) -> "LineItem":
        """Build from a Storefront ``CheckoutLineItem`` node."""
        variant = node.get("variant") or {}
        return cls(
            id=node.get("id") or "",
            variant_id=variant.get("id") or "",
            quantity=int(node.get("quantity") or 0),
            title=node.get("title") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "title": self.title,
        }


class CheckoutPayload(BaseModel):
    """
    Normalized success payload of a remote checkout call.

    Prices stay decimal strings exactly as the remote formats them.
    ``line_items`` is None when the response carried no line item
    collection at all, which is different from an empty checkout.
    """

    id: str = ""
    web_url: str = ""
    subtotal_price: str = ""
    total_tax: str = ""
    total_price: str = ""
    line_items: Optional[List[LineItem]] = None

    @field_validator("subtotal_price", "total_tax", "total_price", mode="before")
    @classmethod
    def normalize_amount(cls, v: Any) -> str:
        """Accept both scalar prices and MoneyV2 ``{amount, currencyCode}`` objects."""
        if v is None:
            return ""
        if isinstance(v, dict):
            v = v.get("amount")
            if v is None:
                return ""
        return str(v)

    @property
    def has_complete_prices(self) -> bool:
        """True when all three totals are present and non-empty."""
        return bool(self.subtotal_price and self.total_tax and self.total_price)

    @classmethod
    def from_storefront(cls, checkout: dict) -> "CheckoutPayload":
        """Build from a Storefront ``Checkout`` object."""
        line_items = None
        connection = checkout.get("lineItems")
        if isinstance(connection, dict):
            line_items = [
                LineItem.from_storefront(edge.get("node") or {})
                for edge in connection.get("edges") or []
            ]
        return cls(
            id=checkout.get("id") or "",
            web_url=checkout.get("webUrl") or "",
            subtotal_price=checkout.get("subtotalPrice"),
            total_tax=checkout.get("totalTax"),
            total_price=checkout.get("totalPrice"),
            line_items=line_items,
        )


@dataclass(frozen=True)
class CartState:
    """Immutable snapshot of the cart: visibility, identity, totals and line items."""

    visibility: bool = False
    id: str = ""
    web_url: str = ""
    subtotal_price: str = ""
    total_tax: str = ""
    total_price: str = ""
    items: Tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def item_count(self) -> int:
        """Total quantity across all line items."""
        return sum(item.quantity for item in self.items)

    def find_line_item(self, line_item_id: str) -> Optional[LineItem]:
        """Return the confirmed line item with this id, if any."""
        if not line_item_id:
            return None
        return next((item for item in self.items if item.id == line_item_id), None)

    def to_dict(self) -> dict:
        """Read projection used by the HTTP surface."""
        return {
            "visibility": self.visibility,
            "items": [item.to_dict() for item in self.items],
            "item_count": self.item_count,
            "subtotal_price": self.subtotal_price,
            "total_tax": self.total_tax,
            "total_price": self.total_price,
            "web_url": self.web_url,
        }
