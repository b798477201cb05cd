"""Catalog lookup used when pricing cart lines.

Lookups return `None` for an unknown item and line pricing returns either a
`PricedLine` or a `LineRejection`, so the caller decides how each failure kind
maps onto the error taxonomy.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from foodpay.services.catalog.models import MenuItem


CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CatalogItem:
    item_id: str
    name: str
    price: Decimal
    available: bool


class Catalog(Protocol):
    def get_item(self, item_id: str) -> CatalogItem | None: ...


class SqlCatalog:
    """Reads menu items from the shared database."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def get_item(self, item_id: str) -> CatalogItem | None:
        with self.session_factory() as db:
            row = db.get(MenuItem, item_id)
            if row is None:
                return None
            return CatalogItem(
                item_id=row.item_id,
                name=row.name,
                price=Decimal(row.price),
                available=bool(row.available),
            )


@dataclass(frozen=True)
class PricedLine:
    item_id: str
    name: str
    quantity: int
    price_at_time: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class LineRejection:
    """Why a cart line cannot be ordered; `kind` is not_found, unavailable or bad_quantity."""

    item_id: str
    kind: str
    reason: str


def price_line(catalog: Catalog, item_id: str, quantity: int) -> PricedLine | LineRejection:
    """Snapshot the current price of one cart line."""

    if quantity <= 0:
        return LineRejection(item_id, "bad_quantity", "Quantity must be greater than 0")
    item = catalog.get_item(item_id)
    if item is None:
        return LineRejection(item_id, "not_found", f"Menu item {item_id} not found")
    if not item.available:
        return LineRejection(item_id, "unavailable", f"Menu item {item.name} is not available")
    price = item.price.quantize(CENTS)
    return PricedLine(
        item_id=item.item_id,
        name=item.name,
        quantity=quantity,
        price_at_time=price,
        subtotal=(price * quantity).quantize(CENTS),
    )
