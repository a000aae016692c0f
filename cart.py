"""
Shopping cart.

The cart is an immutable tuple of ``CartLine`` values and every operation
returns a new tuple. The guest-cart endpoints persist the result per
session id.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, NamedTuple, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from pymongo.database import Database

from database import get_db, serialize_doc, utcnow
from pricing import to_money
from schemas import Cart, CartItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])


class CartLine(NamedTuple):
    product_id: str
    title: str
    price: Decimal
    quantity: int
    sku: str
    size: str = ""
    style: str = ""
    image: str = ""

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.product_id, self.size, self.style)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLine":
        return cls(
            product_id=str(data["product_id"]),
            title=data["title"],
            price=to_money(data["price"]),
            quantity=int(data.get("quantity", 1)),
            sku=data.get("sku", ""),
            size=data.get("size") or "",
            style=data.get("style") or "",
            image=data.get("image") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        d = self._asdict()
        d["price"] = float(self.price)
        return d


Lines = Tuple[CartLine, ...]


def add_item(lines: Lines, line: CartLine) -> Lines:
    """Add a line, merging quantities when product, size and style match."""
    if line.quantity < 1:
        raise ValueError("quantity must be at least 1")
    for i, existing in enumerate(lines):
        if existing.key == line.key:
            merged = existing._replace(quantity=existing.quantity + line.quantity)
            return lines[:i] + (merged,) + lines[i + 1:]
    return lines + (line,)


def remove_item(lines: Lines, product_id: str, size: str = "", style: str = "") -> Lines:
    key = (product_id, size, style)
    return tuple(line for line in lines if line.key != key)


def update_quantity(lines: Lines, product_id: str, quantity: int, size: str = "", style: str = "") -> Lines:
    if quantity <= 0:
        return remove_item(lines, product_id, size, style)
    key = (product_id, size, style)
    return tuple(line._replace(quantity=quantity) if line.key == key else line for line in lines)


def clear(lines: Lines) -> Lines:
    return ()


def cart_total(lines: Lines) -> Decimal:
    return sum((line.price * line.quantity for line in lines), Decimal("0.00"))


def item_count(lines: Lines) -> int:
    return sum(line.quantity for line in lines)


def lines_from_doc(doc: Optional[Dict[str, Any]]) -> Lines:
    if not doc:
        return ()
    return tuple(CartLine.from_dict(i) for i in doc.get("items", []))


# ---------------- Guest cart endpoints ----------------
class AddToCart(BaseModel):
    session_id: str
    item: CartItem


class UpdateCartLine(BaseModel):
    session_id: str
    product_id: str
    quantity: int
    size: str = ""
    style: str = ""


def _save(database: Database, session_id: str, lines: Lines) -> Dict[str, Any]:
    cart = Cart(session_id=session_id, items=[line.to_dict() for line in lines], total=float(cart_total(lines)))
    now = utcnow()
    database["cart"].update_one(
        {"session_id": session_id},
        {
            "$set": {**cart.model_dump(exclude={"session_id"}), "updated_at": now},
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
    )
    return serialize_doc(database["cart"].find_one({"session_id": session_id}))


@router.get("")
def get_cart(session_id: str = Query(..., alias="sessionId"), database: Database = Depends(get_db)):
    doc = database["cart"].find_one({"session_id": session_id})
    if not doc:
        return {"session_id": session_id, "items": [], "total": 0.0, "count": 0}
    cart = serialize_doc(doc)
    cart["count"] = item_count(lines_from_doc(doc))
    return cart


@router.post("")
def add_to_cart(payload: AddToCart, database: Database = Depends(get_db)):
    doc = database["cart"].find_one({"session_id": payload.session_id})
    lines = add_item(lines_from_doc(doc), CartLine.from_dict(payload.item.model_dump()))
    return _save(database, payload.session_id, lines)


@router.put("")
def update_cart_line(payload: UpdateCartLine, database: Database = Depends(get_db)):
    doc = database["cart"].find_one({"session_id": payload.session_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Cart not found")
    lines = update_quantity(lines_from_doc(doc), payload.product_id, payload.quantity, payload.size, payload.style)
    return _save(database, payload.session_id, lines)


@router.delete("")
def clear_cart(session_id: str = Query(..., alias="sessionId"), database: Database = Depends(get_db)):
    database["cart"].delete_one({"session_id": session_id})
    logger.info("Cleared cart for session %s", session_id)
    return {"message": "Cart cleared successfully"}
