"""
Order status lifecycle.

    pending -> confirmed -> processing -> shipped -> delivered
       \\          \\            \\            \\          \\
        +----------+------------+-> cancelled  +-> returned

Customers may cancel while an order is pending or confirmed, proving
ownership with the email or phone on the order. Admins move orders through
``ALLOWED_TRANSITIONS``; ``force=True`` is the explicit override that skips
the table.
"""

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pymongo.database import Database

from database import utcnow

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


INITIAL_STATUS = OrderStatus.PENDING

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


class InvalidTransition(Exception):
    def __init__(self, current: OrderStatus, target: OrderStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current.value} to {target.value}")


class OwnershipError(Exception):
    pass


class StaleOrder(Exception):
    """The order changed status between read and write."""


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[OrderStatus(current)]


def plan_transition(current: OrderStatus, target: OrderStatus, force: bool = False) -> OrderStatus:
    current, target = OrderStatus(current), OrderStatus(target)
    if current == target:
        raise InvalidTransition(current, target)
    if not force and not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target


def verify_ownership(order: Dict[str, Any], email: Optional[str] = None, phone: Optional[str] = None) -> None:
    email = (email or "").strip().lower()
    phone = (phone or "").strip()
    if not email and not phone:
        raise ValueError("Email or phone is required to cancel order")
    customer = order.get("customer") or {}
    if email and customer.get("email", "").lower() == email:
        return
    if phone and customer.get("phone") == phone:
        return
    raise OwnershipError("You are not authorized to cancel this order")


def _history_entry(current: str, target: str, forced: bool = False, note: Optional[str] = None) -> Dict[str, Any]:
    return {"from": current, "to": target, "at": utcnow(), "forced": forced, "note": note}


def _write_status(database: Database, order: Dict[str, Any], changes: Dict[str, Any], entry: Dict[str, Any]) -> Dict[str, Any]:
    # Conditional on the status we read, so a concurrent change wins cleanly.
    changes["updated_at"] = utcnow()
    result = database["order"].update_one(
        {"_id": order["_id"], "status": order["status"]},
        {"$set": changes, "$push": {"status_history": entry}},
    )
    if result.matched_count == 0:
        raise StaleOrder(f"Order {order.get('order_number')} changed while updating")
    return database["order"].find_one({"_id": order["_id"]})


def cancel_order(
    database: Database,
    order: Dict[str, Any],
    email: Optional[str] = None,
    phone: Optional[str] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    verify_ownership(order, email, phone)
    current = OrderStatus(order["status"])
    if current not in CUSTOMER_CANCELLABLE:
        raise InvalidTransition(current, OrderStatus.CANCELLED)

    changes: Dict[str, Any] = {
        "status": OrderStatus.CANCELLED.value,
        "admin_notes": f"Cancelled by customer: {reason}" if reason else "Order cancelled by customer",
    }
    if (order.get("payment") or {}).get("status") == "paid":
        # Refund execution happens outside this service.
        changes["payment.status"] = "refunded"

    updated = _write_status(database, order, changes, _history_entry(current.value, "cancelled", note=reason))
    logger.info("Order %s cancelled by customer", order.get("order_number"))
    return updated


def apply_admin_status(
    database: Database,
    order: Dict[str, Any],
    target: str,
    force: bool = False,
    note: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Move ``order`` to ``target``; ``extra`` fields are written in the same update."""
    current = OrderStatus(order["status"])
    new_status = plan_transition(current, OrderStatus(target), force=force)
    if force and not can_transition(current, new_status):
        logger.warning("Forcing order %s from %s to %s", order.get("order_number"), current.value, new_status.value)
    updated = _write_status(
        database,
        order,
        {**(extra or {}), "status": new_status.value},
        _history_entry(current.value, new_status.value, forced=force, note=note),
    )
    logger.info("Order %s moved %s -> %s", order.get("order_number"), current.value, new_status.value)
    return updated
