import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from pydantic import BaseModel, Field
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import AdminSession, require_admin
from checkout import CheckoutValidationError, CheckoutWizard, validate_customer
from database import create_document, get_db, parse_object_id, serialize_doc, utcnow
from lifecycle import (
    INITIAL_STATUS,
    InvalidTransition,
    OrderStatus,
    OwnershipError,
    StaleOrder,
    apply_admin_status,
    cancel_order,
)
from order_numbers import next_order_number
from pricing import order_total, product_quote, to_money
from schemas import Customer, Order, OrderItem, Payment, Shipment
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])
checkout_router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


# ---------------- Request models ----------------
class OrderCreate(BaseModel):
    customer: Customer
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float = Field(..., ge=0)
    shipping_charges: float = Field(..., ge=0)
    tax_amount: float = Field(..., ge=0)
    discount_amount: float = Field(0, ge=0)
    total_amount: float = Field(..., gt=0)
    payment: Payment
    shipping_method: str = "Standard"
    customer_notes: Optional[str] = None


class CancelRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    reason: Optional[str] = None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    force: bool = False
    note: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    admin_notes: Optional[str] = None
    shipment: Optional[Shipment] = None


class QuoteRequest(BaseModel):
    product_id: str
    size: Optional[str] = None
    style: Optional[str] = None
    shipping_method: str = "standard"
    quantity: int = Field(1, ge=1)


class BuyNowRequest(QuoteRequest):
    customer: Dict[str, Any]
    payment: Dict[str, Any] = Field(default_factory=lambda: {"method": "COD"})
    customer_notes: Optional[str] = None


# ---------------- Helpers ----------------
def _load_order(database: Database, order_id: str) -> Dict[str, Any]:
    order = database["order"].find_one({"_id": parse_object_id(order_id, "order ID")})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _load_sellable_product(database: Database, product_id: str) -> Dict[str, Any]:
    product = database["product"].find_one({"_id": parse_object_id(product_id, "product ID")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.get("is_active", True) or not product.get("is_available", True):
        raise HTTPException(status_code=400, detail="Product is not available")
    return product


def create_order_record(
    database: Database, payload: OrderCreate, idempotency_key: Optional[str] = None
) -> Tuple[Dict[str, Any], bool]:
    """
    Persist a new pending order and return ``(order, created)``.

    A repeated ``idempotency_key`` returns the order created by the first
    request with ``created=False``.
    """
    errors = validate_customer(payload.customer.model_dump())
    if errors:
        raise CheckoutValidationError(errors)

    expected = order_total(payload.subtotal, payload.shipping_charges, payload.tax_amount, payload.discount_amount)
    if abs(expected - to_money(payload.total_amount)) > to_money("0.01"):
        raise HTTPException(
            status_code=400,
            detail=f"Total amount {payload.total_amount} does not match subtotal + shipping + tax - discount ({expected})",
        )

    if idempotency_key:
        try:
            database["idempotency"].insert_one({"_id": idempotency_key, "created_at": utcnow()})
        except DuplicateKeyError:
            existing = database["order"].find_one({"idempotency_key": idempotency_key})
            if existing:
                logger.info("Replayed order %s for idempotency key", existing["order_number"])
                return existing, False
            raise HTTPException(status_code=409, detail="An order with this Idempotency-Key is still being created")

    try:
        order = Order(
            order_number=next_order_number(database),
            customer=payload.customer,
            items=payload.items,
            subtotal=float(to_money(payload.subtotal)),
            shipping_charges=float(to_money(payload.shipping_charges)),
            tax_amount=float(to_money(payload.tax_amount)),
            discount_amount=float(to_money(payload.discount_amount)),
            total_amount=float(to_money(payload.total_amount)),
            status=INITIAL_STATUS.value,
            payment=payload.payment.model_copy(
                update={"amount": float(to_money(payload.total_amount)), "currency": settings.CURRENCY}
            ),
            shipping_method=payload.shipping_method,
            customer_notes=payload.customer_notes,
            status_history=[{"from": None, "to": INITIAL_STATUS.value, "at": utcnow(), "forced": False, "note": None}],
            idempotency_key=idempotency_key,
        )
        order_id = create_document(database, "order", order)
    except Exception:
        if idempotency_key:
            database["idempotency"].delete_one({"_id": idempotency_key})
        raise

    logger.info("Created order %s (%s items, total %s)", order.order_number, len(order.items), order.total_amount)
    return database["order"].find_one({"_id": parse_object_id(order_id)}), True


def tracking_view(order: Dict[str, Any]) -> Dict[str, Any]:
    """Public tracking payload: no customer email or phone."""
    customer = order.get("customer") or {}
    address = customer.get("address") or {}
    return serialize_doc(
        {
            "order_number": order["order_number"],
            "status": order["status"],
            "created_at": order.get("created_at"),
            "expected_delivery": order.get("expected_delivery"),
            "items": order.get("items", []),
            "total_amount": order.get("total_amount"),
            "shipment": order.get("shipment"),
            "customer": {"name": customer.get("name"), "address": {"city": address.get("city"), "state": address.get("state")}},
        }
    )


# ---------------- Orders ----------------
@router.post("", status_code=201)
def create_order(
    payload: OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    database: Database = Depends(get_db),
):
    order, created = create_order_record(database, payload, idempotency_key)
    if not created:
        response.status_code = 200
    return {
        "success": True,
        "message": "Order created successfully" if created else "Order already created",
        "order": serialize_doc(order),
    }


@router.get("")
def list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = status.value
    total = database["order"].count_documents(filt)
    cursor = database["order"].find(filt).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    return {"items": [serialize_doc(o) for o in cursor], "total": total, "page": page, "limit": limit}


@router.get("/track/{order_number}")
def track_order(order_number: str, database: Database = Depends(get_db)):
    order = database["order"].find_one({"order_number": order_number})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "order": tracking_view(order)}


@router.get("/{order_id}")
def get_order(order_id: str, database: Database = Depends(get_db)):
    return {"success": True, "order": serialize_doc(_load_order(database, order_id))}


@router.put("/{order_id}")
def update_order(
    order_id: str,
    payload: OrderUpdate,
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    order = _load_order(database, order_id)

    changes: Dict[str, Any] = {}
    if payload.expected_delivery is not None:
        changes["expected_delivery"] = payload.expected_delivery
    if payload.admin_notes is not None:
        changes["admin_notes"] = payload.admin_notes.strip()
    if payload.shipment is not None:
        changes["shipment"] = payload.shipment.model_dump(exclude_none=True)

    if payload.status is not None:
        try:
            order = apply_admin_status(
                database, order, payload.status, force=payload.force, note=payload.note, extra=changes
            )
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StaleOrder as e:
            raise HTTPException(status_code=409, detail=str(e))
    elif changes:
        changes["updated_at"] = utcnow()
        database["order"].update_one({"_id": order["_id"]}, {"$set": changes})
        order = database["order"].find_one({"_id": order["_id"]})

    return {"success": True, "message": "Order updated successfully", "order": serialize_doc(order)}


@router.post("/cancel/{order_id}")
def cancel(order_id: str, payload: CancelRequest, database: Database = Depends(get_db)):
    email = (payload.email or "").strip()
    phone = (payload.phone or "").strip()
    if not email and not phone:
        raise HTTPException(status_code=400, detail="Email or phone is required to cancel order")
    order = _load_order(database, order_id)
    try:
        order = cancel_order(database, order, email=email, phone=phone, reason=payload.reason)
    except OwnershipError as e:
        logger.warning("Rejected cancellation of %s: ownership mismatch", order.get("order_number"))
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidTransition:
        raise HTTPException(status_code=400, detail="Order cannot be cancelled at this stage")
    except StaleOrder as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "message": "Order cancelled successfully", "order": serialize_doc(order)}


# ---------------- Checkout ----------------
@checkout_router.post("/quote")
def quote_selection(payload: QuoteRequest, database: Database = Depends(get_db)):
    product = _load_sellable_product(database, payload.product_id)
    try:
        price = product_quote(product, payload.size, payload.style, payload.shipping_method, payload.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"product_id": payload.product_id, "shipping_method": payload.shipping_method, **price.as_dict()}


@checkout_router.post("/buy-now", status_code=201)
def buy_now(
    payload: BuyNowRequest,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    database: Database = Depends(get_db),
):
    """Run the checkout steps for a single product and place the order."""
    product = _load_sellable_product(database, payload.product_id)

    wizard = CheckoutWizard()
    wizard.update_customer(payload.customer)
    wizard.select_shipping(payload.shipping_method)
    wizard.update_payment(payload.payment)
    wizard.customer_notes = payload.customer_notes or ""
    order_payload = wizard.submit(product, payload.size, payload.style, payload.quantity)

    order, created = create_order_record(database, OrderCreate(**order_payload), idempotency_key)
    if not created:
        response.status_code = 200
    return {"success": True, "message": "Order created successfully", "order": serialize_doc(order)}
