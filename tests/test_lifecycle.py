import pytest

from lifecycle import (
    InvalidTransition,
    OrderStatus,
    OwnershipError,
    StaleOrder,
    apply_admin_status,
    can_transition,
    cancel_order,
    plan_transition,
    verify_ownership,
)


@pytest.fixture
def stored_order(mongo):
    def _store(status="pending", payment_status="pending"):
        result = mongo["order"].insert_one(
            {
                "order_number": "ORD-20250115-0001",
                "status": status,
                "customer": {"name": "Asha", "email": "asha@example.com", "phone": "9876543210"},
                "payment": {"method": "Prepaid", "status": payment_status},
                "status_history": [],
            }
        )
        return mongo["order"].find_one({"_id": result.inserted_id})

    return _store


def test_forward_transitions():
    assert can_transition(OrderStatus.PENDING, OrderStatus.CONFIRMED)
    assert can_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.DELIVERED, OrderStatus.PENDING)
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.CONFIRMED)


def test_plan_transition_rejects_noop_and_backwards():
    with pytest.raises(InvalidTransition):
        plan_transition(OrderStatus.PENDING, OrderStatus.PENDING)
    with pytest.raises(InvalidTransition):
        plan_transition(OrderStatus.SHIPPED, OrderStatus.PENDING)
    assert plan_transition(OrderStatus.SHIPPED, OrderStatus.PENDING, force=True) == OrderStatus.PENDING


def test_verify_ownership():
    order = {"customer": {"email": "asha@example.com", "phone": "9876543210"}}
    verify_ownership(order, email="ASHA@example.com ")
    verify_ownership(order, phone="9876543210")
    with pytest.raises(OwnershipError):
        verify_ownership(order, email="someone@example.com")
    with pytest.raises(ValueError):
        verify_ownership(order)


def test_cancel_pending_order(mongo, stored_order):
    order = cancel_order(mongo, stored_order(), email="asha@example.com", reason="Ordered twice")
    assert order["status"] == "cancelled"
    assert order["admin_notes"] == "Cancelled by customer: Ordered twice"
    assert order["status_history"][-1]["to"] == "cancelled"


def test_cancel_marks_paid_order_refunded(mongo, stored_order):
    order = cancel_order(mongo, stored_order(status="confirmed", payment_status="paid"), phone="9876543210")
    assert order["payment"]["status"] == "refunded"


def test_cancel_after_shipping_is_refused(mongo, stored_order):
    with pytest.raises(InvalidTransition):
        cancel_order(mongo, stored_order(status="shipped"), email="asha@example.com")


def test_stale_order_is_detected(mongo, stored_order):
    order = stored_order()
    mongo["order"].update_one({"_id": order["_id"]}, {"$set": {"status": "confirmed"}})
    with pytest.raises(StaleOrder):
        apply_admin_status(mongo, order, "processing")


def test_admin_force_records_history(mongo, stored_order):
    order = apply_admin_status(mongo, stored_order(status="delivered"), "pending", force=True, note="Reopened")
    assert order["status"] == "pending"
    entry = order["status_history"][-1]
    assert entry["forced"] is True
    assert entry["from"] == "delivered"
    assert entry["note"] == "Reopened"
