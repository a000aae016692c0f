from decimal import Decimal

import pytest

from cart import CartLine, add_item, cart_total, clear, item_count, remove_item, update_quantity


def _line(product_id="p1", quantity=1, size="A4", style="", price="450"):
    return CartLine(product_id=product_id, title="Oak", price=Decimal(price), quantity=quantity, sku="OAK", size=size, style=style)


def test_add_merges_same_selection():
    lines = add_item((), _line())
    lines = add_item(lines, _line(quantity=2))
    assert len(lines) == 1
    assert lines[0].quantity == 3


def test_add_keeps_different_selections_apart():
    lines = add_item(add_item((), _line(size="A4")), _line(size="A3"))
    assert [line.size for line in lines] == ["A4", "A3"]


def test_add_rejects_zero_quantity():
    with pytest.raises(ValueError):
        add_item((), _line(quantity=0))


def test_update_and_remove():
    lines = add_item(add_item((), _line()), _line(product_id="p2", size=""))
    lines = update_quantity(lines, "p1", 4, size="A4")
    assert lines[0].quantity == 4
    lines = update_quantity(lines, "p1", 0, size="A4")
    assert [line.product_id for line in lines] == ["p2"]
    assert remove_item(lines, "p2") == ()
    assert clear(lines) == ()


def test_totals():
    lines = add_item(add_item((), _line(quantity=2)), _line(product_id="p2", price="99.99"))
    assert cart_total(lines) == Decimal("999.99")
    assert item_count(lines) == 3


def test_guest_cart_endpoints(client):
    item = {"product_id": "p1", "title": "Oak", "price": 450, "quantity": 1, "size": "A4", "sku": "OAK-001"}
    client.post("/api/cart", json={"session_id": "s1", "item": item})
    response = client.post("/api/cart", json={"session_id": "s1", "item": {**item, "quantity": 2}})
    cart = response.json()
    assert cart["items"][0]["quantity"] == 3
    assert cart["total"] == 1350.0

    response = client.put("/api/cart", json={"session_id": "s1", "product_id": "p1", "size": "A4", "quantity": 1})
    assert response.json()["total"] == 450.0

    assert client.get("/api/cart", params={"sessionId": "s1"}).json()["count"] == 1
    client.delete("/api/cart", params={"sessionId": "s1"})
    assert client.get("/api/cart", params={"sessionId": "s1"}).json() == {"session_id": "s1", "items": [], "total": 0.0, "count": 0}


def test_updating_missing_cart(client):
    response = client.put("/api/cart", json={"session_id": "nope", "product_id": "p1", "quantity": 1})
    assert response.status_code == 404
