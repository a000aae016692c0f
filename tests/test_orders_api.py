def test_create_order(client, order_payload):
    response = client.post("/api/orders", json=order_payload)
    assert response.status_code == 201
    order = response.json()["order"]
    assert order["order_number"].startswith("ORD-")
    assert order["status"] == "pending"
    assert order["customer"]["email"] == "asha@example.com"
    assert order["payment"]["amount"] == 647.82
    assert order["status_history"][0]["to"] == "pending"


def test_create_order_rejects_inconsistent_total(client, order_payload):
    order_payload["total_amount"] = 700
    response = client.post("/api/orders", json=order_payload)
    assert response.status_code == 400
    assert "does not match" in response.json()["detail"]


def test_create_order_requires_items(client, order_payload):
    order_payload["items"] = []
    response = client.post("/api/orders", json=order_payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Validation failed"


def test_create_order_checks_contact_format(client, order_payload):
    order_payload["customer"]["phone"] = "12345"
    response = client.post("/api/orders", json=order_payload)
    assert response.status_code == 400
    assert response.json()["errors"]["phone"] == "Invalid phone number (10 digits)"


def test_idempotency_key_replays_the_first_order(client, mongo, order_payload):
    headers = {"Idempotency-Key": "checkout-abc"}
    first = client.post("/api/orders", json=order_payload, headers=headers)
    second = client.post("/api/orders", json=order_payload, headers=headers)
    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["order"]["order_number"] == first.json()["order"]["order_number"]
    assert mongo["order"].count_documents({}) == 1


def test_order_numbers_are_distinct(client, order_payload):
    numbers = {client.post("/api/orders", json=order_payload).json()["order"]["order_number"] for _ in range(3)}
    assert len(numbers) == 3


def test_get_order(client, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    assert client.get(f"/api/orders/{order_id}").json()["order"]["id"] == order_id
    assert client.get("/api/orders/not-an-id").status_code == 400
    assert client.get("/api/orders/65a1b2c3d4e5f60718293a4b").status_code == 404


def test_tracking_hides_contact_details(client, order_payload):
    number = client.post("/api/orders", json=order_payload).json()["order"]["order_number"]
    response = client.get(f"/api/orders/track/{number}")
    assert response.status_code == 200
    customer = response.json()["order"]["customer"]
    assert customer == {"name": "Asha Rao", "address": {"city": "Pune", "state": "MH"}}
    assert client.get("/api/orders/track/ORD-19990101-0001").status_code == 404


def test_cancel_requires_matching_contact(client, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    assert client.post(f"/api/orders/cancel/{order_id}", json={}).status_code == 400
    assert client.post(f"/api/orders/cancel/{order_id}", json={"email": "other@example.com"}).status_code == 403

    response = client.post(f"/api/orders/cancel/{order_id}", json={"phone": "9876543210", "reason": "Changed mind"})
    assert response.status_code == 200
    assert response.json()["order"]["status"] == "cancelled"


def test_cancel_with_blank_contact_is_a_validation_error(client, mongo, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    response = client.post(f"/api/orders/cancel/{order_id}", json={"email": "   ", "phone": " "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email or phone is required to cancel order"
    assert mongo["order"].find_one({})["status"] == "pending"


def test_cancel_after_shipping_is_refused(client, mongo, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    mongo["order"].update_one({"order_number": {"$exists": True}}, {"$set": {"status": "shipped"}})
    response = client.post(f"/api/orders/cancel/{order_id}", json={"email": "asha@example.com"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Order cannot be cancelled at this stage"


def test_admin_endpoints_require_session(client, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    assert client.get("/api/orders").status_code == 401
    assert client.put(f"/api/orders/{order_id}", json={"status": "confirmed"}).status_code == 401


def test_admin_status_update_follows_lifecycle(client, admin_headers, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]

    response = client.put(f"/api/orders/{order_id}", json={"status": "delivered"}, headers=admin_headers)
    assert response.status_code == 400

    response = client.put(
        f"/api/orders/{order_id}",
        json={"status": "confirmed", "admin_notes": "Called customer", "shipment": {"carrier": "BlueDart", "awb_code": "AWB1"}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["status"] == "confirmed"
    assert order["admin_notes"] == "Called customer"
    assert order["shipment"]["awb_code"] == "AWB1"

    response = client.put(f"/api/orders/{order_id}", json={"status": "delivered", "force": True}, headers=admin_headers)
    assert response.json()["order"]["status"] == "delivered"


def test_rejected_transition_leaves_order_untouched(client, mongo, admin_headers, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    response = client.put(
        f"/api/orders/{order_id}",
        json={"status": "delivered", "admin_notes": "Left at gate", "shipment": {"awb_code": "AWB9"}},
        headers=admin_headers,
    )
    assert response.status_code == 400

    stored = mongo["order"].find_one({})
    assert stored["status"] == "pending"
    assert stored.get("admin_notes") is None
    assert stored["shipment"].get("awb_code") is None
    assert len(stored["status_history"]) == 1


def test_admin_notes_update_without_status_change(client, admin_headers, order_payload):
    order_id = client.post("/api/orders", json=order_payload).json()["order"]["id"]
    response = client.put(f"/api/orders/{order_id}", json={"admin_notes": " Gift wrap "}, headers=admin_headers)
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["admin_notes"] == "Gift wrap"
    assert order["status"] == "pending"


def test_admin_lists_orders_by_status(client, admin_headers, order_payload):
    client.post("/api/orders", json=order_payload)
    client.post("/api/orders", json=order_payload)
    response = client.get("/api/orders", params={"status": "pending"}, headers=admin_headers)
    assert response.json()["total"] == 2
    response = client.get("/api/orders", params={"status": "shipped"}, headers=admin_headers)
    assert response.json()["items"] == []


def test_quote_for_product_selection(client, make_product):
    product_id = make_product()
    response = client.post(
        "/api/checkout/quote",
        json={"product_id": product_id, "size": "A4", "style": "Vintage", "shipping_method": "express"},
    )
    assert response.status_code == 200
    assert response.json()["total_amount"] == 647.82

    response = client.post("/api/checkout/quote", json={"product_id": product_id, "size": "XXL"})
    assert response.status_code == 400


def test_buy_now_places_order(client, make_product):
    product_id = make_product()
    response = client.post(
        "/api/checkout/buy-now",
        json={
            "product_id": product_id,
            "size": "A4",
            "style": "Vintage",
            "shipping_method": "express",
            "customer": {
                "name": "Asha Rao",
                "email": "asha@example.com",
                "phone": "9876543210",
                "address": {"street": "12 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"},
            },
            "payment": {"method": "Prepaid", "upi_id": "asha@upi"},
        },
    )
    assert response.status_code == 201
    order = response.json()["order"]
    assert order["total_amount"] == 647.82
    assert order["payment"]["status"] == "paid"
    assert order["items"][0]["sku"] == "OAK-001"


def test_buy_now_reports_step_errors(client, make_product):
    product_id = make_product()
    response = client.post(
        "/api/checkout/buy-now",
        json={"product_id": product_id, "customer": {"name": "Asha"}, "payment": {"method": "COD"}},
    )
    assert response.status_code == 400
    assert "email" in response.json()["errors"]


def test_buy_now_refuses_unavailable_product(client, make_product):
    product_id = make_product(is_available=False)
    response = client.post("/api/checkout/quote", json={"product_id": product_id})
    assert response.status_code == 400
