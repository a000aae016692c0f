JPEG = ("category.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")


def _by_name(response):
    return {c["name"]: c for c in response.json()["categories"]}


def test_defaults_with_live_counts(client, make_product):
    make_product(sku="OAK-001")
    make_product(sku="OAK-002")
    make_product(sku="OAK-003", is_available=False)
    make_product(sku="MET-001", category="Metal Frames")

    response = client.get("/api/categories")
    assert response.status_code == 200
    categories = _by_name(response)
    assert len(categories) == 6
    assert categories["Wooden Frames"]["product_count"] == 2
    assert categories["Metal Frames"]["product_count"] == 1
    assert categories["Canvas Frames"]["product_count"] == 0
    assert categories["Wooden Frames"]["id"] == "default-1"


def test_distinct_categories(client, make_product):
    make_product(sku="OAK-001")
    make_product(sku="MET-001", category="Metal Frames")
    make_product(sku="MET-002", category="Metal Frames", is_active=False)
    body = client.get("/api/categories/distinct").json()
    assert body["categories"] == [
        {"name": "Metal Frames", "product_count": 1},
        {"name": "Wooden Frames", "product_count": 1},
    ]


def test_create_category(client, admin_headers):
    response = client.post("/api/categories", data={"name": "Gift Sets"}, files={"image": JPEG}, headers=admin_headers)
    assert response.status_code == 201
    category = response.json()["category"]
    assert category["slug"] == "gift-sets"
    assert category["description"] == "Gift Sets - Premium quality frames for your memories"
    assert category["image"].startswith("/categories/admin/categories-")

    categories = _by_name(client.get("/api/categories"))
    assert categories["Gift Sets"]["is_default"] is False
    assert len(categories) == 7

    again = client.post("/api/categories", data={"name": "Gift Sets"}, files={"image": JPEG}, headers=admin_headers)
    assert again.status_code == 400


def test_create_category_rejects_unknown_name(client, admin_headers):
    response = client.post("/api/categories", data={"name": "Plastic Frames"}, files={"image": JPEG}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid category")


def test_editing_default_by_number_creates_override(client, mongo, admin_headers):
    response = client.put("/api/categories", params={"id": "1"}, data={"description": "Hand finished teak and oak"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Default category saved to database successfully"

    override = mongo["category"].find_one({"original_default_id": "default-1"})
    assert override["name"] == "Wooden Frames"
    assert override["slug"] == "wooden"

    client.put("/api/categories", params={"id": "default-1"}, data={"display_order": "9"}, headers=admin_headers)
    assert mongo["category"].count_documents({"original_default_id": "default-1"}) == 1

    categories = _by_name(client.get("/api/categories"))
    assert categories["Wooden Frames"]["is_default"] is False
    assert categories["Wooden Frames"]["description"] == "Hand finished teak and oak"
    assert len(categories) == 6


def test_deleting_default_hides_it(client, admin_headers):
    response = client.delete("/api/categories", params={"id": "default-2"}, headers=admin_headers)
    assert response.status_code == 200
    categories = _by_name(client.get("/api/categories"))
    assert "Metal Frames" not in categories
    assert len(categories) == 5


def test_cannot_delete_stored_category_with_products(client, admin_headers, make_product):
    category_id = client.post(
        "/api/categories", data={"name": "Gift Sets"}, files={"image": JPEG}, headers=admin_headers
    ).json()["category"]["id"]
    make_product(category="Gift Sets")

    response = client.delete("/api/categories", params={"id": category_id}, headers=admin_headers)
    assert response.status_code == 400
    assert "1 associated products" in response.json()["detail"]


def test_delete_stored_category(client, admin_headers):
    category_id = client.post(
        "/api/categories", data={"name": "Gift Sets"}, files={"image": JPEG}, headers=admin_headers
    ).json()["category"]["id"]
    assert client.delete("/api/categories", params={"id": category_id}, headers=admin_headers).status_code == 200
    assert client.delete("/api/categories", params={"id": category_id}, headers=admin_headers).status_code == 404


def test_default_with_independent_stored_copy_is_not_deleted(client, admin_headers):
    client.post("/api/categories", data={"name": "Custom Frames"}, files={"image": JPEG}, headers=admin_headers)
    response = client.delete("/api/categories", params={"id": "default-4"}, headers=admin_headers)
    assert response.status_code == 400


def test_invalid_category_id(client, admin_headers):
    assert client.delete("/api/categories", params={"id": "default-9"}, headers=admin_headers).status_code == 400
    assert client.delete("/api/categories", params={"id": "1"}).status_code == 401
