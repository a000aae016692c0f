import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_admin_token
from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Product
from settings import settings


@pytest.fixture
def mongo():
    client = mongomock.MongoClient(tz_aware=True)
    database = client["framestore_test"]
    ensure_indexes(database)
    return database


@pytest.fixture(autouse=True)
def upload_root(tmp_path, monkeypatch):
    root = tmp_path / "public"
    monkeypatch.setattr(settings, "UPLOAD_ROOT", str(root))
    return root


@pytest.fixture
def client(mongo):
    app.dependency_overrides[get_db] = lambda: mongo
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_token()}"}


@pytest.fixture
def make_product(mongo):
    def _make(**overrides):
        fields = dict(
            title="Oak Classic",
            base_price=500,
            offer_price=400,
            description="Solid oak frame",
            category="Wooden Frames",
            material="Oak",
            sku="OAK-001",
            stock_quantity=10,
            sizes=[{"size": "A4", "price": 500, "offer_price": 400}, {"size": "A3", "price": 800}],
            styles=[{"name": "Modern", "additional_price": 0}, {"name": "Vintage", "additional_price": 50}],
            images=["/uploads/admin/oak-1.jpg"],
            featured_image="/uploads/admin/oak-1.jpg",
            tags=["oak", "classic"],
        )
        fields.update(overrides)
        product_id = create_document(mongo, "product", Product(**fields))
        return product_id

    return _make


@pytest.fixture
def order_payload():
    return {
        "customer": {
            "name": "Asha Rao",
            "email": "Asha@Example.com",
            "phone": "9876543210",
            "address": {"street": "12 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"},
        },
        "items": [
            {"product_id": "p1", "title": "Oak Classic", "price": 450, "quantity": 1, "size": "A4", "style": "Vintage", "sku": "OAK-001"}
        ],
        "subtotal": 550,
        "shipping_charges": 99,
        "tax_amount": 98.82,
        "discount_amount": 100,
        "total_amount": 647.82,
        "payment": {"method": "COD"},
        "shipping_method": "Express",
    }
