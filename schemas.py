"""
Database Schemas for the Frame Store

Define MongoDB collection schemas using Pydantic models.
Each model class name maps to a collection name in lowercase.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

PRODUCT_CATEGORIES = [
    "Wooden Frames",
    "Metal Frames",
    "Collage & Multi-Photo Frames",
    "Custom Frames",
    "Acrylic Frames",
    "Glass Frames",
    "Canvas Frames",
    "Bamboo & Eco-Friendly Frames",
    "Tabletop Frames",
    "Digital Prints",
    "Art & Wall Decor",
    "Gift Sets",
    "Office & Corporate",
    "Seasonal & Occasional",
]


def check_category(value: str) -> str:
    value = value.strip()
    if value not in PRODUCT_CATEGORIES:
        raise ValueError(f"{value} is not a valid category")
    return value


def clean_tags(tags: List[str]) -> List[str]:
    return [t.strip() for t in tags if t and t.strip()]


# Products
class Dimensions(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None
    depth: Optional[float] = None
    unit: str = "inches"


class SizeOption(BaseModel):
    size: str = Field(..., min_length=1, description="A4, A3, 12x18, 24x36 ...")
    price: float = Field(..., ge=0)
    offer_price: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None

    @field_validator("size")
    @classmethod
    def strip_size(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("size is required")
        return v


class StyleOption(BaseModel):
    name: str = Field(..., min_length=1, description="Modern, Vintage, Wooden ...")
    additional_price: float = Field(0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v


class Product(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    base_price: float = Field(..., ge=0)
    offer_price: Optional[float] = Field(None, ge=0)
    description: str = Field(..., min_length=1, max_length=1000)
    detailed_description: Optional[str] = Field(None, max_length=5000)

    category: str
    sub_category: Optional[str] = None
    material: str = Field(..., min_length=1)
    style: Optional[str] = None
    occasion: Optional[str] = None

    is_available: bool = True
    stock_quantity: int = Field(0, ge=0)
    sku: str = Field(..., min_length=1)

    sizes: List[SizeOption] = Field(default_factory=list)
    styles: List[StyleOption] = Field(default_factory=list)

    images: List[str] = Field(default_factory=list, max_length=10)
    featured_image: str = Field(..., min_length=1)

    tags: List[str] = Field(default_factory=list)
    weight: Optional[float] = Field(None, ge=0)
    delivery_estimate: str = "5-7 business days"
    dimensions: Optional[Dimensions] = None

    frame_type: Optional[Literal["wall", "tabletop", "standing"]] = None
    shape: Optional[Literal["square", "rectangle", "round", "oval", "heart"]] = None
    mounting_type: Optional[str] = None
    has_glass: bool = False
    glass_type: Optional[Literal["standard", "non-glare", "uv-protected", "acrylic"]] = None

    is_active: bool = True
    is_featured: bool = False
    is_best_seller: bool = False
    is_new_arrival: bool = False

    total_sold: int = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)

    @field_validator("category")
    @classmethod
    def known_category(cls, v: str) -> str:
        return check_category(v)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: List[str]) -> List[str]:
        return clean_tags(v)


class ProductUpdate(BaseModel):
    """Partial product update; only fields present in the request are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    base_price: Optional[float] = Field(None, ge=0)
    offer_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    detailed_description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = None
    sub_category: Optional[str] = None
    material: Optional[str] = Field(None, min_length=1)
    style: Optional[str] = None
    occasion: Optional[str] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = Field(None, min_length=1)
    sizes: Optional[List[SizeOption]] = None
    styles: Optional[List[StyleOption]] = None
    images: Optional[List[str]] = Field(None, max_length=10)
    featured_image: Optional[str] = None
    tags: Optional[List[str]] = None
    weight: Optional[float] = Field(None, ge=0)
    delivery_estimate: Optional[str] = None
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_best_seller: Optional[bool] = None
    is_new_arrival: Optional[bool] = None
    images_to_delete: List[str] = Field(default_factory=list)

    # Only the optional product fields may be cleared with null.
    @field_validator(
        "title",
        "base_price",
        "description",
        "category",
        "material",
        "stock_quantity",
        "sku",
        "sizes",
        "styles",
        "images",
        "featured_image",
        "tags",
        "delivery_estimate",
        "is_available",
        "is_active",
        "is_featured",
        "is_best_seller",
        "is_new_arrival",
        mode="before",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    @field_validator("featured_image")
    @classmethod
    def featured_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("featured_image may not be blank")
        return v

    @field_validator("category")
    @classmethod
    def known_category(cls, v: Optional[str]) -> Optional[str]:
        return check_category(v) if v is not None else v

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return clean_tags(v) if v is not None else v


# Orders
class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1)
    country: str = "India"
    landmark: Optional[str] = None


class Customer(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: Address

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class OrderItem(BaseModel):
    product_id: str
    title: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None
    size: Optional[str] = None
    style: Optional[str] = None
    sku: str


class Payment(BaseModel):
    method: Literal["COD", "Prepaid"]
    status: Literal["pending", "paid", "failed", "refunded"] = "pending"
    transaction_id: Optional[str] = None
    amount: float = Field(0, ge=0)
    currency: str = "INR"


class Shipment(BaseModel):
    carrier: Optional[str] = None
    shipment_id: Optional[str] = None
    awb_code: Optional[str] = None
    channel: str = "Website"
    label_url: Optional[str] = None
    status: Optional[str] = None


class Order(BaseModel):
    order_number: str
    customer: Customer
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float = Field(..., ge=0)
    shipping_charges: float = Field(..., ge=0)
    tax_amount: float = Field(..., ge=0)
    discount_amount: float = Field(0, ge=0)
    total_amount: float = Field(..., ge=0)
    status: Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "returned"] = "pending"
    payment: Payment
    shipment: Shipment = Field(default_factory=Shipment)
    shipping_method: str = "Standard"
    expected_delivery: Optional[datetime] = None
    admin_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    status_history: List[dict] = Field(default_factory=list)
    idempotency_key: Optional[str] = None


# Banners
class Banner(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    subtitle: Optional[str] = Field(None, max_length=200)
    image: str
    link: Optional[str] = None
    link_text: str = "Shop Now"
    display_order: int = 0
    is_active: bool = True
    type: Literal["hero", "promotional"] = "hero"
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    button_color: str = "#3b82f6"
    button_text_color: str = "#ffffff"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    original_default_id: Optional[str] = None


# Categories
class Category(BaseModel):
    name: str
    slug: str
    description: str = Field(..., max_length=500)
    image: str
    display_order: int = 0
    is_active: bool = True
    product_count: int = Field(0, ge=0)
    original_default_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def known_category(cls, v: str) -> str:
        if v not in PRODUCT_CATEGORIES:
            raise ValueError(f"{v} is not a valid category")
        return v

    @field_validator("slug")
    @classmethod
    def lower_slug(cls, v: str) -> str:
        return v.strip().lower()


# Cart (per guest session)
class CartItem(BaseModel):
    product_id: str
    title: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image: str = ""
    size: str = ""
    style: str = ""
    sku: str


class Cart(BaseModel):
    session_id: str = Field(..., description="Guest session identifier")
    items: List[CartItem] = Field(default_factory=list)
    total: float = 0.0
