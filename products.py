import logging
import math
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import TypeAdapter
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import AdminSession, require_admin
from database import create_document, get_db, parse_object_id, serialize_doc, utcnow
from pricing import discount_percentage, effective_price
from schemas import Product, ProductUpdate, SizeOption, StyleOption
from uploads import delete_image, has_content, save_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Products"])

SIZES_ADAPTER = TypeAdapter(List[SizeOption])
STYLES_ADAPTER = TypeAdapter(List[StyleOption])
TAGS_ADAPTER = TypeAdapter(List[str])

DEFAULT_PRICE_RANGE = {"min": 0, "max": 10000}
MAX_PRODUCT_IMAGES = 10


def _contains(value: str) -> Dict[str, str]:
    return {"$regex": re.escape(value.strip()), "$options": "i"}


def _sort_keys(sort_by: str, sort_order: str):
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    if sort_by == "price":
        return [("base_price", direction)]
    if sort_by == "name":
        return [("title", direction)]
    if sort_by == "featured":
        return [("is_featured", DESCENDING), ("created_at", DESCENDING)]
    return [("created_at", direction)]


def product_view(product: Dict[str, Any]) -> Dict[str, Any]:
    view = serialize_doc(product)
    view["effective_price"] = float(effective_price(product.get("base_price", 0), product.get("offer_price")))
    view["discount_percentage"] = discount_percentage(product.get("base_price", 0), product.get("offer_price"))
    return view


def _load_product(database: Database, product_id: str) -> Dict[str, Any]:
    product = database["product"].find_one({"_id": parse_object_id(product_id, "product ID")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _sku_taken(database: Database, sku: str, exclude_id=None) -> bool:
    filt: Dict[str, Any] = {"sku": sku}
    if exclude_id is not None:
        filt["_id"] = {"$ne": exclude_id}
    return database["product"].find_one(filt, {"_id": 1}) is not None


# ---------------- Catalog ----------------
@router.get("/api/products")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    material: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    is_active: bool = Query(True, alias="isActive"),
    database: Database = Depends(get_db),
):
    filter_q: Dict[str, Any] = {"is_active": is_active}
    if category:
        filter_q["category"] = _contains(category)
    if material:
        filter_q["material"] = _contains(material)
    price_filter = {}
    if min_price is not None:
        price_filter["$gte"] = float(min_price)
    if max_price is not None:
        price_filter["$lte"] = float(max_price)
    if price_filter:
        filter_q["base_price"] = price_filter
    if search:
        filter_q["$or"] = [
            {"title": _contains(search)},
            {"description": _contains(search)},
            {"category": _contains(search)},
            {"material": _contains(search)},
            {"tags": _contains(search)},
        ]

    total = database["product"].count_documents(filter_q)
    cursor = (
        database["product"]
        .find(filter_q)
        .sort(_sort_keys(sort_by, sort_order))
        .skip((page - 1) * limit)
        .limit(limit)
    )
    items = [product_view(p) for p in cursor]
    pages = math.ceil(total / limit)

    stats = list(
        database["product"].aggregate(
            [
                {"$match": {"is_active": True}},
                {"$group": {"_id": None, "min": {"$min": "$base_price"}, "max": {"$max": "$base_price"}}},
            ]
        )
    )
    price_range = {"min": stats[0]["min"], "max": stats[0]["max"]} if stats else DEFAULT_PRICE_RANGE

    return {
        "success": True,
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1,
        },
        "filters": {
            "categories": sorted(database["product"].distinct("category", {"is_active": is_active})),
            "materials": sorted(database["product"].distinct("material", {"is_active": is_active})),
            "price_range": price_range,
        },
    }


@router.get("/api/products/{product_id}")
def get_product(product_id: str, database: Database = Depends(get_db)):
    return {"success": True, "product": product_view(_load_product(database, product_id))}


# ---------------- Admin ----------------
@router.post("/api/create-product", status_code=201)
def create_product(
    title: str = Form(...),
    base_price: float = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    material: str = Form(...),
    sku: str = Form(...),
    offer_price: Optional[float] = Form(None),
    detailed_description: Optional[str] = Form(None),
    sub_category: Optional[str] = Form(None),
    stock_quantity: int = Form(0),
    weight: Optional[float] = Form(None),
    delivery_estimate: str = Form("5-7 business days"),
    is_available: bool = Form(True),
    is_active: bool = Form(True),
    is_featured: bool = Form(False),
    sizes: Optional[str] = Form(None),
    styles: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    images: List[UploadFile] = File(default=[]),
    featured_image: Optional[UploadFile] = File(None),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    """
    Create a product from a multipart form.

    ``sizes``, ``styles`` and ``tags`` arrive as JSON strings. The featured
    image defaults to the first gallery image; at least one image is required.
    """
    fields = dict(
        title=title.strip(),
        base_price=base_price,
        offer_price=offer_price,
        description=description.strip(),
        detailed_description=detailed_description.strip() if detailed_description else None,
        category=category,
        sub_category=sub_category.strip() if sub_category else None,
        material=material.strip(),
        sku=sku,
        stock_quantity=stock_quantity,
        weight=weight,
        delivery_estimate=delivery_estimate,
        is_available=is_available,
        is_active=is_active,
        is_featured=is_featured,
        sizes=SIZES_ADAPTER.validate_json(sizes) if sizes else [],
        styles=STYLES_ADAPTER.validate_json(styles) if styles else [],
        tags=TAGS_ADAPTER.validate_json(tags) if tags else [],
    )
    # Validate everything before any file touches the disk.
    draft = Product(featured_image="pending", **fields)
    if _sku_taken(database, draft.sku):
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")

    gallery = [f for f in images if has_content(f)]
    if not gallery and not has_content(featured_image):
        raise HTTPException(status_code=400, detail="At least one image is required")
    if len(gallery) > MAX_PRODUCT_IMAGES:
        raise HTTPException(status_code=400, detail=f"A product can have at most {MAX_PRODUCT_IMAGES} images")

    stored: List[str] = []
    try:
        featured_url = save_image(featured_image, admin.admin_id) if has_content(featured_image) else None
        if featured_url:
            stored.append(featured_url)
        uploaded = []
        for upload in gallery:
            url = save_image(upload, admin.admin_id)
            stored.append(url)
            uploaded.append(url)

        product = draft.model_copy(update={"images": uploaded, "featured_image": featured_url or uploaded[0]})
        product_id = create_document(database, "product", product)
    except DuplicateKeyError:
        for url in stored:
            delete_image(url)
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")
    except Exception:
        for url in stored:
            delete_image(url)
        raise

    logger.info("Created product %s (%s)", product.sku, product_id)
    return {
        "success": True,
        "message": "Product created successfully",
        "product": product_view(database["product"].find_one({"_id": parse_object_id(product_id)})),
    }


@router.put("/api/products/update/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    product = _load_product(database, product_id)

    changes = payload.model_dump(exclude_unset=True)
    to_delete = changes.pop("images_to_delete", None) or []

    if changes.get("sku") and changes["sku"] != product.get("sku"):
        if _sku_taken(database, changes["sku"], exclude_id=product["_id"]):
            raise HTTPException(status_code=400, detail="Product with this SKU already exists")

    unset: Dict[str, str] = {}
    for key in ("offer_price", "weight", "detailed_description", "sub_category"):
        if key in changes and changes[key] is None:
            unset[key] = ""
            del changes[key]

    # Only files that belong to this product are removed.
    owned = set(product.get("images", [])) | {product.get("featured_image")}
    skipped = [url for url in to_delete if url not in owned]
    if skipped:
        logger.warning("Ignoring images not owned by product %s: %s", product_id, ", ".join(skipped))
    to_delete = [url for url in to_delete if url in owned]

    if to_delete:
        for url in to_delete:
            delete_image(url)
        if "images" not in changes:
            changes["images"] = [i for i in product.get("images", []) if i not in to_delete]
        if product.get("featured_image") in to_delete and "featured_image" not in changes:
            remaining = changes["images"]
            if remaining:
                changes["featured_image"] = remaining[0]

    update: Dict[str, Any] = {"$set": {**changes, "updated_at": utcnow()}}
    if unset:
        update["$unset"] = unset
    database["product"].update_one({"_id": product["_id"]}, update)

    logger.info("Updated product %s: %s", product_id, ", ".join(sorted(set(changes) | set(unset))) or "no fields")
    return {
        "success": True,
        "message": "Product updated successfully",
        "product": product_view(database["product"].find_one({"_id": product["_id"]})),
    }


@router.delete("/api/products/delete/{product_id}")
def delete_product(
    product_id: str,
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    product = _load_product(database, product_id)
    database["product"].update_one(
        {"_id": product["_id"]},
        {"$set": {"is_active": False, "is_available": False, "updated_at": utcnow()}},
    )
    logger.info("Soft-deleted product %s", product.get("sku"))
    return {"success": True, "message": "Product deleted successfully"}
