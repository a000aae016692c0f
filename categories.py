import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pymongo import ASCENDING
from pymongo.database import Database

from auth import AdminSession, require_admin
from database import create_document, get_db, parse_object_id, serialize_doc, utcnow
from refs import DefaultRef, StoredRef, parse_ref
from schemas import PRODUCT_CATEGORIES, Category
from uploads import has_content, save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["Categories"])

DEFAULT_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "default-1": {
        "name": "Wooden Frames",
        "slug": "wooden",
        "description": "Classic wooden frames with natural elegance",
        "image": "https://images.unsplash.com/photo-1513519245088-0e12902e35ca?w=600&h=600&fit=crop&q=80",
        "display_order": 0,
        "is_active": True,
    },
    "default-2": {
        "name": "Metal Frames",
        "slug": "metal",
        "description": "Modern metal frames for contemporary spaces",
        "image": "https://images.unsplash.com/photo-1582053433976-25c00369fc93?w=600&h=600&fit=crop&q=80",
        "display_order": 1,
        "is_active": True,
    },
    "default-3": {
        "name": "Collage & Multi-Photo Frames",
        "slug": "collage-multi-photo",
        "description": "Perfect for displaying multiple photos together",
        "image": "https://images.unsplash.com/photo-1579783902614-a3fb3927b6a5?w=600&h=600&fit=crop&q=80",
        "display_order": 2,
        "is_active": True,
    },
    "default-4": {
        "name": "Custom Frames",
        "slug": "custom",
        "description": "Personalized frames made just for you",
        "image": "https://images.unsplash.com/photo-1541961017774-22349e4a1262?w=600&h=600&fit=crop&q=80",
        "display_order": 3,
        "is_active": True,
    },
    "default-5": {
        "name": "Canvas Frames",
        "slug": "canvas",
        "description": "Canvas art frames for gallery-style display",
        "image": "https://images.unsplash.com/photo-1579783902614-a3fb3927b6a5?w=600&h=600&fit=crop&q=80",
        "display_order": 4,
        "is_active": True,
    },
    "default-6": {
        "name": "Acrylic Frames",
        "slug": "acrylic",
        "description": "Clear acrylic frames with a frameless look",
        "image": "https://images.unsplash.com/photo-1605721911519-3dfeb3be25e7?w=600&h=600&fit=crop&q=80",
        "display_order": 5,
        "is_active": True,
    },
}

# Bare numbers are accepted for the default keys.
DEFAULT_ALIASES = {str(i): f"default-{i}" for i in range(1, len(DEFAULT_CATEGORIES) + 1)}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def parse_category_ref(raw: Optional[str]):
    return parse_ref(raw, DEFAULT_CATEGORIES, DEFAULT_ALIASES, label="Category ID")


def check_name(name: str) -> str:
    name = name.strip()
    if name not in PRODUCT_CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category. Allowed values: {', '.join(PRODUCT_CATEGORIES)}",
        )
    return name


def product_counts(database: Database) -> Dict[str, int]:
    """Live count of active, available products per category name."""
    pipeline = [
        {"$match": {"is_active": True, "is_available": True}},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
    ]
    return {row["_id"]: row["count"] for row in database["product"].aggregate(pipeline) if row["_id"]}


def active_product_count(database: Database, name: str) -> int:
    return database["product"].count_documents({"category": name, "is_active": True})


def _validated(base: Dict[str, Any], changes: Dict[str, Any]) -> Category:
    fields = {k: v for k, v in base.items() if k in Category.model_fields}
    return Category(**{**fields, **changes})


def _ensure_unique(database: Database, name: Optional[str], slug: Optional[str], exclude_id=None) -> None:
    clauses = []
    if name:
        clauses.append({"name": name})
    if slug:
        clauses.append({"slug": slug})
    if not clauses:
        return
    filt: Dict[str, Any] = {"$or": clauses}
    if exclude_id is not None:
        filt["_id"] = {"$ne": exclude_id}
    if database["category"].find_one(filt, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Category with this name or slug already exists")


def list_categories(database: Database, active_only: bool = True, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    counts = product_counts(database)
    stored = list(database["category"].find({}).sort([("display_order", ASCENDING), ("name", ASCENDING)]))

    # Inactive overrides still hide their default.
    overridden = set()
    for cat in stored:
        if cat.get("original_default_id"):
            overridden.add(cat["original_default_id"])
        for key, template in DEFAULT_CATEGORIES.items():
            if template["name"] == cat.get("name"):
                overridden.add(key)

    result = []
    for cat in stored:
        if active_only and not cat.get("is_active", True):
            continue
        view = serialize_doc(cat)
        view["product_count"] = counts.get(cat.get("name"), 0)
        view["is_default"] = False
        result.append(view)
    for key, template in DEFAULT_CATEGORIES.items():
        if key in overridden:
            continue
        result.append({"id": key, **template, "product_count": counts.get(template["name"], 0), "is_default": True})

    result.sort(key=lambda c: (c.get("display_order", 0), c.get("name", "")))
    return result[:limit] if limit else result


def upsert_default_category(database: Database, key: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Save default category ``key`` with ``changes``.

    An existing override (by back-reference, then by name) is updated; the
    name of a same-named stored category is never changed.
    """
    template = DEFAULT_CATEGORIES[key]
    existing = database["category"].find_one({"original_default_id": key})
    if existing is None:
        existing = database["category"].find_one({"name": template["name"]})
        if existing is not None:
            changes = {k: v for k, v in changes.items() if k not in ("name", "slug")}

    if existing is None:
        if "name" in changes and "slug" not in changes:
            changes = {**changes, "slug": slugify(changes["name"])}
        category = _validated(template, {**changes, "original_default_id": key})
        _ensure_unique(database, category.name, category.slug)
        create_document(database, "category", category)
        logger.info("Saved default category %s", key)
        return database["category"].find_one({"original_default_id": key})

    changes = {**changes, "original_default_id": key}
    if "name" in changes and changes["name"] != existing.get("name"):
        changes["slug"] = slugify(changes["name"])
    _validated(existing, changes)
    _ensure_unique(database, changes.get("name"), changes.get("slug"), exclude_id=existing["_id"])
    database["category"].update_one({"_id": existing["_id"]}, {"$set": {**changes, "updated_at": utcnow()}})
    logger.info("Updated override of default category %s", key)
    return database["category"].find_one({"_id": existing["_id"]})


def disable_default_category(database: Database, key: str) -> str:
    template = DEFAULT_CATEGORIES[key]
    override = database["category"].find_one({"original_default_id": key})
    if override is not None:
        database["category"].update_one({"_id": override["_id"]}, {"$set": {"is_active": False, "updated_at": utcnow()}})
        logger.info("Deactivated override of default category %s", key)
        if active_product_count(database, override["name"]):
            return "Category marked as inactive (has associated products)"
        return "Category override deactivated"

    if database["category"].find_one({"name": template["name"]}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Cannot delete category that exists independently in database")

    category = Category(
        name=template["name"],
        slug=template["slug"],
        description="This category has been disabled",
        image=template["image"],
        display_order=template["display_order"],
        is_active=False,
        original_default_id=key,
    )
    create_document(database, "category", category)
    logger.info("Disabled default category %s", key)
    return "Default category disabled (created inactive override)"


# ---------------- Endpoints ----------------
@router.get("")
def get_categories(
    active_only: bool = Query(True, alias="activeOnly"),
    limit: Optional[int] = Query(None, ge=1),
    database: Database = Depends(get_db),
):
    categories = list_categories(database, active_only, limit)
    defaults = sum(1 for c in categories if c["is_default"])
    return {
        "success": True,
        "categories": categories,
        "has_default_categories": defaults > 0,
        "total_categories": len(categories),
        "db_categories_count": len(categories) - defaults,
        "default_categories_count": defaults,
    }


@router.get("/distinct")
def distinct_categories(database: Database = Depends(get_db)):
    counts = product_counts(database)
    return {
        "success": True,
        "categories": [{"name": name, "product_count": counts[name]} for name in sorted(counts)],
    }


@router.post("", status_code=201)
def create_category(
    name: str = Form(...),
    image: UploadFile = File(...),
    description: Optional[str] = Form(None),
    display_order: int = Form(0),
    is_active: bool = Form(True),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    name = check_name(name)
    if not has_content(image):
        raise HTTPException(status_code=400, detail="Image file is required")
    draft = Category(
        name=name,
        slug=slugify(name),
        description=description or f"{name} - Premium quality frames for your memories",
        image="pending",
        display_order=display_order,
        is_active=is_active,
    )
    _ensure_unique(database, draft.name, draft.slug)

    url = save_image(image, admin.admin_id, "categories")
    category_id = create_document(database, "category", draft.model_copy(update={"image": url}))
    logger.info("Created category %s (%s)", name, category_id)
    return {"success": True, "category": serialize_doc(database["category"].find_one({"_id": parse_object_id(category_id)}))}


@router.put("")
def update_category(
    category_id: Optional[str] = Query(None, alias="id"),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    display_order: Optional[int] = Form(None),
    is_active: Optional[bool] = Form(None),
    image: Optional[UploadFile] = File(None),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    ref = parse_category_ref(category_id)
    changes: Dict[str, Any] = {}
    if name:
        changes["name"] = check_name(name)
    if description is not None:
        changes["description"] = description
    if display_order is not None:
        changes["display_order"] = display_order
    if is_active is not None:
        changes["is_active"] = is_active

    if isinstance(ref, StoredRef):
        existing = database["category"].find_one({"_id": ref.object_id})
        if not existing:
            raise HTTPException(status_code=404, detail="Category not found")
        if "name" in changes and changes["name"] != existing.get("name"):
            changes["slug"] = slugify(changes["name"])
        _validated(existing, changes)
        _ensure_unique(database, changes.get("name"), changes.get("slug"), exclude_id=existing["_id"])

    if has_content(image):
        changes["image"] = save_image(image, admin.admin_id, "categories")

    if isinstance(ref, DefaultRef):
        category = upsert_default_category(database, ref.key, changes)
        message = "Default category saved to database successfully"
    else:
        database["category"].update_one({"_id": ref.object_id}, {"$set": {**changes, "updated_at": utcnow()}})
        category = database["category"].find_one({"_id": ref.object_id})
        message = "Category updated successfully"
        logger.info("Updated category %s", category_id)
    return {"success": True, "category": serialize_doc(category), "message": message}


@router.delete("")
def delete_category(
    category_id: Optional[str] = Query(None, alias="id"),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    ref = parse_category_ref(category_id)
    if isinstance(ref, DefaultRef):
        message = disable_default_category(database, ref.key)
        return {"success": True, "deleted": True, "message": message}

    category = database["category"].find_one({"_id": ref.object_id})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    count = active_product_count(database, category["name"])
    if count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete category with {count} associated products. Remove products first or reassign them.",
        )
    database["category"].delete_one({"_id": category["_id"]})
    logger.info("Deleted category %s", category["name"])
    return {"success": True, "deleted": True, "message": "Category deleted successfully"}
