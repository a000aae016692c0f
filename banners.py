"""
Homepage banners.

Three hero banners ship as built-in defaults keyed "1", "2" and "3". An admin
edit of a default never touches the template: it creates (once) or updates a
stored override carrying ``original_default_id``. Deleting a default stores an
inactive override, which hides it from the storefront.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import AdminSession, require_admin
from database import create_document, get_db, parse_object_id, serialize_doc, utcnow
from refs import DefaultRef, Ref, StoredRef, parse_ref
from schemas import Banner
from uploads import delete_image, has_content, save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/banners", tags=["Banners"])

DEFAULT_BANNERS: Dict[str, Dict[str, Any]] = {
    "1": {
        "title": "Frame Your Perfect Moments",
        "subtitle": "Premium quality frames for every memory",
        "image": "https://images.unsplash.com/photo-1513519245088-0e12902e35ca?w=1920&h=900&fit=crop&q=80",
        "link": "/products",
        "link_text": "Shop Now",
        "display_order": 1,
        "is_active": True,
        "type": "hero",
    },
    "2": {
        "title": "20% Off Custom Frames",
        "subtitle": "Use code FRAME20 at checkout",
        "image": "https://images.unsplash.com/photo-1582053433976-25c00369fc93?w=1920&h=900&fit=crop&q=80",
        "link": "/products?discount=true",
        "link_text": "Shop Now",
        "display_order": 2,
        "is_active": True,
        "type": "hero",
    },
    "3": {
        "title": "New Arrivals Collection",
        "subtitle": "Explore the latest frame designs",
        "image": "https://images.unsplash.com/photo-1579783902614-a3fb3927b6a5?w=1920&h=900&fit=crop&q=80",
        "link": "/products?sortBy=newest",
        "link_text": "Explore Now",
        "display_order": 3,
        "is_active": True,
        "type": "hero",
    },
}


class DisplayOrderSwapError(Exception):
    pass


class SwapRequest(BaseModel):
    first_id: str
    second_id: str


def parse_banner_ref(raw: Optional[str]) -> Ref:
    return parse_ref(raw, DEFAULT_BANNERS, label="Banner ID")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def in_window(banner: Dict[str, Any], now: datetime) -> bool:
    start, end = _aware(banner.get("start_date")), _aware(banner.get("end_date"))
    return (start is None or start <= now) and (end is None or end >= now)


def _validated(base: Dict[str, Any], changes: Dict[str, Any]) -> Banner:
    fields = {k: v for k, v in base.items() if k in Banner.model_fields}
    return Banner(**{**fields, **changes})


def default_view(key: str) -> Dict[str, Any]:
    return {"id": key, **DEFAULT_BANNERS[key], "is_default": True}


def _find_override(database: Database, key: str) -> Optional[Dict[str, Any]]:
    return database["banner"].find_one({"original_default_id": key})


def upsert_default_override(database: Database, key: str, changes: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """
    Apply ``changes`` to the override of default banner ``key``.

    Returns ``(banner, created)``; at most one override exists per key.
    """
    existing = _find_override(database, key)
    if existing is None:
        banner = _validated(DEFAULT_BANNERS[key], {**changes, "original_default_id": key})
        banner_id = create_document(database, "banner", banner)
        logger.info("Saved default banner %s as %s", key, banner_id)
        return database["banner"].find_one({"original_default_id": key}), True

    _validated(existing, changes)
    database["banner"].update_one({"_id": existing["_id"]}, {"$set": {**changes, "updated_at": utcnow()}})
    logger.info("Updated override of default banner %s", key)
    return database["banner"].find_one({"_id": existing["_id"]}), False


def disable_default(database: Database, key: str) -> Dict[str, Any]:
    existing = _find_override(database, key)
    if existing is not None:
        database["banner"].update_one({"_id": existing["_id"]}, {"$set": {"is_active": False, "updated_at": utcnow()}})
        logger.info("Deactivated override of default banner %s", key)
        return database["banner"].find_one({"_id": existing["_id"]})

    template = DEFAULT_BANNERS[key]
    banner = Banner(
        title=template["title"],
        image=template["image"],
        subtitle="This banner has been disabled",
        link="#",
        link_text="Disabled",
        display_order=template["display_order"],
        is_active=False,
        type="hero",
        original_default_id=key,
    )
    create_document(database, "banner", banner)
    logger.info("Disabled default banner %s", key)
    return _find_override(database, key)


def list_banners(
    database: Database,
    banner_type: str = "hero",
    active_only: bool = True,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Banners for display.

    Stored banners win once any genuine (non-override) banner qualifies.
    Otherwise the hero defaults are shown, each replaced by its override when
    one exists; with ``active_only`` an inactive or out-of-window override
    hides its default.
    """
    now = now or utcnow()
    query: Dict[str, Any] = {"type": banner_type}
    if active_only:
        query["is_active"] = True
    stored = [
        b
        for b in database["banner"].find(query).sort("display_order", ASCENDING)
        if not active_only or in_window(b, now)
    ]
    genuine = [b for b in stored if not b.get("original_default_id")]
    if genuine or banner_type != "hero":
        return [serialize_doc(b) for b in stored[:limit]]

    overrides = {
        b["original_default_id"]: b
        # An override moved to another type no longer occupies its hero slot.
        for b in database["banner"].find({"original_default_id": {"$in": list(DEFAULT_BANNERS)}, "type": "hero"})
    }
    merged = []
    for key in DEFAULT_BANNERS:
        override = overrides.get(key)
        if override is None:
            merged.append(default_view(key))
        elif not active_only or (override.get("is_active") and in_window(override, now)):
            merged.append(serialize_doc(override))
    merged.sort(key=lambda b: b.get("display_order", 0))
    return merged[:limit]


def _materialize(database: Database, ref: Ref) -> Dict[str, Any]:
    if isinstance(ref, StoredRef):
        banner = database["banner"].find_one({"_id": ref.object_id})
        if not banner:
            raise HTTPException(status_code=404, detail="Banner not found")
        return banner
    existing = _find_override(database, ref.key)
    if existing is not None:
        return existing
    banner, _ = upsert_default_override(database, ref.key, {})
    return banner


def swap_display_order(database: Database, first: Ref, second: Ref) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Exchange the display order of two banners.

    Defaults are saved as overrides first. When the second write fails the
    first is put back and ``DisplayOrderSwapError`` is raised.
    """
    a = _materialize(database, first)
    b = _materialize(database, second)
    if a["_id"] == b["_id"]:
        return a, b
    order_a, order_b = a.get("display_order", 0), b.get("display_order", 0)

    database["banner"].update_one({"_id": a["_id"]}, {"$set": {"display_order": order_b, "updated_at": utcnow()}})
    try:
        result = database["banner"].update_one(
            {"_id": b["_id"]}, {"$set": {"display_order": order_a, "updated_at": utcnow()}}
        )
    except PyMongoError as e:
        database["banner"].update_one({"_id": a["_id"]}, {"$set": {"display_order": order_a}})
        logger.exception("Display order swap failed; reverted banner %s", a["_id"])
        raise DisplayOrderSwapError("Failed to swap banner display order") from e
    if result.matched_count == 0:
        database["banner"].update_one({"_id": a["_id"]}, {"$set": {"display_order": order_a}})
        logger.error("Banner %s vanished during swap; reverted banner %s", b["_id"], a["_id"])
        raise DisplayOrderSwapError("Failed to swap banner display order")

    logger.info("Swapped display order of banners %s and %s", a["_id"], b["_id"])
    return (
        database["banner"].find_one({"_id": a["_id"]}),
        database["banner"].find_one({"_id": b["_id"]}),
    )


# ---------------- Endpoints ----------------
@router.get("")
def get_banners(
    banner_type: str = Query("hero", alias="type"),
    active_only: bool = Query(True, alias="activeOnly"),
    limit: int = Query(10, ge=1, le=100),
    database: Database = Depends(get_db),
):
    return {"success": True, "banners": list_banners(database, banner_type, active_only, limit)}


@router.post("", status_code=201)
def create_banner(
    title: str = Form(...),
    image: UploadFile = File(...),
    subtitle: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    link_text: str = Form("Shop Now"),
    display_order: int = Form(0),
    banner_type: str = Form("hero", alias="type"),
    is_active: bool = Form(True),
    start_date: Optional[datetime] = Form(None),
    end_date: Optional[datetime] = Form(None),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    if not has_content(image):
        raise HTTPException(status_code=400, detail="Image file is required")
    fields = dict(
        title=title,
        subtitle=subtitle,
        link=link,
        link_text=link_text,
        display_order=display_order,
        type=banner_type,
        is_active=is_active,
        start_date=start_date,
        end_date=end_date,
    )
    draft = Banner(image="pending", **fields)
    url = save_image(image, admin.admin_id, "banners")
    banner_id = create_document(database, "banner", draft.model_copy(update={"image": url}))
    logger.info("Created banner %s", banner_id)
    banner = database["banner"].find_one({"_id": parse_object_id(banner_id)})
    return {"success": True, "banner": serialize_doc(banner)}


@router.put("")
def update_banner(
    banner_id: Optional[str] = Query(None, alias="id"),
    title: Optional[str] = Form(None),
    subtitle: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    link_text: Optional[str] = Form(None),
    display_order: Optional[int] = Form(None),
    banner_type: Optional[str] = Form(None, alias="type"),
    is_active: Optional[bool] = Form(None),
    start_date: Optional[datetime] = Form(None),
    end_date: Optional[datetime] = Form(None),
    image: Optional[UploadFile] = File(None),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    ref = parse_banner_ref(banner_id)
    submitted = dict(
        title=title,
        subtitle=subtitle,
        link=link,
        link_text=link_text,
        display_order=display_order,
        type=banner_type,
        is_active=is_active,
        start_date=start_date,
        end_date=end_date,
    )
    changes = {k: v for k, v in submitted.items() if v is not None}

    if isinstance(ref, StoredRef):
        existing = database["banner"].find_one({"_id": ref.object_id})
        if not existing:
            raise HTTPException(status_code=404, detail="Banner not found")
        _validated(existing, changes)
    else:
        _validated(DEFAULT_BANNERS[ref.key], changes)

    if has_content(image):
        changes["image"] = save_image(image, admin.admin_id, "banners")

    if isinstance(ref, StoredRef):
        database["banner"].update_one({"_id": ref.object_id}, {"$set": {**changes, "updated_at": utcnow()}})
        logger.info("Updated banner %s", banner_id)
        banner = database["banner"].find_one({"_id": ref.object_id})
        message = "Banner updated successfully"
    else:
        banner, _ = upsert_default_override(database, ref.key, changes)
        message = "Default banner saved to database successfully"
    return {"success": True, "banner": serialize_doc(banner), "message": message}


@router.delete("")
def delete_banner(
    banner_id: Optional[str] = Query(None, alias="id"),
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    ref = parse_banner_ref(banner_id)
    if isinstance(ref, DefaultRef):
        disable_default(database, ref.key)
        return {"success": True, "deleted": True, "message": "Default banner disabled (created inactive override)"}

    banner = database["banner"].find_one_and_delete({"_id": ref.object_id})
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    if banner.get("image", "").startswith("/"):
        delete_image(banner["image"])
    logger.info("Deleted banner %s", banner_id)
    return {"success": True, "deleted": True, "message": "Banner deleted successfully"}


@router.post("/swap")
def swap_banners(
    payload: SwapRequest,
    database: Database = Depends(get_db),
    admin: AdminSession = Depends(require_admin),
):
    first, second = parse_banner_ref(payload.first_id), parse_banner_ref(payload.second_id)
    try:
        a, b = swap_display_order(database, first, second)
    except DisplayOrderSwapError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "banners": [serialize_doc(a), serialize_doc(b)]}
