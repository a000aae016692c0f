"""
References to records that may be stored documents or hardcoded defaults.

Banner and category endpoints accept ids that are either MongoDB ObjectIds
or keys of built-in defaults. The raw id is parsed once into ``StoredRef`` or
``DefaultRef`` and handlers dispatch on the type.
"""

from typing import Dict, NamedTuple, Optional, Union

from bson import ObjectId
from fastapi import HTTPException

from database import is_object_id


class StoredRef(NamedTuple):
    object_id: ObjectId


class DefaultRef(NamedTuple):
    key: str


Ref = Union[StoredRef, DefaultRef]


def parse_ref(raw: Optional[str], default_keys, aliases: Optional[Dict[str, str]] = None, label: str = "ID") -> Ref:
    if not raw:
        raise HTTPException(status_code=400, detail=f"{label} is required")
    if is_object_id(raw):
        return StoredRef(ObjectId(raw))
    key = (aliases or {}).get(raw, raw)
    if key in default_keys:
        return DefaultRef(key)
    raise HTTPException(status_code=400, detail=f"Invalid {label} format")
