import logging
import re
from datetime import date, datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from pymongo import ReturnDocument
from pymongo.database import Database

from settings import settings

logger = logging.getLogger(__name__)

ORDER_NUMBER_RE = re.compile(r"^ORD-(\d{8})-(\d{4,})$")


def store_today(now: Optional[datetime] = None) -> date:
    tz = ZoneInfo(settings.STORE_TIMEZONE)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(tz).date()


def next_order_number(database: Database, now: Optional[datetime] = None) -> str:
    """
    Allocate the next ``ORD-YYYYMMDD-NNNN`` number for the store's calendar day.

    The sequence lives in one counter document per day and is bumped with a
    single ``$inc`` upsert, so concurrent callers never see the same value.
    """
    day = store_today(now).strftime("%Y%m%d")
    counter = database["counter"].find_one_and_update(
        {"_id": f"order-{day}"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    number = f"ORD-{day}-{counter['seq']:04d}"
    logger.info("Allocated order number %s", number)
    return number


def parse_order_number(value: str) -> Tuple[date, int]:
    match = ORDER_NUMBER_RE.match(value or "")
    if not match:
        raise ValueError(f"Malformed order number: {value!r}")
    day = datetime.strptime(match.group(1), "%Y%m%d").date()
    return day, int(match.group(2))
