import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.errors import ReportValidationError, StoreError, describe
from app.models import ReportItem
from app.services.validation import parse_bool

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
FIND_TIMEOUT_S = 8

BBox = Tuple[float, float, float, float]

# fromisoformat before 3.11 only takes 3 or 6 fraction digits
_FRACTION = re.compile(r"([T ]\d{2}:\d{2}:\d{2})\.(\d+)", re.IGNORECASE)


@dataclass
class ReportFilters:
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    has_media: Optional[bool] = None
    bbox: Optional[BBox] = None
    cursor: Optional[ObjectId] = None


@dataclass
class ReportPage:
    items: List[ReportItem] = field(default_factory=list)
    next_cursor: Optional[str] = None


def clamp_limit(raw) -> int:
    try:
        n = int(str(raw).strip())
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, n))


def parse_timestamp(raw: str, name: str) -> datetime:
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}", value)
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        raise ReportValidationError(f"invalid {name} (RFC3339)")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_bbox(raw: str) -> BBox:
    """'minLng,minLat,maxLng,maxLat' -> floats, rejecting inverted boxes."""
    parts = raw.split(",")
    try:
        if len(parts) != 4:
            raise ValueError("need 4 numbers")
        min_lng, min_lat, max_lng, max_lat = (float(p.strip()) for p in parts)
        if max_lng < min_lng or max_lat < min_lat:
            raise ValueError("max must be >= min")
    except ValueError:
        raise ReportValidationError("invalid bbox (minLng,minLat,maxLng,maxLat)")
    return min_lng, min_lat, max_lng, max_lat


def parse_cursor(raw: str) -> ObjectId:
    value = raw.strip()
    if not ObjectId.is_valid(value):
        raise ReportValidationError("invalid cursor")
    return ObjectId(value)


def parse_filters(
    category: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    has_media: Optional[str] = None,
    bbox: Optional[str] = None,
    cursor: Optional[str] = None,
) -> ReportFilters:
    """Build filters from raw query-string values; blank values are ignored."""
    filters = ReportFilters()
    if category:
        filters.category = category
    if start_date:
        filters.start_date = parse_timestamp(start_date, "start_date")
    if end_date:
        filters.end_date = parse_timestamp(end_date, "end_date")
    if has_media and has_media.strip():
        filters.has_media = parse_bool(has_media)
    if bbox:
        filters.bbox = parse_bbox(bbox)
    if cursor:
        filters.cursor = parse_cursor(cursor)
    return filters


def build_filter(filters: ReportFilters) -> dict:
    clauses = []

    if filters.category:
        clauses.append({"category": filters.category})

    created = {}
    if filters.start_date is not None:
        created["$gte"] = filters.start_date
    if filters.end_date is not None:
        created["$lte"] = filters.end_date
    if created:
        clauses.append({"created_at": created})

    if filters.has_media is True:
        clauses.append({"$or": [
            {"voice_url": {"$exists": True, "$nin": ["", None]}},
            {"photo_urls.0": {"$exists": True}},
        ]})
    elif filters.has_media is False:
        clauses.append({"$or": [{"voice_url": None}, {"voice_url": ""}]})
        clauses.append({"photo_urls.0": {"$exists": False}})

    if filters.bbox is not None:
        min_lng, min_lat, max_lng, max_lat = filters.bbox
        clauses.append({"lat": {"$gte": min_lat, "$lte": max_lat}})
        clauses.append({"lng": {"$gte": min_lng, "$lte": max_lng}})

    if filters.cursor is not None:
        clauses.append({"_id": {"$lt": filters.cursor}})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ReportQueryService:
    """
    Newest-first report listing with a forward-only `_id` cursor.

    ObjectIds grow with insertion order, so "_id < cursor" never skips or repeats
    a report already seen, even when new reports arrive between pages. Pages are
    not a consistent snapshot, though.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def list(self, filters: ReportFilters, limit: int = DEFAULT_LIMIT) -> ReportPage:
        limit = clamp_limit(limit)
        query = build_filter(filters)
        try:
            docs = await asyncio.wait_for(self._fetch(query, limit + 1), timeout=FIND_TIMEOUT_S)
        except (PyMongoError, asyncio.TimeoutError) as e:
            logger.error("[REPORTS] list failed: %s", describe(e))
            raise StoreError(f"list reports: {describe(e)}") from e

        page = ReportPage()
        if len(docs) > limit:
            docs = docs[:limit]
            page.next_cursor = str(docs[-1]["_id"])
        page.items = [ReportItem.from_document(d) for d in docs]
        return page

    async def _fetch(self, query: dict, n: int) -> list:
        cursor = self.collection.find(query).sort("_id", DESCENDING).limit(n)
        return await cursor.to_list(length=n)
