from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, Field

DEFAULT_PRIVACY_RADIUS_M = 300

GEO_FIELDS = ("adrehs", "district", "chiefdom", "region", "section", "geo_method")


class ReportPayload(BaseModel):
    """JSON body of POST /api/reports."""

    category: Optional[str] = None
    note: Optional[str] = None
    area_label: Optional[str] = None
    lat: float = 0.0
    lng: float = 0.0
    accuracy_m: Optional[int] = None
    privacy_radius_m: Optional[int] = None
    anonymous: bool = False
    adrehs: Optional[str] = None
    district: Optional[str] = None
    chiefdom: Optional[str] = None
    region: Optional[str] = None
    section: Optional[str] = None
    geo_method: Optional[str] = None


class ReportDraft(BaseModel):
    """Canonical report shape both submission formats are normalized into."""

    category: str
    note: str
    area_label: str
    lat: float
    lng: float
    accuracy_m: Optional[int] = None
    privacy_radius_m: int = DEFAULT_PRIVACY_RADIUS_M
    anonymous: bool = False
    voice_url: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    adrehs: str = ""
    district: str = ""
    chiefdom: str = ""
    region: str = ""
    section: str = ""
    geo_method: str = ""

    def to_document(self, created_at: datetime) -> dict:
        """Mongo document; empty optionals are left out."""
        doc = {
            "category": self.category,
            "note": self.note,
            "area_label": self.area_label,
            "lat": self.lat,
            "lng": self.lng,
            "privacy_radius_m": self.privacy_radius_m,
            "anonymous": self.anonymous,
        }
        if self.accuracy_m is not None:
            doc["accuracy_m"] = self.accuracy_m
        if self.voice_url:
            doc["voice_url"] = self.voice_url
        if self.photo_urls:
            doc["photo_urls"] = list(self.photo_urls)
        for key in GEO_FIELDS:
            value = getattr(self, key)
            if value:
                doc[key] = value
        doc["created_at"] = created_at
        return doc


class ReportItem(BaseModel):
    id: str
    category: str
    note: str
    area_label: str
    lat: float
    lng: float
    accuracy_m: Optional[int] = None
    privacy_radius_m: Optional[int] = None
    anonymous: bool = False
    created_at: str
    voice_url: Optional[str] = None
    photo_urls: Optional[List[str]] = None
    adrehs: Optional[str] = None
    district: Optional[str] = None
    chiefdom: Optional[str] = None
    region: Optional[str] = None
    section: Optional[str] = None
    geo_method: Optional[str] = None

    @classmethod
    def from_document(cls, doc: dict) -> "ReportItem":
        data = serialize_doc(doc)
        data["id"] = data.pop("_id")
        data["created_at"] = format_rfc3339(doc.get("created_at"))
        if not data.get("photo_urls"):
            data.pop("photo_urls", None)
        return cls.model_validate(data)


class CreateReportResponse(BaseModel):
    ok: bool = True
    id: str


class ReportListResponse(BaseModel):
    ok: bool = True
    items: List[ReportItem]
    next_cursor: Optional[str] = None


class LocateRequest(BaseModel):
    lat: float
    lng: float = Field(validation_alias=AliasChoices("lng", "lon"))
    accuracy_m: Optional[int] = None


class LocateResponse(BaseModel):
    label: str
    area_label: str


def format_rfc3339(value) -> str:
    if not isinstance(value, datetime):
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _stringify(val):
    """Convert MongoDB types to JSON-serializable types."""
    if isinstance(val, ObjectId):
        return str(val)
    elif isinstance(val, datetime):
        return val.isoformat()
    return val


def serialize_doc(doc: dict) -> dict:
    """Convert Mongo ObjectIds and other types to JSON-serializable formats."""
    if not isinstance(doc, dict):
        return doc

    result = {}
    for key, value in doc.items():
        if isinstance(value, dict):
            result[key] = serialize_doc(value)
        elif isinstance(value, list):
            result[key] = [serialize_doc(item) if isinstance(item, dict) else _stringify(item) for item in value]
        else:
            result[key] = _stringify(value)
    return result
