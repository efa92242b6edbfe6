import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError
from starlette.datastructures import FormData

from app.errors import ReportValidationError, StoreError, describe
from app.models import DEFAULT_PRIVACY_RADIUS_M, GEO_FIELDS, ReportDraft, ReportPayload
from app.services.media_store import MediaStore, collect_media_fields
from app.services.validation import parse_bool, validate_report

logger = logging.getLogger(__name__)

INSERT_TIMEOUT_S = 8


@dataclass
class JSONSubmission:
    body: bytes


@dataclass
class MultipartSubmission:
    form: FormData


Submission = Union[JSONSubmission, MultipartSubmission]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _form_str(form: FormData, key: str) -> str:
    value = form.get(key)
    return value.strip() if isinstance(value, str) else ""


def _parse_float(form: FormData, key: str) -> float:
    try:
        return float(_form_str(form, key))
    except ValueError:
        raise ReportValidationError(f"invalid {key}")


def _parse_optional_int(form: FormData, key: str) -> Optional[int]:
    raw = _form_str(form, key)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ReportValidationError(f"invalid {key}")


def _clean(value: Optional[str]) -> str:
    # JSON null reads as an empty string
    return (value or "").strip()


def draft_from_payload(payload: ReportPayload) -> ReportDraft:
    radius = payload.privacy_radius_m
    return ReportDraft(
        category=_clean(payload.category),
        note=_clean(payload.note),
        area_label=_clean(payload.area_label),
        lat=payload.lat,
        lng=payload.lng,
        accuracy_m=payload.accuracy_m,
        privacy_radius_m=DEFAULT_PRIVACY_RADIUS_M if radius is None else radius,
        anonymous=payload.anonymous,
        **{key: _clean(getattr(payload, key)) for key in GEO_FIELDS},
    )


def draft_from_form(form: FormData) -> ReportDraft:
    lat = _parse_float(form, "lat")
    lng = _parse_float(form, "lng")
    accuracy = _parse_optional_int(form, "accuracy_m")
    radius = _parse_optional_int(form, "privacy_radius_m")
    return ReportDraft(
        category=_form_str(form, "category"),
        note=_form_str(form, "note"),
        area_label=_form_str(form, "area_label"),
        lat=lat,
        lng=lng,
        accuracy_m=accuracy,
        privacy_radius_m=DEFAULT_PRIVACY_RADIUS_M if radius is None else radius,
        anonymous=parse_bool(_form_str(form, "anonymous")),
        **{key: _form_str(form, key) for key in GEO_FIELDS},
    )


class ReportIngestionService:
    def __init__(self, collection: AsyncIOMotorCollection, media_store: MediaStore, clock=_utcnow):
        self.collection = collection
        self.media_store = media_store
        self.clock = clock

    async def submit(self, submission: Submission) -> str:
        if isinstance(submission, JSONSubmission):
            return await self.submit_json(submission.body)
        if isinstance(submission, MultipartSubmission):
            return await self.submit_multipart(submission.form)
        raise TypeError(f"unknown submission type: {type(submission).__name__}")

    async def submit_json(self, body: bytes) -> str:
        try:
            payload = ReportPayload.model_validate_json(body)
        except PydanticValidationError:
            raise ReportValidationError("invalid JSON")

        draft = draft_from_payload(payload)
        self._validate(draft)
        return await self._insert(draft)

    async def submit_multipart(self, form: FormData) -> str:
        draft = draft_from_form(form)
        self._validate(draft)

        # Every file must be on disk before the document is built.
        voice, photos = collect_media_fields(form.multi_items())
        if voice is not None:
            draft.voice_url = await self.media_store.save("voice", voice)
        for photo in photos:
            draft.photo_urls.append(await self.media_store.save("photo", photo))

        return await self._insert(draft)

    @staticmethod
    def _validate(draft: ReportDraft) -> None:
        validate_report(draft.category, draft.note, draft.area_label, draft.lat, draft.lng)

    async def _insert(self, draft: ReportDraft) -> str:
        doc = draft.to_document(created_at=self.clock())
        try:
            result = await asyncio.wait_for(self.collection.insert_one(doc), timeout=INSERT_TIMEOUT_S)
        except (PyMongoError, asyncio.TimeoutError) as e:
            logger.error("[REPORTS] insert failed: %s", describe(e))
            raise StoreError(f"insert report: {describe(e)}") from e

        report_id = str(result.inserted_id)
        logger.info(
            "[REPORTS] created %s category=%s media=%d",
            report_id, draft.category, len(draft.photo_urls) + (1 if draft.voice_url else 0),
        )
        return report_id
