import io
import json
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError
from starlette.datastructures import FormData, UploadFile

from app.errors import MediaStorageError, ReportValidationError, StoreError
from app.services.ingestion import JSONSubmission, MultipartSubmission, ReportIngestionService

FIXED_NOW = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)

BASE = {
    "category": "road_damage",
    "note": "Pothole by the market",
    "area_label": "Near 8.484, -13.234",
    "lat": 8.48412,
    "lng": -13.23441,
}


def _json(**overrides):
    return JSONSubmission(body=json.dumps({**BASE, **overrides}).encode())


def _form(*extra, **overrides):
    fields = {**{k: str(v) for k, v in BASE.items()}, **overrides}
    return MultipartSubmission(form=FormData(list(fields.items()) + list(extra)))


def _upload(name, content=b"bytes"):
    return UploadFile(file=io.BytesIO(content), filename=name)


class FailingMediaStore:
    def __init__(self, fail_on_call=1):
        self.calls = 0
        self.fail_on_call = fail_on_call

    async def save(self, kind, upload):
        self.calls += 1
        if self.calls >= self.fail_on_call:
            raise MediaStorageError("disk full")
        return f"/uploads/{kind}_{self.calls}"


class BrokenCollection:
    async def insert_one(self, doc):
        raise ServerSelectionTimeoutError("no primary")


@pytest.fixture
def service(reports, media_store):
    return ReportIngestionService(reports, media_store, clock=lambda: FIXED_NOW)


# --- JSON ---

async def test_json_submission_persists_one_document(service, reports):
    report_id = await service.submit(_json(accuracy_m=12, anonymous=True, district="  Western Urban "))

    assert ObjectId.is_valid(report_id)
    assert await reports.count_documents({}) == 1
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["category"] == "road_damage"
    assert doc["note"] == "Pothole by the market"
    assert doc["lat"] == 8.48412
    assert doc["lng"] == -13.23441
    assert doc["accuracy_m"] == 12
    assert doc["anonymous"] is True
    assert doc["district"] == "Western Urban"
    assert doc["privacy_radius_m"] == 300
    assert "voice_url" not in doc
    assert "photo_urls" not in doc
    assert "region" not in doc


async def test_json_keeps_explicit_privacy_radius(service, reports):
    report_id = await service.submit(_json(privacy_radius_m=50))
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["privacy_radius_m"] == 50


async def test_json_trims_text_fields(service, reports):
    report_id = await service.submit(_json(note="  spaced out  ", area_label=" Somewhere "))
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["note"] == "spaced out"
    assert doc["area_label"] == "Somewhere"


async def test_json_null_optionals_are_treated_as_absent(service, reports):
    report_id = await service.submit(_json(district=None, adrehs=None, region=None, geo_method=None))
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    for key in ("district", "adrehs", "region", "geo_method"):
        assert key not in doc


async def test_json_null_category_is_missing_not_malformed(service, reports):
    with pytest.raises(ReportValidationError, match="missing category"):
        await service.submit(_json(category=None))
    assert await reports.count_documents({}) == 0


async def test_created_at_is_server_side(service, reports):
    report_id = await service.submit(_json(created_at="1999-01-01T00:00:00Z"))
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["created_at"].replace(tzinfo=timezone.utc) == FIXED_NOW


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"category": ""}, "missing category"),
        ({"note": "   "}, "missing note"),
        ({"area_label": ""}, "missing area_label"),
        ({"lat": 0, "lng": 0}, "invalid coordinates"),
    ],
)
async def test_json_validation_failures_persist_nothing(service, reports, overrides, reason):
    with pytest.raises(ReportValidationError, match=reason):
        await service.submit(_json(**overrides))
    assert await reports.count_documents({}) == 0


@pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b'{"lat": "north"}', b""])
async def test_unparseable_json_is_a_validation_error(service, reports, body):
    with pytest.raises(ReportValidationError, match="invalid JSON"):
        await service.submit(JSONSubmission(body=body))
    assert await reports.count_documents({}) == 0


async def test_store_failure_surfaces_as_store_error(media_store):
    service = ReportIngestionService(BrokenCollection(), media_store)
    with pytest.raises(StoreError, match="no primary"):
        await service.submit(_json())


# --- multipart ---

async def test_multipart_scalars_are_parsed(service, reports):
    report_id = await service.submit(
        _form(accuracy_m="15", privacy_radius_m="120", anonymous="Yes", geo_method=" gps ")
    )
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["lat"] == 8.48412
    assert doc["accuracy_m"] == 15
    assert doc["privacy_radius_m"] == 120
    assert doc["anonymous"] is True
    assert doc["geo_method"] == "gps"


async def test_multipart_defaults(service, reports):
    report_id = await service.submit(_form(anonymous="nope"))
    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert doc["privacy_radius_m"] == 300
    assert doc["anonymous"] is False
    assert "accuracy_m" not in doc


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"lat": "north"}, "invalid lat"),
        ({"lng": ""}, "invalid lng"),
        ({"accuracy_m": "12.5"}, "invalid accuracy_m"),
        ({"privacy_radius_m": "far"}, "invalid privacy_radius_m"),
        ({"lat": "0", "lng": "0"}, "invalid coordinates"),
    ],
)
async def test_multipart_malformed_fields(service, reports, overrides, reason):
    with pytest.raises(ReportValidationError, match=reason):
        await service.submit(_form(**overrides))
    assert await reports.count_documents({}) == 0


async def test_multipart_media_order_and_single_voice(service, reports, media_store):
    report_id = await service.submit(_form(
        ("photo1", _upload("first.jpg", b"one")),
        ("voice", _upload("memo.m4a", b"voice")),
        ("photo2", _upload("second.png", b"two")),
        ("voice", _upload("ignored.m4a", b"late")),
    ))

    doc = await reports.find_one({"_id": ObjectId(report_id)})
    assert len(doc["photo_urls"]) == 2
    assert doc["photo_urls"][0].endswith(".jpg")
    assert doc["photo_urls"][1].endswith(".png")
    assert doc["voice_url"].startswith("/uploads/voice_")

    saved = sorted(p.name for p in media_store.upload_dir.iterdir())
    assert len(saved) == 3
    voice_file = media_store.upload_dir / doc["voice_url"].rsplit("/", 1)[1]
    assert voice_file.read_bytes() == b"voice"


async def test_media_failure_persists_no_document(reports):
    store = FailingMediaStore(fail_on_call=2)
    service = ReportIngestionService(reports, store)

    with pytest.raises(MediaStorageError):
        await service.submit(_form(("photo1", _upload("a.jpg")), ("photo2", _upload("b.jpg"))))

    assert store.calls == 2
    assert await reports.count_documents({}) == 0


async def test_validation_runs_before_media_is_saved(reports):
    store = FailingMediaStore()
    service = ReportIngestionService(reports, store)

    with pytest.raises(ReportValidationError):
        await service.submit(_form(("photo1", _upload("a.jpg")), category=""))
    assert store.calls == 0


async def test_unknown_submission_type(service):
    with pytest.raises(TypeError):
        await service.submit({"category": "x"})
