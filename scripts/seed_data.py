"""Seed a few demo reports. Run from the project root: python -m scripts.seed_data"""
import asyncio
import json

from app.config import UPLOAD_DIR, UPLOADS_URL_PATH
from app.db import MongoConnection, resolve_config
from app.services.ingestion import JSONSubmission, ReportIngestionService
from app.services.media_store import MediaStore

DEMO_REPORTS = [
    {
        "category": "road_damage",
        "note": "Deep pothole in the left lane",
        "area_label": "Near 8.484, -13.234",
        "lat": 8.48412,
        "lng": -13.23441,
        "accuracy_m": 20,
        "district": "Western Area Urban",
        "region": "Western",
    },
    {
        "category": "flooding",
        "note": "Drain blocked, water over the footpath",
        "area_label": "Near 8.470, -13.260",
        "lat": 8.4701,
        "lng": -13.2603,
        "anonymous": True,
    },
    {
        "category": "waste",
        "note": "Refuse not collected for two weeks",
        "area_label": "Near 7.964, -11.738",
        "lat": 7.9644,
        "lng": -11.7383,
        "privacy_radius_m": 500,
        "chiefdom": "Kakua",
        "geo_method": "gps",
    },
]


async def main():
    mongo = MongoConnection(resolve_config())
    await mongo.connect()
    service = ReportIngestionService(mongo.reports, MediaStore(UPLOAD_DIR, UPLOADS_URL_PATH))
    try:
        ids = [await service.submit(JSONSubmission(json.dumps(r).encode())) for r in DEMO_REPORTS]
    finally:
        await mongo.close()

    print("✅ Seeded demo reports successfully!")
    for report, report_id in zip(DEMO_REPORTS, ids):
        print(f"   - {report['category']}: {report_id}")


if __name__ == "__main__":
    asyncio.run(main())
