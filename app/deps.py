from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db import REPORTS_COLLECTION, MongoConnection
from app.errors import StoreError
from app.services.ingestion import ReportIngestionService
from app.services.media_store import MediaStore
from app.services.query import ReportQueryService


def get_mongo(request: Request) -> MongoConnection:
    mongo = getattr(request.app.state, "mongo", None)
    if mongo is None:
        raise StoreError("database not configured")
    return mongo


def get_database(mongo: MongoConnection = Depends(get_mongo)) -> AsyncIOMotorDatabase:
    # raises StoreError when startup never connected
    return mongo.database


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store


def get_ingestion_service(
    database: AsyncIOMotorDatabase = Depends(get_database),
    media_store: MediaStore = Depends(get_media_store),
) -> ReportIngestionService:
    return ReportIngestionService(database[REPORTS_COLLECTION], media_store)


def get_query_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> ReportQueryService:
    return ReportQueryService(database[REPORTS_COLLECTION])
