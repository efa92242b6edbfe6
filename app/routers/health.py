from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.db import MongoConnection
from app.deps import get_mongo
from app.errors import StoreError

router = APIRouter()


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz():
    return "ok"


@router.get("/health/db", response_class=PlainTextResponse)
async def health_db(mongo: MongoConnection = Depends(get_mongo)):
    try:
        await mongo.ping(timeout=2.0)
    except StoreError as e:
        return PlainTextResponse(f"mongo down: {e}", status_code=503)
    return "mongo ok"
