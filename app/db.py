import asyncio
import logging
import os
import time
from typing import Mapping, NamedTuple, Optional
from urllib.parse import urlsplit, urlunsplit

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

import app.config  # noqa: F401  (loads .env before the Mongo variables are read)
from app.errors import StoreError, describe

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_URI = "mongodb://localhost:27017"
DEFAULT_DB_NAME = "meniba"
REPORTS_COLLECTION = "reports"

CONNECT_TIMEOUT_S = 15
INDEX_TIMEOUT_S = 10


class MongoConfig(NamedTuple):
    uri: str
    db_name: str
    mode: str
    reason: str


def _env(environ: Mapping[str, str], key: str, default: str = "") -> str:
    value = (environ.get(key) or "").strip()
    return value or default


def resolve_config(environ: Optional[Mapping[str, str]] = None) -> MongoConfig:
    """
    Pick the Mongo endpoint from MONGO_MODE / MONGO_URI / MONGO_URI_LOCAL / MONGO_URI_REMOTE.

    local  -> explicit MONGO_URI, else the local default
    remote -> MONGO_URI_REMOTE, else falls back to explicit/local with a warning
    auto   -> remote > explicit > local
    """
    if environ is None:
        environ = os.environ

    mode = _env(environ, "MONGO_MODE", "auto").lower()
    db_name = _env(environ, "MONGO_DB", DEFAULT_DB_NAME)
    explicit = _env(environ, "MONGO_URI")
    local = _env(environ, "MONGO_URI_LOCAL", DEFAULT_LOCAL_URI)
    remote = _env(environ, "MONGO_URI_REMOTE")

    if mode == "local":
        if explicit:
            return MongoConfig(explicit, db_name, "local", "MONGO_MODE=local with explicit MONGO_URI")
        return MongoConfig(local, db_name, "local", "MONGO_MODE=local using MONGO_URI_LOCAL/default")

    if mode == "remote":
        if remote:
            return MongoConfig(remote, db_name, "remote", "MONGO_MODE=remote, using MONGO_URI_REMOTE")
        logger.warning("[MONGO] MONGO_MODE=remote but MONGO_URI_REMOTE empty; falling back to local")
        return MongoConfig(
            explicit or local, db_name, "local", "remote missing -> fallback to explicit/local"
        )

    if remote:
        return MongoConfig(remote, db_name, "remote", "auto: MONGO_URI_REMOTE present")
    if explicit:
        return MongoConfig(explicit, db_name, "auto", "auto: MONGO_URI present")
    return MongoConfig(local, db_name, "local", "auto: fallback to local")


def redact_uri(raw: str) -> str:
    """Mask the userinfo part of a connection string so it can be logged."""
    if not raw or "://" not in raw:
        return raw
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw
    if "@" not in parts.netloc:
        return raw
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"****:****@{host}"))


def env_snapshot(environ: Optional[Mapping[str, str]] = None) -> str:
    if environ is None:
        environ = os.environ
    fields = [
        "MONGO_MODE=" + _env(environ, "MONGO_MODE", "auto"),
        "MONGO_DB=" + _env(environ, "MONGO_DB", DEFAULT_DB_NAME),
        "MONGO_URI=" + redact_uri(_env(environ, "MONGO_URI")),
        "MONGO_URI_LOCAL=" + redact_uri(_env(environ, "MONGO_URI_LOCAL", DEFAULT_LOCAL_URI)),
        "MONGO_URI_REMOTE=" + redact_uri(_env(environ, "MONGO_URI_REMOTE")),
    ]
    return " ".join(fields)


async def ensure_indexes(collection: AsyncIOMotorCollection) -> list:
    """Create the report indexes; returns the failures instead of raising."""
    wanted = [
        ("created_at", [("created_at", DESCENDING)]),
        ("category", [("category", ASCENDING)]),
        ("lat,lng", [("lat", ASCENDING), ("lng", ASCENDING)]),
    ]
    errors = []
    for label, keys in wanted:
        try:
            await asyncio.wait_for(collection.create_index(keys), timeout=INDEX_TIMEOUT_S)
        except (PyMongoError, asyncio.TimeoutError) as e:
            errors.append(f"{label}: {describe(e)}")
    if errors:
        logger.warning("[MONGO] index creation warnings: %s", "; ".join(errors))
    return errors


class MongoConnection:
    """Process-owned Motor client. Build once, connect at startup, inject everywhere."""

    def __init__(self, config: MongoConfig, client_factory=AsyncIOMotorClient):
        self.config = config
        self._client_factory = client_factory
        self._client = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    @property
    def connected(self) -> bool:
        return self._db is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise StoreError("database not connected: call MongoConnection.connect() first")
        return self._db

    @property
    def reports(self) -> AsyncIOMotorCollection:
        return self.database[REPORTS_COLLECTION]

    def _client_kwargs(self) -> dict:
        kwargs = {
            "serverSelectionTimeoutMS": CONNECT_TIMEOUT_S * 1000,
            "connectTimeoutMS": CONNECT_TIMEOUT_S * 1000,
            "tz_aware": True,
        }
        if self.config.uri.startswith("mongodb+srv://") or self.config.mode == "remote":
            kwargs["tlsCAFile"] = certifi.where()
        return kwargs

    async def connect(self) -> AsyncIOMotorDatabase:
        if self._db is not None:
            return self._db

        cfg = self.config
        if os.getenv("MONGO_DEBUG"):
            logger.info("[MONGO] env snapshot %s", env_snapshot())

        start = time.monotonic()
        logger.info(
            "[MONGO] connecting mode=%s uri=%s db=%s (%s)",
            cfg.mode, redact_uri(cfg.uri), cfg.db_name, cfg.reason,
        )

        client = None
        try:
            client = self._client_factory(cfg.uri, **self._client_kwargs())
            db = client[cfg.db_name]
            await asyncio.wait_for(db.command("ping"), timeout=CONNECT_TIMEOUT_S)
        except (PyMongoError, asyncio.TimeoutError, ValueError) as e:
            if client is not None:
                client.close()
            logger.error("[MONGO] connection to %s failed: %s", redact_uri(cfg.uri), e)
            raise StoreError(f"mongo connect: {describe(e)}") from e

        self._client = client
        self._db = db
        await ensure_indexes(db[REPORTS_COLLECTION])

        logger.info("[MONGO] connected ok in %dms", int((time.monotonic() - start) * 1000))
        return db

    async def ping(self, timeout: float = 2.0) -> None:
        try:
            await asyncio.wait_for(self.database.command("ping"), timeout=timeout)
        except (PyMongoError, asyncio.TimeoutError) as e:
            raise StoreError(describe(e)) from e

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("[MONGO] connection closed")
        self._client = None
        self._db = None
