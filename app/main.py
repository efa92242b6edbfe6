import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.staticfiles import StaticFiles

from app.config import ADDR, CORS_ALLOW_ORIGINS, LOG_LEVEL, UPLOAD_DIR, UPLOADS_URL_PATH, split_addr
from app.db import MongoConnection, resolve_config
from app.errors import ReportError
from app.routers import health, locate, reports
from app.services.media_store import MediaStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Meniba API", version="0.1.0")

app.state.mongo = MongoConnection(resolve_config())
app.state.media_store = MediaStore(UPLOAD_DIR, url_prefix=UPLOADS_URL_PATH)


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    if exc.status_code >= 500:
        logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors (malformed multipart, unknown route) in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them."""
    logger.exception("[GLOBAL ERROR] Unhandled %s on %s", type(exc).__name__, request.url.path)
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc) or type(exc).__name__})


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
    max_age=600,
)

# StaticFiles checks the directory at mount time
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOADS_URL_PATH, StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.on_event("startup")
async def on_startup():
    try:
        await app.state.mongo.connect()
    except Exception:
        # no retry loop: a failed startup exits and the supervisor restarts us
        logger.critical("[STARTUP] mongo connect failed, aborting")
        raise


@app.on_event("shutdown")
async def on_shutdown():
    await app.state.mongo.close()


app.include_router(health.router, tags=["health"])
app.include_router(locate.router, prefix="/api", tags=["locate"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])


if __name__ == "__main__":
    import uvicorn

    host, port = split_addr(ADDR)
    logger.info("listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
