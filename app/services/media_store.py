import logging
import os
import secrets
import shutil
import time
from pathlib import Path
from typing import List, Optional, Tuple

from starlette.datastructures import UploadFile

from app.errors import MediaStorageError

logger = logging.getLogger(__name__)

MAX_EXT_LEN = 8
SUFFIX_LEN = 6


def _random_hex(n: int = SUFFIX_LEN) -> str:
    return secrets.token_hex((n + 1) // 2)[:n]


def build_file_name(kind: str, original_name: Optional[str]) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()[:MAX_EXT_LEN]
    return f"{kind}_{time.time_ns()}_{_random_hex()}{ext}"


class MediaStore:
    """Writes uploaded attachments under upload_dir and hands back public URLs."""

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    async def save(self, kind: str, upload: UploadFile) -> str:
        name = build_file_name(kind, upload.filename)
        dst = self.upload_dir / name
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            await upload.seek(0)
            with dst.open("wb") as out:
                shutil.copyfileobj(upload.file, out)
        except OSError as e:
            logger.error("[MEDIA] failed to save %s upload %r: %s", kind, upload.filename, e)
            raise MediaStorageError(f"failed to save {kind}: {e}") from e

        logger.info("[MEDIA] saved %s -> %s", kind, name)
        return f"{self.url_prefix}/{name}"


def collect_media_fields(items) -> Tuple[Optional[UploadFile], List[UploadFile]]:
    """
    Pick the attachments out of multipart (key, value) pairs, in form order.

    Only the first `voice` file is kept; every `photo*` file is kept.
    """
    voice = None
    photos: List[UploadFile] = []
    for key, value in items:
        if not isinstance(value, UploadFile):
            continue
        if key == "voice":
            if voice is None:
                voice = value
        elif key.startswith("photo"):
            photos.append(value)
    return voice, photos
