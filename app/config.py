import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (where .env should be)
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"

# Load .env file from project root; real environment variables win
load_dotenv(dotenv_path=env_path)


def getenv(key: str, default: str = "") -> str:
    """Return the trimmed env value, or the default when unset or blank."""
    value = (os.getenv(key) or "").strip()
    return value or default


ADDR = getenv("ADDR", ":3005")
UPLOAD_DIR = getenv("UPLOAD_DIR", "uploads")
UPLOADS_URL_PATH = "/uploads"
LOG_LEVEL = getenv("LOG_LEVEL", "INFO").upper()

CORS_ALLOW_ORIGINS = [
    o.strip() for o in getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]


def split_addr(addr: str) -> tuple:
    """':3005' -> ('0.0.0.0', 3005), '127.0.0.1:8000' -> ('127.0.0.1', 8000)."""
    host, _, port = addr.rpartition(":")
    return (host or "0.0.0.0", int(port or 3005))
