"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Accepted uploads (declared media type) and the extension -> media type map used for local files
ALLOWED_MEDIA_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/tiff",
    "image/webp",
)
EXTENSION_MEDIA_TYPES = {
    ".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png",
    ".gif": "image/gif", ".bmp": "image/bmp", ".tiff": "image/tiff",
    ".tif": "image/tiff", ".webp": "image/webp",
}
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

# Encoder options (env overrides). Effort maps to Pillow's WebP "method" (0-6).
WEBP_QUALITY = int(os.getenv("WEBP_QUALITY", "85"))
WEBP_EFFORT = int(os.getenv("WEBP_EFFORT", "4"))
OUTPUT_EXTENSION = ".webp"
OUTPUT_MEDIA_TYPE = "image/webp"

# Batch client: where the endpoint lives and how long one conversion may take
CONVERTER_URL = os.getenv("CONVERTER_URL", "http://127.0.0.1:8000").rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(Path.cwd() / "converted")))

# Synthetic progress while a single conversion request is in flight
PROGRESS_TICK_SECONDS = float(os.getenv("PROGRESS_TICK_SECONDS", "0.1"))
PROGRESS_STEP = int(os.getenv("PROGRESS_STEP", "10"))
PROGRESS_CEILING = min(99, int(os.getenv("PROGRESS_CEILING", "90")))

# Database for the endpoint's conversion log. SQLite by default; any SQLAlchemy URL works.
DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
if not DATABASE_URL:
    db_path = BASE_DIR / "data" / "conversions.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    DATABASE_URL = f"sqlite:///{db_path}"

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("webp_batch")
