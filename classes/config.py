import logging
import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n"
)

logger = logging.getLogger("gallery_backend")

# --- Configuration ---
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")
REGION = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")

TEXT_MODEL          = os.getenv("GALLERY_TEXT_MODEL", "gemini-2.5-flash")
IMAGE_EDIT_MODEL    = os.getenv("GALLERY_IMAGE_MODEL", "gemini-2.5-flash-image")
LLM_TIMEOUT         = float(os.getenv("LLM_TIMEOUT", "120"))

DATABASE_URL        = os.getenv("DATABASE_URL", "sqlite:///gallery.db")
DOCUMENT_ID         = os.getenv("GALLERY_DOCUMENT_ID", "collection")
SEED_IF_EMPTY       = os.getenv("SEED_IF_EMPTY", "true").strip().lower() in ("1", "true", "yes")

CURATOR_PASSWORD    = os.getenv("CURATOR_PASSWORD", "pass")

SAVE_DEBOUNCE_SECONDS       = float(os.getenv("SAVE_DEBOUNCE_SECONDS", "1.0"))
IMAGE_EDIT_COOLDOWN_SECONDS = float(os.getenv("IMAGE_EDIT_COOLDOWN_SECONDS", "60"))

PORT = int(os.getenv("PORT", "3000"))



def get_db_engine(url: str | None = None):
    url = url or DATABASE_URL

    if url.startswith("sqlite"):
        logger.info(f"[DB] Using SQLite URL: {url}")
        # the debounced writer flushes from a timer thread
        return create_engine(url, connect_args={"check_same_thread": False})

    logger.info(f"[DB] Connecting to database URL: {url}")
    return create_engine(url, pool_pre_ping=True)


def create_session_factory(url: str | None = None) -> sessionmaker:
    engine = get_db_engine(url)
    return sessionmaker(bind=engine, autoflush=False, future=True)
