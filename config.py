import logging
import os

from dotenv import load_dotenv
load_dotenv()

GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta").strip().rstrip("/")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "120"))

DETECT_MODEL = os.getenv("DETECT_MODEL", "gemini-2.5-flash").strip()
CLEAN_MODEL = os.getenv("CLEAN_MODEL", "gemini-2.5-flash-image").strip()
PROXY_MODEL = os.getenv("PROXY_MODEL", "gemini-2.5-flash").strip()

CHUNK_HEIGHT = int(os.getenv("CHUNK_HEIGHT", "2048"))   # px per detection request
MAX_DIM = int(os.getenv("MAX_DIM", "2048"))             # widest chunk sent to the detector
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "80"))
PAD_RATIO = float(os.getenv("PAD_RATIO", "0.05"))
MIN_SELECTION = float(os.getenv("MIN_SELECTION", "10"))

EXPORT_NAME = os.getenv("EXPORT_NAME", "cleaned-manga.png").strip()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


class ConfigError(RuntimeError):
    pass


def get_api_key() -> str:
    # read per call; the key may be exported after import
    key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if not key:
        raise ConfigError("GEMINI_API_KEY is not set.")
    return key


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
