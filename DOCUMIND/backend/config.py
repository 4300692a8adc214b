# backend/config.py
import os
from dotenv import load_dotenv

load_dotenv()

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")

# A full URL (key included) takes precedence over the composed one.
GEMINI_ENDPOINT_URL = os.getenv(
    "GEMINI_ENDPOINT_URL",
    f"{GEMINI_API_BASE}/models/{GEMINI_MODEL}:generateContent?key={GEMINI_API_KEY}",
)

GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "60")) # Seconds before a hung backend is a transport failure

# Page images go into the prompt as data URLs; set to false to reference them by name only
GEMINI_INLINE_IMAGES = os.getenv("GEMINI_INLINE_IMAGES", "true").lower() in ("1", "true", "yes")

MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "25"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
