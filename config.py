# config.py
# Environment-driven settings. Values are read once at import time.
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "amour")

SESSION_COOKIE = "sid"
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", str(7 * 24 * 60)))  # default 7 days
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes") or os.getenv("ENV") == "production"

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5MB

BCRYPT_ROUNDS = 10

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))
