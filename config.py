# config.py
import os
from dotenv import load_dotenv

load_dotenv()

BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
ADMIN_TELEGRAM_ID = int(os.getenv("ADMIN_TELEGRAM_ID")) if os.getenv("ADMIN_TELEGRAM_ID") else None
TELEGRAM_GROUP_ID = int(os.getenv("TELEGRAM_GROUP_ID")) if os.getenv("TELEGRAM_GROUP_ID") else None

# Persistence: full async URL wins, otherwise compose from the Postgres parts
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "")
POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB = os.getenv("POSTGRES_DB", "referrals")
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    if POSTGRES_HOST else None
)
DB_CONNECT_RETRIES = int(os.getenv("DB_CONNECT_RETRIES", "5"))
DB_CONNECT_RETRY_DELAY = float(os.getenv("DB_CONNECT_RETRY_DELAY", "2.0"))  # seconds

USE_PROXY = os.getenv("USE_PROXY", "false").lower() in ("1", "true", "yes")
PROXY_URL = os.getenv("PROXY_URL", "socks5://127.0.0.1:9050")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")
SENTRY_DSN = os.getenv("SENTRY_DSN")

# Programme rules
MIN_WITHDRAWAL_AMOUNT = int(os.getenv("MIN_WITHDRAWAL_AMOUNT", "50"))
REFERRAL_CODE_MAX_ATTEMPTS = int(os.getenv("REFERRAL_CODE_MAX_ATTEMPTS", "50"))
CURRENCY = os.getenv("CURRENCY", "birr")
SUPPORT_CONTACT = os.getenv("SUPPORT_CONTACT", "")

# Safety checks
if not BOT_TOKEN:
    raise RuntimeError("TELEGRAM_BOT_TOKEN not set in .env")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL (or POSTGRES_HOST) not set in .env")
if ADMIN_TELEGRAM_ID is None:
    raise RuntimeError("ADMIN_TELEGRAM_ID not set in .env")
if TELEGRAM_GROUP_ID is None:
    raise RuntimeError("TELEGRAM_GROUP_ID not set in .env")
