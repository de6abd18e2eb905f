"""
Environment-driven settings for the storefront API.
"""
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
CATALOG_PATH = os.getenv("CATALOG_PATH", os.path.join(BASE_DIR, "data", "products.json"))

REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "20"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_MAX_ENTRIES = int(os.getenv("RATE_LIMIT_MAX_ENTRIES", "10000"))

# comma-separated, appended to the built-in search denylist
SEARCH_EXTRA_DENIED_TERMS = [
    t.strip().lower() for t in os.getenv("SEARCH_EXTRA_DENIED_TERMS", "").split(",") if t.strip()
]

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", 8000))

CART_STORAGE_KEY = "parisa-cart"
MAX_LINE_QUANTITY = 10
CURRENCY_SYMBOL = "£"
