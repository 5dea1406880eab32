# casa_cart/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./casa_cart.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "0").lower() in ("1", "true", "yes")
PRODUCT_SERVICE_URL = os.getenv("PRODUCT_SERVICE_URL", "http://product-service:8000")
PRODUCT_SERVICE_TIMEOUT = float(os.getenv("PRODUCT_SERVICE_TIMEOUT", 2))

DEFAULT_SIZE = os.getenv("DEFAULT_SIZE", "M")
MAX_LINE_QUANTITY = int(os.getenv("MAX_LINE_QUANTITY", 999))
ESTIMATED_DELIVERY_DAYS = int(os.getenv("ESTIMATED_DELIVERY_DAYS", 5))
CHECKOUT_LOCK_TTL_SECONDS = int(os.getenv("CHECKOUT_LOCK_TTL_SECONDS", 30))
CART_IDLE_TTL_SECONDS = int(os.getenv("CART_IDLE_TTL_SECONDS", 30 * 24 * 60 * 60))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
