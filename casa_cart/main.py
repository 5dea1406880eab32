# casa_cart/main.py
import uvicorn

from casa_cart.api import create_app
from casa_cart.data.database import Base, engine
from casa_cart.utils.logging import get_logger

# every model must be imported before create_all
import casa_cart.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db() -> None:
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")


init_db()
app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
