# casa_cart/tasks/cleanup.py
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from casa_cart.celery_worker import celery_app
from casa_cart.data.database import SessionLocal
from casa_cart.repos.cart_repo import CartRepo
from casa_cart.utils.settings import CART_IDLE_TTL_SECONDS
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


def purge_stale_carts(db: Session, now: datetime | None = None) -> int:
    """Delete carts nobody touched for CART_IDLE_TTL_SECONDS. Returns how many went."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=CART_IDLE_TTL_SECONDS)

    repo = CartRepo(db)
    carts = repo.list_stale(cutoff)
    logger.info(f"Found {len(carts)} carts idle since before {cutoff.isoformat()}")

    purged = 0
    for cart in carts:
        # re-checks the version so a cart touched meanwhile survives
        purged += repo.delete_cart(cart.id, expected_version=cart.version)

    repo.commit()
    return purged


@celery_app.task(name="casa_cart.tasks.cleanup.purge_stale_carts_task")
def purge_stale_carts_task():
    logger.info("Purge stale carts task started")

    db = SessionLocal()
    try:
        purged = purge_stale_carts(db)
        logger.info(f"Purged {purged} stale carts")
        return purged
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
