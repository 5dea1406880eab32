# casa_cart/services/lock_service.py
import redis

from casa_cart.utils.retry import redis_retry
from casa_cart.utils.settings import REDIS_URL
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete in one Lua call, redis runs scripts atomically
# so nobody can slip in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Short lived per-phone checkout lock.
    SET NX EX to take it, token checked release so only the owner can drop it.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(phone: str) -> str:
        return f"checkout:{phone}:lock"

    @redis_retry()
    def acquire_checkout_lock(self, phone: str, token: str, ttl: int) -> bool:
        key = self._key(phone)
        logger.info(f"Acquire lock {key}")
        # SET checkout:+91...:lock <token> NX EX <ttl>, expires on its own if we crash
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_checkout_lock(self, phone: str, token: str) -> bool:
        key = self._key(phone)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
