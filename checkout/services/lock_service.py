import uuid
from contextlib import contextmanager

import redis

from checkout.domain.errors import ConcurrencyError
from checkout.utils.retry import redis_retry
from checkout.utils.settings import REDIS_URL
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare and delete: only the holder's token removes the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis runs the script atomically, nothing can slip in between GET and DEL


class LockService:
    """
    -checkout lock per owner (SET NX EX)
    -release through lua, only by the token that acquired it
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(owner_id: str) -> str:
        return f"checkout:{owner_id}:lock"

    @redis_retry()
    def acquire_checkout_lock(self, owner_id: str, token: str, ttl: int) -> bool:
        key = self._key(owner_id)
        logger.info(f"Acquire lock {key}")
        #SET checkout:u1:lock "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True,  # only when the key does not exist yet
                ex=ttl,  # expires on its own if the holder dies
            )
        )

    @redis_retry()
    def release_checkout_lock(self, owner_id: str, token: str) -> bool:
        key = self._key(owner_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @contextmanager
    def checkout_lock(self, owner_id: str, ttl: int):
        token = uuid.uuid4().hex
        if not self.acquire_checkout_lock(owner_id, token, ttl):
            raise ConcurrencyError(f"A checkout for {owner_id} is already in progress")
        try:
            yield token
        finally:
            try:
                self.release_checkout_lock(owner_id, token)
            except redis.RedisError as e:
                #the key expires after ttl anyway
                logger.warning(f"Failed to release checkout lock for {owner_id}: {e}")
