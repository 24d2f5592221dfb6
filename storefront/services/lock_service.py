import redis

from storefront.utils.settings import REDIS_URL
from storefront.utils.retry import redis_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL


class LockService:
    """
    -blokada checkoutu koszyka (jeden checkout na koszyk naraz)
    -zwalnianie locka
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(cart_id: int) -> str:
        return f"cart:{cart_id}:checkout"

    @redis_retry()
    def acquire_checkout_lock(self, cart_id: int, owner: str, ttl: int) -> bool:
        key = self._key(cart_id)
        logger.info(f"Acquire lock {key} for {owner}")
        #SET cart:1:checkout "<owner>" NX EX 30
        return bool(self.redis.set(
            name=key,
            value=owner,
            nx=True, #tylko jesli klucz nie istnieje
            ex=ttl, #wygasa sam po ttl
        ))

    @redis_retry()
    def release_checkout_lock(self, cart_id: int, owner: str) -> bool:
        key = self._key(cart_id)
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)
