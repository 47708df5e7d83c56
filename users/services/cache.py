"""
Read-through cache for user lookups by id.

Entries are JSON documents under ``users::<user_id>``, and expire after
``USER_CACHE_TTL`` seconds. Writes to the account store delete the entry
rather than overwrite it; the next read repopulates it.
"""

import json
import logging
from typing import Any, Optional

import redis
from redis.cluster import RedisCluster

from .. import domain
from ..context import get_application_config, get_application_global

logger = logging.getLogger(__name__)

NAMESPACE = 'users'
DEFAULT_TTL = 900


class UserCache(object):
    """
    Wraps a connection to Redis.

    The client is thread safe, and connections are attached at the time a
    command is executed. This class provides a container for configuration
    and the key scheme.
    """

    def __init__(self, connection: Any, ttl: int = DEFAULT_TTL) -> None:
        self.r = connection
        self._ttl = ttl

    def key(self, user_id: str) -> str:
        """Get the cache key for a user."""
        return f'{NAMESPACE}::{user_id}'

    def get(self, user_id: str) -> Optional[domain.User]:
        """Get a cached user, or ``None`` on a miss."""
        raw = self.r.get(self.key(user_id))
        if raw is None:
            logger.debug('Cache miss for user %s', user_id)
            return None
        logger.debug('Cache hit for user %s', user_id)
        return domain.from_dict(domain.User, json.loads(raw))

    def set(self, user: Optional[domain.User],
            ttl: Optional[int] = None) -> None:
        """Cache a user; ``None`` is never cached."""
        if user is None or user.user_id is None:
            return
        self.r.set(self.key(user.user_id),
                   json.dumps(domain.to_dict(user)),
                   ex=ttl if ttl is not None else self._ttl)

    def evict(self, user_id: str) -> None:
        """Remove a user from the cache, if present."""
        self.r.delete(self.key(user_id))


def init_app(app: object = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '6379')
    config.setdefault('REDIS_DATABASE', '0')
    config.setdefault('REDIS_CLUSTER', '0')
    config.setdefault('REDIS_FAKE', False)
    config.setdefault('USER_CACHE_TTL', str(DEFAULT_TTL))


def connect_redis(app: object = None) -> Any:
    """Open a Redis connection as configured for the application."""
    config = get_application_config(app)
    host = config.get('REDIS_HOST', 'localhost')
    port = int(config.get('REDIS_PORT', '6379'))
    db = int(config.get('REDIS_DATABASE', '0'))
    if str(config.get('REDIS_FAKE', '')).lower() in ('1', 'true'):
        import fakeredis
        logger.debug('Using fake Redis')
        return fakeredis.FakeStrictRedis()
    logger.debug('New Redis connection at %s, port %s', host, port)
    if str(config.get('REDIS_CLUSTER', '0')) == '1':
        return RedisCluster(host=host, port=port)
    return redis.StrictRedis(host=host, port=port, db=db)


def get_cache(app: object = None) -> UserCache:
    """Get a new :class:`.UserCache` from the application configuration."""
    config = get_application_config(app)
    ttl = int(config.get('USER_CACHE_TTL', DEFAULT_TTL))
    return UserCache(connect_redis(app), ttl=ttl)


def current_cache() -> UserCache:
    """Get/create :class:`.UserCache` for this context."""
    g = get_application_global()
    if not g:
        return get_cache()
    if 'user_cache' not in g:
        g.user_cache = get_cache()
    return g.user_cache     # type: ignore
