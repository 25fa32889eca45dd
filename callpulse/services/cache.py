"""
Query cache — Redis-backed, keyed by (entity, user id).

Cached values are whole collections serialized as JSON. Invalidation only
ever drops keys; the next read refetches the full collection from the
store. A change event never patches a cached list in place.

Keys:
    cache:{entity}:{user_id}      → JSON list/dict, TTL = CACHE_TTL_SECONDS
    cache:gen:{entity}:{user_id}  → invalidation counter, bumped before every drop

A load only writes back if the counter did not move while the store was
being read, so a collection read before a concurrent write is never cached.
"""
import json
import logging

from callpulse import extensions
from callpulse.config import CACHE_TTL_SECONDS

logger = logging.getLogger('services.cache')

RECORDINGS = 'recordings'
ANALYSES = 'analyses'
METRICS_AGGREGATES = 'metrics_aggregates'
LEADS = 'leads'
LEAD_GROUPS = 'lead_groups'
DASHBOARD_STATS = 'dashboard_stats'

# Longer than any cached value lives
GENERATION_TTL_SECONDS = 24 * 60 * 60

# table that changed → entities whose cached collections become stale
_DEPENDENTS = {
    RECORDINGS: {RECORDINGS, DASHBOARD_STATS},
    ANALYSES: {ANALYSES, RECORDINGS, DASHBOARD_STATS},
    METRICS_AGGREGATES: {METRICS_AGGREGATES, DASHBOARD_STATS},
    LEADS: {LEADS},
    LEAD_GROUPS: {LEAD_GROUPS, LEADS},
}


def cache_key(entity, user_id):
    return f'cache:{entity}:{user_id}'


def generation_key(key):
    """cache:{entity}:{user} → cache:gen:{entity}:{user}"""
    return 'cache:gen:' + key.split(':', 1)[1]


def keys_for_change(event):
    """
    Map a change event to the set of cache keys it makes stale.

    `event` is a dict with at least `table` and `user_id`; `event` ('INSERT',
    'UPDATE', 'DELETE') is optional. Deleting a recording cascades to its
    analysis and shifts the daily rollups, so it drops those caches too.
    Unknown tables or events without a user map to an empty set.
    """
    table = event.get('table')
    user_id = event.get('user_id')
    if not user_id or table not in _DEPENDENTS:
        return set()

    entities = set(_DEPENDENTS[table])
    if table == RECORDINGS and str(event.get('event', '')).upper() == 'DELETE':
        entities |= {ANALYSES, METRICS_AGGREGATES}

    return {cache_key(entity, user_id) for entity in entities}


class QueryCache:
    """
    Explicit cache object over a Redis client.

    Usage:
        cache = QueryCache(redis_client)
        rows = cache.get_or_load(RECORDINGS, user_id, lambda: load_rows())
        cache.apply_change({'table': 'analyses', 'user_id': user_id})

    Redis failures degrade to cache misses; the store stays the source of truth.
    """

    def __init__(self, redis_client, ttl=CACHE_TTL_SECONDS):
        self.redis = redis_client
        self.ttl = ttl

    def get(self, entity, user_id):
        try:
            raw = self.redis.get(cache_key(entity, user_id))
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", entity, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping unreadable cache entry for %s", entity)
            self.invalidate({cache_key(entity, user_id)})
            return None

    def set(self, entity, user_id, value):
        try:
            self.redis.setex(cache_key(entity, user_id), self.ttl, json.dumps(value))
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", entity, e)

    def generation(self, key):
        """Current invalidation counter for `key`; unreadable counters never match."""
        try:
            return self.redis.get(generation_key(key))
        except Exception as e:
            logger.warning("Cache generation read failed for %s: %s", key, e)
            return object()

    def get_or_load(self, entity, user_id, loader):
        """
        Return the cached collection, or call `loader()` and cache its result.

        The loaded value is always returned, but it is only kept in the cache
        when no invalidation hit the key during the load.
        """
        cached = self.get(entity, user_id)
        if cached is not None:
            return cached

        key = cache_key(entity, user_id)
        before = self.generation(key)
        value = loader()
        if self.generation(key) != before:
            logger.debug("Skipping cache write for %s: invalidated during load", key)
            return value

        self.set(entity, user_id, value)
        if self.generation(key) != before:
            # an invalidation landed between the check and the write
            self.invalidate({key})
        return value

    def invalidate(self, keys):
        keys = list(keys)
        if not keys:
            return 0
        try:
            for key in keys:
                self.redis.incr(generation_key(key))
                self.redis.expire(generation_key(key), GENERATION_TTL_SECONDS)
            return self.redis.delete(*keys) or 0
        except Exception as e:
            logger.warning("Cache invalidation failed for %s: %s", keys, e)
            return 0

    def invalidate_entities(self, user_id, *entities):
        return self.invalidate({cache_key(entity, user_id) for entity in entities})

    def apply_change(self, event):
        """Drop every key made stale by `event`. Returns the dropped key set."""
        keys = keys_for_change(event)
        self.invalidate(keys)
        if keys:
            logger.debug("Change on %s invalidated %d keys", event.get('table'), len(keys))
        return keys


def get_cache():
    """Cache over the shared Redis client (looked up at call time)."""
    return QueryCache(extensions.redis_client)
