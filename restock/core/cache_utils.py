"""
Caching utilities for expensive aggregate queries
Uses the default Django cache (Redis in production)
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

ALERT_SUMMARY_CACHE_PREFIX = "alerts_summary"


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    cache_ttl may be a number of seconds or a callable returning one.

    Usage:
        @cached_query(cache_ttl=120, key_prefix="alerts_summary")
        def get_expensive_data():
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)

            ttl = cache_ttl() if callable(cache_ttl) else cache_ttl
            cache.set(cache_key, result, ttl)
            return result
        return wrapper
    return decorator


def invalidate_cached_query(key_prefix, *args, **kwargs):
    """Drop one cached_query entry"""
    cache_key = make_cache_key(key_prefix, *args, **kwargs)
    cache.delete(cache_key)
    logger.debug(f"Invalidated cache key: {cache_key}")


def invalidate_alert_summary_cache():
    """Invalidate the cached alert summary"""
    invalidate_cached_query(ALERT_SUMMARY_CACHE_PREFIX)
