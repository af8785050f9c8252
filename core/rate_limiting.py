"""
Redis-based rate limiting for API endpoints.

Uses a fixed window counter per client IP and view: INCR on every request,
EXPIRE on the first one. Fails open when Redis is unreachable.
"""
import logging
from functools import wraps

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis_client():
    """Return a connected Redis client, or None if Redis is unavailable."""
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client

    _redis_checked = True
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5
        )
        client.ping()
        _redis_client = client
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
        _redis_client = None
    return _redis_client


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', 'unknown')
    return ip


def _limit_headers(limit, remaining, ttl):
    return {
        'X-RateLimit-Limit': str(limit),
        'X-RateLimit-Remaining': str(remaining),
        'X-RateLimit-Reset': str(ttl),
    }


def rate_limit(max_requests=None, window_seconds: int = 60, scope: str = None):
    """
    Redis-based rate limiting decorator for DRF view methods.

    Args:
        max_requests: Requests allowed per window. A callable or None reads
            the limit lazily (None means settings.CHECKOUT_RATE_LIMIT).
        window_seconds: Time window in seconds
        scope: Key prefix; defaults to the view function name

    Usage:
        @rate_limit(window_seconds=60, scope='checkout')
        def post(self, request):
            ...
    """
    def decorator(view_func):
        key_scope = scope or view_func.__name__

        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
                return view_func(self, request, *args, **kwargs)

            client = get_redis_client()
            if client is None:
                return view_func(self, request, *args, **kwargs)

            if max_requests is None:
                limit = settings.CHECKOUT_RATE_LIMIT
            elif callable(max_requests):
                limit = max_requests()
            else:
                limit = max_requests

            try:
                key = f"rate_limit:{key_scope}:{get_client_ip(request)}"
                current_count = client.incr(key)
                if current_count == 1:
                    client.expire(key, window_seconds)
                ttl = client.ttl(key)
            except redis.RedisError as e:
                logger.error(f"Redis error in rate limiting: {e}")
                return view_func(self, request, *args, **kwargs)

            if current_count > limit:
                headers = _limit_headers(limit, 0, ttl)
                headers['Retry-After'] = str(ttl)
                return Response(
                    {
                        'error': 'Rate limit exceeded',
                        'detail': f'Maximum {limit} requests per {window_seconds} seconds allowed.',
                        'retry_after': ttl
                    },
                    status=status.HTTP_429_TOO_MANY_REQUESTS,
                    headers=headers
                )

            response = view_func(self, request, *args, **kwargs)
            for header, value in _limit_headers(limit, max(0, limit - current_count), ttl).items():
                response[header] = value
            return response

        return wrapper
    return decorator
