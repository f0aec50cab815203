"""
Redis-based rate limiting for API endpoints.
Implements a fixed window counter per client IP, view and method.
"""
import logging

import redis
from django.conf import settings
from rest_framework import exceptions

logger = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis_client():
    """
    Shared Redis client, connected on first use.

    Returns None when Redis cannot be reached; rate limiting is then
    skipped for the lifetime of the process.
    """
    global _redis_client, _redis_checked
    if not _redis_checked:
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


class RateLimitMixin:
    """
    Mixin class for DRF views to add rate limiting.

    Only the HTTP methods listed in `rate_limited_methods` are counted.
    Exceeding the limit raises `Throttled`, rendered as a 429.

    Usage:
        class MyView(RateLimitMixin, APIView):
            rate_limit_max_requests = 20
            rate_limit_window_seconds = 60
            rate_limited_methods = ('POST',)
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60
    rate_limited_methods = ('POST', 'PUT', 'PATCH', 'DELETE')

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self._rate_limit_state = None

        if request.method not in self.rate_limited_methods:
            return
        client = get_redis_client() if getattr(settings, 'RATE_LIMIT_ENABLED', True) else None
        if client is None:
            return

        client_ip = get_client_ip(request)
        key = f"rate_limit:{self.__class__.__name__}:{request.method}:{client_ip}"
        try:
            current_count = client.incr(key)

            if current_count == 1:
                client.expire(key, self.rate_limit_window_seconds)

            ttl = client.ttl(key)
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            # Fail open - allow request if Redis is down
            return

        if current_count > self.rate_limit_max_requests:
            logger.warning(f"Rate limit exceeded for {client_ip} on {self.__class__.__name__}")
            raise exceptions.Throttled(
                wait=ttl,
                detail=(
                    f'Maximum {self.rate_limit_max_requests} requests per '
                    f'{self.rate_limit_window_seconds} seconds allowed.'
                )
            )
        self._rate_limit_state = (current_count, ttl)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        state = getattr(self, '_rate_limit_state', None)
        if state is not None:
            current_count, ttl = state
            response['X-RateLimit-Limit'] = str(self.rate_limit_max_requests)
            response['X-RateLimit-Remaining'] = str(max(0, self.rate_limit_max_requests - current_count))
            response['X-RateLimit-Reset'] = str(ttl)
        return response
