from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from quizdesk.core.config import settings
from quizdesk.core.redis_client import get_redis


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    key: str
    limit: int
    window_seconds: int
    current: int = 0


def _client_ip(request: Request) -> str:
    if bool(getattr(settings, "trust_proxy_headers", False)):
        xri = str(request.headers.get("x-real-ip") or "").strip()
        if xri:
            return xri
        xff = request.headers.get("x-forwarded-for")
        if xff:
            ip = xff.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _subject(request: Request) -> str:
    # Authenticated requests are counted per user, anonymous ones per address.
    user_id = getattr(getattr(request, "state", None), "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{_client_ip(request)}"


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window counter in Redis.

    Declare it after the auth dependency so the window is per user rather
    than per address. Redis outages let the request through.
    """

    async def _dep(request: Request) -> RateLimit:
        key = f"rl:{key_prefix}:{request.url.path}:{_subject(request)}"

        try:
            r = get_redis()
            current = int(r.incr(key))
            if current == 1:
                r.expire(key, int(window_seconds))
        except Exception:
            log.warning("rate limiter unavailable: key=%s", key, exc_info=True)
            return RateLimit(key=key, limit=int(limit), window_seconds=int(window_seconds))

        if current > int(limit):
            ttl = r.ttl(key)
            retry_after = int(ttl) if ttl and ttl > 0 else int(window_seconds)
            log.info("rate limit exceeded: key=%s count=%s", key, current)
            raise HTTPException(
                status_code=429,
                detail={"error_code": "rate_limited", "error_message": "rate limit exceeded"},
                headers={"Retry-After": str(retry_after)},
            )

        return RateLimit(key=key, limit=int(limit), window_seconds=int(window_seconds), current=current)

    return Depends(_dep)
