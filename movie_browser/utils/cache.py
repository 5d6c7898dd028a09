import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import httpx
from redis.exceptions import RedisError

from ..config import CachePolicy

logger = logging.getLogger(__name__)

KEY_PREFIX = 'omdb:response:'
UNCACHEABLE = frozenset({'no-store', 'no-cache', 'private'})


@dataclass(frozen=True)
class CacheEntry:
    status_code: int
    body: str
    content_type: str
    stored_at: float
    max_age: int
    stale_while_revalidate: int

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.max_age

    def is_usable(self, now: float) -> bool:
        return self.age(now) < self.max_age + self.stale_while_revalidate

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            content=self.body.encode('utf-8'),
            headers={'Content-Type': self.content_type, 'X-Cache': 'HIT'},
            request=request,
        )


def cache_key(request: httpx.Request) -> str:
    """Stable key for a GET request: method, origin, path and sorted query params."""
    url = request.url
    params = sorted(url.params.multi_items())
    port = f":{url.port}" if url.port is not None else ''
    raw = f"{request.method} {url.scheme}://{url.host}{port}{url.path}?{params}"
    return KEY_PREFIX + hashlib.sha256(raw.encode('utf-8')).hexdigest()


def _directives(header: str) -> Dict[str, Optional[str]]:
    directives = {}
    for part in header.split(','):
        name, _, value = part.strip().partition('=')
        if name:
            directives[name.lower()] = value.strip('"') if value else None
    return directives


def effective_policy(response: httpx.Response, policy: CachePolicy) -> Optional[CachePolicy]:
    """
    Apply the response's own Cache-Control on top of the declared policy.

    `no-store`, `no-cache` and `private` disable caching. An explicit
    `max-age` replaces the declared one.
    """
    directives = _directives(response.headers.get('Cache-Control', ''))
    if UNCACHEABLE.intersection(directives):
        return None
    max_age = directives.get('max-age')
    if max_age and max_age.isdigit():
        return CachePolicy(int(max_age), policy.stale_while_revalidate)
    return policy


class ResponseCache:
    """
    Redis-backed store for upstream responses.

    Backend failures never fail a request: they are logged and the
    request goes to the network.
    """

    def __init__(self, redis_client, clock=time.time):
        self._redis = redis_client
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            cached = await self._redis.get(key)
        except RedisError as exc:
            logger.warning("Response cache read failed for %s: %s", key, exc)
            return None
        if not cached:
            return None
        try:
            return CacheEntry(**json.loads(cached))
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding malformed cache entry %s: %s", key, exc)
            return None

    async def put(self, key: str, response: httpx.Response, policy: CachePolicy) -> Optional[CacheEntry]:
        policy = effective_policy(response, policy)
        if policy is None or policy.ttl <= 0:
            return None
        entry = CacheEntry(
            status_code=response.status_code,
            body=response.text,
            content_type=response.headers.get('Content-Type', 'application/json'),
            stored_at=self.now(),
            max_age=policy.max_age,
            stale_while_revalidate=policy.stale_while_revalidate,
        )
        try:
            await self._redis.set(key, json.dumps(asdict(entry)), ex=policy.ttl)
        except RedisError as exc:
            logger.warning("Response cache write failed for %s: %s", key, exc)
            return None
        return entry

    async def aclose(self) -> None:
        close = getattr(self._redis, 'aclose', None)
        if close is not None:
            await close()
