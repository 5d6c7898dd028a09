import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import CachePolicy, ClientConfig
from ..utils.cache import CacheEntry, ResponseCache, cache_key
from ..utils.errors import NormalizedError, normalize_error
from ..utils.metrics import LatencyRecorder
from ..utils.url_normalizer import normalize_url, redact_url, request_path

logger = logging.getLogger(__name__)


class OmdbHttpClient:
    """
    Read-only HTTP client for the upstream movie API.

    Every request goes through the same three steps, called in order by
    get(): _prepare_request() sets the standard headers and starts the
    latency mark, _measure_response() records the elapsed time, and
    _classify_error() turns any failure into a NormalizedError and logs it.

    Responses are cached according to the policies in ClientConfig when a
    ResponseCache is given.
    """

    def __init__(
        self,
        config: ClientConfig,
        cache: Optional[ResponseCache] = None,
        recorder: Optional[LatencyRecorder] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ):
        self.config = config
        self.recorder = recorder or LatencyRecorder()
        self._cache = cache
        self._sleep = sleep
        self._client = httpx.AsyncClient(timeout=config.timeout, transport=transport)
        # at most one background refresh per cache key
        self._refreshing: Dict[str, asyncio.Task] = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        if self._refreshing:
            await asyncio.gather(*list(self._refreshing.values()), return_exceptions=True)
        await self._client.aclose()

    async def get_json(self, path: str = '', params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET path under the base URL and decode the JSON body.

        :raises NormalizedError: on any transport, status or decoding failure.
        """
        response = await self.get(path, params)
        try:
            return response.json()
        except ValueError as exc:
            raise self._classify_error(exc, response.request) from exc

    async def get(self, path: str = '', params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        request = self._build_request(path, params)
        if self._cache is None:
            return await self._send(request, None)

        key = cache_key(request)
        entry = await self._cache.get(key)
        now = self._cache.now()
        if entry is not None and entry.is_fresh(now):
            return self._from_cache(entry, request)
        if entry is not None and entry.is_usable(now):
            self._revalidate_in_background(path, params, key)
            return self._from_cache(entry, request)
        return await self._send(request, key)

    def _build_request(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Request:
        url = normalize_url(path, self.config.base_url)
        return self._prepare_request(self._client.build_request('GET', url, params=params))

    def _prepare_request(self, request: httpx.Request) -> httpx.Request:
        request.headers['Accept'] = 'application/json'
        request.headers['X-Requested-With'] = 'XMLHttpRequest'
        # the server's own Cache-Control decides what we store, see ResponseCache.put
        if request.method == 'GET':
            request.headers['Cache-Control'] = self.config.success_cache.header()
        self.recorder.mark(_latency_key(request))
        return request

    def _measure_response(self, response: httpx.Response) -> httpx.Response:
        path = _latency_key(response.request)
        if self.recorder.has_mark(path):
            elapsed = self.recorder.measure(path)
            logger.debug("api-%s took %.3fs", path, elapsed)
        return response

    def _classify_error(self, exc: BaseException, request: Optional[httpx.Request]) -> NormalizedError:
        error = normalize_error(exc, self.config.base_url, request)
        if error.url != self.config.base_url:
            logger.error(
                "API Error: %s %s -> %s", error.method, error.url, error.message,
                extra={'api_error': error.to_log()},
            )
        return error

    async def _send(self, request: httpx.Request, key: Optional[str]) -> httpx.Response:
        latency_key = _latency_key(request)
        attempt = 0
        try:
            while True:
                try:
                    response = await self._client.send(request)
                except asyncio.CancelledError as exc:
                    self._classify_error(exc, request)
                    raise
                except Exception as exc:
                    raise self._classify_error(exc, request) from exc
                self._measure_response(response)
                if not self._should_retry(response, attempt):
                    break
                attempt += 1
                delay = min(2 ** (attempt - 1), self.config.backoff_limit)
                logger.info("Retrying %s after %s (attempt %d/%d, %.1fs)",
                            latency_key, response.status_code,
                            attempt, self.config.retry_limit, delay)
                await self._sleep(delay)
                self.recorder.mark(latency_key)
        finally:
            self.recorder.discard(latency_key)

        if key is not None:
            policy = self._policy_for(response.status_code)
            if policy is not None:
                await self._cache.put(key, response, policy)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._classify_error(exc, request) from exc
        return response

    def _should_retry(self, response: httpx.Response, attempt: int) -> bool:
        return (
            attempt < self.config.retry_limit
            and response.request.method == 'GET'
            and response.status_code in self.config.retry_status_codes
        )

    def _policy_for(self, status_code: int) -> Optional[CachePolicy]:
        if 200 <= status_code < 300:
            return self.config.success_cache
        if status_code == 404:
            return self.config.not_found_cache
        return None

    def _from_cache(self, entry: CacheEntry, request: httpx.Request) -> httpx.Response:
        response = self._measure_response(entry.to_response(request))
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._classify_error(exc, request) from exc
        return response

    def _revalidate_in_background(self, path, params, key) -> None:
        if key in self._refreshing:
            return
        task = asyncio.create_task(self._revalidate(path, params, key))
        self._refreshing[key] = task
        task.add_done_callback(lambda _: self._refreshing.pop(key, None))

    async def _revalidate(self, path, params, key) -> None:
        try:
            await self._send(self._build_request(path, params), key)
        except NormalizedError as exc:
            # already logged by _classify_error
            logger.debug("Revalidation of %s failed: %s", path or '/', exc.message)


def _latency_key(request: httpx.Request) -> str:
    return redact_url(request_path(str(request.url)))
