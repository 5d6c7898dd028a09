import asyncio
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from .url_normalizer import normalize_url, redact_url

UNKNOWN_ERROR_MESSAGE = 'Unknown error occurred'


class OriginClass(str, Enum):
    HTTP_STATUS = 'HttpStatusError'
    NETWORK = 'NetworkError'
    TIMEOUT = 'TimeoutError'
    ABORT = 'AbortError'
    UNKNOWN = 'UnknownError'


class NormalizedError(Exception):
    """
    The one error shape that leaves the HTTP client.

    Only normalize_error() builds these; callers receive them, they never
    construct them.
    """

    def __init__(
        self,
        message: str,
        http_status: int,
        origin: OriginClass,
        stack_trace: str,
        url: str,
        method: str = 'GET',
        reason: str = '',
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.origin = origin
        self.stack_trace = stack_trace
        self.url = url
        self.method = method
        self.reason = reason
        self.timestamp = datetime.now(timezone.utc)

    def to_log(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'method': self.method,
            'status': self.http_status,
            'origin': self.origin.value,
            'message': self.message,
            'stack': self.stack_trace,
            'timestamp': self.timestamp.isoformat(),
        }


def _stack_of(exc: BaseException) -> str:
    if exc.__traceback__ is not None:
        return ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return ''.join(traceback.format_stack()[:-2])


def _request_of(exc: BaseException) -> Optional[httpx.Request]:
    # httpx raises RuntimeError from `.request` when none was attached
    if not isinstance(exc, httpx.HTTPError):
        return None
    try:
        return exc.request
    except RuntimeError:
        return None


def normalize_error(
    exc: BaseException,
    base_url: str,
    request: Optional[httpx.Request] = None,
) -> NormalizedError:
    """
    Classify a failure raised while talking to the upstream API.

    Classification stops at the first matching origin:

    - a response is present: HttpStatusError, status taken from the response
    - a transport failure with a request: NetworkError, status 0
    - a timeout: TimeoutError, status 408
    - a cancelled request: AbortError, status 499
    - anything else: UnknownError, status 500

    :param exc: The exception raised by the transport or by raise_for_status().
    :param base_url: Configured base URL, used to normalize the request URL.
    :param request: The outgoing request when the exception does not carry one.
    :return: NormalizedError with the original stack trace preserved.
    """
    request = _request_of(exc) or request
    url = redact_url(normalize_url(str(request.url), base_url)) if request else base_url
    method = request.method if request else 'GET'
    stack = _stack_of(exc)

    def build(message, status, origin, reason=''):
        return NormalizedError(message, status, origin, stack, url, method, reason)

    if isinstance(exc, httpx.HTTPStatusError) and exc.response is not None:
        response = exc.response
        return build(
            f"{response.status_code} {response.reason_phrase} - {url}",
            response.status_code,
            OriginClass.HTTP_STATUS,
            response.reason_phrase,
        )
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return build(f"Request timed out - {url}", 408,
                     OriginClass.TIMEOUT, 'Request Timeout')
    if isinstance(exc, httpx.TransportError) and request is not None:
        return build(f"Network error - {url}", 0,
                     OriginClass.NETWORK, 'Network Error')
    if isinstance(exc, asyncio.CancelledError):
        return build(f"Request aborted - {url}", 499,
                     OriginClass.ABORT, 'Client Closed Request')
    return build(str(exc) or UNKNOWN_ERROR_MESSAGE, 500,
                 OriginClass.UNKNOWN, 'Internal Server Error')
