import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# any run of `scheme://host` segments, each optionally preceded by slashes,
# followed by the leading slashes of the remaining path
_PREFIX_RE = re.compile(r'^(?:/*[A-Za-z][A-Za-z0-9+.\-]*://[^/?#]*)*/*')
_HOST_RE = re.compile(r'^https?://[^/?#]+/?')

REDACTED = '***'
SECRET_PARAMS = ('apikey',)


def normalize_url(url: str, base_url: str) -> str:
    """
    Anchor an arbitrary URL to the configured base URL.

    Absolute URLs lose their scheme and host (however many times they are
    repeated), leading slashes are dropped and the remaining path is joined
    to the base. An empty path yields the base URL itself. No
    percent-decoding is performed.

    :param url: Absolute or relative URL.
    :param base_url: The single configured base URL.
    :return: Canonical URL under base_url.
    """
    base = base_url.rstrip('/')
    path = url or ''
    if base and path.startswith(base) and path[len(base):len(base) + 1] in ('', '/', '?', '#'):
        path = path[len(base):]
    path = _PREFIX_RE.sub('', path, count=1)
    return f"{base}/{path}" if path else base


def request_path(url: str) -> str:
    """Strip scheme and host, giving the key used for latency marks."""
    return _HOST_RE.sub('', url, count=1)


def redact_url(url: str) -> str:
    """Mask secret query parameters so URLs can be logged safely."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, REDACTED if k.lower() in SECRET_PARAMS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe='*')))
