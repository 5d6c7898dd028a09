import logging
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

from ..schemas.movies_schemas import MovieDetails, MovieSearchResult, OmdbEnvelope
from ..utils.errors import NormalizedError
from .http_client import OmdbHttpClient

logger = logging.getLogger(__name__)

POPULAR_SEARCH_TERM = 'movie'
MEDIA_TYPE = 'movie'

FETCH_MOVIES_FAILED = 'Failed to fetch movies'
FETCH_MOVIE_FAILED = 'Failed to fetch movie'
SEARCH_MOVIES_FAILED = 'Failed to search movies'

Envelope = TypeVar('Envelope', bound=OmdbEnvelope)


class MovieAPIError(Exception):
    """
    Domain error raised by every MovieClient operation.

    str(error) is always the short, stable message for the operation. The
    upstream error text or the normalized transport error message, when
    there is one, is kept in `detail`.
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class UpstreamFailureError(MovieAPIError):
    """The upstream answered but flagged the request as failed."""


class InvalidQueryError(MovieAPIError, ValueError):
    """Arguments rejected before any request is made."""


class MovieClient:
    """
    The three read operations offered to consumers.

    Each call makes at most one upstream request. Any failure surfaces as
    a MovieAPIError.
    """

    def __init__(self, http: OmdbHttpClient, api_key: str):
        self._http = http
        self._api_key = api_key

    async def fetch_popular_movies(self, page: int = 1) -> MovieSearchResult:
        """
        List movies for the fixed popular search term.

        :param page: 1-based result page.
        :return: MovieSearchResult with up to 10 items.
        :raises MovieAPIError: "Failed to fetch movies" on any upstream failure.
        """
        _check_page(page)
        params = {'s': POPULAR_SEARCH_TERM, 'type': MEDIA_TYPE, 'page': str(page)}
        return await self._request(params, MovieSearchResult, FETCH_MOVIES_FAILED)

    async def fetch_movie_by_id(self, movie_id: str) -> MovieDetails:
        """
        Fetch full details, including the full plot, for one movie.

        :param movie_id: Upstream (IMDb) identifier such as "tt1375666".
        :return: MovieDetails.
        :raises InvalidQueryError: When movie_id is empty.
        :raises MovieAPIError: "Failed to fetch movie" on any upstream failure.
        """
        if not movie_id or not movie_id.strip():
            raise InvalidQueryError('Movie id is required')
        params = {'i': movie_id.strip(), 'plot': 'full'}
        return await self._request(params, MovieDetails, FETCH_MOVIE_FAILED)

    async def search_movies(self, query: str, page: int = 1) -> MovieSearchResult:
        """
        Search movies by title.

        :param query: Search text, must not be blank.
        :param page: 1-based result page.
        :return: MovieSearchResult.
        :raises InvalidQueryError: When query is blank; no request is made.
        :raises MovieAPIError: "Failed to search movies" on any upstream failure.
        """
        if not query or not query.strip():
            raise InvalidQueryError('Search query is required')
        _check_page(page)
        params = {'s': query.strip(), 'type': MEDIA_TYPE, 'page': str(page)}
        return await self._request(params, MovieSearchResult, SEARCH_MOVIES_FAILED)

    async def _request(
        self,
        params: Dict[str, Any],
        model: Type[Envelope],
        failure: str
    ) -> Envelope:
        try:
            data = await self._http.get_json('', params={'apikey': self._api_key, **params})
        except NormalizedError as e:
            # the http client has logged the details already
            raise MovieAPIError(failure, detail=e.message) from e

        try:
            result = model.model_validate(data)
        except ValidationError as e:
            logger.error("%s: unexpected response shape: %s", failure, e)
            raise MovieAPIError(failure, detail='Unexpected response from movie API') from e

        if not result.success:
            logger.warning("%s: %s", failure, result.error or 'upstream reported failure')
            raise UpstreamFailureError(failure, detail=result.error)
        return result


def _check_page(page: int) -> None:
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidQueryError('Page must be a positive integer')
