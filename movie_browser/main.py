import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .clients.http_client import OmdbHttpClient
from .clients.movie_client import (
    InvalidQueryError,
    MovieAPIError,
    MovieClient,
    UpstreamFailureError,
)
from .config import get_settings
from .schemas.movies_schemas import (
    ErrorResponse,
    MovieDetails,
    MovieListResponse,
    MovieSearchResult,
    Pagination,
)
from .utils.cache import ResponseCache
from .utils.pagination import page_window

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)

    cache = None
    if settings.REDIS_URL:
        cache = ResponseCache(redis.from_url(
            settings.REDIS_URL, encoding="utf-8", decode_responses=True))
    else:
        logger.info("REDIS_URL not set, responses will not be cached")

    http = OmdbHttpClient(settings.client_config(), cache=cache)
    app.state.movie_client = MovieClient(http, settings.OMDB_API_KEY)
    try:
        yield
    finally:
        await http.aclose()
        if cache is not None:
            await cache.aclose()


app = FastAPI(title="Movie Browser", lifespan=lifespan)

ERROR_RESPONSES = {
    400: {'model': ErrorResponse},
    404: {'model': ErrorResponse},
    502: {'model': ErrorResponse},
}


def get_movie_client(request: Request) -> MovieClient:
    return request.app.state.movie_client


@app.exception_handler(MovieAPIError)
async def movie_api_error_handler(request: Request, exc: MovieAPIError):
    if isinstance(exc, InvalidQueryError):
        code = 400
    elif isinstance(exc, UpstreamFailureError):
        code = 404
    else:
        code = 502
    return JSONResponse(
        status_code=code,
        content=ErrorResponse(code=code, message=exc.message, detail=exc.detail).model_dump(),
    )


def _list_response(result: MovieSearchResult, page: int) -> MovieListResponse:
    return MovieListResponse(
        movies=result.items or [],
        total_results=result.total_count,
        pagination=Pagination(
            page=page,
            total_pages=result.total_pages,
            pages=page_window(result.total_pages, page),
        ),
    )


@app.get('/movies/popular', response_model=MovieListResponse,
         response_model_by_alias=False, responses=ERROR_RESPONSES)
async def popular_movies(
    page: int = Query(1, ge=1),
    client: MovieClient = Depends(get_movie_client),
):
    result = await client.fetch_popular_movies(page)
    return _list_response(result, page)


@app.get('/movies/search', response_model=MovieListResponse,
         response_model_by_alias=False, responses=ERROR_RESPONSES)
async def search_movies(
    q: str = Query(''),
    page: int = Query(1, ge=1),
    client: MovieClient = Depends(get_movie_client),
):
    result = await client.search_movies(q, page)
    return _list_response(result, page)


@app.get('/movies/{movie_id}', response_model=MovieDetails,
         response_model_by_alias=False, responses=ERROR_RESPONSES)
async def movie_details(
    movie_id: str,
    client: MovieClient = Depends(get_movie_client),
):
    return await client.fetch_movie_by_id(movie_id)
