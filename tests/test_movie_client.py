import httpx
import pytest
from pydantic import ValidationError

from movie_browser.clients.http_client import OmdbHttpClient
from movie_browser.clients.movie_client import (
    InvalidQueryError,
    MovieAPIError,
    MovieClient,
    UpstreamFailureError,
)
from movie_browser.config import ClientConfig
from movie_browser.schemas.movies_schemas import MovieDetails, MovieSearchResult
from movie_browser.utils.errors import NormalizedError

BASE = "https://www.omdbapi.com"
API_KEY = "test-key"

INCEPTION_SEARCH = {
    "Response": "True",
    "Search": [{
        "Title": "Inception",
        "Year": "2010",
        "imdbID": "tt1375666",
        "Type": "movie",
        "Poster": "N/A",
    }],
    "totalResults": "1",
}

INCEPTION_DETAILS = {
    "Title": "Inception",
    "Year": "2010",
    "Rated": "PG-13",
    "Runtime": "148 min",
    "Genre": "Action, Adventure, Sci-Fi",
    "Director": "Christopher Nolan",
    "Plot": "A thief who steals corporate secrets...",
    "Poster": "https://m.media-amazon.com/images/inception.jpg",
    "Ratings": [
        {"Source": "Internet Movie Database", "Value": "8.8/10"},
        {"Source": "Metacritic", "Value": "74/100"},
        {"Source": "Metacritic", "Value": "74/100"},
    ],
    "imdbID": "tt1375666",
    "Type": "movie",
    "BoxOffice": "$292,587,330",
    "Response": "True",
}


class StubUpstream:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response


def make_movie_client(response):
    upstream = StubUpstream(response)
    http = OmdbHttpClient(ClientConfig(base_url=BASE), transport=httpx.MockTransport(upstream))
    return MovieClient(http, API_KEY), upstream


# --- fetch_popular_movies ---


@pytest.mark.asyncio
async def test_fetch_popular_movies_returns_inception():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_SEARCH))

    result = await client.fetch_popular_movies(1)

    assert isinstance(result, MovieSearchResult)
    assert result.success is True
    assert len(result.items) == 1
    movie = result.items[0]
    assert movie.title == "Inception"
    assert movie.id == "tt1375666"
    assert movie.poster_url is None
    assert result.total_pages == 1

    params = upstream.requests[0].url.params
    assert params["apikey"] == API_KEY
    assert params["s"] == "movie"
    assert params["type"] == "movie"
    assert params["page"] == "1"


@pytest.mark.asyncio
async def test_fetch_popular_movies_defaults_to_first_page():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_SEARCH))
    await client.fetch_popular_movies()
    assert upstream.requests[0].url.params["page"] == "1"


@pytest.mark.asyncio
async def test_fetch_popular_movies_rejects_bad_page():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_SEARCH))
    with pytest.raises(InvalidQueryError):
        await client.fetch_popular_movies(0)
    assert upstream.requests == []


# --- fetch_movie_by_id ---


@pytest.mark.asyncio
async def test_fetch_movie_by_id_requests_full_plot():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_DETAILS))

    movie = await client.fetch_movie_by_id("tt1375666")

    assert isinstance(movie, MovieDetails)
    assert movie.director == "Christopher Nolan"
    assert movie.box_office == "$292,587,330"
    params = upstream.requests[0].url.params
    assert params["i"] == "tt1375666"
    assert params["plot"] == "full"


@pytest.mark.asyncio
async def test_fetch_movie_by_id_keeps_duplicate_rating_sources_in_order():
    client, _ = make_movie_client(httpx.Response(200, json=INCEPTION_DETAILS))
    movie = await client.fetch_movie_by_id("tt1375666")
    assert [r.source for r in movie.ratings] == [
        "Internet Movie Database", "Metacritic", "Metacritic"
    ]


@pytest.mark.asyncio
async def test_fetch_movie_by_id_upstream_failure():
    client, _ = make_movie_client(
        httpx.Response(200, json={"Response": "False", "Error": "Incorrect IMDb ID."})
    )

    with pytest.raises(MovieAPIError) as info:
        await client.fetch_movie_by_id("tt0000000")

    assert str(info.value) == "Failed to fetch movie"
    assert info.value.detail == "Incorrect IMDb ID."
    assert isinstance(info.value, UpstreamFailureError)


@pytest.mark.asyncio
async def test_fetch_movie_by_id_requires_id():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_DETAILS))
    with pytest.raises(InvalidQueryError):
        await client.fetch_movie_by_id("  ")
    assert upstream.requests == []


# --- search_movies ---


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_search_movies_empty_query_fails_without_request(query):
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_SEARCH))

    with pytest.raises(InvalidQueryError) as info:
        await client.search_movies(query, 3)

    assert str(info.value) == "Search query is required"
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_search_movies_sends_query_and_page():
    client, upstream = make_movie_client(httpx.Response(200, json=INCEPTION_SEARCH))

    result = await client.search_movies("Inception", 2)

    assert result.items[0].title == "Inception"
    params = upstream.requests[0].url.params
    assert params["s"] == "Inception"
    assert params["page"] == "2"


@pytest.mark.asyncio
async def test_search_movies_transport_failure_is_domain_error():
    client, _ = make_movie_client(httpx.Response(500))

    with pytest.raises(MovieAPIError) as info:
        await client.search_movies("Inception")

    assert str(info.value) == "Failed to search movies"
    cause = info.value.__cause__
    assert isinstance(cause, NormalizedError)
    assert cause.http_status == 500
    assert info.value.detail == cause.message


@pytest.mark.asyncio
async def test_unexpected_payload_is_domain_error():
    client, _ = make_movie_client(httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(MovieAPIError) as info:
        await client.search_movies("Inception")
    assert str(info.value) == "Failed to search movies"


# --- every operation rejects Response: "False" ---


@pytest.mark.asyncio
@pytest.mark.parametrize("call, message", [
    (lambda c: c.fetch_popular_movies(1), "Failed to fetch movies"),
    (lambda c: c.fetch_movie_by_id("tt1375666"), "Failed to fetch movie"),
    (lambda c: c.search_movies("Inception", 1), "Failed to search movies"),
])
async def test_false_response_always_fails(call, message):
    payload = dict(INCEPTION_SEARCH, Response="False", Error="Movie not found!")
    client, _ = make_movie_client(httpx.Response(200, json=payload))

    with pytest.raises(UpstreamFailureError) as info:
        await call(client)

    assert info.value.message == message
    assert info.value.detail == "Movie not found!"


# --- models ---


def test_failed_search_result_drops_items():
    payload = dict(INCEPTION_SEARCH, Response="False")
    result = MovieSearchResult.model_validate(payload)
    assert result.success is False
    assert result.items is None


def test_total_pages_rounds_up():
    result = MovieSearchResult.model_validate(dict(INCEPTION_SEARCH, totalResults="41"))
    assert result.total_count == 41
    assert result.total_pages == 5


def test_models_are_immutable():
    result = MovieSearchResult.model_validate(INCEPTION_SEARCH)
    with pytest.raises(ValidationError):
        result.items[0].title = "Other"
