from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.pagination import RESULTS_PER_PAGE, total_pages as count_pages

NOT_AVAILABLE = 'N/A'


def parse_flag(value) -> bool:
    """Convert the upstream "True"/"False" success flag to a bool."""
    if isinstance(value, bool):
        return value
    return value == 'True'


class OmdbModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    @field_validator('poster_url', check_fields=False)
    @classmethod
    def _poster(cls, value):
        return None if value in (None, '', NOT_AVAILABLE) else value


class OmdbEnvelope(OmdbModel):
    success: bool = Field(alias='Response')
    error: Optional[str] = Field(default=None, alias='Error')

    @field_validator('success', mode='before')
    @classmethod
    def _success_flag(cls, value):
        return parse_flag(value)


class MovieSummary(OmdbModel):
    title: str = Field(alias='Title')
    year: str = Field(alias='Year')
    id: str = Field(alias='imdbID')
    media_type: str = Field(alias='Type')
    poster_url: Optional[str] = Field(default=None, alias='Poster')


class MovieSearchResult(OmdbEnvelope):
    items: Optional[List[MovieSummary]] = Field(default=None, alias='Search')
    total_results: Optional[str] = Field(default=None, alias='totalResults')

    @model_validator(mode='before')
    @classmethod
    def _drop_items_on_failure(cls, data):
        # a failed response never carries trustworthy items
        if isinstance(data, dict) and not parse_flag(data.get('Response', data.get('success'))):
            data = {k: v for k, v in data.items() if k not in ('Search', 'items')}
        return data

    @property
    def total_count(self) -> int:
        try:
            return int(self.total_results or 0)
        except ValueError:
            return 0

    @property
    def total_pages(self) -> int:
        return count_pages(self.total_count, RESULTS_PER_PAGE)


class Rating(OmdbModel):
    source: str = Field(alias='Source')
    value: str = Field(alias='Value')


class MovieDetails(OmdbEnvelope):
    title: Optional[str] = Field(default=None, alias='Title')
    year: Optional[str] = Field(default=None, alias='Year')
    rated: Optional[str] = Field(default=None, alias='Rated')
    released: Optional[str] = Field(default=None, alias='Released')
    runtime: Optional[str] = Field(default=None, alias='Runtime')
    genre: Optional[str] = Field(default=None, alias='Genre')
    director: Optional[str] = Field(default=None, alias='Director')
    writer: Optional[str] = Field(default=None, alias='Writer')
    actors: Optional[str] = Field(default=None, alias='Actors')
    plot: Optional[str] = Field(default=None, alias='Plot')
    language: Optional[str] = Field(default=None, alias='Language')
    country: Optional[str] = Field(default=None, alias='Country')
    awards: Optional[str] = Field(default=None, alias='Awards')
    poster_url: Optional[str] = Field(default=None, alias='Poster')
    ratings: List[Rating] = Field(default_factory=list, alias='Ratings')
    metascore: Optional[str] = Field(default=None, alias='Metascore')
    imdb_rating: Optional[str] = Field(default=None, alias='imdbRating')
    imdb_votes: Optional[str] = Field(default=None, alias='imdbVotes')
    id: Optional[str] = Field(default=None, alias='imdbID')
    media_type: Optional[str] = Field(default=None, alias='Type')
    dvd: Optional[str] = Field(default=None, alias='DVD')
    box_office: Optional[str] = Field(default=None, alias='BoxOffice')
    production: Optional[str] = Field(default=None, alias='Production')
    website: Optional[str] = Field(default=None, alias='Website')
    total_seasons: Optional[str] = Field(default=None, alias='totalSeasons')


class Pagination(BaseModel):
    page: int
    total_pages: int
    pages: List[Union[int, Literal['ellipsis']]]


class MovieListResponse(BaseModel):
    movies: List[MovieSummary]
    total_results: int
    pagination: Pagination


class ErrorResponse(BaseModel):
    code: int
    message: str
    detail: Optional[str] = None
