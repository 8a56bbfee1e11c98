"""
Search Request Schemas

Per-call inputs to the search pipeline and the request it builds.
"""

from typing import List, Optional, Tuple, Dict, Any

from pydantic import BaseModel, ConfigDict, Field

from scoutarr.schemas.definition import HttpMethod


class SearchOptions(BaseModel):
    """What the caller is looking for."""
    model_config = ConfigDict(frozen=True)

    query: str = Field(
        "",
        description="Free-text search terms",
        examples=["Ubuntu 22.04"]
    )
    categories: Tuple[int, ...] = Field(
        (),
        description="Indexer category ids to restrict the search to",
        examples=[(2000, 2040)]
    )
    season: Optional[int] = Field(None, ge=0, description="Season number")
    episode: Optional[int] = Field(None, ge=0, description="Episode number")
    imdb_id: Optional[str] = Field(None, description="IMDB id", examples=["tt0903747"])
    tmdb_id: Optional[int] = Field(None, ge=1, description="TMDB id", examples=[1396])


class UserConfig(BaseModel):
    """Per-user request settings for one indexer."""
    model_config = ConfigDict(frozen=True)

    cookies: Tuple[str, ...] = Field(
        (),
        description="Cookies as name=value pairs",
        examples=[("uid=123", "pass=abc")]
    )

    def cookie_header(self) -> Optional[str]:
        """Cookies joined into a single Cookie header value, or None."""
        cookies = [c for c in self.cookies if c]
        return "; ".join(cookies) if cookies else None


class RequestParams(BaseModel):
    """Query/form parameters, headers and method for one search request."""
    model_config = ConfigDict(frozen=True)

    query_params: Dict[str, Any] = Field(default_factory=dict)
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    method: HttpMethod = HttpMethod.GET
