"""
Search Engine Service

Executes a search against one indexer using its IndexerDefinition.

Search Flow:
    1. Build search URL: select a path template and substitute variables
    2. Build request params: inputs, headers and method
    3. Execute HTTP request: rate limit, cookies, timeout, redirects
    4. Validate response: map the HTTP status onto the error taxonomy
    5. Return the response (parsed by result_parser, handled by the caller)

Template Variables (Go-template style, matched literally):
    {{ .Keywords }}        percent-encoded query
    {{ .Query.Series }}    percent-encoded query
    {{ .Query.Season }}    season number or empty
    {{ .Query.Ep }}        episode number or empty
    {{ .Query.IMDBID }}    IMDB id or empty
    {{ .Query.TMDBID }}    TMDB id or empty
    {{ .Categories }}      comma-joined category ids

Usage Example:
    >>> options = SearchOptions(query="Ubuntu 22.04", categories=(2000,))
    >>> build_search_url(definition, options)
    'https://1337x.to/search/Ubuntu%2022.04/1/'
"""

import logging
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from scoutarr.config import config
from scoutarr.schemas.definition import HttpMethod, IndexerDefinition, PathSpec
from scoutarr.schemas.search import RequestParams, SearchOptions, UserConfig
from scoutarr.services.exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    RequestTimeoutError,
    SearchFailedError,
    classify_http_status,
)
from scoutarr.services.rate_limiter import RateLimiter, acquire_for_indexer

logger = logging.getLogger(__name__)

RAW_KEYWORDS = "$raw:{{ .Keywords }}"


# ============================================================================
# URL Building
# ============================================================================

def percent_encode(value: str) -> str:
    """
    Percent-encode a string for use in a URL path.

    Only the RFC 3986 unreserved characters (A-Z a-z 0-9 - _ . ~) are kept;
    every other UTF-8 byte becomes %XX with upper-case hex. Spaces become %20.
    """
    return quote(value, safe="")


def get_base_url(definition: IndexerDefinition) -> str:
    """Canonical base URL without a trailing slash."""
    if not definition.base_urls:
        raise ConfigurationError(f"No base URL configured for indexer '{definition.id}'")
    return definition.base_urls[0].rstrip("/")


def select_search_path(definition: IndexerDefinition, options: SearchOptions) -> PathSpec:
    """
    Pick the path whose categories intersect the requested ones.

    Falls back to the first path when no categories were requested or
    none match.
    """
    if not definition.search_paths:
        raise ConfigurationError(f"No search path configured for indexer '{definition.id}'")

    if options.categories:
        wanted = set(options.categories)
        for path in definition.search_paths:
            if path.categories and wanted.intersection(path.categories):
                return path

    return definition.search_paths[0]


def _template_values(options: SearchOptions, encode: bool) -> Dict[str, str]:
    query = percent_encode(options.query) if encode else options.query

    def _optional(value) -> str:
        return "" if value is None else str(value)

    return {
        "{{ .Keywords }}": query,
        "{{ .Query.Series }}": query,
        "{{ .Query.Season }}": _optional(options.season),
        "{{ .Query.Ep }}": _optional(options.episode),
        "{{ .Query.IMDBID }}": _optional(options.imdb_id),
        "{{ .Query.TMDBID }}": _optional(options.tmdb_id),
        "{{ .Categories }}": ",".join(str(c) for c in options.categories),
    }


def substitute_template_variables(template: str, options: SearchOptions, encode: bool = True) -> str:
    """
    Replace template variables in a path or input value.

    Args:
        template: String containing {{ .Var }} placeholders
        options: Search options supplying the values
        encode: Percent-encode the query (True for paths; inputs are
            encoded by the HTTP client instead)

    Returns:
        Substituted string
    """
    result = template
    if not encode:
        result = result.replace(RAW_KEYWORDS, options.query)
    for variable, value in _template_values(options, encode).items():
        result = result.replace(variable, value)
    return result


def build_search_url(definition: IndexerDefinition, options: SearchOptions) -> str:
    """
    Build the full search URL from the definition's path template.

    Raises:
        ConfigurationError: If no base URL or no search path is configured
    """
    base_url = get_base_url(definition)
    path_spec = select_search_path(definition, options)
    path = substitute_template_variables(path_spec.template, options)
    return f"{base_url}/{path.lstrip('/')}"


def build_request_params(definition: IndexerDefinition, options: SearchOptions) -> RequestParams:
    """
    Build query/form parameters, headers and method for the request.

    String inputs get raw (unencoded) template substitution; other values
    pass through unchanged.
    """
    query_params = {
        key: substitute_template_variables(value, options, encode=False) if isinstance(value, str) else value
        for key, value in definition.inputs.items()
    }

    method = HttpMethod.GET
    if definition.search_paths:
        method = select_search_path(definition, options).method

    return RequestParams(
        query_params=query_params,
        headers=list(definition.headers),
        method=method,
    )


# ============================================================================
# HTTP Execution
# ============================================================================

def execute_http_request(
    definition: IndexerDefinition,
    url: str,
    params: RequestParams,
    user_config: Optional[UserConfig] = None,
    client: Optional[httpx.Client] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> httpx.Response:
    """
    Send the search request.

    Waits on the indexer's shared rate limiter first, merges the user's
    cookies into a single Cookie header, and maps transport failures onto
    the error taxonomy. The response status is not checked here.

    Args:
        definition: Indexer definition
        url: Full search URL
        params: Output of build_request_params
        user_config: Per-user cookies
        client: Optional httpx.Client to reuse (a short-lived one is created otherwise)
        rate_limiter: Optional limiter instance (the process-wide one by default)

    Returns:
        The raw httpx.Response

    Raises:
        RateLimitExceeded: If the rate limiter timed out
        RequestTimeoutError: If the request timed out
        ConnectionFailedError: On any other transport failure
        SearchFailedError: On any other client error
    """
    acquire_for_indexer(definition.id, definition.request_delay, rate_limiter)

    headers = list(params.headers)
    cookie_header = user_config.cookie_header() if user_config else None
    if cookie_header:
        headers.append(("Cookie", cookie_header))

    request_kwargs = {
        "headers": headers,
        "follow_redirects": definition.follow_redirect,
        "timeout": config.SEARCH_REQUEST_TIMEOUT,
    }
    if params.method == HttpMethod.POST:
        request_kwargs["data"] = params.query_params or None
    else:
        request_kwargs["params"] = params.query_params or None

    logger.debug(f"Search request: {params.method.value} {url}")
    logger.debug(f"Request params: {params.query_params}")

    try:
        if client is not None:
            return client.request(params.method.value, url, **request_kwargs)
        with httpx.Client() as owned_client:
            return owned_client.request(params.method.value, url, **request_kwargs)
    except httpx.TimeoutException as e:
        raise RequestTimeoutError(f"Request timeout to {url}", original_exception=e) from e
    except httpx.TransportError as e:
        raise ConnectionFailedError(f"Connection failed to {url}: {e}", original_exception=e) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise SearchFailedError(f"Request failed: {e}") from e


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def validate_response(response: httpx.Response) -> None:
    """
    Check the response status before handing the body to the parser.

    Raises:
        AuthenticationFailedError: 401/403
        RateLimitedError: 429 (retry_after taken from Retry-After)
        SearchFailedError: 5xx, other 4xx, or any unexpected status
    """
    status = response.status_code
    if status == 200:
        return

    excerpt = response.text[:500] if response.content else None
    if 400 <= status < 500 and status not in (401, 403, 429):
        logger.warning(f"Search returned HTTP {status}: {excerpt!r}")
    elif status < 400:
        logger.warning(f"Unexpected HTTP status: {status}")

    error = classify_http_status(
        status,
        response_data=excerpt,
        retry_after=_parse_retry_after(response.headers.get("Retry-After")),
    )
    raise error


def execute_search(
    definition: IndexerDefinition,
    options: SearchOptions,
    user_config: Optional[UserConfig] = None,
    client: Optional[httpx.Client] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> httpx.Response:
    """
    Build, send and validate a search request.

    Returns:
        A 200 response ready for result_parser
    """
    url = build_search_url(definition, options)
    params = build_request_params(definition, options)
    response = execute_http_request(definition, url, params, user_config, client, rate_limiter)
    validate_response(response)
    return response
