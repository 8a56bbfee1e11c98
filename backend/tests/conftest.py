"""
Pytest configuration for backend tests.

This file configures pytest for the backend test suite, including
shared fixtures (sample definitions, mocked HTTP clients) and markers.
"""

import sys
from pathlib import Path

import httpx
import pytest

# Add backend directory to Python path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

from scoutarr.schemas.definition import IndexerDefinition  # noqa: E402
from scoutarr.services.rate_limiter import RateLimiter  # noqa: E402
from scoutarr.services.structured_logging import clear_context  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


SAMPLE_HTML = """
<html>
  <body>
    <table class="results">
      <tbody>
        <tr><th>Name</th><th>Size</th><th>SE</th><th>LE</th></tr>
        <tr>
          <td class="name"><a href="/torrent/1/Ubuntu-22.04-Desktop/">Ubuntu 22.04 Desktop amd64</a></td>
          <td class="size">3.5 GB</td>
          <td class="seeds">120</td>
          <td class="leeches">15</td>
          <td class="dl"><a href="magnet:?xt=urn:btih:AAA">magnet</a></td>
        </tr>
        <tr>
          <td class="name"><a href="/torrent/2/Movie-2024/">Movie.2024.1080p.BluRay.x264-GRP</a></td>
          <td class="size">8,192.0 MB</td>
          <td class="seeds">1,024</td>
          <td class="leeches">30</td>
          <td class="dl"><a href="magnet:?xt=urn:btih:BBB">magnet</a></td>
        </tr>
        <tr>
          <td class="name"><a href="/torrent/3/No-Link/">Row without a download link</a></td>
          <td class="size">1 GB</td>
          <td class="seeds">1</td>
          <td class="leeches">1</td>
        </tr>
      </tbody>
    </table>
  </body>
</html>
"""


@pytest.fixture
def sample_html():
    """A results table with a header row, two complete rows and one without a link."""
    return SAMPLE_HTML


@pytest.fixture
def html_definition():
    """Definition for an HTML table indexer."""
    return IndexerDefinition(
        id="testsite",
        name="Test Site",
        base_urls=("https://testsite.example/",),
        search_paths=(
            {"template": "/search/{{ .Keywords }}/1/"},
            {"template": "/tv/{{ .Keywords }}/", "categories": (5000,)},
        ),
        row_selector={"selector": "table.results tbody tr", "skip_count": 1},
        field_selectors={
            "title": "td.name a",
            "details": {
                "selector": "td.name a",
                "attribute": "href",
                "filters": [{"name": "prepend", "args": ["https://testsite.example"]}],
            },
            "download": {"selector": "td.dl a", "attribute": "href"},
            "size": "td.size",
            "seeders": "td.seeds",
            "leechers": "td.leeches",
        },
    )


@pytest.fixture
def json_definition():
    """Definition for a JSON API indexer."""
    return IndexerDefinition(
        id="jsonapi",
        name="JSON API",
        base_urls=("https://api.example",),
        search_paths=({"template": "/api/search"},),
        inputs={"q": "{{ .Keywords }}", "limit": 100},
        row_selector={"selector": "$.results"},
        field_selectors={
            "title": "title",
            "download": "download",
            "size": "size",
            "seeders": "seeders",
            "leechers": "leechers",
        },
    )


@pytest.fixture
def rate_limiter():
    """A private limiter so tests never share buckets."""
    return RateLimiter()


@pytest.fixture
def mock_client():
    """
    Build an httpx.Client backed by a handler function.

    Usage:
        client = mock_client(lambda request: httpx.Response(200, text="..."))
    """
    clients = []

    def _build(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _build

    for client in clients:
        client.close()


@pytest.fixture(autouse=True)
def _clear_log_context():
    yield
    clear_context()
