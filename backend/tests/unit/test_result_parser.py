"""
Unit tests for the Result Parser

Tests for backend/scoutarr/services/result_parser.py covering:
- Response type detection
- HTML row/field extraction and retention rules
- JSON path navigation and field conversion
- Size, integer and date normalization
- Release construction
"""

import json
from datetime import datetime, timezone

import pytest

from scoutarr.schemas.definition import IndexerDefinition
from scoutarr.schemas.release import QualityInfo
from scoutarr.services.exceptions import (
    ConfigurationError,
    InvalidPathError,
    PathNotFoundError,
    SearchFailedError,
)
from scoutarr.services.result_parser import (
    ResponseType,
    detect_response_type,
    navigate_json_path,
    parse_date,
    parse_html_results,
    parse_integer,
    parse_json_results,
    parse_results,
    parse_size,
    transform_to_release,
)


GIB = 1024 ** 3
MIB = 1024 ** 2


class TestDetectResponseType:
    """Test HTML vs JSON detection."""

    def test_json_object(self):
        assert detect_response_type('  {"results": []}') == ResponseType.JSON

    def test_json_array(self):
        assert detect_response_type("[1, 2]") == ResponseType.JSON

    def test_html(self):
        assert detect_response_type("<html></html>") == ResponseType.HTML

    def test_broken_json_is_html(self):
        """A body that looks like JSON but does not decode is HTML."""
        assert detect_response_type("{not json") == ResponseType.HTML

    def test_ambiguous_defaults_to_html(self):
        assert detect_response_type("plain text") == ResponseType.HTML
        assert detect_response_type("") == ResponseType.HTML

    def test_bytes_body(self):
        assert detect_response_type(b'{"a": 1}') == ResponseType.JSON


class TestParseHtmlResults:
    """Test HTML extraction."""

    def test_rows_and_fields(self, html_definition, sample_html):
        """Complete rows become Releases in document order."""
        releases = parse_html_results(html_definition, sample_html, "Test Site")

        assert [r.title for r in releases] == [
            "Ubuntu 22.04 Desktop amd64",
            "Movie.2024.1080p.BluRay.x264-GRP",
        ]

        ubuntu, movie = releases
        assert ubuntu.indexer == "Test Site"
        assert ubuntu.download_url == "magnet:?xt=urn:btih:AAA"
        assert ubuntu.info_url == "https://testsite.example/torrent/1/Ubuntu-22.04-Desktop/"
        assert ubuntu.size == int(3.5 * GIB)
        assert ubuntu.seeders == 120
        assert ubuntu.leechers == 15

        assert movie.size == 8192 * MIB
        assert movie.seeders == 1024
        assert movie.quality.resolution == "1080p"
        assert movie.quality.source == "BluRay"

    def test_row_without_download_dropped(self, html_definition, sample_html):
        """Rows lacking a download link are skipped."""
        releases = parse_html_results(html_definition, sample_html)
        assert "Row without a download link" not in [r.title for r in releases]

    def test_indexer_name_defaults_to_definition(self, html_definition, sample_html):
        releases = parse_html_results(html_definition, sample_html)
        assert releases[0].indexer == "Test Site"

    def test_skip_count(self, html_definition, sample_html):
        """skip_count drops leading rows."""
        definition = html_definition.model_copy(
            update={"row_selector": html_definition.row_selector.model_copy(update={"skip_count": 2})}
        )
        releases = parse_html_results(definition, sample_html)
        assert [r.title for r in releases] == ["Movie.2024.1080p.BluRay.x264-GRP"]

    def test_empty_title_dropped(self, html_definition):
        """A row whose title is empty after trimming is skipped."""
        html = """
        <table class="results"><tbody>
          <tr><th>header</th></tr>
          <tr><td class="name"><a href="/x">   </a></td><td class="dl"><a href="magnet:x">m</a></td></tr>
        </tbody></table>
        """
        assert parse_html_results(html_definition, html) == []

    def test_text_concatenates_matches(self):
        """Text of every matched element is concatenated then trimmed."""
        definition = IndexerDefinition(
            id="concat",
            base_urls=("https://x",),
            row_selector={"selector": "div.row"},
            field_selectors={"title": "span", "download": {"selector": "a", "attribute": "href"}},
        )
        html = '<div class="row"> <span> Part</span><span>Two </span><a href=" magnet:1 ">x</a></div>'

        releases = parse_html_results(definition, html)

        assert releases[0].title == "PartTwo"
        assert releases[0].download_url == "magnet:1"

    def test_attribute_from_first_element_carrying_it(self):
        """The attribute is read off the first matched element that has it."""
        definition = IndexerDefinition(
            id="attr",
            base_urls=("https://x",),
            row_selector={"selector": "li"},
            field_selectors={"title": "b", "download": {"selector": "a", "attribute": "href"}},
        )
        html = '<ul><li><b>T</b><a>no href</a><a href="magnet:2">x</a></li></ul>'

        releases = parse_html_results(definition, html)

        assert releases[0].download_url == "magnet:2"

    def test_invalid_regex_drops_field_only(self, html_definition, sample_html):
        """A failing filter drops that field, not the row."""
        fields = dict(html_definition.field_selectors)
        fields["size"] = {"selector": "td.size", "filters": [{"name": "re_replace", "args": ["(", ""]}]}
        definition = html_definition.model_copy(update={
            "field_selectors": IndexerDefinition(id="tmp", field_selectors=fields).field_selectors
        })

        releases = parse_html_results(definition, sample_html)

        assert len(releases) == 2
        assert all(r.size == 0 for r in releases)

    def test_extra_fields_land_in_metadata(self, html_definition, sample_html):
        fields = dict(html_definition.field_selectors)
        fields["uploader"] = "td.leeches"
        definition = html_definition.model_copy(update={
            "field_selectors": IndexerDefinition(id="tmp", field_selectors=fields).field_selectors
        })

        releases = parse_html_results(definition, sample_html)

        assert releases[0].metadata == {"uploader": "15"}

    def test_no_matching_rows(self, html_definition):
        assert parse_html_results(html_definition, "<html><body>No results</body></html>") == []

    def test_missing_row_selector(self, html_definition, sample_html):
        """A definition without a row selector is a configuration error."""
        definition = html_definition.model_copy(update={"row_selector": None})
        with pytest.raises(ConfigurationError):
            parse_html_results(definition, sample_html)

    def test_unexpected_error_becomes_search_failed(self, html_definition, sample_html):
        """An unparsable selector degrades to a single search_failed error."""
        definition = html_definition.model_copy(
            update={"row_selector": html_definition.row_selector.model_copy(update={"selector": "tr[["})}
        )
        with pytest.raises(SearchFailedError) as exc_info:
            parse_html_results(definition, sample_html)

        assert exc_info.value.error_type == "search_failed"

    def test_custom_quality_extractor(self, html_definition, sample_html):
        """The quality extractor is injectable."""
        releases = parse_html_results(
            html_definition,
            sample_html,
            quality_extractor=lambda title: QualityInfo(resolution="720p"),
        )
        assert all(r.quality.resolution == "720p" for r in releases)

    def test_oversized_numbers_become_zero(self, html_definition):
        """Numbers too large to represent normalize to 0 instead of failing the search."""
        html = (
            "<table class=\"results\"><tbody><tr><th>Name</th></tr><tr>"
            "<td class=\"name\"><a href=\"/t/1/\">Huge</a></td>"
            f"<td class=\"size\">{'9' * 400} GB</td>"
            f"<td class=\"seeds\">{'9' * 5000}</td>"
            "<td class=\"dl\"><a href=\"magnet:H\">m</a></td>"
            "</tr></tbody></table>"
        )

        release = parse_html_results(html_definition, html)[0]

        assert release.size == 0
        assert release.seeders == 0

    def test_normalization_error_becomes_search_failed(self, html_definition, sample_html):
        def broken_extractor(title):
            raise RuntimeError("cannot read title")

        with pytest.raises(SearchFailedError) as exc_info:
            parse_html_results(html_definition, sample_html, quality_extractor=broken_extractor)

        assert type(exc_info.value) is SearchFailedError
        assert "cannot read title" in exc_info.value.message


class TestNavigateJsonPath:
    """Test dotted path navigation."""

    DATA = {"data": {"torrents": [{"a": 1}], "meta": "x"}, "empty": None}

    def test_root(self):
        assert navigate_json_path(self.DATA, "$") is self.DATA
        assert navigate_json_path(self.DATA, "$.") is self.DATA

    def test_dotted(self):
        assert navigate_json_path(self.DATA, "$.data.torrents") == [{"a": 1}]

    def test_bare_property(self):
        assert navigate_json_path(self.DATA, "data") == self.DATA["data"]

    def test_missing_key(self):
        with pytest.raises(PathNotFoundError) as exc_info:
            navigate_json_path(self.DATA, "$.data.missing")
        assert exc_info.value.error_type == "path_not_found"

    def test_null_value_is_missing(self):
        with pytest.raises(PathNotFoundError):
            navigate_json_path(self.DATA, "$.empty")

    def test_non_object_intermediate(self):
        with pytest.raises(InvalidPathError) as exc_info:
            navigate_json_path(self.DATA, "$.data.meta.deeper")
        assert exc_info.value.error_type == "invalid_path"

    def test_path_errors_are_search_failures(self):
        """Path errors are whole-response failures."""
        assert issubclass(PathNotFoundError, SearchFailedError)
        assert issubclass(InvalidPathError, SearchFailedError)


class TestParseJsonResults:
    """Test JSON extraction."""

    def test_results_array(self, json_definition):
        body = json.dumps({"results": [{
            "title": "A", "download": "magnet:A", "size": "1.0 GB", "seeders": "5", "leechers": "2",
        }]})

        releases = parse_json_results(json_definition, body, "JSON API")

        assert len(releases) == 1
        release = releases[0]
        assert release.size == 1073741824
        assert release.seeders == 5
        assert release.leechers == 2
        assert release.indexer == "JSON API"

    def test_numbers_are_stringified(self, json_definition):
        body = json.dumps({"results": [{"title": "A", "download": "magnet:A", "size": 2048, "seeders": 7}]})

        release = parse_json_results(json_definition, body)[0]

        assert release.size == 2048
        assert release.seeders == 7

    def test_non_scalar_values_are_absent(self, json_definition):
        """Bools, nulls, lists and objects count as absent fields."""
        body = json.dumps({"results": [
            {"title": "A", "download": "magnet:A", "seeders": True, "leechers": None, "size": [1]},
            {"title": {"nested": 1}, "download": "magnet:B"},
        ]})

        releases = parse_json_results(json_definition, body)

        assert len(releases) == 1
        assert releases[0].seeders == 0
        assert releases[0].leechers == 0
        assert releases[0].size == 0

    def test_single_object_is_wrapped(self, json_definition):
        body = json.dumps({"results": {"title": "Only", "download": "magnet:O"}})
        assert [r.title for r in parse_json_results(json_definition, body)] == ["Only"]

    def test_non_object_rows_skipped(self, json_definition):
        body = json.dumps({"results": ["junk", 3, {"title": "A", "download": "magnet:A"}]})
        assert [r.title for r in parse_json_results(json_definition, body)] == ["A"]

    def test_invalid_json(self, json_definition):
        with pytest.raises(SearchFailedError):
            parse_json_results(json_definition, "{broken")

    def test_missing_rows_path(self, json_definition):
        with pytest.raises(PathNotFoundError):
            parse_json_results(json_definition, json.dumps({"data": []}))

    def test_filters_applied(self, json_definition):
        fields = dict(json_definition.field_selectors)
        fields["download"] = {"selector": "hash", "filters": [{"name": "prepend", "args": ["magnet:?xt=urn:btih:"]}]}
        definition = json_definition.model_copy(update={
            "field_selectors": IndexerDefinition(id="tmp", field_selectors=fields).field_selectors
        })
        body = json.dumps({"results": [{"title": "A", "hash": "ABC"}]})

        assert parse_json_results(definition, body)[0].download_url == "magnet:?xt=urn:btih:ABC"

    def test_oversized_numbers_become_zero(self, json_definition):
        body = json.dumps({"results": [
            {"title": "A", "download": "magnet:A", "size": "9" * 400 + " GB", "seeders": "9" * 5000},
        ]})

        release = parse_json_results(json_definition, body)[0]

        assert release.size == 0
        assert release.seeders == 0

    def test_normalization_error_becomes_search_failed(self, json_definition):
        body = json.dumps({"results": [{"title": "A", "download": "magnet:A"}]})

        def broken_extractor(title):
            raise RuntimeError("cannot read title")

        with pytest.raises(SearchFailedError):
            parse_json_results(json_definition, body, quality_extractor=broken_extractor)


class TestParseResultsDispatch:
    """Test parse_results picks the right parser."""

    def test_json_body(self, json_definition):
        body = json.dumps({"results": [{"title": "A", "download": "magnet:A"}]})
        assert len(parse_results(json_definition, body)) == 1

    def test_html_body(self, html_definition, sample_html):
        assert len(parse_results(html_definition, sample_html)) == 2


class TestParseSize:
    """Test size normalization."""

    @pytest.mark.parametrize("value,expected", [
        ("1.5 GB", 1610612736),
        ("500 MB", 524288000),
        ("1024", 1024),
        ("2 KiB", 2048),
        ("1 TB", 1024 ** 4),
        ("4.2 GiB", int(4.2 * GIB)),
        ("1,234.5 MB", int(1234.5 * MIB)),
        (None, 0),
        ("", 0),
        ("unknown", 0),
    ])
    def test_values(self, value, expected):
        assert parse_size(value) == expected

    def test_units_are_case_sensitive(self):
        """Lowercase units are not recognised, digits are read as bytes."""
        assert parse_size("15 gb") == 15

    def test_overflow_is_zero(self):
        assert parse_size("9" * 400 + " GB") == 0


class TestParseInteger:
    """Test integer normalization."""

    def test_strips_non_digits(self):
        assert parse_integer("1,024") == 1024
        assert parse_integer(" 42 peers") == 42

    def test_defaults_to_zero(self):
        assert parse_integer(None) == 0
        assert parse_integer("") == 0
        assert parse_integer("n/a") == 0

    def test_too_many_digits_is_zero(self):
        assert parse_integer("9" * 5000) == 0


class TestParseDate:
    """Test date normalization."""

    def test_iso8601_with_zone(self):
        assert parse_date("2024-01-15T12:30:00Z") == datetime(2024, 1, 15, 12, 30, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        parsed = parse_date("2024-01-15 12:30:00")
        assert parsed.tzinfo == timezone.utc
        assert parsed.hour == 12

    def test_unix_timestamp(self):
        assert parse_date("1705276800") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_unparsable(self):
        assert parse_date("2 hours ago") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestTransformToRelease:
    """Test RawRow to Release mapping."""

    def test_full_row(self):
        row = {
            "title": "Show.S01E01.720p.HDTV.x264-GRP",
            "download": "magnet:?xt=urn:btih:XYZ",
            "details": "https://site/t/1",
            "size": "700 MB",
            "seeders": "10",
            "leechers": "3",
            "date": "2024-01-15T00:00:00Z",
            "category": "5040",
            "imdbid": "tt0903747",
            "tmdbid": "1396",
            "uploader": "someone",
        }

        release = transform_to_release(row, "Site")

        assert release.info_url == "https://site/t/1"
        assert release.size == 700 * MIB
        assert release.published_at == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert release.category == 5040
        assert release.imdb_id == "tt0903747"
        assert release.tmdb_id == 1396
        assert release.quality.resolution == "720p"
        assert release.metadata == {"uploader": "someone"}

    def test_absent_optional_fields(self):
        release = transform_to_release({"title": "T", "download": "magnet:T"}, "Site")

        assert release.category is None
        assert release.tmdb_id is None
        assert release.published_at is None
        assert release.metadata is None

    def test_missing_required_field(self):
        assert transform_to_release({"title": "T"}, "Site") is None
        assert transform_to_release({"title": "", "download": "magnet:x"}, "Site") is None
