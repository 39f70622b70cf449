"""
Unit tests for the run_etl command line
"""

import pytest

from core.exceptions import ConfigurationError
from scripts.run_etl import build_options, build_parser, build_source, parse_headers


def parse(*argv):
    return build_parser().parse_args(list(argv))


def test_file_source():
    args = parse("--entity", "carelog", "--file", "data/c.csv", "--delimiter", ";", "--batch-size", "20")

    assert build_source(args) == {"type": "file", "path": "data/c.csv", "delimiter": ";"}
    assert build_options(args) == {"batch_size": 20, "validate_only": False}


def test_http_source_with_headers():
    args = parse("--entity", "caregiver", "--url", "https://example.com/cg",
                 "--header", "Authorization=Bearer abc", "--header", "X-Team = care")

    assert build_source(args) == {
        "type": "http",
        "url": "https://example.com/cg",
        "headers": {"Authorization": "Bearer abc", "X-Team": "care"},
    }


def test_query_source_and_retries():
    args = parse("--entity", "carelog", "--query", "SELECT 1", "--validate-only", "--max-retries", "5")

    assert build_source(args) == {"type": "database", "query": "SELECT 1"}
    options = build_options(args)
    assert options["validate_only"] is True
    assert options["max_retries"] == 5


def test_sources_are_mutually_exclusive():
    with pytest.raises(SystemExit):
        parse("--entity", "carelog", "--file", "a.csv", "--url", "https://x")


def test_unknown_entity_rejected():
    with pytest.raises(SystemExit):
        parse("--entity", "visits", "--file", "a.csv")


def test_malformed_header():
    with pytest.raises(ConfigurationError):
        parse_headers(["no-separator"])
