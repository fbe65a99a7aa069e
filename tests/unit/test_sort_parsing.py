"""Unit tests for sort-string parsing."""

from src.pm_store.domain.query import SortField, parse_sort, to_snake_case


def test_empty_sort():
    assert parse_sort(None) == []
    assert parse_sort("") == []
    assert parse_sort("   ") == []


def test_descending_and_camel_case():
    assert parse_sort("-createdAt fullname") == [
        SortField("created_at", descending=True),
        SortField("fullname"),
    ]


def test_snake_case_conversion_can_be_disabled():
    assert parse_sort("createdAt", convert_to_snake_case=False) == [SortField("createdAt")]


def test_lone_dash_is_ignored():
    assert parse_sort("- username") == [SortField("username")]


def test_to_snake_case():
    assert to_snake_case("twitterScreenName") == "twitter_screen_name"
    assert to_snake_case("id") == "id"
