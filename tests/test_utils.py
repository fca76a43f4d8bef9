from app.utils import (
    NA,
    format_count,
    format_rating,
    format_runtime,
    join_names,
    ok,
    poster_url,
    year_from_date,
)


def test_year_from_date_takes_leading_digits():
    assert year_from_date("2005-06-10") == "2005"
    assert year_from_date("") == NA
    assert year_from_date(None) == NA
    assert year_from_date("soon") == NA


def test_runtime_and_rating_formatting():
    assert format_runtime(140) == "140 min"
    assert format_runtime(0) == NA
    assert format_runtime(None) == NA
    assert format_rating(7.66) == "7.7"
    assert format_rating(8) == "8.0"
    assert format_rating(0) == NA
    assert format_count(12_345) == "12345"
    assert format_count(0) == NA


def test_poster_url_uses_w500_bucket():
    assert poster_url("https://image.tmdb.org/t/p/", "/abc.jpg") == (
        "https://image.tmdb.org/t/p/w500/abc.jpg"
    )
    assert poster_url("https://image.tmdb.org/t/p", None) == NA


def test_join_names_limits_entries():
    people = [{"name": f"Actor {index}"} for index in range(8)]
    assert join_names(people, 2) == "Actor 0, Actor 1"
    assert join_names([]) == NA


def test_ok_envelope_includes_source_only_when_given():
    assert ok([1]) == {"success": True, "data": [1]}
    assert ok({}, "cache") == {"success": True, "data": {}, "meta": {"source": "cache"}}
