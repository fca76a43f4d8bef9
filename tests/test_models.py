import pytest
from pydantic import ValidationError

from app.models import (
    LegacyMovieBody,
    MLRecommendationRequest,
    MediaItem,
    ProfileUpdate,
    RecommendationByTitleRequest,
    SubscriptionsUpdate,
    WatchlistCreate,
)


def test_profile_update_patch_only_contains_supplied_fields():
    update = ProfileUpdate(username="  neo  ")

    assert update.patch() == {"username": "neo"}


def test_profile_update_rejects_long_username():
    with pytest.raises(ValidationError):
        ProfileUpdate(username="x" * 65)


def test_subscriptions_must_be_positive_integers():
    assert SubscriptionsUpdate(subscriptions=[8, 337]).subscriptions == [8, 337]
    with pytest.raises(ValidationError):
        SubscriptionsUpdate(subscriptions=[0])


def test_media_item_keeps_extra_fields():
    item = MediaItem(tmdb_id=550, media_type="movie", title="Fight Club")

    assert item.model_dump(exclude_unset=True) == {
        "tmdb_id": 550,
        "media_type": "movie",
        "title": "Fight Club",
    }


def test_media_item_rejects_unknown_media_type():
    with pytest.raises(ValidationError):
        MediaItem(tmdb_id=1, media_type="person")


def test_legacy_movie_body_strips_identifier():
    body = LegacyMovieBody(movie={"imdbID": " tt0372784 ", "Title": "Batman Begins"})

    assert body.movie.imdbID == "tt0372784"
    assert body.movie.model_dump(exclude_unset=True)["Title"] == "Batman Begins"


def test_watchlist_name_limits():
    assert WatchlistCreate(name=" Weekend ").name == "Weekend"
    with pytest.raises(ValidationError):
        WatchlistCreate(name="   ")
    with pytest.raises(ValidationError):
        WatchlistCreate(name="n" * 101)


def test_recommendation_requests_bound_top_n():
    assert RecommendationByTitleRequest(title="Heat").top_n == 10
    with pytest.raises(ValidationError):
        RecommendationByTitleRequest(title="Heat", top_n=21)
    with pytest.raises(ValidationError):
        MLRecommendationRequest(titles=["a", "b", "c", "d", "e", "f"])
