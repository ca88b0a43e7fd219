"""Tests for RelevanceRanker scoring and ordering, and the post-merge filters."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import make_event
from event_search.application.search.filters import filter_events, within_dates, within_price, within_radius
from event_search.application.search.relevance_ranker import RankingConfig, RelevanceRanker
from event_search.domain.entities.event import CanonicalEvent, Coordinates, PriceRange
from event_search.domain.entities.query import SearchQuery, SortOrder

TODAY = datetime(2025, 5, 30, 12, 0, tzinfo=timezone.utc)
HERE = Coordinates(40.71, -74.00)
# Roughly 60 miles north of HERE
FAR = Coordinates(41.58, -74.00)


def canonical(title="Jazz Night", **kwargs) -> CanonicalEvent:
    return CanonicalEvent.from_raw(make_event(title, **kwargs))


@pytest.fixture
def ranker():
    return RelevanceRanker(clock=lambda: TODAY)


# ============================================================================
# Scoring
# ============================================================================


class TestScore:
    def test_missing_inputs_score_zero(self, ranker):
        event = canonical("Untimed", start_time=None)
        assert ranker.score(event, SearchQuery()) == 0.0

    def test_keyword_in_title(self, ranker):
        event = canonical("Jazz Night", start_time=None)
        assert ranker.score(event, SearchQuery(keyword="JAZZ")) == 30.0

    def test_keyword_in_description(self, ranker):
        event = canonical("Live Music", start_time=None, description="Smooth jazz all night")
        assert ranker.score(event, SearchQuery(keyword="jazz")) == 10.0

    def test_category_match(self, ranker):
        query = SearchQuery(categories=frozenset({"music"}))
        assert ranker.score(canonical(start_time=None, category="Music"), query) == 25.0
        assert ranker.score(canonical(start_time=None, category="Music & Arts"), query) == 25.0
        assert ranker.score(canonical(start_time=None, category="Sports"), query) == 0.0

    def test_real_image(self, ranker):
        assert ranker.score(canonical(start_time=None, image_url="https://cdn.example/a.jpg"), SearchQuery()) == 15.0
        assert ranker.score(canonical(start_time=None, image_url="https://via.placeholder.com/1"), SearchQuery()) == 0.0

    def test_distance(self, ranker):
        query = SearchQuery(coordinates=HERE)
        assert ranker.score(canonical(start_time=None, coordinates=HERE), query) == 50.0
        assert ranker.score(canonical(start_time=None, coordinates=FAR), query) == 0.0

    def test_distance_needs_both_points(self, ranker):
        assert ranker.score(canonical(start_time=None, coordinates=HERE), SearchQuery()) == 0.0
        assert ranker.score(canonical(start_time=None), SearchQuery(coordinates=HERE)) == 0.0

    def test_recency(self, ranker):
        # 2 days 8 hours ahead
        soon = canonical(day=(2025, 6, 1))
        assert ranker.score(soon, SearchQuery()) == pytest.approx(10 - (56 / 24) / 3)

    def test_recency_window(self, ranker):
        assert ranker.score(canonical(day=(2025, 7, 15)), SearchQuery()) == 0.0
        # 2 days 16 hours ago
        assert ranker.score(canonical(day=(2025, 5, 27)), SearchQuery()) == pytest.approx(10 - (64 / 24) / 3)

    def test_recency_uses_fractional_days(self, ranker):
        event = canonical(start_time=TODAY + timedelta(days=2, hours=23))
        assert ranker.score(event, SearchQuery()) == pytest.approx(10 - (71 / 24) / 3)

    def test_recency_across_timezones(self, ranker):
        eastern = timezone(timedelta(hours=-5))
        # 01:00 on June 1st in UTC-5 is 06:00 UTC, 1 day 18 hours ahead
        event = canonical(start_time=datetime(2025, 6, 1, 1, 0, tzinfo=eastern))
        assert ranker.score(event, SearchQuery()) == pytest.approx(10 - (42 / 24) / 3)

    def test_recent_past_event_scores(self, ranker):
        event = canonical(start_time=TODAY - timedelta(days=1, hours=12))
        assert ranker.score(event, SearchQuery()) == pytest.approx(9.5)

    def test_components_add_up(self, ranker):
        event = canonical(
            "Jazz Night",
            day=(2025, 5, 30),
            description="The best jazz in town",
            category="Music",
            image_url="https://cdn.example/jazz.jpg",
            coordinates=HERE,
        )
        query = SearchQuery(keyword="jazz", coordinates=HERE, categories=frozenset({"music"}))
        assert ranker.score(event, query) == pytest.approx(50 + 30 + 10 + 25 + 15 + 10 - (8 / 24) / 3)

    def test_custom_weights(self):
        config = RankingConfig.from_dict({"keyword_title_points": 100.0, "unknown": 1})
        ranker = RelevanceRanker(config, clock=lambda: TODAY)
        assert ranker.score(canonical(start_time=None), SearchQuery(keyword="jazz")) == 100.0

    def test_kilometres(self):
        ranker = RelevanceRanker(RankingConfig(distance_unit="km"), clock=lambda: TODAY)
        query = SearchQuery(coordinates=HERE)
        # ~60 miles is ~97 km, still beyond the 50 point range
        assert ranker.score(canonical(start_time=None, coordinates=FAR), query) == 0.0
        assert ranker.distance_to(canonical(coordinates=FAR), query) == pytest.approx(96.7, rel=0.02)


# ============================================================================
# Ordering
# ============================================================================


class TestRank:
    def test_relevance_descending(self, ranker):
        events = [
            canonical("Quiet Evening", start_time=None),
            canonical("Jazz Night", start_time=None),
            canonical("Jazz Brunch", start_time=None, image_url="https://cdn.example/b.jpg"),
        ]

        ranked = ranker.rank(events, SearchQuery(keyword="jazz"))

        assert [e.title for e in ranked] == ["Jazz Brunch", "Jazz Night", "Quiet Evening"]
        assert [e.relevance_score for e in ranked] == [45.0, 30.0, 0.0]

    def test_ties_keep_input_order(self, ranker):
        events = [canonical("B", start_time=None), canonical("A", start_time=None)]
        assert [e.title for e in ranker.rank(events, SearchQuery())] == ["B", "A"]

    def test_sort_by_date_missing_last(self, ranker):
        events = [
            canonical("Later", day=(2025, 6, 10)),
            canonical("Unknown", start_time=None),
            canonical("Sooner", day=(2025, 6, 2)),
        ]
        ranked = ranker.rank(events, SearchQuery(sort=SortOrder.DATE))
        assert [e.title for e in ranked] == ["Sooner", "Later", "Unknown"]

    def test_sort_by_price(self, ranker):
        events = [
            canonical("Pricey", price=PriceRange(80.0)),
            canonical("Free", price=PriceRange(0.0, 0.0)),
            canonical("Unpriced"),
        ]
        ranked = ranker.rank(events, SearchQuery(sort=SortOrder.PRICE))
        assert [e.title for e in ranked] == ["Free", "Pricey", "Unpriced"]

    def test_sort_by_popularity(self, ranker):
        events = [canonical("Small", popularity=10), canonical("Unknown"), canonical("Big", popularity=5000)]
        ranked = ranker.rank(events, SearchQuery(sort=SortOrder.POPULARITY))
        assert [e.title for e in ranked] == ["Big", "Small", "Unknown"]

    def test_sort_by_distance(self, ranker):
        events = [canonical("Far", coordinates=FAR), canonical("Near", coordinates=HERE), canonical("Nowhere")]
        ranked = ranker.rank(events, SearchQuery(coordinates=HERE, radius=100, sort=SortOrder.DISTANCE))
        assert [e.title for e in ranked] == ["Near", "Far", "Nowhere"]

    def test_explicit_sort_breaks_ties_by_score(self, ranker):
        events = [
            canonical("Plain", day=(2025, 6, 2)),
            canonical("Jazz", day=(2025, 6, 2)),
        ]
        ranked = ranker.rank(events, SearchQuery(keyword="jazz", sort=SortOrder.DATE))
        assert [e.title for e in ranked] == ["Jazz", "Plain"]


# ============================================================================
# Filters
# ============================================================================


class TestFilters:
    def test_radius(self):
        query = SearchQuery(coordinates=HERE, radius=25)
        assert within_radius(canonical(coordinates=HERE), query)
        assert not within_radius(canonical(coordinates=FAR), query)
        assert within_radius(canonical(), query)

    def test_dates(self):
        query = SearchQuery(start_date=date(2025, 6, 1), end_date=date(2025, 6, 30))
        assert within_dates(canonical(day=(2025, 6, 1)), query)
        assert within_dates(canonical(day=(2025, 6, 30)), query)
        assert not within_dates(canonical(day=(2025, 5, 31)), query)
        assert not within_dates(canonical(day=(2025, 7, 1)), query)
        assert within_dates(canonical(start_time=None), query)

    def test_price_overlap(self):
        query = SearchQuery(price_min=20, price_max=50)
        assert within_price(canonical(price=PriceRange(10.0, 25.0)), query)
        assert within_price(canonical(price=PriceRange(45.0)), query)
        assert not within_price(canonical(price=PriceRange(60.0, 90.0)), query)
        assert not within_price(canonical(price=PriceRange(0.0, 0.0)), query)
        assert within_price(canonical(), query)

    def test_filter_events_keeps_order(self):
        query = SearchQuery(coordinates=HERE, radius=25, price_max=30)
        events = [
            canonical("A", coordinates=HERE),
            canonical("B", coordinates=FAR),
            canonical("C", price=PriceRange(100.0)),
            canonical("D"),
        ]
        assert [e.title for e in filter_events(events, query)] == ["A", "D"]
