"""Search and ordering of club lists (pure functions, no DB) plus the public browse route."""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from conftest import make_org
from app.services.club_search import filter_clubs, matches, sort_requests

BASE = datetime(2026, 3, 1, 12, 0)


def _club(name, city, state, minutes=0):
    return SimpleNamespace(name=name, city=city, state=state, created_at=BASE + timedelta(minutes=minutes))


CLUBS = [
    _club("Ace Tennis", "Portland", "OR", minutes=10),
    _club("Baseline Club", "Seattle", "WA", minutes=0),
    _club("Court Kings", "Eugene", "OR", minutes=5),
]


class TestMatches:
    def test_case_insensitive_name(self):
        assert matches(CLUBS[0], "ace")
        assert matches(CLUBS[0], "TENNIS")

    def test_city_and_state(self):
        assert matches(CLUBS[1], "seat")
        assert matches(CLUBS[2], "or")

    def test_blank_term_matches_everything(self):
        assert matches(CLUBS[1], "   ")

    def test_missing_fields_do_not_match(self):
        assert not matches(SimpleNamespace(name=None, city=None, state=None), "x")


class TestFilterClubs:
    def test_no_term_returns_all(self):
        assert filter_clubs(CLUBS, None) == CLUBS
        assert filter_clubs(CLUBS, "") == CLUBS

    def test_filters(self):
        assert [c.name for c in filter_clubs(CLUBS, "or")] == ["Ace Tennis", "Court Kings"]

    def test_city_prefix(self):
        clubs = [_club("Ace Tennis", "Austin", "TX"), _club("Bay Club", "Boston", "MA")]
        assert filter_clubs(clubs, "aust") == [clubs[0]]

    def test_no_match(self):
        assert filter_clubs(CLUBS, "boise") == []


class TestSortRequests:
    def test_all_keeps_order(self):
        assert sort_requests(CLUBS, "all") == CLUBS

    def test_recent_newest_first(self):
        assert [c.name for c in sort_requests(CLUBS, "recent")] == ["Ace Tennis", "Court Kings", "Baseline Club"]

    def test_oldest_first(self):
        assert [c.name for c in sort_requests(CLUBS, "oldest")] == ["Baseline Club", "Court Kings", "Ace Tennis"]

    def test_ties_keep_incoming_order(self):
        tied = [_club("B", "x", "y"), _club("A", "x", "y")]
        assert [c.name for c in sort_requests(tied, "recent")] == ["B", "A"]

    def test_does_not_mutate_input(self):
        items = list(CLUBS)
        sort_requests(items, "oldest")
        assert items == CLUBS


@pytest.mark.asyncio
async def test_browse_lists_verified_active_clubs(client):
    await make_org("ace", "Ace Tennis", city="Portland", state="OR")
    await make_org("hidden", "Hidden Club", is_verified=False)
    await make_org("closed", "Closed Club", is_active=False)
    await make_org("baseline", "Baseline Club", city="Seattle", state="WA")

    resp = await client.get("/api/v1/orgs")
    assert resp.status_code == 200
    assert [c["slug"] for c in resp.json()] == ["ace", "baseline"]

    resp = await client.get("/api/v1/orgs", params={"q": "seattle"})
    assert [c["slug"] for c in resp.json()] == ["baseline"]
