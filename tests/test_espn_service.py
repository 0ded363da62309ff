"""
Tests for the ESPN scoreboard service: parsing, caching and season status.
"""

from datetime import date
from unittest.mock import AsyncMock

import httpx
import pytest

from pickem_sync.errors import ExhaustedRetries
from pickem_sync.espn_service import ESPNService, parse_event
from pickem_sync.metrics import get_metrics_collector

from conftest import make_event, make_team, scoreboard_transport


def _service(config_manager, transport, **kwargs):
    return ESPNService(config_manager, transport=transport, sleep=AsyncMock(), **kwargs)


class TestParseEvent:
    """Test conversion of scoreboard events into FetchedGame records."""

    def test_parse_full_event(self):
        event = make_event(
            "401", make_team("KC", "Chiefs", "Kansas City", color="e31837"), "BAL",
            home_score="27", away_score="20", week=1, status="STATUS_FINAL",
        )

        game = parse_event(event, week=1, season_type=2, year="2024")

        assert game.external_id == "401"
        assert game.week == 1
        assert game.season_type == 2
        assert game.status.status_type == "STATUS_FINAL"
        assert game.status.completed is True
        home, away = game.require_sides()
        assert home.team.code == "KC"
        assert home.team.city == "Kansas City"
        assert home.team.color == "e31837"
        assert home.score == 27
        assert away.score == 20

    def test_week_falls_back_to_requested_week(self):
        event = make_event("1", "KC", "BAL")
        del event["week"]
        assert parse_event(event, week=7, season_type=2).week == 7

    def test_missing_scores_parse_as_none(self):
        event = make_event("1", "KC", "BAL", home_score="", away_score=None)
        home, away = parse_event(event, 1, 2).require_sides()
        assert home.score is None
        assert away.score is None

    def test_event_without_competitions_has_no_competitors(self):
        event = make_event("1", "KC", "BAL")
        event["competitions"] = []
        assert parse_event(event, 1, 2).competitors == []


class TestFetchWeeklyGames:
    """Test the cache -> retry -> client fetch path."""

    @pytest.mark.asyncio
    async def test_fetch_weekly_games_sends_expected_params(self, config_manager):
        requests = []
        transport = scoreboard_transport({3: [make_event("1", "KC", "BAL", week=3)]}, requests=requests)
        service = _service(config_manager, transport)
        try:
            games = await service.fetch_weekly_games(3, 2, "2024")
        finally:
            await service.aclose()

        assert len(games) == 1
        assert games[0].season_year == "2024"
        params = requests[0].url.params
        assert params["dates"] == "2024"
        assert params["week"] == "3"
        assert params["seasontype"] == "2"

    @pytest.mark.asyncio
    async def test_repeat_fetch_within_ttl_uses_cache(self, config_manager):
        """Two fetches inside the TTL cost exactly one network call."""
        requests = []
        transport = scoreboard_transport({1: [make_event("1", "KC", "BAL")]}, requests=requests)
        service = _service(config_manager, transport)
        try:
            first = await service.fetch_weekly_games(1, 2, "2024", scores_only=True)
            second = await service.fetch_weekly_games(1, 2, "2024", scores_only=True)
        finally:
            await service.aclose()

        assert len(requests) == 1
        assert service.network_calls == 1
        assert first == second
        assert service.cache.stats()["hits"] == 1
        assert service.cache.stats()["misses"] == 1
        metrics = get_metrics_collector()
        assert metrics.get_counter("espn_cache_requests_total", result="hit", cache_class="scoreboard") == 1

    @pytest.mark.asyncio
    async def test_fetch_after_ttl_goes_to_network(self, config_manager):
        """A third fetch once the scoreboard TTL has passed makes a second network call."""
        now = [1000.0]
        requests = []
        transport = scoreboard_transport({1: [make_event("1", "KC", "BAL")]}, requests=requests)
        service = _service(config_manager, transport, clock=lambda: now[0])
        try:
            await service.fetch_weekly_games(1, 2, "2024", scores_only=True)
            await service.fetch_weekly_games(1, 2, "2024", scores_only=True)
            now[0] += 301
            games = await service.fetch_weekly_games(1, 2, "2024", scores_only=True)
        finally:
            await service.aclose()

        assert len(games) == 1
        assert service.network_calls == 2
        assert len(requests) == 2
        assert service.cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_missing_events_yield_empty_list(self, config_manager):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"leagues": []}))
        service = _service(config_manager, transport)
        try:
            assert await service.fetch_weekly_games(1, 2, "2024") == []
        finally:
            await service.aclose()

    @pytest.mark.asyncio
    async def test_failing_week_raises_exhausted_retries(self, config_manager):
        requests = []
        transport = scoreboard_transport({}, requests=requests, fail_weeks={4})
        service = _service(config_manager, transport)
        try:
            with pytest.raises(ExhaustedRetries):
                await service.fetch_weekly_games(4, 2, "2024")
        finally:
            await service.aclose()

        assert len(requests) == 3
        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_year_defaults_to_upstream_season(self, config_manager):
        requests = []
        transport = scoreboard_transport({1: []}, season={"year": 2025, "type": 1}, requests=requests)
        service = _service(config_manager, transport)
        try:
            await service.fetch_weekly_games(1, 1)
        finally:
            await service.aclose()

        assert requests[-1].url.params["dates"] == "2025"


class TestSeasonStatus:
    """Test current season and week derivation."""

    @pytest.mark.asyncio
    async def test_fetch_current_season(self, config_manager):
        service = _service(config_manager, scoreboard_transport({}, season={"year": 2024, "type": 3}))
        try:
            assert await service.fetch_current_season() == {"year": "2024", "type": 3}
        finally:
            await service.aclose()

    @pytest.mark.asyncio
    async def test_fetch_current_season_falls_back_when_unreachable(self, config_manager):
        service = _service(config_manager, httpx.MockTransport(lambda request: httpx.Response(502)))
        try:
            season = await service.fetch_current_season()
        finally:
            await service.aclose()

        assert season["type"] == 2
        assert season["year"].isdigit()

    @pytest.mark.asyncio
    async def test_regular_season_week(self, config_manager):
        service = _service(config_manager, scoreboard_transport({}, season={"year": 2024, "type": 2}))
        try:
            status = await service.get_current_season_status(today=date(2024, 9, 20))
        finally:
            await service.aclose()

        assert status["week"] == 3
        assert status["is_regular_season"] is True
        assert status["type_text"] == "Regular Season"

    @pytest.mark.asyncio
    async def test_week_is_clamped(self, config_manager):
        service = _service(config_manager, scoreboard_transport({}, season={"year": 2024, "type": 2}))
        try:
            early = await service.get_current_season_status(today=date(2024, 8, 1))
            late = await service.get_current_season_status(today=date(2025, 3, 1))
        finally:
            await service.aclose()

        assert early["week"] == 1
        assert late["week"] == 18

    @pytest.mark.asyncio
    async def test_preseason_and_postseason(self, config_manager):
        pre = _service(config_manager, scoreboard_transport({}, season={"year": 2024, "type": 1}))
        post = _service(config_manager, scoreboard_transport({}, season={"year": 2024, "type": 3}))
        try:
            pre_status = await pre.get_current_season_status(today=date(2024, 8, 16))
            post_status = await post.get_current_season_status(today=date(2025, 1, 12))
        finally:
            await pre.aclose()
            await post.aclose()

        assert pre_status["week"] == 3
        assert pre_status["is_preseason"] is True
        assert post_status["week"] == 1
        assert post_status["is_postseason"] is True
