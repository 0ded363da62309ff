"""
ESPN scoreboard service.

Composes the response cache, the retry policy and the pooled HTTP client
into one fetch path (cache -> retry -> client), and parses scoreboard events
into FetchedGame records. Each ESPNService instance owns its own cache and
connection pool; nothing here is a module-level singleton.
"""

import asyncio
import logging
import time
from datetime import date, datetime, UTC
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import (
    CACHE_SCHEDULE,
    CACHE_SCOREBOARD,
    CACHE_SEASON,
    SEASON_TYPE_NAMES,
    SEASON_TYPE_POSTSEASON,
    SEASON_TYPE_PRESEASON,
    SEASON_TYPE_REGULAR,
)
from .config_manager import ConfigManager, get_config_manager
from .espn_client import ESPNClient
from .errors import ExhaustedRetries
from .lifecycle import ConnectionLifecycleManager
from .metrics import get_metrics_collector
from .models import Competitor, FetchedGame, GameStatus, TeamDescriptor
from .response_cache import ResponseCache
from .retry_utils import RetryPolicy, SleepFunc, retry_with_backoff

logger = logging.getLogger(__name__)

SCOREBOARD_ENDPOINT = "/scoreboard"

# Approximate season anchors used to derive the current week
PRESEASON_START = (8, 1)
REGULAR_SEASON_START = (9, 5)


def _parse_score(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("value", value.get("displayValue"))
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _parse_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_competitor(raw: Dict[str, Any]) -> Competitor:
    team = raw.get("team") or {}
    return Competitor(
        home_away=raw.get("homeAway"),
        team=TeamDescriptor(
            code=team.get("abbreviation"),
            name=team.get("name"),
            display_name=team.get("displayName"),
            city=team.get("location"),
            color=team.get("color"),
            alternate_color=team.get("alternateColor"),
            logo=team.get("logo"),
            external_id=team.get("id"),
        ),
        score=_parse_score(raw.get("score")),
    )


def parse_event(event: Dict[str, Any], week: int, season_type: int, year: Optional[str] = None) -> FetchedGame:
    """
    Convert one scoreboard event into a FetchedGame.

    An event without competitions yields a game with no competitors, which
    the reconciler rejects as malformed.
    """
    competitions = event.get("competitions") or []
    competition = competitions[0] if competitions else {}
    status_type = ((event.get("status") or {}).get("type")) or {}

    return FetchedGame(
        external_id=event.get("id"),
        name=event.get("name"),
        week=_parse_int((event.get("week") or {}).get("number"), week),
        season_type=season_type,
        game_date=event.get("date"),
        start_time=competition.get("date") or event.get("date"),
        status=GameStatus(
            status_type=status_type.get("name") or "STATUS_SCHEDULED",
            status_detail=status_type.get("detail"),
            completed=bool(status_type.get("completed", False)),
        ),
        competitors=[parse_competitor(c) for c in competition.get("competitors") or []],
        season_year=year,
    )


class ESPNService:
    """Fetches and parses ESPN NFL scoreboard data through cache and retry."""

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        client: Optional[ESPNClient] = None,
        cache: Optional[ResponseCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config_manager = config_manager or get_config_manager()
        config = self.config_manager.config
        self.client = client or ESPNClient(self.config_manager, transport=transport)
        self.cache = cache or ResponseCache(
            ttls=self.config_manager.get_cache_ttls(),
            clock=clock,
            sweep_policy=config.cache.sweep_policy,
        )
        self.retry_policy = retry_policy or RetryPolicy.from_config(self.config_manager)
        self.sleep = sleep
        self.lifecycle = ConnectionLifecycleManager(
            self.cache,
            self.client,
            cleanup_interval=config.lifecycle.cleanup_interval,
            clock=clock,
        )
        self.network_calls = 0

    async def fetch(self, endpoint: str, params: Optional[Dict[str, Any]], cache_class: str) -> Any:
        """
        Fetch an endpoint, answering from cache when a live entry exists.

        Raises:
            ExhaustedRetries: If every network attempt failed
        """
        metrics = get_metrics_collector()
        cached = self.cache.get(endpoint, params, cache_class)
        if cached is not None:
            metrics.increment_counter("espn_cache_requests_total", result="hit", cache_class=cache_class)
            logger.debug(f"[Cache] Hit for {endpoint} {params}")
            return cached

        self.network_calls += 1
        payload = await retry_with_backoff(
            self.client.get_json,
            endpoint,
            params,
            policy=self.retry_policy,
            sleep=self.sleep,
            operation_name=f"GET {endpoint}",
        )
        self.cache.set(endpoint, params, payload, cache_class)
        self.cache.record_miss()
        metrics.increment_counter("espn_cache_requests_total", result="miss", cache_class=cache_class)
        return payload

    async def fetch_current_season(self) -> Dict[str, Any]:
        """
        Get the upstream's current season year and type.

        Falls back to the current calendar year, regular season, when the
        payload lacks season data or the upstream cannot be reached.
        """
        fallback = {"year": str(datetime.now(UTC).year), "type": SEASON_TYPE_REGULAR}
        try:
            data = await self.fetch(SCOREBOARD_ENDPOINT, None, CACHE_SEASON)
        except ExhaustedRetries as e:
            logger.error(f"Failed to fetch current season, assuming {fallback['year']}: {e}")
            return fallback

        season = (data or {}).get("season") or {}
        if season.get("year"):
            return {
                "year": str(season["year"]),
                "type": _parse_int(season.get("type"), SEASON_TYPE_REGULAR),
            }
        return fallback

    async def fetch_weekly_games(
        self,
        week: int,
        season_type: int = SEASON_TYPE_REGULAR,
        year: Optional[str] = None,
        scores_only: bool = False,
    ) -> List[FetchedGame]:
        """
        Fetch and parse one week of games.

        Args:
            week: Week number within the season type
            season_type: 1 preseason, 2 regular, 3 postseason
            year: Season year; defaults to the upstream's current season
            scores_only: Use the short scoreboard TTL instead of the schedule TTL

        Raises:
            ExhaustedRetries: If the week could not be fetched
        """
        if year is None:
            year = (await self.fetch_current_season())["year"]

        params = {"dates": str(year), "week": week, "seasontype": season_type}
        cache_class = CACHE_SCOREBOARD if scores_only else CACHE_SCHEDULE
        data = await self.fetch(SCOREBOARD_ENDPOINT, params, cache_class)

        events = (data or {}).get("events")
        if not isinstance(events, list):
            logger.warning(f"No events found in ESPN response for week {week} (type {season_type})")
            return []

        return [parse_event(event, week, season_type, str(year)) for event in events]

    async def get_current_season_status(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Derive the current week and season type from the upstream season and today's date."""
        season_info = await self.fetch_current_season()
        today = today or datetime.now(UTC).date()
        year = int(season_info["year"])
        season_type = season_info["type"]

        if season_type == SEASON_TYPE_PRESEASON:
            start = date(year, *PRESEASON_START)
            current_week = max(1, min(4, (today - start).days // 7 + 1))
        elif season_type == SEASON_TYPE_POSTSEASON:
            current_week = 1
        else:
            start = date(year, *REGULAR_SEASON_START)
            current_week = max(1, min(18, (today - start).days // 7 + 1))

        return {
            "year": season_info["year"],
            "type": season_type,
            "type_text": SEASON_TYPE_NAMES.get(season_type, "Regular Season"),
            "week": current_week,
            "is_preseason": season_type == SEASON_TYPE_PRESEASON,
            "is_regular_season": season_type == SEASON_TYPE_REGULAR,
            "is_postseason": season_type == SEASON_TYPE_POSTSEASON,
        }

    async def maybe_cleanup(self) -> bool:
        return await self.lifecycle.maybe_cleanup()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ESPNService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
