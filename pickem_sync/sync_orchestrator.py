"""
Sync orchestration: per-week fetch and reconcile across a season.

Weeks run strictly in ascending order, one at a time, with a short pause
between them to stay under the upstream's implicit rate limit. A week that
cannot be fetched or reconciled is logged and recorded in failed_weeks; the
run carries on and returns whatever succeeded. Only a missing precondition
(no current season) or the caller's deadline ends a run early.
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional, Tuple

from .config import (
    SEASON_TYPE_POSTSEASON,
    SEASON_TYPE_PRESEASON,
    SEASON_TYPE_REGULAR,
    WEEK_MAX,
    WEEK_MIN,
    validate_numeric_input,
    validate_season_type,
)
from .config_manager import ConfigManager
from .errors import ExhaustedRetries, NoCurrentSeasonError, SyncDeadlineExceeded
from .espn_service import ESPNService
from .game_reconciler import GameReconciler
from .logging_config import log_with_context
from .metrics import timing_decorator
from .models import SyncResult, WeekResult
from .storage import NFLDataStore
from .team_resolver import TeamResolver

logger = logging.getLogger(__name__)

WeekPlan = List[Tuple[int, int]]


class SyncOrchestrator:
    """Entry points used by the scheduled poller and on-demand admin triggers."""

    def __init__(
        self,
        store: NFLDataStore,
        espn_service: Optional[ESPNService] = None,
        config_manager: Optional[ConfigManager] = None,
        team_resolver: Optional[TeamResolver] = None,
        reconciler: Optional[GameReconciler] = None,
    ):
        self.store = store
        self.espn = espn_service or ESPNService(config_manager)
        self.config_manager = config_manager or self.espn.config_manager
        config = self.config_manager.config
        self.sync_config = config.sync
        self.team_resolver = team_resolver or TeamResolver(
            store,
            aliases=self.config_manager.get_team_aliases(),
            color_policy=config.teams.color_policy,
            unknown_placeholder=config.teams.unknown_placeholder,
        )
        self.reconciler = reconciler or GameReconciler(store, self.team_resolver)

    def plan_weeks(
        self,
        week: Optional[int],
        season_type: Optional[int],
        include_preseason: Optional[bool] = None,
    ) -> WeekPlan:
        """
        Build the ordered (season_type, week) list for a run.

        One week when ``week`` is given; every week of ``season_type`` when only
        that is given; otherwise preseason (optional) followed by the regular
        season.
        """
        if week is not None:
            return [(validate_season_type(season_type), validate_numeric_input(week, WEEK_MIN, WEEK_MAX))]

        weeks_by_type = {
            SEASON_TYPE_PRESEASON: self.sync_config.preseason_weeks,
            SEASON_TYPE_REGULAR: self.sync_config.regular_season_weeks,
            SEASON_TYPE_POSTSEASON: self.sync_config.postseason_weeks,
        }
        if season_type is not None:
            season_type = validate_season_type(season_type)
            return [(season_type, w) for w in range(1, weeks_by_type[season_type] + 1)]

        if include_preseason is None:
            include_preseason = self.sync_config.include_preseason
        plan: WeekPlan = []
        if include_preseason:
            plan.extend((SEASON_TYPE_PRESEASON, w) for w in range(1, weeks_by_type[SEASON_TYPE_PRESEASON] + 1))
        plan.extend((SEASON_TYPE_REGULAR, w) for w in range(1, weeks_by_type[SEASON_TYPE_REGULAR] + 1))
        return plan

    @timing_decorator("sync_update_nfl_games")
    async def update_nfl_games(
        self,
        season_id: str,
        week: Optional[int] = None,
        season_type: Optional[int] = None,
        scores_only: bool = False,
        year: Optional[str] = None,
        include_preseason: Optional[bool] = None,
        deadline: Optional[float] = None,
    ) -> SyncResult:
        """
        Fetch and reconcile one week, one season type, or the full season.

        Args:
            season_id: Local season the games belong to
            week: Week to sync; omit for every week
            season_type: 1 preseason, 2 regular, 3 postseason
            scores_only: Refresh scores/status only; never create games or
                touch scheduling fields
            year: Upstream season year; defaults to the upstream's current season
            include_preseason: Include preseason weeks in a full-season run
            deadline: Seconds after which the run stops with SyncDeadlineExceeded

        Returns:
            Aggregate SyncResult (a best-effort lower bound)
        """
        if not season_id:
            raise ValueError("season_id is required")
        plan = self.plan_weeks(week, season_type, include_preseason)

        await self.espn.maybe_cleanup()
        result = SyncResult()
        await self._run_with_deadline(plan, season_id, year, scores_only, deadline, result)

        log_with_context(
            logger, "info",
            f"ESPN sync complete: {result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {len(result.failed_weeks)} failed weeks",
            season_id=season_id, scores_only=scores_only,
            games_created=result.created, games_updated=result.updated,
            games_skipped=result.skipped, failed_weeks=result.failed_weeks,
        )
        return result

    @timing_decorator("sync_update_game_scores")
    async def update_game_scores(self, deadline: Optional[float] = None, today: Optional[date] = None) -> SyncResult:
        """
        Score-only sync of the current and previous week of the current season.

        Raises:
            NoCurrentSeasonError: No season is flagged current in storage
        """
        await self.espn.maybe_cleanup()

        season = await self.store.get_current_season()
        if not season:
            raise NoCurrentSeasonError("No current season set")

        status = await self.espn.get_current_season_status(today)
        current_week = status["week"]
        plan = [(status["type"], w) for w in sorted({max(1, current_week - 1), current_week})]

        result = SyncResult()
        await self._run_with_deadline(
            plan, season["id"], season.get("season") or status["year"], True, deadline, result
        )
        logger.info(
            f"[Sync] Score update for weeks {[w for _, w in plan]} complete: "
            f"{result.updated} updated, {result.skipped} skipped"
        )
        return result

    async def _run_with_deadline(
        self,
        plan: WeekPlan,
        season_id: str,
        year: Optional[str],
        scores_only: bool,
        deadline: Optional[float],
        result: SyncResult,
    ) -> None:
        timeout = asyncio.timeout(deadline)
        try:
            async with timeout:
                if year is None:
                    year = (await self.espn.fetch_current_season())["year"]
                await self._run_weeks(plan, season_id, str(year), scores_only, result)
        except TimeoutError:
            if not timeout.expired():
                raise
            logger.error(f"[Sync] Deadline of {deadline}s exceeded; returning partial result")
            raise SyncDeadlineExceeded(deadline, result) from None

    async def _run_weeks(
        self,
        plan: WeekPlan,
        season_id: str,
        year: str,
        scores_only: bool,
        result: SyncResult,
    ) -> None:
        for index, (season_type, week) in enumerate(plan):
            if index > 0 and self.sync_config.inter_week_delay > 0:
                await self.espn.sleep(self.sync_config.inter_week_delay)

            week_result = WeekResult(week=week, season_type=season_type)
            try:
                games = await self.espn.fetch_weekly_games(week, season_type, year, scores_only)
                for game in games:
                    outcome = await self.reconciler.reconcile(game, season_id, scores_only)
                    result.record(outcome, week_result)
            except ExhaustedRetries as e:
                week_result.error = str(e)
                logger.error(f"[Sync] Failed to fetch week {week} (type {season_type}): {e}")
            except Exception as e:
                week_result.error = f"{type(e).__name__}: {e}"
                logger.exception(f"[Sync] Failed to reconcile week {week} (type {season_type})")
            finally:
                result.add_week(week_result)

            log_with_context(
                logger, "debug",
                f"[Sync] Week {week} (type {season_type}): {week_result.created} created, "
                f"{week_result.updated} updated, {week_result.skipped} skipped",
                week=week, season_type=season_type, scores_only=scores_only,
            )
            await self.espn.maybe_cleanup()
