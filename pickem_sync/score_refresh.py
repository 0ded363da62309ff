"""
On-demand "refresh if stale" score updates.

Page views and admin actions call into this service instead of the
orchestrator directly: it checks how old the stored scores for a week are
and only runs a score-only sync when they are stale. Results come back as
standardized response dictionaries, never as exceptions.
"""

import logging
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional

from .errors import (
    ErrorType,
    PickemSyncError,
    StorageError,
    create_error_response,
    create_success_response,
    error_response_from_exception,
)
from .storage import NFLDataStore
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def latest_scores_update(games: List[Dict[str, Any]]) -> Optional[datetime]:
    """Newest scores_updated_at across games, or None when no game has one."""
    stamps = [ts for ts in (_parse_timestamp(g.get("scores_updated_at")) for g in games) if ts]
    return max(stamps) if stamps else None


def format_last_update(last_update: Any, now: Optional[datetime] = None) -> str:
    """Human-readable age of a scores_updated_at timestamp."""
    last_update = _parse_timestamp(last_update)
    if last_update is None:
        return "Never updated"

    now = now or _utc_now()
    minutes_ago = int((now - last_update).total_seconds() // 60)

    if minutes_ago < 1:
        return "Just now"
    if minutes_ago == 1:
        return "1 minute ago"
    if minutes_ago < 60:
        return f"{minutes_ago} minutes ago"

    hours_ago = minutes_ago // 60
    if hours_ago == 1:
        return "1 hour ago"
    if hours_ago < 24:
        return f"{hours_ago} hours ago"
    return last_update.strftime("%Y-%m-%d %H:%M")


class ScoreRefreshService:
    """Runs score-only syncs for a week only when its stored scores are stale."""

    def __init__(
        self,
        store: NFLDataStore,
        orchestrator: SyncOrchestrator,
        stale_threshold_minutes: Optional[float] = None,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.orchestrator = orchestrator
        if stale_threshold_minutes is None:
            stale_threshold_minutes = orchestrator.sync_config.stale_threshold_minutes
        self.stale_threshold_minutes = stale_threshold_minutes
        self._now = now

    async def get_last_update_time(self, season_id: str, week: int) -> Optional[datetime]:
        """Newest scores_updated_at for the week, or None when unknown or unreadable."""
        try:
            games = await self.store.get_games_by_season_and_week(season_id, week)
        except StorageError as e:
            logger.error(f"Error getting last update time: {e}")
            return None
        return latest_scores_update(games)

    async def are_scores_stale(self, season_id: str, week: int) -> bool:
        """
        Stale when the week has no games, no game was ever score-updated, or
        the newest update is older than the threshold.
        A store that cannot be read also counts as stale.
        """
        try:
            games = await self.store.get_games_by_season_and_week(season_id, week)
        except StorageError as e:
            logger.error(f"Error checking if scores are stale: {e}")
            return True
        if not games:
            return True

        last_update = latest_scores_update(games)
        if last_update is None:
            return True

        minutes_since = (self._now() - last_update).total_seconds() / 60
        return minutes_since > self.stale_threshold_minutes

    @staticmethod
    def weeks_to_update(week: int, current_week: int) -> List[int]:
        """
        Pick the weeks to refresh for a request about ``week``.

        The current week also refreshes the previous one (late corrections);
        the previous week also refreshes the current one; anything else is
        refreshed alone.
        """
        if week == current_week:
            weeks = [max(1, week - 1), week]
        elif week == current_week - 1:
            weeks = [week, current_week]
        else:
            weeks = [week]
        return sorted(set(weeks))

    async def update_scores_if_stale(self, season_id: str, week: int) -> Dict[str, Any]:
        try:
            if not await self.are_scores_stale(season_id, week):
                last_update = await self.get_last_update_time(season_id, week)
                return create_success_response({
                    "updated": False,
                    "reason": "Scores are recent",
                    "last_update": last_update.isoformat() if last_update else None,
                })

            logger.info(f"[OnDemand] Updating stale scores for season {season_id}, week {week}")
            status = await self.orchestrator.espn.get_current_season_status()
            weeks = self.weeks_to_update(week, status["week"])
            logger.info(f"[OnDemand] Updating weeks: {', '.join(str(w) for w in weeks)}")

            games_updated = 0
            games_created = 0
            failed_weeks = []
            for week_to_update in weeks:
                result = await self.orchestrator.update_nfl_games(
                    season_id, week_to_update, status["type"], scores_only=True
                )
                games_updated += result.updated
                games_created += result.created
                if result.failed_weeks:
                    failed_weeks.append(week_to_update)

            last_update = await self.get_last_update_time(season_id, week)
            return create_success_response({
                "updated": True,
                "reason": "Scores were stale",
                "last_update": last_update.isoformat() if last_update else None,
                "games_updated": games_updated,
                "games_created": games_created,
                "weeks": weeks,
                "failed_weeks": failed_weeks,
            })
        except PickemSyncError as e:
            return error_response_from_exception(e, {"updated": False, "reason": "Update failed"})
        except ValueError as e:
            return create_error_response(str(e), ErrorType.VALIDATION, {"updated": False, "reason": "Update failed"})

    async def update_current_week_if_stale(self) -> Dict[str, Any]:
        try:
            season = await self.store.get_current_season()
        except StorageError as e:
            return error_response_from_exception(e, {"updated": False, "reason": "Failed to get current week"})
        if not season:
            return create_error_response(
                "No current season set",
                ErrorType.PRECONDITION,
                {"updated": False, "reason": "Failed to get current week"},
            )

        status = await self.orchestrator.espn.get_current_season_status()
        return await self.update_scores_if_stale(season["id"], status["week"])
